"""Result envelope shared by the public service operations."""

from typing import Any

from pydantic import BaseModel

from roadmap_engine.core.errors import RoadmapEngineError


class ActionResult(BaseModel):
    """Explicit success/failure value returned across the public boundary."""

    success: bool
    error: str | None = None
    error_code: str | None = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_code: str = "INTERNAL_ERROR") -> "ActionResult":
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def from_error(cls, exc: RoadmapEngineError) -> "ActionResult":
        return cls(success=False, error=exc.message, error_code=exc.code)
