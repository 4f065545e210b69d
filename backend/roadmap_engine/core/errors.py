"""Error taxonomy for the roadmap engine.

Every failure the engine reports to callers is one of these. The public
service layer (``roadmap_engine.services.roadmap_service``) turns them into
``ActionResult`` failures; anything else is treated as unexpected.
"""


class RoadmapEngineError(Exception):
    """Base class for expected engine failures."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class QuotaExceededError(RoadmapEngineError):
    """Daily or monthly LLM allowance used up."""

    code = "QUOTA_EXCEEDED"

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class GenerationError(RoadmapEngineError):
    """LLM transport failure or unparseable output after retries."""

    code = "GENERATION_FAILED"


class PersistenceError(RoadmapEngineError):
    """A store write failed."""

    code = "PERSISTENCE_FAILED"


class InvalidStateTransitionError(RoadmapEngineError):
    """Operation not allowed for the version's current status."""

    code = "INVALID_STATE"


class ValidationBlockedError(RoadmapEngineError):
    """Finalize attempted on a version whose validation flags are not both set."""

    code = "VALIDATION_BLOCKED"


class AuthorizationError(RoadmapEngineError):
    """Actor is not allowed to perform the operation."""

    code = "FORBIDDEN"


class NotFoundError(RoadmapEngineError):
    code = "NOT_FOUND"


class IncompleteProjectError(RoadmapEngineError):
    """Project lacks the diagnostic inputs needed for generation."""

    code = "INCOMPLETE_PROJECT"
