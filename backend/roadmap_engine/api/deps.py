"""API dependencies."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.core.auth import get_auth_user
from roadmap_engine.core.database import get_session
from roadmap_engine.core.logging import bind_request_context


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async for session in get_session():
        yield session


async def get_actor_id(user_id: Annotated[int, Depends(get_auth_user)]) -> int:
    """Authenticated user id, bound to the request's log context."""
    bind_request_context(actor_id=user_id)
    return user_id


DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[int, Depends(get_actor_id)]
