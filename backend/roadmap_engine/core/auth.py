"""Authentication utilities.

Callers identify themselves with an ``X-User-Id`` header. Role and project
assignment checks happen in the service layer, not here.

WARNING: The header is trusted as-is. Put the API behind a gateway that
authenticates users and sets the header before exposing it.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

USER_ID_HEADER = "X-User-Id"


def get_auth_user(x_user_id: Annotated[str | None, Header()] = None) -> int:
    """Get the current authenticated user ID for HTTP requests.

    Raises:
        HTTPException: 401 when the header is missing or not an integer.
    """
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_ID_HEADER} header",
        )
    try:
        return int(x_user_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {USER_ID_HEADER} header",
        ) from exc


# Type alias for FastAPI dependency
CurrentUserDep = Annotated[int, Depends(get_auth_user)]
