"""Caller identity dependencies for FastAPI routes.

Accounts live outside this service; the caller names the user with the
X-User-Id header.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

USER_ID_HEADER = "X-User-Id"
MAX_USER_ID_CHARS = 64


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)) -> str:
    """Resolve the calling user's id from the X-User-Id header."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_ID_HEADER} header",
        )
    if len(user_id) > MAX_USER_ID_CHARS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{USER_ID_HEADER} must be at most {MAX_USER_ID_CHARS} characters",
        )
    return user_id
