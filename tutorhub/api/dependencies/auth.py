# tutorhub/api/dependencies/auth.py
"""
Acting-user dependencies.

Authentication happens upstream; the gateway forwards the authenticated
user's ULID in the ``X-User-Id`` header.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

USER_ID_HEADER = "X-User-Id"


def get_optional_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
) -> Optional[str]:
    if x_user_id is None:
        return None
    user_id = x_user_id.strip()
    return user_id or None


def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
) -> str:
    """Return the acting user id or fail with 401."""
    user_id = get_optional_user_id(x_user_id)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "message": f"Missing {USER_ID_HEADER} header",
                "code": "UNAUTHENTICATED",
                "details": {},
            },
        )
    return user_id
