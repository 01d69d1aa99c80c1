# newsfeed/dependencies.py
import os
from typing import Optional

from fastapi import Header, HTTPException, status


def current_user(x_user_id: Optional[int] = Header(default=None)) -> int:
    # Identity arrives from the auth gateway in front of the service
    if x_user_id is None or x_user_id < 1:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header required")
    return x_user_id


def require_admin(x_api_key: Optional[str] = Header(default=None)) -> None:
    expected = os.getenv("ADMIN_API_KEY", "")
    if not expected:
        # Fail closed if the key was never configured
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfigured: ADMIN_API_KEY not set."
        )
    if x_api_key != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
