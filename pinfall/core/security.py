"""
JWT helpers for bowler and admin tokens
"""
from datetime import timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from pinfall.core.config import settings
from pinfall.utils.time_utils import utc_now


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT carrying `data` plus an expiry claim"""
    to_encode = data.copy()
    expire = utc_now() + (expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token payload, or None when the token is invalid or expired"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def create_admin_token() -> str:
    return create_access_token(data={"admin": True})


def create_bowler_token(bowler_id: str) -> str:
    return create_access_token(data={"sub": str(bowler_id), "admin": False})
