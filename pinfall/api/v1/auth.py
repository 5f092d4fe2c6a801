"""
Authentication endpoints - admin login and JWT issue
"""
import logging
import secrets

from fastapi import APIRouter, Request, status

from pinfall.core.config import settings
from pinfall.core.exceptions import AuthorizationError
from pinfall.core.rate_limit import limiter
from pinfall.core.security import create_admin_token
from pinfall.schemas.auth import AdminLoginRequest, Token

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/admin/login", response_model=Token, status_code=status.HTTP_200_OK)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def admin_login(request: Request, credentials: AdminLoginRequest):
    """
    Exchange the admin password for an admin bearer token

    - **password**: value of ADMIN_PASSWORD
    """
    if not secrets.compare_digest(credentials.password.encode(), settings.ADMIN_PASSWORD.encode()):
        logger.warning(f"Failed admin login from {request.client.host if request.client else 'unknown'}")
        raise AuthorizationError("Invalid admin password")

    logger.info("Admin login successful")
    return Token(access_token=create_admin_token(), is_admin=True)
