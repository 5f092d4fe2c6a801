"""
Request identity dependencies.

The auth layer hands the core two facts per request: which bowler (if any) is
signed in, and whether the caller is an admin. Both come from a bearer JWT.
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pinfall.core.exceptions import AuthorizationError
from pinfall.core.security import decode_access_token
from pinfall.database import get_db
from pinfall.models.bowler import Bowler

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Identity:
    bowler_id: Optional[UUID] = None
    is_admin: bool = False


def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    """Decode the bearer token; anonymous callers get an empty identity"""
    if credentials is None:
        return Identity()

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        return Identity()

    bowler_id = None
    if payload.get("sub"):
        try:
            bowler_id = UUID(str(payload["sub"]))
        except ValueError:
            bowler_id = None
    return Identity(bowler_id=bowler_id, is_admin=bool(payload.get("admin", False)))


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise AuthorizationError("Admin access required")
    return identity


def get_optional_bowler(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> Optional[Bowler]:
    if identity.bowler_id is None:
        return None
    return db.query(Bowler).filter(Bowler.id == identity.bowler_id).first()


def get_current_bowler(bowler: Optional[Bowler] = Depends(get_optional_bowler)) -> Bowler:
    if bowler is None:
        raise AuthorizationError("Authentication required")
    return bowler
