"""
Spot reservation endpoints
"""
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from pinfall.core.config import settings
from pinfall.core.rate_limit import limiter
from pinfall.database import get_db
from pinfall.schemas.reservation import (
    ReservationCreate,
    ReservationCreateResponse,
    ReservationReleaseResponse,
    ReservationResponse,
    ReservationStatusResponse,
)
from pinfall.services.reservation_service import new_session_id, reservation_service
from pinfall.utils.time_utils import utc_now

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("", response_model=ReservationCreateResponse)
@limiter.limit(settings.RESERVATION_RATE_LIMIT)
async def create_reservation(
    request: Request,
    reservation_data: ReservationCreate,
    x_session_id: Optional[str] = Header(None, max_length=64),
    db: Session = Depends(get_db),
):
    """
    Hold squad slots while the registrant fills out the form

    Send the same X-Session-Id again to get the existing hold back; without
    the header a new session id is issued in the response.
    """
    session_id = x_session_id or new_session_id()
    reservation, reused = reservation_service.create(
        db,
        tournament_id=reservation_data.tournament_id,
        squad_ids=reservation_data.squads,
        session_id=session_id,
        email=reservation_data.email,
    )
    if reused:
        message = "Using existing reservation"
    else:
        message = f"Spot reserved for {settings.RESERVATION_TTL_MINUTES} minutes"

    return ReservationCreateResponse(
        reservation=ReservationResponse.model_validate(reservation),
        expires_at=reservation.expires_at,
        reused=reused,
        message=message,
    )


@router.get("/{session_id}", response_model=ReservationStatusResponse)
@limiter.limit(settings.GENERAL_RATE_LIMIT)
async def get_reservation(
    request: Request,
    session_id: str,
    db: Session = Depends(get_db),
):
    """Live hold for a session, with seconds remaining"""
    now = utc_now()
    reservation = reservation_service.get_or_404(db, session_id, now)
    return ReservationStatusResponse(
        reservation=ReservationResponse.model_validate(reservation),
        time_remaining=reservation_service.time_remaining(reservation, now),
        expires_at=reservation.expires_at,
    )


@router.delete("/{session_id}", response_model=ReservationReleaseResponse)
@limiter.limit(settings.RESERVATION_RATE_LIMIT)
async def release_reservation(
    request: Request,
    session_id: str,
    db: Session = Depends(get_db),
):
    """Release a hold. Releasing an unknown or expired session is not an error."""
    reservation_service.release(db, session_id)
    return ReservationReleaseResponse(success=True, message="Reservation released")
