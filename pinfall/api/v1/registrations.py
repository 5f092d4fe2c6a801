"""
Registration endpoints
"""
import logging
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session

from pinfall.core.config import settings
from pinfall.core.dependencies import Identity, get_current_bowler, require_admin
from pinfall.core.rate_limit import limiter
from pinfall.database import get_db
from pinfall.models.bowler import Bowler
from pinfall.models.email_template import REGISTRATION_CONFIRMATION
from pinfall.schemas.registration import (
    MessageResponse,
    RegistrationCreate,
    RegistrationResponse,
    RegistrationSquadsUpdate,
    RegistrationStatus,
    RegistrationUpdate,
)
from pinfall.services.email_service import email_service
from pinfall.services.registration_service import registration_service

router = APIRouter(prefix="/registrations", tags=["registrations"])
logger = logging.getLogger(__name__)


@router.post("", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.REGISTRATION_RATE_LIMIT)
async def create_registration(
    request: Request,
    registration_data: RegistrationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Register a bowler for a tournament

    Rejections carry the specific rule that failed, e.g. a full squad or a
    passed deadline. The confirmation email is sent after the response.
    """
    registration = registration_service.register(db, registration_data)

    # Email delivery never affects the registration result
    background_tasks.add_task(
        email_service.send_registration_confirmation,
        registration_service.confirmation_event(registration),
        email_service.get_template_content(db, REGISTRATION_CONFIRMATION),
    )
    return registration


@router.get("", response_model=List[RegistrationResponse])
async def list_registrations(
    tournament_id: Optional[UUID] = Query(None, description="Filter by tournament"),
    status: Optional[RegistrationStatus] = Query(None, description="Filter by status"),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """List registrations (admin)"""
    return registration_service.list_registrations(db, tournament_id, status)


@router.get("/{registration_id}", response_model=RegistrationResponse)
async def get_registration(
    registration_id: UUID,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Get a registration (admin)"""
    return registration_service.get_registration(db, registration_id)


@router.put("/{registration_id}", response_model=RegistrationResponse)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def update_registration(
    request: Request,
    registration_id: UUID,
    update_data: RegistrationUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """
    Update status, notes, current stage or one stage's scores (admin)

    - **stage_scores**: `{stage_index, scores, bonus_pins | match_results, handicap}`
    """
    return registration_service.admin_update(db, registration_id, update_data)


@router.put("/{registration_id}/squads", response_model=RegistrationResponse)
@limiter.limit(settings.GENERAL_RATE_LIMIT)
async def update_own_squads(
    request: Request,
    registration_id: UUID,
    squads_data: RegistrationSquadsUpdate,
    db: Session = Depends(get_db),
    bowler: Bowler = Depends(get_current_bowler),
):
    """Change squads on your own registration while the tournament is upcoming"""
    return registration_service.update_own_squads(db, registration_id, bowler, squads_data)


@router.delete("/{registration_id}/cancel", response_model=MessageResponse)
@limiter.limit(settings.GENERAL_RATE_LIMIT)
async def cancel_own_registration(
    request: Request,
    registration_id: UUID,
    db: Session = Depends(get_db),
    bowler: Bowler = Depends(get_current_bowler),
):
    """Cancel your own registration while the tournament is upcoming"""
    registration_service.cancel_own(db, registration_id, bowler)
    return MessageResponse(message="Registration cancelled successfully")


@router.delete("/{registration_id}", response_model=MessageResponse)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def delete_registration(
    request: Request,
    registration_id: UUID,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Delete a registration (admin)"""
    registration_service.admin_delete(db, registration_id)
    return MessageResponse(message="Registration deleted successfully")
