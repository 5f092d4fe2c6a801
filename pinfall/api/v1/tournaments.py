"""
Tournament API endpoints
"""
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from pinfall.core.config import settings
from pinfall.core.dependencies import Identity, require_admin
from pinfall.core.rate_limit import limiter
from pinfall.database import get_db
from pinfall.schemas.registration import (
    MessageResponse,
    PublicRegistration,
    RegistrationCountResponse,
)
from pinfall.schemas.results import AdvancementResponse, TournamentResultsResponse
from pinfall.schemas.tournament import (
    OpenRegistrationResponse,
    SquadListResponse,
    TournamentAvailabilityResponse,
    TournamentCreate,
    TournamentListResponse,
    TournamentResponse,
    TournamentUpdate,
)
from pinfall.services.advancement_service import advancement_service
from pinfall.services.capacity_service import capacity_service
from pinfall.services.leaderboard_service import leaderboard_service
from pinfall.services.tournament_service import tournament_service

router = APIRouter(prefix="/tournaments", tags=["tournaments"])


@router.get("", response_model=TournamentListResponse)
async def list_tournaments(
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """List all tournaments"""
    return tournament_service.list_tournaments(db, status, limit, offset)


@router.post("", response_model=TournamentResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def create_tournament(
    request: Request,
    tournament_data: TournamentCreate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Create a tournament with its squads and scoring format (admin)"""
    return tournament_service.create_tournament(db, tournament_data)


@router.get("/{tournament_id}", response_model=TournamentResponse)
async def get_tournament(
    tournament_id: UUID,
    db: Session = Depends(get_db),
):
    """Get tournament details"""
    return tournament_service.get_tournament(db, tournament_id)


@router.put("/{tournament_id}", response_model=TournamentResponse)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def update_tournament(
    request: Request,
    tournament_id: UUID,
    tournament_data: TournamentUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Update a tournament (admin)"""
    return tournament_service.update_tournament(db, tournament_id, tournament_data)


@router.delete("/{tournament_id}", response_model=MessageResponse)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def delete_tournament(
    request: Request,
    tournament_id: UUID,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Delete a tournament with its squads, registrations and holds (admin)"""
    tournament_service.delete_tournament(db, tournament_id)
    return MessageResponse(message="Tournament deleted successfully")


@router.post("/{tournament_id}/open-registration", response_model=OpenRegistrationResponse)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def open_registration(
    request: Request,
    tournament_id: UUID,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Open registration now, ignoring the scheduled open date (admin)"""
    tournament = tournament_service.open_registration(db, tournament_id)
    return OpenRegistrationResponse(
        message="Registration opened successfully",
        tournament=TournamentResponse.model_validate(tournament),
    )


@router.get("/{tournament_id}/squads/availability", response_model=TournamentAvailabilityResponse)
async def get_squad_availability(
    tournament_id: UUID,
    db: Session = Depends(get_db),
):
    """Registered, reserved and available slots per squad"""
    return capacity_service.get_tournament_availability(db, tournament_id)


@router.get("/{tournament_id}/squads/list", response_model=SquadListResponse)
async def get_squad_lists(
    tournament_id: UUID,
    db: Session = Depends(get_db),
):
    """Bowlers registered in each squad"""
    return tournament_service.get_squad_lists(db, tournament_id)


@router.get("/{tournament_id}/registrations/count", response_model=RegistrationCountResponse)
async def get_registration_count(
    tournament_id: UUID,
    db: Session = Depends(get_db),
):
    """Number of pending and confirmed registrations"""
    return RegistrationCountResponse(count=tournament_service.count_registrations(db, tournament_id))


@router.get("/{tournament_id}/registrations", response_model=List[PublicRegistration])
async def list_tournament_registrations(
    tournament_id: UUID,
    db: Session = Depends(get_db),
):
    """Public list of registered bowlers, by name"""
    return tournament_service.list_public_registrations(db, tournament_id)


@router.get("/{tournament_id}/results", response_model=TournamentResultsResponse)
async def get_tournament_results(
    tournament_id: UUID,
    db: Session = Depends(get_db),
):
    """Leaderboard, grouped by stage when the format has stages"""
    return leaderboard_service.get_tournament_results(db, tournament_id)


@router.post("/{tournament_id}/advance", response_model=AdvancementResponse)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def advance_bowlers(
    request: Request,
    tournament_id: UUID,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Move each stage's top finishers into the next stage (admin)"""
    advanced = advancement_service.advance(db, tournament_id)
    return AdvancementResponse(
        advanced=advanced,
        message=f"Advanced {advanced} bowler{'s' if advanced != 1 else ''}",
    )
