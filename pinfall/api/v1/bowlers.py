"""
Bowler profile endpoints
"""
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from pinfall.core.config import settings
from pinfall.core.dependencies import Identity, get_identity
from pinfall.core.rate_limit import limiter
from pinfall.database import get_db
from pinfall.schemas.bowler import (
    BowlerHistoryResponse,
    BowlerListResponse,
    BowlerProfileUpdate,
    BowlerResponse,
)
from pinfall.services.bowler_service import bowler_service

router = APIRouter(prefix="/bowlers", tags=["bowlers"])


@router.get("", response_model=BowlerListResponse)
async def list_bowlers(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """List bowlers, best tournament average first"""
    return bowler_service.list_bowlers(db, limit, offset)


@router.get("/lookup", response_model=BowlerResponse)
@limiter.limit(settings.GENERAL_RATE_LIMIT)
async def lookup_bowler(
    request: Request,
    email: str = Query(..., min_length=3, max_length=254),
    db: Session = Depends(get_db),
):
    """Find a bowler profile by email"""
    return bowler_service.lookup(db, email)


@router.get("/{bowler_id}", response_model=BowlerResponse)
async def get_bowler(
    bowler_id: UUID,
    db: Session = Depends(get_db),
):
    """Get a bowler profile"""
    return bowler_service.get_bowler(db, bowler_id)


@router.put("/{bowler_id}", response_model=BowlerResponse)
@limiter.limit(settings.GENERAL_RATE_LIMIT)
async def update_bowler_profile(
    request: Request,
    bowler_id: UUID,
    profile_data: BowlerProfileUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    """Edit profile details (the bowler themselves, or an admin)"""
    return bowler_service.update_profile(db, bowler_id, profile_data, identity)


@router.get("/{bowler_id}/history", response_model=BowlerHistoryResponse)
async def get_bowler_history(
    bowler_id: UUID,
    db: Session = Depends(get_db),
):
    """Tournament history with per-stage scores and recorded results"""
    return bowler_service.get_history(db, bowler_id)
