"""
Recorded tournament result endpoints (admin)
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from pinfall.core.config import settings
from pinfall.core.dependencies import Identity, require_admin
from pinfall.core.rate_limit import limiter
from pinfall.database import get_db
from pinfall.schemas.bowler import TournamentResultCreate, TournamentResultResponse
from pinfall.services.bowler_service import bowler_service

router = APIRouter(prefix="/results", tags=["results"])


@router.post("", response_model=TournamentResultResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ADMIN_WRITE_RATE_LIMIT)
async def record_tournament_result(
    request: Request,
    result_data: TournamentResultCreate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """
    Record or replace a bowler's result for a tournament

    The bowler's tournament average, high game and high series are
    recalculated from all their games afterwards.
    """
    return bowler_service.record_result(db, result_data)
