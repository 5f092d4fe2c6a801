"""
Bowler profile service
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pinfall.core.exceptions import AuthorizationError, NotFoundError
from pinfall.core.dependencies import Identity
from pinfall.models.bowler import Bowler, BowlerTournament, TournamentResult
from pinfall.models.registration import Registration
from pinfall.models.tournament import Tournament
from pinfall.schemas.bowler import (
    BowlerHistoryResponse,
    BowlerHistoryTournament,
    BowlerListResponse,
    BowlerProfileUpdate,
    BowlerResponse,
    TournamentResultCreate,
    TournamentResultResponse,
)
from pinfall.schemas.registration import StageScoreResponse
from pinfall.utils.numbers import round_half_up
from pinfall.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def _average(pins: int, games: int) -> Optional[int]:
    if not games:
        return None
    return round_half_up(Decimal(pins) / Decimal(games))


class BowlerService:
    """Service for bowler profile operations"""

    def get_by_email(self, db: Session, email: str) -> Optional[Bowler]:
        return db.query(Bowler).filter(Bowler.email == email).first()

    def get_bowler(self, db: Session, bowler_id: UUID) -> Bowler:
        bowler = db.query(Bowler).filter(Bowler.id == bowler_id).first()
        if not bowler:
            raise NotFoundError("Bowler not found")
        return bowler

    def lookup(self, db: Session, email: str) -> Bowler:
        bowler = self.get_by_email(db, email.strip().lower())
        if not bowler:
            raise NotFoundError("Bowler not found")
        return bowler

    def _create_profile(self, db: Session, email: str, **fields) -> Bowler:
        """
        Insert a new profile inside a savepoint. A concurrent first
        registration with the same email may insert it first; the
        surrounding transaction then carries on with that row.
        """
        try:
            with db.begin_nested():
                bowler = Bowler(email=email, **fields)
                db.add(bowler)
        except IntegrityError:
            logger.info(f"Bowler profile for {email} created concurrently, reusing it")
            return db.query(Bowler).filter(Bowler.email == email).one()

        logger.info(f"Created bowler profile for {email}")
        return bowler

    def upsert_from_registration(
        self,
        db: Session,
        *,
        email: str,
        player_name: str,
        phone: str,
        gender: Optional[str],
        average_score: Optional[int],
        tournament_id: UUID,
        now: Optional[datetime] = None,
    ) -> Bowler:
        """
        Create the profile on first registration, otherwise refresh contact
        details. Adds the tournament to the bowler's history once.
        The caller commits.
        """
        now = now or utc_now()
        bowler = self.get_by_email(db, email)

        if bowler is None:
            bowler = self._create_profile(
                db,
                email,
                player_name=player_name,
                phone=phone,
                gender=gender,
                current_average=average_score,
            )
        else:
            bowler.player_name = player_name
            bowler.phone = phone
            if gender:
                bowler.gender = gender
            if average_score is not None:
                bowler.current_average = average_score

        already_entered = any(
            entry.tournament_id == tournament_id for entry in bowler.tournaments_entered
        )
        if not already_entered:
            bowler.tournaments_entered.append(BowlerTournament(
                tournament_id=tournament_id,
                registered_at=now,
                status="registered",
            ))

        return bowler

    def set_tournament_status(self, bowler: Optional[Bowler], tournament_id: UUID, status: str) -> None:
        if bowler is None:
            return
        for entry in bowler.tournaments_entered:
            if entry.tournament_id == tournament_id:
                entry.status = status

    def update_profile(
        self,
        db: Session,
        bowler_id: UUID,
        data: BowlerProfileUpdate,
        identity: Identity,
    ) -> Bowler:
        """Edit profile fields. Only the bowler themselves or an admin may do so."""
        bowler = self.get_bowler(db, bowler_id)
        if not identity.is_admin and identity.bowler_id != bowler.id:
            raise AuthorizationError("You can only edit your own profile")

        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(bowler, key, value)
        if identity.bowler_id == bowler.id and bowler.claimed_at is None:
            bowler.claimed_at = utc_now()

        db.commit()
        db.refresh(bowler)
        logger.info(f"Bowler {bowler.id} profile updated: {sorted(data.model_fields_set)}")
        return bowler

    # Recorded results and statistics

    def _series_by_tournament(self, db: Session, bowler: Bowler) -> Dict[UUID, List[List[int]]]:
        """
        Every game series the bowler has bowled, grouped by tournament. A
        stage entry is one series; a recorded result's squad is one series.
        Where a tournament has a recorded result it replaces that
        tournament's stage scores, so no game is counted twice.
        """
        series: Dict[UUID, List[List[int]]] = {}
        registrations = db.query(Registration).filter(Registration.email == bowler.email).all()
        for registration in registrations:
            blocks = [list(entry.scores) for entry in registration.stage_scores if entry.scores]
            if blocks:
                series[registration.tournament_id] = blocks

        results = db.query(TournamentResult).filter(TournamentResult.bowler_id == bowler.id).all()
        for result in results:
            blocks = result.game_series()
            if blocks:
                series[result.tournament_id] = blocks
        return series

    def recalculate_stats(self, db: Session, bowler: Bowler) -> Bowler:
        """Replay every stage score and recorded result for the bowler. The caller commits."""
        blocks = [block for tournament in self._series_by_tournament(db, bowler).values() for block in tournament]
        games = [score for block in blocks for score in block]

        if games:
            bowler.tournament_average = _average(sum(games), len(games))
            bowler.high_game = max(games)
            bowler.high_series = max(sum(block) for block in blocks)
        else:
            bowler.tournament_average = None
            bowler.high_game = None
            bowler.high_series = None
        return bowler

    def record_result(self, db: Session, data: TournamentResultCreate) -> TournamentResult:
        """Create or replace a bowler's recorded result for a tournament, then refresh their stats"""
        bowler = self.get_bowler(db, data.bowler_id)
        tournament = db.query(Tournament).filter(Tournament.id == data.tournament_id).first()
        if not tournament:
            raise NotFoundError("Tournament not found")

        squad_results = []
        for squad in data.squad_results:
            pins = sum(squad.games)
            squad_results.append({
                "squad_id": str(squad.squad_id) if squad.squad_id else None,
                "squad_name": squad.squad_name,
                "games": list(squad.games),
                "total_pins": pins,
                "game_count": len(squad.games),
                "average": _average(pins, len(squad.games)),
            })
        games = [score for squad in data.squad_results for score in squad.games]

        result = db.query(TournamentResult).filter(
            TournamentResult.bowler_id == bowler.id,
            TournamentResult.tournament_id == tournament.id,
        ).first()
        if result is None:
            result = TournamentResult(bowler_id=bowler.id, tournament_id=tournament.id)
            db.add(result)

        registration = db.query(Registration).filter(
            Registration.tournament_id == tournament.id,
            Registration.email == bowler.email,
        ).first()
        result.registration_id = registration.id if registration else None
        result.squad_results = squad_results
        result.total_pins = sum(games)
        result.total_games = len(games)
        result.tournament_average = _average(sum(games), len(games))
        result.high_game = max(games)
        result.high_series = max(squad["total_pins"] for squad in squad_results)
        result.final_position = data.final_position
        result.total_participants = data.total_participants
        result.entered_by = "admin"
        result.verified = True

        db.flush()
        self.recalculate_stats(db, bowler)
        db.commit()
        db.refresh(result)

        logger.info(
            f"Recorded {len(games)} game(s) for bowler {bowler.id} in tournament {tournament.id}"
        )
        return result

    # Views

    def list_bowlers(self, db: Session, limit: int = 50, offset: int = 0) -> BowlerListResponse:
        query = db.query(Bowler)
        total = query.count()
        bowlers = query.order_by(
            Bowler.tournament_average.is_(None),
            desc(Bowler.tournament_average),
            Bowler.player_name,
        ).offset(offset).limit(limit).all()
        return BowlerListResponse(
            bowlers=[BowlerResponse.model_validate(b) for b in bowlers],
            total_count=total,
        )

    def get_history(self, db: Session, bowler_id: UUID) -> BowlerHistoryResponse:
        """Per-tournament scores and recorded results for a bowler, with an overall average"""
        bowler = self.get_bowler(db, bowler_id)

        rows = db.query(Registration, Tournament).join(
            Tournament, Registration.tournament_id == Tournament.id
        ).filter(
            Registration.email == bowler.email
        ).order_by(desc(Tournament.start_date)).all()

        tournaments = []
        for registration, tournament in rows:
            tournaments.append(BowlerHistoryTournament(
                tournament_id=tournament.id,
                tournament_name=tournament.name,
                start_date=tournament.start_date,
                status=tournament.status,
                registration_status=registration.status,
                stage_scores=[StageScoreResponse.model_validate(e) for e in registration.stage_scores],
                total_pins=sum(sum(entry.scores or []) for entry in registration.stage_scores),
                games=sum(len(entry.scores or []) for entry in registration.stage_scores),
            ))

        results = db.query(TournamentResult).filter(
            TournamentResult.bowler_id == bowler.id
        ).order_by(desc(TournamentResult.created_at)).all()

        games = [
            score
            for blocks in self._series_by_tournament(db, bowler).values()
            for block in blocks
            for score in block
        ]

        return BowlerHistoryResponse(
            bowler=BowlerResponse.model_validate(bowler),
            tournaments=tournaments,
            results=[TournamentResultResponse.model_validate(r) for r in results],
            total_games=len(games),
            overall_average=_average(sum(games), len(games)),
        )


bowler_service = BowlerService()
