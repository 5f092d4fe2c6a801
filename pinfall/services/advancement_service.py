"""
Advancement engine: moves top finishers of a stage into the next one
"""
import logging
from typing import List
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pinfall.core.exceptions import NotFoundError
from pinfall.models.registration import ACTIVE_STATUSES, Registration, StageScore
from pinfall.models.tournament import Tournament
from pinfall.schemas.tournament import StageConfig, TournamentFormat
from pinfall.services.leaderboard_service import rank_results
from pinfall.services.scoring_service import (
    is_stage_complete,
    load_format,
    result_for_registration,
)
from pinfall.utils.numbers import percent_of

logger = logging.getLogger(__name__)


def outgoing_carryover(grand_total: int, next_stage: StageConfig) -> int:
    """Pins a bowler brings into next_stage"""
    if not next_stage.carryover_pinfall:
        return 0
    return percent_of(grand_total, next_stage.carryover_percentage)


class AdvancementService:
    """
    Eligibility is recomputed on every run: a bowler is a candidate for
    stage s while current_stage == s and their stage-s games are complete.
    Already-advanced bowlers have moved on, so re-running only picks up
    newly completed bowlers.
    """

    def eligible_registrations(
        self,
        registrations: List[Registration],
        fmt: TournamentFormat,
        stage_index: int,
    ) -> List[Registration]:
        return [
            registration for registration in registrations
            if registration.current_stage == stage_index
            and is_stage_complete(registration, fmt, stage_index)
        ]

    def advance(self, db: Session, tournament_id: UUID) -> int:
        """Advance every stage's top finishers. Returns how many bowlers moved."""
        tournament = db.query(Tournament).filter(Tournament.id == tournament_id).first()
        if not tournament:
            raise NotFoundError("Tournament not found")

        fmt = load_format(tournament.format)
        advanced = 0

        for stage_index in range(len(fmt.stages) - 1):
            stage = fmt.stages[stage_index]
            if stage.advancing_bowlers is None:
                continue
            next_stage = fmt.stages[stage_index + 1]

            registrations = db.query(Registration).filter(
                Registration.tournament_id == tournament.id,
                Registration.status.in_(ACTIVE_STATUSES),
            ).all()
            eligible = self.eligible_registrations(registrations, fmt, stage_index)
            if not eligible:
                continue

            by_id = {registration.id: registration for registration in eligible}
            ranked = rank_results(
                result_for_registration(registration, fmt, stage_index)
                for registration in eligible
            )

            for entry in ranked[:stage.advancing_bowlers]:
                registration = by_id[entry.registration_id]
                carryover = outgoing_carryover(entry.grand_total, next_stage)
                try:
                    self._move_to_stage(registration, stage_index + 1, carryover)
                    db.commit()
                except SQLAlchemyError:
                    # Each bowler is its own unit of work; others stay advanced
                    db.rollback()
                    logger.exception(f"Failed to advance registration {entry.registration_id}")
                    continue
                advanced += 1
                logger.info(
                    f"Advanced {entry.player_name} to stage {stage_index + 1} "
                    f"with {carryover} carryover pins"
                )

        logger.info(f"Advanced {advanced} bowler(s) in tournament {tournament.id}")
        return advanced

    def _move_to_stage(self, registration: Registration, stage_index: int, carryover: int) -> None:
        registration.current_stage = stage_index
        entry = registration.get_stage_score(stage_index)
        if entry is None:
            entry = StageScore(stage_index=stage_index, scores=[], bonus_pins=[], total=0)
            registration.stage_scores.append(entry)
        entry.carryover = carryover


advancement_service = AdvancementService()
