"""
Stage scoring engine.

The compute functions are pure: same stored inputs, same output. Handicap,
match-play bonus and carryover all arrive as explicit arguments.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from pinfall.core.config import settings
from pinfall.core.exceptions import ValidationError
from pinfall.models.registration import Registration, StageScore
from pinfall.schemas.registration import StageScoreUpdate
from pinfall.schemas.results import StageResult
from pinfall.schemas.tournament import TournamentFormat
from pinfall.utils.numbers import percent_of, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_AVERAGE = 180
MAX_GAME_SCORE = 300


def load_format(raw) -> TournamentFormat:
    """Parse the JSON format column"""
    if isinstance(raw, TournamentFormat):
        return raw
    return TournamentFormat.model_validate(raw or {})


def compute_handicap_per_game(
    fmt: TournamentFormat,
    average_score: Optional[int],
    gender: Optional[str],
) -> int:
    """Pins added per game. Zero when the format does not use handicap."""
    if not fmt.use_handicap:
        return 0

    average = average_score if average_score is not None else DEFAULT_AVERAGE
    handicap = 0
    if average < fmt.handicap_base:
        handicap = max(0, percent_of(fmt.handicap_base - average, fmt.handicap_percentage))

    # Women get flat pins only when they compete in a combined division
    if (gender or "").lower() == "female" and not fmt.separate_divisions:
        handicap += fmt.female_handicap_pins

    return handicap


def compute_stage_result(
    scores: Sequence[int],
    bonus_pins: Sequence[int],
    fmt: TournamentFormat,
    average_score: Optional[int] = None,
    gender: Optional[str] = None,
    carryover: int = 0,
    handicap_override: Optional[int] = None,
    player_name: str = "",
    registration_id: Optional[UUID] = None,
    squad_ids: Iterable[UUID] = (),
) -> StageResult:
    """Scratch, handicap, bonus, carryover and grand total for one bowler in one stage"""
    scores = list(scores)
    bonus_pins = list(bonus_pins or [])
    games_played = len(scores)

    scratch_total = sum(scores)

    if not fmt.use_handicap:
        handicap_per_game = 0
    elif handicap_override is not None:
        handicap_per_game = handicap_override
    else:
        handicap_per_game = compute_handicap_per_game(fmt, average_score, gender)
    total_handicap = handicap_per_game * games_played

    total_bonus = sum(bonus_pins)
    carryover = carryover or 0
    grand_total = scratch_total + total_handicap + total_bonus + carryover

    average = round_half_up(Decimal(scratch_total) / Decimal(games_played)) if games_played else 0
    high = max(scores) if scores else 0

    return StageResult(
        registration_id=registration_id,
        player_name=player_name,
        squad_ids=list(squad_ids),
        scores=scores,
        bonus_pins=bonus_pins,
        handicap_per_game=handicap_per_game,
        total_handicap=total_handicap,
        total_bonus=total_bonus,
        scratch_total=scratch_total,
        carryover=carryover,
        grand_total=grand_total,
        average=average,
        high=high,
        games_played=games_played,
    )


def result_for_registration(
    registration: Registration,
    fmt: TournamentFormat,
    stage_index: int,
) -> Optional[StageResult]:
    """Stage result for a registration, or None when it has no games in that stage"""
    entry = registration.get_stage_score(stage_index)
    if entry is None or not entry.scores:
        return None
    return compute_stage_result(
        scores=entry.scores,
        bonus_pins=entry.bonus_pins or [],
        fmt=fmt,
        average_score=registration.average_score,
        gender=registration.gender,
        carryover=entry.carryover or 0,
        handicap_override=entry.handicap,
        player_name=registration.player_name,
        registration_id=registration.id,
        squad_ids=registration.assigned_squads,
    )


def is_stage_complete(registration: Registration, fmt: TournamentFormat, stage_index: int) -> bool:
    """True when exactly the stage's required number of games is recorded"""
    entry = registration.get_stage_score(stage_index)
    if entry is None:
        return False
    return len(entry.scores or []) == fmt.games_for_stage(stage_index)


def match_results_to_bonus_pins(results: Sequence[str], fmt: TournamentFormat) -> List[int]:
    points = {
        "win": fmt.match_play.points_for_win,
        "tie": fmt.match_play.points_for_tie,
        "loss": fmt.match_play.points_for_loss,
    }
    return [points[result] for result in results]


class ScoringService:
    """Admin score entry"""

    def record_stage_scores(
        self,
        db: Session,
        registration: Registration,
        update: StageScoreUpdate,
    ) -> StageScore:
        """
        Validate and store one stage's scores on a registration.
        The caller commits.
        """
        fmt = load_format(registration.tournament.format)

        if not fmt.stage_exists(update.stage_index):
            raise ValidationError("Invalid stage index")

        max_games = fmt.games_for_stage(update.stage_index)
        if len(update.scores) > max_games:
            raise ValidationError(f"This stage allows at most {max_games} game scores")

        if any(score < 0 or score > MAX_GAME_SCORE for score in update.scores):
            raise ValidationError("Game scores must be between 0 and 300")

        if update.match_results is not None:
            bonus_pins = match_results_to_bonus_pins(update.match_results, fmt)
        else:
            bonus_pins = list(update.bonus_pins or [])
        if bonus_pins and len(bonus_pins) != len(update.scores):
            raise ValidationError("bonus_pins must have one entry per game score")
        if any(pins < 0 or pins > settings.MAX_BONUS_PINS_PER_GAME for pins in bonus_pins):
            raise ValidationError(
                f"Bonus pins must be between 0 and {settings.MAX_BONUS_PINS_PER_GAME} per game"
            )

        entry = registration.get_stage_score(update.stage_index)
        if entry is None:
            entry = StageScore(stage_index=update.stage_index, carryover=0)
            registration.stage_scores.append(entry)

        # Lists are reassigned, never mutated, so the JSON columns are flagged dirty
        entry.scores = list(update.scores)
        entry.bonus_pins = bonus_pins
        entry.handicap = update.handicap
        entry.total = sum(update.scores)
        if update.carryover is not None:
            entry.carryover = update.carryover

        logger.info(
            f"Recorded {len(update.scores)} game(s) for registration {registration.id} "
            f"stage {update.stage_index}"
        )
        return entry


scoring_service = ScoringService()
