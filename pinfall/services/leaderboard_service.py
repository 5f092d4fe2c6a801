"""
Leaderboard service for ranking stage results
"""
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from pinfall.core.exceptions import NotFoundError
from pinfall.models.registration import ACTIVE_STATUSES, Registration
from pinfall.models.tournament import Tournament
from pinfall.schemas.results import (
    LeaderboardEntry,
    ResultsTournament,
    StageLeaderboard,
    StageResult,
    TournamentResultsResponse,
)
from pinfall.schemas.tournament import TournamentFormat
from pinfall.services.scoring_service import load_format, result_for_registration


def ranking_key(result: StageResult):
    """Grand total descending; ties broken by player name, then registration id"""
    return (
        -result.grand_total,
        result.player_name.casefold(),
        result.player_name,
        str(result.registration_id or ""),
    )


def rank_results(
    results: Iterable[StageResult],
    advancing_bowlers: Optional[int] = None,
) -> List[LeaderboardEntry]:
    """Sort and number results 1..N"""
    ordered = sorted(results, key=ranking_key)
    return [
        LeaderboardEntry(
            **result.model_dump(),
            position=idx + 1,
            advancing=bool(advancing_bowlers) and idx < advancing_bowlers,
        )
        for idx, result in enumerate(ordered)
    ]


class LeaderboardService:
    """Service for tournament results"""

    def stage_results(
        self,
        registrations: Iterable[Registration],
        fmt: TournamentFormat,
        stage_index: int,
    ) -> List[StageResult]:
        """Results for everyone with games in the stage; bowlers without games are left out"""
        results = []
        for registration in registrations:
            result = result_for_registration(registration, fmt, stage_index)
            if result is not None:
                results.append(result)
        return results

    def get_stage_leaderboard(
        self,
        registrations: List[Registration],
        fmt: TournamentFormat,
        stage_index: int,
    ) -> StageLeaderboard:
        stage = fmt.stages[stage_index]
        return StageLeaderboard(
            stage_name=stage.name,
            stage_index=stage_index,
            games=stage.games,
            advancing_bowlers=stage.advancing_bowlers,
            players=rank_results(
                self.stage_results(registrations, fmt, stage_index),
                stage.advancing_bowlers,
            ),
        )

    def get_tournament_results(self, db: Session, tournament_id: UUID) -> TournamentResultsResponse:
        """Stage-grouped leaderboard for staged formats, otherwise a single flat one"""
        tournament = db.query(Tournament).filter(Tournament.id == tournament_id).first()
        if not tournament:
            raise NotFoundError("Tournament not found")

        fmt = load_format(tournament.format)
        registrations = db.query(Registration).filter(
            Registration.tournament_id == tournament.id,
            Registration.status.in_(ACTIVE_STATUSES),
        ).order_by(Registration.player_name).all()

        summary = ResultsTournament(
            id=tournament.id,
            name=tournament.name,
            date=tournament.start_date,
            location=tournament.location,
        )

        if fmt.has_stages:
            return TournamentResultsResponse(
                tournament=summary,
                has_stages=True,
                stages=[
                    self.get_stage_leaderboard(registrations, fmt, idx)
                    for idx in range(len(fmt.stages))
                ],
            )

        return TournamentResultsResponse(
            tournament=summary,
            has_stages=False,
            players=rank_results(self.stage_results(registrations, fmt, 0)),
        )


leaderboard_service = LeaderboardService()
