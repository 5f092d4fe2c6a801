"""
Stage scoring output and leaderboard schemas
"""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel


class StageResult(BaseModel):
    """Computed totals for one bowler in one stage"""
    registration_id: Optional[UUID] = None
    player_name: str
    squad_ids: List[UUID] = []
    scores: List[int]
    bonus_pins: List[int]
    handicap_per_game: int
    total_handicap: int
    total_bonus: int
    scratch_total: int
    carryover: int
    grand_total: int
    average: int
    high: int
    games_played: int


class LeaderboardEntry(StageResult):
    """Single ranked row in a stage leaderboard"""
    position: int
    advancing: bool = False


class StageLeaderboard(BaseModel):
    stage_name: str
    stage_index: int
    games: int
    advancing_bowlers: Optional[int] = None
    players: List[LeaderboardEntry]


class ResultsTournament(BaseModel):
    id: UUID
    name: str
    date: datetime
    location: str


class TournamentResultsResponse(BaseModel):
    """Stage-grouped results when the format has stages, otherwise a flat list"""
    tournament: ResultsTournament
    has_stages: bool
    stages: Optional[List[StageLeaderboard]] = None
    players: Optional[List[LeaderboardEntry]] = None


class AdvancementResponse(BaseModel):
    advanced: int
    message: str
