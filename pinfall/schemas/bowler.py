"""
Bowler profile and recorded result schemas
"""
from datetime import datetime
from typing import Literal, Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from pinfall.schemas.registration import GameScore, StageScoreResponse


class BowlerTournamentEntry(BaseModel):
    tournament_id: UUID
    registered_at: datetime
    status: str

    class Config:
        from_attributes = True


class BowlerResponse(BaseModel):
    id: UUID
    player_name: str
    nickname: Optional[str] = None
    gender: Optional[str] = None
    hand: Optional[str] = None
    bio: Optional[str] = None
    home_center: Optional[str] = None
    years_experience: Optional[int] = None
    current_average: Optional[int] = None
    tournament_average: Optional[int] = None
    high_game: Optional[int] = None
    high_series: Optional[int] = None
    tournaments_entered: List[BowlerTournamentEntry] = []

    class Config:
        from_attributes = True


class BowlerProfileUpdate(BaseModel):
    """Fields a bowler may edit on their own profile; stats stay derived"""
    nickname: Optional[str] = Field(default=None, max_length=100)
    hand: Optional[Literal["right", "left", "both"]] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    home_center: Optional[str] = Field(default=None, max_length=255)
    years_experience: Optional[int] = Field(default=None, ge=0, le=80)
    current_average: Optional[int] = Field(default=None, ge=0, le=300)

    @field_validator("nickname", "bio", "home_center")
    @classmethod
    def _strip(cls, v):
        if v is None:
            return v
        return v.strip() or None


class BowlerListResponse(BaseModel):
    bowlers: List[BowlerResponse]
    total_count: int


class SquadResultIn(BaseModel):
    squad_id: Optional[UUID] = None
    squad_name: Optional[str] = Field(default=None, max_length=100)
    games: List[GameScore] = Field(..., min_length=1)


class TournamentResultCreate(BaseModel):
    """Admin entry of a bowler's result recorded outside stage scoring"""
    bowler_id: UUID
    tournament_id: UUID
    squad_results: List[SquadResultIn] = Field(..., min_length=1)
    final_position: Optional[int] = Field(default=None, ge=1)
    total_participants: Optional[int] = Field(default=None, ge=1)


class SquadResultResponse(BaseModel):
    squad_id: Optional[UUID] = None
    squad_name: Optional[str] = None
    games: List[int]
    total_pins: int
    game_count: int
    average: int


class TournamentResultResponse(BaseModel):
    id: UUID
    bowler_id: UUID
    tournament_id: UUID
    registration_id: Optional[UUID] = None
    squad_results: List[SquadResultResponse] = []
    total_pins: int
    total_games: int
    tournament_average: Optional[int] = None
    high_game: Optional[int] = None
    high_series: Optional[int] = None
    final_position: Optional[int] = None
    total_participants: Optional[int] = None
    entered_by: str
    verified: bool

    class Config:
        from_attributes = True


class BowlerHistoryTournament(BaseModel):
    tournament_id: UUID
    tournament_name: str
    start_date: datetime
    status: str
    registration_status: str
    stage_scores: List[StageScoreResponse]
    total_pins: int
    games: int


class BowlerHistoryResponse(BaseModel):
    bowler: BowlerResponse
    tournaments: List[BowlerHistoryTournament]
    results: List[TournamentResultResponse] = []
    total_games: int
    overall_average: Optional[int] = None
