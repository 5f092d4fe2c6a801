"""
Tournament, squad and format schemas
"""
from datetime import datetime
from typing import Optional, List, Literal
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, model_validator

from pinfall.utils.time_utils import to_naive_utc

TOURNAMENT_STATUSES = ("upcoming", "active", "completed", "cancelled")


def _normalize_status(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip().lower()
    if value == "ongoing":
        value = "active"
    if value not in TOURNAMENT_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(TOURNAMENT_STATUSES)}")
    return value


class StageConfig(BaseModel):
    """One scored phase of a tournament"""
    name: str = Field(..., min_length=1, max_length=100)
    games: int = Field(..., ge=1, le=50)
    advancing_bowlers: Optional[int] = Field(default=None, ge=1, description="None = final stage")
    carryover_pinfall: bool = False
    carryover_percentage: float = Field(default=100, ge=0, le=100)


class MatchPlayConfig(BaseModel):
    points_for_win: int = Field(default=30, ge=0, le=100)
    points_for_tie: int = Field(default=15, ge=0, le=100)
    points_for_loss: int = Field(default=0, ge=0, le=100)
    include_pinfall: bool = True


class BonusPointsConfig(BaseModel):
    enabled: bool = False
    per_game: int = Field(default=0, ge=0)
    per_series: int = Field(default=0, ge=0)


class TournamentFormat(BaseModel):
    """Scoring configuration stored on the tournament"""
    games_per_bowler: int = Field(default=3, ge=1, le=50)
    stages: List[StageConfig] = []

    # Handicap
    use_handicap: bool = False
    handicap_base: int = Field(default=220, ge=0, le=300)
    handicap_percentage: float = Field(default=90, ge=0, le=100)

    # Gender divisions
    separate_divisions: bool = False
    female_handicap_pins: int = Field(default=8, ge=0, le=100)

    bonus_points: BonusPointsConfig = BonusPointsConfig()
    scoring_method: Literal["total-pinfall", "match-play", "head-to-head", "points"] = "total-pinfall"
    match_play: MatchPlayConfig = MatchPlayConfig()

    @property
    def has_stages(self) -> bool:
        return len(self.stages) > 0

    def games_for_stage(self, stage_index: int) -> int:
        """Required games for a stage; single-stage formats use games_per_bowler"""
        if self.has_stages:
            return self.stages[stage_index].games
        return self.games_per_bowler

    def stage_exists(self, stage_index: int) -> bool:
        if self.has_stages:
            return 0 <= stage_index < len(self.stages)
        return stage_index == 0


class SquadIn(BaseModel):
    """Squad as submitted by an admin; an id means update that squad in place"""
    id: Optional[UUID] = None
    name: str = Field(..., min_length=1, max_length=255)
    date: datetime
    time: str = Field(..., min_length=1, max_length=20)
    capacity: int = Field(..., ge=1)
    is_qualifying: bool = False

    @field_validator("date")
    @classmethod
    def _naive_date(cls, v):
        return to_naive_utc(v)


class SquadResponse(BaseModel):
    id: UUID
    name: str
    date: datetime
    time: str
    capacity: int
    is_qualifying: bool

    class Config:
        from_attributes = True


class TournamentBase(BaseModel):
    """Fields shared by create and response"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = ""
    location: str = Field(..., min_length=1, max_length=255)
    payment_instructions: Optional[str] = None
    entry_fee: float = Field(default=0, ge=0)
    status: str = "upcoming"
    start_date: datetime
    end_date: Optional[datetime] = None
    max_participants: Optional[int] = Field(default=None, ge=1)
    registration_open_date: Optional[datetime] = None
    registration_manually_opened: bool = False
    registration_deadline: Optional[datetime] = None
    squads_required_to_qualify: int = Field(default=1, ge=1)
    allow_reentry: bool = True


class TournamentCreate(TournamentBase):
    """Schema for creating tournaments (admin)"""
    squads: List[SquadIn] = []
    format: TournamentFormat = TournamentFormat()

    @field_validator("status")
    @classmethod
    def _status(cls, v):
        return _normalize_status(v)

    @field_validator("start_date", "end_date", "registration_open_date", "registration_deadline")
    @classmethod
    def _naive(cls, v):
        return to_naive_utc(v)

    @model_validator(mode="after")
    def _default_end_date(self):
        if self.end_date is None:
            self.end_date = self.start_date
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class TournamentUpdate(BaseModel):
    """Partial update (admin). Squads, when given, replace the squad set."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=255)
    payment_instructions: Optional[str] = None
    entry_fee: Optional[float] = Field(default=None, ge=0)
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_participants: Optional[int] = Field(default=None, ge=1)
    registration_open_date: Optional[datetime] = None
    registration_manually_opened: Optional[bool] = None
    registration_deadline: Optional[datetime] = None
    squads_required_to_qualify: Optional[int] = Field(default=None, ge=1)
    allow_reentry: Optional[bool] = None
    format: Optional[TournamentFormat] = None
    squads: Optional[List[SquadIn]] = None

    @field_validator("status")
    @classmethod
    def _status(cls, v):
        return _normalize_status(v)

    @field_validator("start_date", "end_date", "registration_open_date", "registration_deadline")
    @classmethod
    def _naive(cls, v):
        return to_naive_utc(v)


class TournamentResponse(TournamentBase):
    """Tournament response schema"""
    id: UUID
    end_date: datetime
    squads: List[SquadResponse] = []
    format: TournamentFormat
    registration_count: int = 0
    created_at: datetime

    @field_validator("format", mode="before")
    @classmethod
    def _format(cls, v):
        return v or {}

    class Config:
        from_attributes = True


class TournamentListResponse(BaseModel):
    """List of tournaments"""
    tournaments: List[TournamentResponse]
    total_count: int


class OpenRegistrationResponse(BaseModel):
    message: str
    tournament: TournamentResponse


class SquadAvailability(BaseModel):
    """Capacity ledger view of one squad"""
    id: UUID
    name: str
    date: datetime
    time: str
    capacity: int
    is_qualifying: bool
    registered: int
    reserved: int
    available: int


class AvailabilityTournament(BaseModel):
    id: UUID
    name: str
    squads_required_to_qualify: int
    allow_reentry: bool


class TournamentAvailabilityResponse(BaseModel):
    tournament: AvailabilityTournament
    squads: List[SquadAvailability]


class SquadBowler(BaseModel):
    name: str
    average_score: Optional[int] = None
    bowler_id: Optional[UUID] = None


class SquadRoster(BaseModel):
    id: UUID
    name: str
    date: datetime
    time: str
    capacity: int
    is_qualifying: bool
    registered: int
    spots_remaining: int
    bowlers: List[SquadBowler]


class SquadListResponse(BaseModel):
    tournament: AvailabilityTournament
    squads: List[SquadRoster]
