"""
Registration and score-entry schemas
"""
import re
from datetime import datetime
from typing import Annotated, Optional, List, Literal
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, model_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
GENDERS = ("male", "female", "non-binary", "other")

GameScore = Annotated[int, Field(ge=0, le=300)]
BonusPins = Annotated[int, Field(ge=0)]
RegistrationStatus = Literal["pending", "confirmed", "cancelled", "waitlist"]


def _clean(value: Optional[str], max_length: int) -> str:
    if not value:
        return ""
    return value.strip()[:max_length].replace("$", "")


class RegistrationCreate(BaseModel):
    """Public registration submission"""
    tournament_id: UUID
    player_name: str
    email: str
    phone: str
    gender: str
    average_score: Optional[int] = Field(default=None, ge=0, le=300)
    notes: Optional[str] = None
    assigned_squads: List[UUID] = []
    session_id: Optional[str] = Field(default=None, max_length=64, description="Hold to release on success")

    @field_validator("player_name")
    @classmethod
    def _name(cls, v):
        v = _clean(v, 100)
        if len(v) < 2:
            raise ValueError("Valid player name is required")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        v = (v or "").strip().lower()
        if not EMAIL_RE.match(v) or len(v) > 254:
            raise ValueError("Valid email is required")
        return v.replace("$", "")

    @field_validator("phone")
    @classmethod
    def _phone(cls, v):
        v = (v or "").strip()
        digits = re.sub(r"\D", "", v)
        if len(digits) < 7 or len(digits) > 15:
            raise ValueError("Valid phone number is required")
        return ("+" + digits) if v.startswith("+") else digits

    @field_validator("gender")
    @classmethod
    def _gender(cls, v):
        v = (v or "").strip().lower()
        if v not in GENDERS:
            raise ValueError("Valid gender selection is required")
        return v

    @field_validator("notes")
    @classmethod
    def _notes(cls, v):
        return _clean(v, 500) or None

    @field_validator("assigned_squads")
    @classmethod
    def _dedupe(cls, v):
        return list(dict.fromkeys(v))


class StageScoreUpdate(BaseModel):
    """Admin score entry for one stage"""
    stage_index: int = Field(..., ge=0)
    scores: List[GameScore] = []
    bonus_pins: Optional[List[BonusPins]] = None
    match_results: Optional[List[Literal["win", "tie", "loss"]]] = None
    handicap: Optional[int] = Field(default=None, ge=0, le=300)
    carryover: Optional[int] = Field(default=None, ge=0, description="Correct the pins carried into this stage")

    @model_validator(mode="after")
    def _parallel_lists(self):
        if self.bonus_pins is not None and self.match_results is not None:
            raise ValueError("Provide bonus_pins or match_results, not both")
        for label, values in (("bonus_pins", self.bonus_pins), ("match_results", self.match_results)):
            if values and len(values) != len(self.scores):
                raise ValueError(f"{label} must have one entry per game score")
        return self


class RegistrationUpdate(BaseModel):
    """Admin update of a registration"""
    status: Optional[RegistrationStatus] = None
    notes: Optional[str] = None
    current_stage: Optional[int] = Field(default=None, ge=0)
    stage_scores: Optional[StageScoreUpdate] = None


class RegistrationSquadsUpdate(BaseModel):
    """Bowler changing their own squads"""
    assigned_squads: List[UUID]

    @field_validator("assigned_squads")
    @classmethod
    def _dedupe(cls, v):
        return list(dict.fromkeys(v))


class StageScoreResponse(BaseModel):
    stage_index: int
    scores: List[int] = []
    bonus_pins: List[int] = []
    handicap: Optional[int] = None
    total: int = 0
    carryover: int = 0

    @field_validator("scores", "bonus_pins", mode="before")
    @classmethod
    def _lists(cls, v):
        return v or []

    class Config:
        from_attributes = True


class RegistrationResponse(BaseModel):
    id: UUID
    tournament_id: UUID
    bowler_id: Optional[UUID] = None
    player_name: str
    email: str
    phone: str
    gender: Optional[str] = None
    average_score: Optional[int] = None
    notes: Optional[str] = None
    status: str
    current_stage: int
    assigned_squads: List[UUID] = []
    stage_scores: List[StageScoreResponse] = []
    registered_at: datetime

    class Config:
        from_attributes = True


class PublicRegistration(BaseModel):
    """Registration as shown on public pages"""
    id: UUID
    player_name: str
    bowler_id: Optional[UUID] = None
    assigned_squads: List[UUID] = []

    class Config:
        from_attributes = True


class RegistrationCountResponse(BaseModel):
    count: int


class MessageResponse(BaseModel):
    message: str
