"""
Spot reservation schemas
"""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, field_validator


class ReservationCreate(BaseModel):
    tournament_id: UUID
    squads: List[UUID] = []
    email: Optional[str] = Field(default=None, max_length=254)

    @field_validator("squads")
    @classmethod
    def _dedupe(cls, v):
        return list(dict.fromkeys(v))


class ReservationResponse(BaseModel):
    id: UUID
    tournament_id: UUID
    session_id: str
    squad_ids: List[UUID] = []
    expires_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class ReservationCreateResponse(BaseModel):
    reservation: ReservationResponse
    expires_at: datetime
    reused: bool
    message: str


class ReservationStatusResponse(BaseModel):
    reservation: ReservationResponse
    time_remaining: int
    expires_at: datetime


class ReservationReleaseResponse(BaseModel):
    success: bool
    message: str
