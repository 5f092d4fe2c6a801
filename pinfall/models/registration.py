"""
Registration and per-stage score models
"""
from uuid import uuid4
from sqlalchemy import (
    Column, String, Integer, DateTime, Text, ForeignKey, Table, Uuid, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from pinfall.database import Base, JSONType
from pinfall.utils.time_utils import utc_now

# Statuses that hold a squad slot and count toward tournament capacity
ACTIVE_STATUSES = ("pending", "confirmed")
REGISTRATION_STATUSES = ("pending", "confirmed", "cancelled", "waitlist")


registration_squads = Table(
    "registration_squads",
    Base.metadata,
    Column("registration_id", Uuid, ForeignKey("registrations.id", ondelete="CASCADE"), primary_key=True),
    Column("squad_id", Uuid, ForeignKey("squads.id", ondelete="CASCADE"), primary_key=True, index=True),
)


class Registration(Base):
    """A bowler's entry in one tournament, with a snapshot of their details"""
    __tablename__ = "registrations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    tournament_id = Column(Uuid, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    bowler_id = Column(Uuid, ForeignKey("bowlers.id", ondelete="SET NULL"), nullable=True, index=True)

    # Snapshot at registration time
    player_name = Column(String(100), nullable=False)
    email = Column(String(254), nullable=False)
    phone = Column(String(20), nullable=False)
    gender = Column(String(20), nullable=True)
    average_score = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(String(20), default="pending", nullable=False)
    current_stage = Column(Integer, default=0, nullable=False)

    # Timestamps
    registered_at = Column(DateTime, default=utc_now)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    tournament = relationship("Tournament", back_populates="registrations")
    bowler = relationship("Bowler", back_populates="registrations")
    squads = relationship("Squad", secondary=registration_squads, order_by="Squad.position")
    stage_scores = relationship(
        "StageScore", back_populates="registration", cascade="all, delete-orphan",
        order_by="StageScore.stage_index",
    )

    # One registration per email per tournament, enforced by the database
    __table_args__ = (
        UniqueConstraint("tournament_id", "email", name="uq_registration_tournament_email"),
        Index("ix_registrations_tournament_status", "tournament_id", "status"),
    )

    @property
    def assigned_squads(self):
        return [squad.id for squad in self.squads]

    @property
    def holds_slot(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def get_stage_score(self, stage_index: int):
        for entry in self.stage_scores:
            if entry.stage_index == stage_index:
                return entry
        return None


class StageScore(Base):
    """Scores a bowler recorded in one stage"""
    __tablename__ = "stage_scores"

    id = Column(Uuid, primary_key=True, default=uuid4)
    registration_id = Column(Uuid, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, index=True)
    stage_index = Column(Integer, nullable=False)

    scores = Column(JSONType, default=list)      # per-game pinfall
    bonus_pins = Column(JSONType, default=list)  # per-game match-play bonus
    handicap = Column(Integer, nullable=True)    # admin override of the computed per-game handicap
    total = Column(Integer, default=0)           # scratch pinfall
    carryover = Column(Integer, default=0)       # pins carried into this stage

    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    registration = relationship("Registration", back_populates="stage_scores")

    __table_args__ = (
        UniqueConstraint("registration_id", "stage_index", name="uq_stage_score_registration_stage"),
    )
