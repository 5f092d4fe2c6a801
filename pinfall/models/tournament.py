"""
Tournament and squad models
"""
from uuid import uuid4
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text, Float, ForeignKey, Uuid, CheckConstraint,
)
from sqlalchemy.orm import relationship
from pinfall.database import Base, JSONType
from pinfall.utils.time_utils import utc_now


class Tournament(Base):
    """Tournament definition with its embedded squads and scoring format"""
    __tablename__ = "tournaments"

    id = Column(Uuid, primary_key=True, default=uuid4)

    # Tournament details
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    location = Column(String(255), nullable=False)
    payment_instructions = Column(Text, nullable=True)
    entry_fee = Column(Float, default=0)

    # Status: 'upcoming', 'active', 'completed', 'cancelled'
    status = Column(String(20), default="upcoming", nullable=False, index=True)

    # Schedule
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False)

    # Registration window
    registration_open_date = Column(DateTime, nullable=True)  # None = open immediately
    registration_manually_opened = Column(Boolean, default=False, nullable=False)
    registration_deadline = Column(DateTime, nullable=True)

    # Capacity (None = unlimited) and the admitted pending+confirmed count
    max_participants = Column(Integer, nullable=True)
    registration_count = Column(Integer, default=0, nullable=False)

    # Qualifying rules
    squads_required_to_qualify = Column(Integer, default=1, nullable=False)
    allow_reentry = Column(Boolean, default=True, nullable=False)

    # Scoring format (validated by schemas.tournament.TournamentFormat)
    format = Column(JSONType, default=dict)

    # Timestamps
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    squads = relationship(
        "Squad", back_populates="tournament", cascade="all, delete-orphan",
        order_by="Squad.position",
    )
    registrations = relationship("Registration", back_populates="tournament", cascade="all, delete-orphan")
    reservations = relationship("SpotReservation", back_populates="tournament", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("squads_required_to_qualify >= 1", name="ck_tournament_squads_required"),
    )

    def get_squad(self, squad_id):
        """Find one of this tournament's squads by id, or None"""
        for squad in self.squads:
            if str(squad.id) == str(squad_id):
                return squad
        return None


class Squad(Base):
    """A dated bowling session with a fixed capacity. Only exists inside a tournament."""
    __tablename__ = "squads"

    id = Column(Uuid, primary_key=True, default=uuid4)
    tournament_id = Column(Uuid, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    date = Column(DateTime, nullable=False)
    time = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False)
    is_qualifying = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    # Pending+confirmed registrations holding this squad; only changed by
    # conditional UPDATEs in capacity_service
    registered_count = Column(Integer, default=0, nullable=False)

    tournament = relationship("Tournament", back_populates="squads")

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_squad_capacity"),
    )
