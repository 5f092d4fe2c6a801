"""
Spot reservation (temporary squad hold) models
"""
from uuid import uuid4
from sqlalchemy import Column, String, DateTime, ForeignKey, Table, Uuid
from sqlalchemy.orm import relationship
from pinfall.database import Base
from pinfall.utils.time_utils import utc_now


reservation_squads = Table(
    "reservation_squads",
    Base.metadata,
    Column("reservation_id", Uuid, ForeignKey("spot_reservations.id", ondelete="CASCADE"), primary_key=True),
    Column("squad_id", Uuid, ForeignKey("squads.id", ondelete="CASCADE"), primary_key=True, index=True),
)


class SpotReservation(Base):
    """
    A time-boxed hold on squad slots during the registration flow.

    A row whose expires_at has passed is treated as absent by every query;
    the periodic sweep only reclaims storage.
    """
    __tablename__ = "spot_reservations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    tournament_id = Column(Uuid, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(64), nullable=False, unique=True, index=True)  # one hold per session
    email = Column(String(254), nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=utc_now)

    tournament = relationship("Tournament", back_populates="reservations")
    squads = relationship("Squad", secondary=reservation_squads)

    @property
    def squad_ids(self):
        return [squad.id for squad in self.squads]
