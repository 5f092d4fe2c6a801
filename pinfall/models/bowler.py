"""
Bowler profile models
"""
from uuid import uuid4
from sqlalchemy import Boolean, Column, String, Integer, DateTime, Text, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from pinfall.database import Base, JSONType
from pinfall.utils.time_utils import utc_now


class Bowler(Base):
    """Bowler profile keyed by email"""
    __tablename__ = "bowlers"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String(254), unique=True, nullable=False, index=True)
    player_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    gender = Column(String(20), nullable=True)

    # Profile customization
    nickname = Column(String(100), nullable=True)
    hand = Column(String(10), nullable=True)  # 'right', 'left', 'both'
    bio = Column(Text, nullable=True)
    home_center = Column(String(255), nullable=True)
    years_experience = Column(Integer, nullable=True)

    # Stats
    current_average = Column(Integer, nullable=True)     # Self-reported at registration
    tournament_average = Column(Integer, nullable=True)  # From recorded tournament games
    high_game = Column(Integer, nullable=True)
    high_series = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
    claimed_at = Column(DateTime, nullable=True)  # first profile edit by the bowler

    # Relationships
    registrations = relationship("Registration", back_populates="bowler")
    tournaments_entered = relationship(
        "BowlerTournament", back_populates="bowler", cascade="all, delete-orphan",
        order_by="BowlerTournament.registered_at",
    )
    results = relationship("TournamentResult", back_populates="bowler", cascade="all, delete-orphan")


class BowlerTournament(Base):
    """Tournament history entry for a bowler"""
    __tablename__ = "bowler_tournaments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    bowler_id = Column(Uuid, ForeignKey("bowlers.id", ondelete="CASCADE"), nullable=False, index=True)
    tournament_id = Column(Uuid, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    registered_at = Column(DateTime, default=utc_now)
    status = Column(String(20), default="registered")  # 'registered', 'completed', 'cancelled'

    bowler = relationship("Bowler", back_populates="tournaments_entered")
    tournament = relationship("Tournament")

    __table_args__ = (
        UniqueConstraint("bowler_id", "tournament_id", name="uq_bowler_tournament"),
    )


class TournamentResult(Base):
    """
    Results recorded by an admin outside the stage scoring flow, one per
    bowler per tournament. Totals are derived from squad_results on save.
    """
    __tablename__ = "tournament_results"

    id = Column(Uuid, primary_key=True, default=uuid4)
    bowler_id = Column(Uuid, ForeignKey("bowlers.id", ondelete="CASCADE"), nullable=False, index=True)
    tournament_id = Column(Uuid, ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    registration_id = Column(Uuid, ForeignKey("registrations.id", ondelete="SET NULL"), nullable=True)

    # [{squad_id, squad_name, games, total_pins, game_count, average}]
    squad_results = Column(JSONType, default=list)

    total_pins = Column(Integer, default=0)
    total_games = Column(Integer, default=0)
    tournament_average = Column(Integer, nullable=True)
    high_game = Column(Integer, nullable=True)
    high_series = Column(Integer, nullable=True)

    final_position = Column(Integer, nullable=True)
    total_participants = Column(Integer, nullable=True)

    entered_by = Column(String(20), default="admin")
    verified = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    bowler = relationship("Bowler", back_populates="results")
    tournament = relationship("Tournament")

    __table_args__ = (
        UniqueConstraint("bowler_id", "tournament_id", name="uq_tournament_result_bowler_tournament"),
    )

    def game_series(self):
        """Each squad's games as one series"""
        return [list(squad["games"]) for squad in (self.squad_results or []) if squad.get("games")]
