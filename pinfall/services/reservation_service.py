"""
Reservation store: time-boxed squad holds during the registration flow
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pinfall.core.config import settings
from pinfall.core.exceptions import NotFoundError, ValidationError
from pinfall.models.reservation import SpotReservation
from pinfall.models.tournament import Tournament
from pinfall.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    """Opaque key identifying one registrant's hold"""
    return secrets.token_urlsafe(24)


class ReservationService:
    """Service for spot reservation operations"""

    def get(self, db: Session, session_id: str, now: Optional[datetime] = None) -> Optional[SpotReservation]:
        """Return the live hold for a session; expired rows count as absent"""
        now = now or utc_now()
        return db.query(SpotReservation).filter(
            SpotReservation.session_id == session_id,
            SpotReservation.expires_at > now,
        ).order_by(SpotReservation.expires_at.desc()).first()

    def get_or_404(self, db: Session, session_id: str, now: Optional[datetime] = None) -> SpotReservation:
        reservation = self.get(db, session_id, now)
        if not reservation:
            raise NotFoundError("Reservation not found or expired")
        return reservation

    def create(
        self,
        db: Session,
        tournament_id: UUID,
        squad_ids: List[UUID],
        session_id: str,
        email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[SpotReservation, bool]:
        """
        Hold squad slots for RESERVATION_TTL_MINUTES.
        Returns: (reservation, reused)

        A session with a live hold gets that hold back unchanged, so
        resubmitting never stacks holds. session_id is unique, so of two
        concurrent first requests for a session one inserts and the other
        gets that hold back.
        """
        now = now or utc_now()

        existing = self.get(db, session_id, now)
        if existing:
            logger.info(f"Reusing reservation {existing.id} for session {session_id}")
            return existing, True

        tournament = db.query(Tournament).filter(Tournament.id == tournament_id).first()
        if not tournament:
            raise NotFoundError("Tournament not found")

        squads = []
        for squad_id in squad_ids:
            squad = tournament.get_squad(squad_id)
            if not squad:
                raise ValidationError("Invalid squad selection")
            squads.append(squad)

        reservation = SpotReservation(
            tournament_id=tournament.id,
            session_id=session_id,
            email=email,
            expires_at=now + timedelta(minutes=settings.RESERVATION_TTL_MINUTES),
            created_at=now,
        )
        reservation.squads = squads

        # A lapsed hold for this session still occupies the key until swept.
        # Flushed on its own because the unit of work inserts before it deletes.
        stale = db.query(SpotReservation).filter(
            SpotReservation.session_id == session_id,
            SpotReservation.expires_at <= now,
        ).all()
        for lapsed in stale:
            db.delete(lapsed)
        if stale:
            db.flush()

        db.add(reservation)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = self.get(db, session_id, now)
            if existing is None:
                raise
            logger.info(f"Concurrent request already reserved for session {session_id}, reusing {existing.id}")
            return existing, True
        db.refresh(reservation)

        logger.info(
            f"Reserved {len(squads)} squad slot(s) in tournament {tournament.id} "
            f"for session {session_id} until {reservation.expires_at}"
        )
        return reservation, False

    def release(self, db: Session, session_id: str, commit: bool = True) -> int:
        """Delete every hold for a session. Releasing nothing is not an error."""
        reservations = db.query(SpotReservation).filter(
            SpotReservation.session_id == session_id
        ).all()
        for reservation in reservations:
            db.delete(reservation)
        if commit:
            db.commit()
        if reservations:
            logger.info(f"Released {len(reservations)} reservation(s) for session {session_id}")
        return len(reservations)

    def purge_expired(self, db: Session, now: Optional[datetime] = None) -> int:
        """Housekeeping sweep; queries already ignore expired rows"""
        now = now or utc_now()
        expired = db.query(SpotReservation).filter(SpotReservation.expires_at <= now).all()
        for reservation in expired:
            db.delete(reservation)
        db.commit()
        return len(expired)

    @staticmethod
    def time_remaining(reservation: SpotReservation, now: Optional[datetime] = None) -> int:
        """Whole seconds until the hold lapses"""
        now = now or utc_now()
        return max(0, int((reservation.expires_at - now).total_seconds()))


reservation_service = ReservationService()
