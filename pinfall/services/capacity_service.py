"""
Capacity ledger: squad availability queries and atomic slot admission
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from pinfall.core.exceptions import NotFoundError, SquadFullError, TournamentFullError
from pinfall.models.registration import ACTIVE_STATUSES, Registration, registration_squads
from pinfall.models.reservation import SpotReservation, reservation_squads
from pinfall.models.tournament import Squad, Tournament
from pinfall.schemas.tournament import (
    AvailabilityTournament,
    SquadAvailability,
    TournamentAvailabilityResponse,
)
from pinfall.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class Availability:
    capacity: int
    registered_count: int
    reserved_count: int

    @property
    def available(self) -> int:
        # Raw arithmetic; may dip below zero while holds overlap a full squad
        return self.capacity - self.registered_count - self.reserved_count


class CapacityService:
    """Read side counts slots from registrations and live holds; write side
    admits through conditional counter updates so a squad never overfills."""

    def registered_counts(
        self,
        db: Session,
        tournament_id: UUID,
        exclude_registration_id: Optional[UUID] = None,
    ) -> Dict[UUID, int]:
        """Pending+confirmed registrations per squad"""
        query = db.query(
            registration_squads.c.squad_id,
            func.count(registration_squads.c.registration_id),
        ).join(
            Registration, Registration.id == registration_squads.c.registration_id
        ).filter(
            Registration.tournament_id == tournament_id,
            Registration.status.in_(ACTIVE_STATUSES),
        )
        if exclude_registration_id is not None:
            query = query.filter(Registration.id != exclude_registration_id)
        rows = query.group_by(registration_squads.c.squad_id).all()
        return {squad_id: count for squad_id, count in rows}

    def reserved_counts(
        self,
        db: Session,
        tournament_id: UUID,
        now: Optional[datetime] = None,
        exclude_session_id: Optional[str] = None,
    ) -> Dict[UUID, int]:
        """Unexpired holds per squad. Expired rows are ignored whether or not they were swept."""
        now = now or utc_now()
        query = db.query(
            reservation_squads.c.squad_id,
            func.count(reservation_squads.c.reservation_id),
        ).join(
            SpotReservation, SpotReservation.id == reservation_squads.c.reservation_id
        ).filter(
            SpotReservation.tournament_id == tournament_id,
            SpotReservation.expires_at > now,
        )
        if exclude_session_id:
            query = query.filter(SpotReservation.session_id != exclude_session_id)
        rows = query.group_by(reservation_squads.c.squad_id).all()
        return {squad_id: count for squad_id, count in rows}

    def check_availability(
        self,
        db: Session,
        tournament_id: UUID,
        squad_id: UUID,
        now: Optional[datetime] = None,
        exclude_session_id: Optional[str] = None,
    ) -> Availability:
        """Capacity, registered and reserved counts for one squad"""
        squad = db.query(Squad).filter(
            Squad.id == squad_id,
            Squad.tournament_id == tournament_id,
        ).first()
        if not squad:
            raise NotFoundError("Squad not found")

        registered = self.registered_counts(db, tournament_id).get(squad.id, 0)
        reserved = self.reserved_counts(db, tournament_id, now, exclude_session_id).get(squad.id, 0)
        return Availability(
            capacity=squad.capacity,
            registered_count=registered,
            reserved_count=reserved,
        )

    def get_tournament_availability(
        self,
        db: Session,
        tournament_id: UUID,
        now: Optional[datetime] = None,
    ) -> TournamentAvailabilityResponse:
        """Per-squad availability for the public squad picker"""
        tournament = db.query(Tournament).filter(Tournament.id == tournament_id).first()
        if not tournament:
            raise NotFoundError("Tournament not found")

        registered = self.registered_counts(db, tournament.id)
        reserved = self.reserved_counts(db, tournament.id, now)

        squads = []
        for squad in tournament.squads:
            availability = Availability(
                capacity=squad.capacity,
                registered_count=registered.get(squad.id, 0),
                reserved_count=reserved.get(squad.id, 0),
            )
            squads.append(SquadAvailability(
                id=squad.id,
                name=squad.name,
                date=squad.date,
                time=squad.time,
                capacity=squad.capacity,
                is_qualifying=squad.is_qualifying,
                registered=availability.registered_count,
                reserved=availability.reserved_count,
                available=max(0, availability.available),
            ))

        return TournamentAvailabilityResponse(
            tournament=AvailabilityTournament(
                id=tournament.id,
                name=tournament.name,
                squads_required_to_qualify=tournament.squads_required_to_qualify,
                allow_reentry=tournament.allow_reentry,
            ),
            squads=squads,
        )

    def admit_squads(self, db: Session, squads: Iterable[Squad]) -> None:
        """
        Take one slot in each squad or raise SquadFullError.

        Each slot is a single `UPDATE ... WHERE registered_count < capacity`,
        so the check and the increment cannot interleave with another writer.
        Squads are locked in id order. The caller owns the transaction and
        must roll back on failure.
        """
        for squad in sorted(squads, key=lambda s: str(s.id)):
            result = db.execute(
                update(Squad)
                .where(Squad.id == squad.id, Squad.registered_count < Squad.capacity)
                .values(registered_count=Squad.registered_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.info(f"Squad {squad.id} ({squad.name}) is full, admission rejected")
                raise SquadFullError(squad.name)

    def release_squads(self, db: Session, squads: Iterable[Squad]) -> None:
        """Give back one slot in each squad"""
        for squad in sorted(squads, key=lambda s: str(s.id)):
            db.execute(
                update(Squad)
                .where(Squad.id == squad.id, Squad.registered_count > 0)
                .values(registered_count=Squad.registered_count - 1)
                .execution_options(synchronize_session=False)
            )

    def admit_participant(self, db: Session, tournament: Tournament) -> None:
        """Count a participant against max_participants (unlimited when unset)"""
        result = db.execute(
            update(Tournament)
            .where(
                Tournament.id == tournament.id,
                or_(
                    Tournament.max_participants.is_(None),
                    Tournament.registration_count < Tournament.max_participants,
                ),
            )
            .values(registration_count=Tournament.registration_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(f"Tournament {tournament.id} is full, admission rejected")
            raise TournamentFullError()

    def release_participant(self, db: Session, tournament: Tournament) -> None:
        db.execute(
            update(Tournament)
            .where(Tournament.id == tournament.id, Tournament.registration_count > 0)
            .values(registration_count=Tournament.registration_count - 1)
            .execution_options(synchronize_session=False)
        )

    def admit(self, db: Session, tournament: Tournament, squads: Iterable[Squad]) -> None:
        """Tournament slot first, then squads, so concurrent writers lock rows in the same order"""
        self.admit_participant(db, tournament)
        self.admit_squads(db, squads)

    def release(self, db: Session, tournament: Tournament, squads: Iterable[Squad]) -> None:
        self.release_participant(db, tournament)
        self.release_squads(db, squads)


capacity_service = CapacityService()
