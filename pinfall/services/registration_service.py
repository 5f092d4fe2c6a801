"""
Registration service: the admission checks for new registrations and the
bowler/admin operations that change an existing one.
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pinfall.core.exceptions import (
    AuthorizationError,
    BusinessRuleViolation,
    DuplicateRegistrationError,
    NotFoundError,
    PinfallError,
    SquadFullError,
    TournamentFullError,
    ValidationError,
)
from pinfall.models.bowler import Bowler
from pinfall.models.registration import ACTIVE_STATUSES, Registration
from pinfall.models.tournament import Squad, Tournament
from pinfall.schemas.registration import (
    RegistrationCreate,
    RegistrationSquadsUpdate,
    RegistrationUpdate,
)
from pinfall.services.bowler_service import bowler_service
from pinfall.services.capacity_service import capacity_service
from pinfall.services.email_service import RegistrationConfirmedEvent
from pinfall.services.reservation_service import reservation_service
from pinfall.services.scoring_service import load_format, scoring_service
from pinfall.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def _plural(count: int) -> str:
    return "s" if count > 1 else ""


def _is_duplicate_registration(error: IntegrityError) -> bool:
    """PostgreSQL reports the constraint name, SQLite the constrained columns"""
    message = str(error.orig)
    return (
        "uq_registration_tournament_email" in message
        or "registrations.tournament_id, registrations.email" in message
    )


class RegistrationService:
    """Service for registration operations"""

    # Admission checks, in the order they are reported

    def check_tournament_open(self, tournament: Tournament, now: datetime) -> None:
        if tournament.status != "upcoming":
            raise BusinessRuleViolation("This tournament is not accepting registrations")

        if (
            tournament.registration_open_date
            and not tournament.registration_manually_opened
            and now < tournament.registration_open_date
        ):
            raise BusinessRuleViolation("Registration is not open yet")

        if tournament.registration_deadline and now > tournament.registration_deadline:
            raise BusinessRuleViolation("Registration deadline has passed")

    def resolve_squads(self, tournament: Tournament, squad_ids: List[UUID]) -> List[Squad]:
        if tournament.squads and not squad_ids:
            raise BusinessRuleViolation("Please select at least one squad")

        squads = []
        for squad_id in squad_ids:
            squad = tournament.get_squad(squad_id)
            if not squad:
                raise ValidationError("Invalid squad selection")
            squads.append(squad)
        return squads

    def check_squad_availability(
        self,
        db: Session,
        tournament: Tournament,
        squads: List[Squad],
        now: datetime,
        session_id: Optional[str] = None,
    ) -> None:
        """First full squad wins. The registrant's own hold does not count against them."""
        for squad in squads:
            availability = capacity_service.check_availability(
                db, tournament.id, squad.id, now, exclude_session_id=session_id
            )
            if availability.available <= 0:
                raise SquadFullError(squad.name)

    def check_qualifying_rule(self, tournament: Tournament, squads: List[Squad]) -> None:
        if not tournament.squads:
            return

        required = tournament.squads_required_to_qualify
        qualifying = sum(1 for squad in squads if squad.is_qualifying)

        if qualifying < required:
            raise BusinessRuleViolation(
                f"Must select at least {required} qualifying squad{_plural(required)}"
            )
        if not tournament.allow_reentry and qualifying > required:
            raise BusinessRuleViolation(
                f"Re-entry is not allowed. You can only register for "
                f"{required} qualifying squad{_plural(required)}"
            )

    def check_tournament_capacity(self, db: Session, tournament: Tournament) -> None:
        if tournament.max_participants is None:
            return
        current = db.query(Registration).filter(
            Registration.tournament_id == tournament.id,
            Registration.status.in_(ACTIVE_STATUSES),
        ).count()
        if current >= tournament.max_participants:
            raise TournamentFullError()

    def check_not_registered(self, db: Session, tournament: Tournament, email: str) -> None:
        existing = db.query(Registration.id).filter(
            Registration.tournament_id == tournament.id,
            Registration.email == email,
        ).first()
        if existing:
            raise DuplicateRegistrationError()

    def register(self, db: Session, data: RegistrationCreate, now: Optional[datetime] = None) -> Registration:
        """
        Run the admission checks, then admit and persist in one transaction.

        The checks above are advisory reads. Admission itself goes through
        capacity_service's conditional updates and the (tournament, email)
        unique constraint, so a registrant that loses a race at commit time
        gets the same SquadFullError / DuplicateRegistrationError as one
        rejected up front.
        """
        now = now or utc_now()

        tournament = db.query(Tournament).filter(Tournament.id == data.tournament_id).first()
        if not tournament:
            raise NotFoundError("Tournament not found")

        try:
            self.check_tournament_open(tournament, now)
            squads = self.resolve_squads(tournament, data.assigned_squads)
            self.check_squad_availability(db, tournament, squads, now, data.session_id)
            self.check_qualifying_rule(tournament, squads)
            self.check_tournament_capacity(db, tournament)
            self.check_not_registered(db, tournament, data.email)
        except PinfallError as e:
            logger.info(f"Registration rejected for {data.email} in tournament {tournament.id}: {e.message}")
            raise

        try:
            capacity_service.admit(db, tournament, squads)

            bowler = bowler_service.upsert_from_registration(
                db,
                email=data.email,
                player_name=data.player_name,
                phone=data.phone,
                gender=data.gender,
                average_score=data.average_score,
                tournament_id=tournament.id,
                now=now,
            )

            registration = Registration(
                tournament_id=tournament.id,
                bowler=bowler,
                player_name=data.player_name,
                email=data.email,
                phone=data.phone,
                gender=data.gender,
                average_score=data.average_score,
                notes=data.notes,
                status="confirmed",
                current_stage=0,
                registered_at=now,
            )
            registration.squads = squads
            db.add(registration)

            if data.session_id:
                reservation_service.release(db, data.session_id, commit=False)

            db.commit()
        except PinfallError as e:
            db.rollback()
            logger.info(f"Capacity race lost for {data.email} in tournament {tournament.id}: {e.message}")
            raise
        except IntegrityError as e:
            db.rollback()
            if not _is_duplicate_registration(e):
                logger.error(f"Registration for {data.email} in tournament {tournament.id} failed: {e.orig}")
                raise
            logger.info(f"Duplicate registration blocked by constraint for {data.email} in tournament {tournament.id}")
            raise DuplicateRegistrationError()

        db.refresh(registration)
        logger.info(
            f"Registered {registration.player_name} ({registration.email}) in tournament "
            f"{tournament.id} for {len(squads)} squad(s)"
        )
        return registration

    def confirmation_event(self, registration: Registration) -> RegistrationConfirmedEvent:
        tournament = registration.tournament
        return RegistrationConfirmedEvent(
            recipient=registration.email,
            bowler_name=registration.player_name,
            tournament_name=tournament.name,
            tournament_date=tournament.start_date,
            tournament_location=tournament.location,
            entry_fee=tournament.entry_fee,
            payment_instructions=tournament.payment_instructions,
            registration_id=registration.id,
            squads=[f"{squad.name} ({squad.time})" for squad in registration.squads],
        )

    # Reads

    def get_registration(self, db: Session, registration_id: UUID) -> Registration:
        registration = db.query(Registration).filter(Registration.id == registration_id).first()
        if not registration:
            raise NotFoundError("Registration not found")
        return registration

    def list_registrations(
        self,
        db: Session,
        tournament_id: Optional[UUID] = None,
        status: Optional[str] = None,
    ) -> List[Registration]:
        query = db.query(Registration)
        if tournament_id:
            query = query.filter(Registration.tournament_id == tournament_id)
        if status:
            query = query.filter(Registration.status == status)
        return query.order_by(Registration.registered_at.desc()).all()

    # Bowler self-service

    def _owned_upcoming(self, db: Session, registration_id: UUID, bowler: Bowler, action: str) -> Registration:
        registration = self.get_registration(db, registration_id)
        if registration.email != bowler.email:
            raise AuthorizationError(f"You can only {action} your own registrations")
        if registration.tournament.status != "upcoming":
            raise BusinessRuleViolation(
                f"Cannot {action} registration for tournaments that have started or completed"
            )
        return registration

    def update_own_squads(
        self,
        db: Session,
        registration_id: UUID,
        bowler: Bowler,
        data: RegistrationSquadsUpdate,
        now: Optional[datetime] = None,
    ) -> Registration:
        """Swap squads on the bowler's own registration, admitting only the newly added ones"""
        now = now or utc_now()
        registration = self._owned_upcoming(db, registration_id, bowler, "modify")
        tournament = registration.tournament

        squads = self.resolve_squads(tournament, data.assigned_squads)
        current_ids = set(registration.assigned_squads)
        added = [squad for squad in squads if squad.id not in current_ids]
        removed = [squad for squad in registration.squads if squad.id not in {s.id for s in squads}]

        registered = capacity_service.registered_counts(db, tournament.id, exclude_registration_id=registration.id)
        reserved = capacity_service.reserved_counts(db, tournament.id, now)
        for squad in added:
            if registered.get(squad.id, 0) + reserved.get(squad.id, 0) >= squad.capacity:
                raise SquadFullError(squad.name)

        self.check_qualifying_rule(tournament, squads)

        try:
            if registration.holds_slot:
                capacity_service.release_squads(db, removed)
                capacity_service.admit_squads(db, added)
            registration.squads = squads
            db.commit()
        except PinfallError:
            db.rollback()
            raise

        db.refresh(registration)
        logger.info(
            f"Registration {registration.id} squads changed: +{len(added)} -{len(removed)}"
        )
        return registration

    def cancel_own(self, db: Session, registration_id: UUID, bowler: Bowler) -> None:
        registration = self._owned_upcoming(db, registration_id, bowler, "cancel")
        self._delete(db, registration)
        logger.info(f"Registration {registration_id} cancelled by bowler {bowler.id}")

    # Admin

    def admin_delete(self, db: Session, registration_id: UUID) -> None:
        registration = self.get_registration(db, registration_id)
        self._delete(db, registration)
        logger.info(f"Registration {registration_id} deleted by admin")

    def admin_update(self, db: Session, registration_id: UUID, data: RegistrationUpdate) -> Registration:
        """Status, notes, stage and score entry. Status changes keep the slot counters in step."""
        registration = self.get_registration(db, registration_id)
        tournament = registration.tournament
        fields = data.model_fields_set

        try:
            if data.status is not None and data.status != registration.status:
                was_active = registration.holds_slot
                registration.status = data.status
                if was_active and not registration.holds_slot:
                    capacity_service.release(db, tournament, registration.squads)
                elif not was_active and registration.holds_slot:
                    capacity_service.admit(db, tournament, registration.squads)
                bowler_service.set_tournament_status(registration.bowler, tournament.id, data.status)

            if "notes" in fields:
                registration.notes = data.notes

            if data.current_stage is not None:
                if not load_format(tournament.format).stage_exists(data.current_stage):
                    raise ValidationError("Invalid stage index")
                registration.current_stage = data.current_stage

            if data.stage_scores is not None:
                scoring_service.record_stage_scores(db, registration, data.stage_scores)
                db.flush()
                bowler = registration.bowler or bowler_service.get_by_email(db, registration.email)
                if bowler is not None:
                    bowler_service.recalculate_stats(db, bowler)

            db.commit()
        except PinfallError:
            db.rollback()
            raise

        db.refresh(registration)
        logger.info(f"Registration {registration.id} updated: {sorted(fields)}")
        return registration

    def _delete(self, db: Session, registration: Registration) -> None:
        try:
            if registration.holds_slot:
                capacity_service.release(db, registration.tournament, registration.squads)
            bowler_service.set_tournament_status(registration.bowler, registration.tournament_id, "cancelled")
            db.delete(registration)
            db.commit()
        except PinfallError:
            db.rollback()
            raise


registration_service = RegistrationService()
