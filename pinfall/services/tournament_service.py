"""
Tournament service for managing tournaments and their squads
"""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from pinfall.core.exceptions import NotFoundError, ValidationError
from pinfall.models.registration import ACTIVE_STATUSES, Registration
from pinfall.models.tournament import Squad, Tournament
from pinfall.schemas.tournament import (
    AvailabilityTournament,
    SquadBowler,
    SquadIn,
    SquadListResponse,
    SquadRoster,
    TournamentCreate,
    TournamentListResponse,
    TournamentResponse,
    TournamentUpdate,
)

logger = logging.getLogger(__name__)


class TournamentService:
    """Service for tournament operations"""

    def create_tournament(self, db: Session, data: TournamentCreate) -> Tournament:
        """Create a new tournament with its squads"""
        tournament = Tournament(
            name=data.name,
            description=data.description,
            location=data.location,
            payment_instructions=data.payment_instructions,
            entry_fee=data.entry_fee,
            status=data.status,
            start_date=data.start_date,
            end_date=data.end_date,
            max_participants=data.max_participants,
            registration_open_date=data.registration_open_date,
            registration_manually_opened=data.registration_manually_opened,
            registration_deadline=data.registration_deadline,
            squads_required_to_qualify=data.squads_required_to_qualify,
            allow_reentry=data.allow_reentry,
            format=data.format.model_dump(),
        )
        tournament.squads = [
            self._new_squad(squad, position) for position, squad in enumerate(data.squads)
        ]
        db.add(tournament)
        db.commit()
        db.refresh(tournament)
        logger.info(f"Created tournament {tournament.id} ({tournament.name}) with {len(tournament.squads)} squad(s)")
        return tournament

    def get_tournament(self, db: Session, tournament_id: UUID) -> Tournament:
        tournament = db.query(Tournament).filter(Tournament.id == tournament_id).first()
        if not tournament:
            raise NotFoundError("Tournament not found")
        return tournament

    def list_tournaments(
        self,
        db: Session,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> TournamentListResponse:
        """List tournaments, soonest first"""
        query = db.query(Tournament)
        if status:
            query = query.filter(Tournament.status == status)

        total = query.count()
        tournaments = query.order_by(Tournament.start_date).offset(offset).limit(limit).all()
        return TournamentListResponse(
            tournaments=[TournamentResponse.model_validate(t) for t in tournaments],
            total_count=total,
        )

    def update_tournament(self, db: Session, tournament_id: UUID, data: TournamentUpdate) -> Tournament:
        """Apply a partial update; a squads list replaces the squad set"""
        tournament = self.get_tournament(db, tournament_id)
        changes = data.model_dump(exclude_unset=True, exclude={"squads", "format"})

        for field, value in changes.items():
            if value is None and field in ("name", "location", "start_date", "status"):
                continue
            setattr(tournament, field, value)

        if data.format is not None:
            tournament.format = data.format.model_dump()

        if data.squads is not None:
            self._replace_squads(tournament, data.squads)

        if tournament.end_date is None or tournament.end_date < tournament.start_date:
            tournament.end_date = tournament.start_date

        db.commit()
        db.refresh(tournament)
        logger.info(f"Updated tournament {tournament.id}: {sorted(changes)}")
        return tournament

    def open_registration(self, db: Session, tournament_id: UUID) -> Tournament:
        """Manual override that opens registration regardless of the open date"""
        tournament = self.get_tournament(db, tournament_id)
        tournament.registration_manually_opened = True
        db.commit()
        db.refresh(tournament)
        logger.info(f"Registration manually opened for tournament {tournament.id}")
        return tournament

    def delete_tournament(self, db: Session, tournament_id: UUID) -> None:
        tournament = self.get_tournament(db, tournament_id)
        db.delete(tournament)
        db.commit()
        logger.info(f"Deleted tournament {tournament_id}")

    def count_registrations(self, db: Session, tournament_id: UUID) -> int:
        """Pending and confirmed registrations"""
        return db.query(func.count(Registration.id)).filter(
            Registration.tournament_id == tournament_id,
            Registration.status.in_(ACTIVE_STATUSES),
        ).scalar() or 0

    def list_public_registrations(self, db: Session, tournament_id: UUID) -> List[Registration]:
        self.get_tournament(db, tournament_id)
        return db.query(Registration).filter(
            Registration.tournament_id == tournament_id,
            Registration.status.in_(ACTIVE_STATUSES),
        ).order_by(Registration.player_name).all()

    def get_squad_lists(self, db: Session, tournament_id: UUID) -> SquadListResponse:
        """Bowlers registered in each squad, highest average first"""
        tournament = self.get_tournament(db, tournament_id)
        registrations = self.list_public_registrations(db, tournament.id)

        rosters = []
        for squad in tournament.squads:
            bowlers = [
                SquadBowler(
                    name=registration.player_name,
                    average_score=registration.average_score,
                    bowler_id=registration.bowler_id,
                )
                for registration in registrations
                if squad.id in registration.assigned_squads
            ]
            bowlers.sort(key=lambda b: (b.average_score is None, -(b.average_score or 0), b.name.casefold()))
            rosters.append(SquadRoster(
                id=squad.id,
                name=squad.name,
                date=squad.date,
                time=squad.time,
                capacity=squad.capacity,
                is_qualifying=squad.is_qualifying,
                registered=len(bowlers),
                spots_remaining=squad.capacity - len(bowlers),
                bowlers=bowlers,
            ))

        return SquadListResponse(
            tournament=AvailabilityTournament(
                id=tournament.id,
                name=tournament.name,
                squads_required_to_qualify=tournament.squads_required_to_qualify,
                allow_reentry=tournament.allow_reentry,
            ),
            squads=rosters,
        )

    def _new_squad(self, data: SquadIn, position: int) -> Squad:
        return Squad(
            name=data.name,
            date=data.date,
            time=data.time,
            capacity=data.capacity,
            is_qualifying=data.is_qualifying,
            position=position,
            registered_count=0,
        )

    def _replace_squads(self, tournament: Tournament, squads: List[SquadIn]) -> None:
        """Keep squads whose id is resent (so their registrations stay attached), add new ones, drop the rest"""
        kept = []
        for position, data in enumerate(squads):
            if data.id is None:
                kept.append(self._new_squad(data, position))
                continue

            squad = tournament.get_squad(data.id)
            if squad is None:
                raise ValidationError(f"Squad {data.id} does not belong to this tournament")
            squad.name = data.name
            squad.date = data.date
            squad.time = data.time
            squad.capacity = data.capacity
            squad.is_qualifying = data.is_qualifying
            squad.position = position
            kept.append(squad)

        tournament.squads = kept


tournament_service = TournamentService()
