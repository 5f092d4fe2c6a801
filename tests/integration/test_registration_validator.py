"""
Integration tests for registration admission.

Each rule reports its own reason, and a rejected registration leaves no
trace in the capacity counters.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import TOURNAMENT_START, registration_for, squad
from pinfall.core.exceptions import (
    BusinessRuleViolation,
    DuplicateRegistrationError,
    NotFoundError,
    SquadFullError,
    TournamentFullError,
    ValidationError,
)
from pinfall.models.bowler import Bowler
from pinfall.models.registration import Registration
from pinfall.models.reservation import SpotReservation
from pinfall.services.bowler_service import bowler_service
from pinfall.services.registration_service import registration_service
from pinfall.services.reservation_service import reservation_service
from pinfall.utils.time_utils import utc_now


@pytest.fixture
def two_of_three(tournament_factory):
    """Three qualifying squads, exactly two required, no re-entry"""
    return tournament_factory(
        squads=[squad("Q1"), squad("Q2", day_offset=1), squad("Q3", day_offset=2)],
        squads_required_to_qualify=2,
        allow_reentry=False,
    )


class TestQualifyingRule:

    def test_too_few_qualifying_squads(self, db_session, two_of_three):
        data = registration_for(two_of_three, "ann@example.com", [two_of_three.squads[0].id])

        with pytest.raises(BusinessRuleViolation) as exc_info:
            registration_service.register(db_session, data)
        assert exc_info.value.message == "Must select at least 2 qualifying squads"

    def test_extra_qualifying_squads_without_reentry(self, db_session, two_of_three):
        data = registration_for(two_of_three, "ann@example.com", [s.id for s in two_of_three.squads])

        with pytest.raises(BusinessRuleViolation) as exc_info:
            registration_service.register(db_session, data)
        assert exc_info.value.message == (
            "Re-entry is not allowed. You can only register for 2 qualifying squads"
        )

    def test_exactly_required_squads(self, db_session, two_of_three):
        chosen = [two_of_three.squads[0].id, two_of_three.squads[2].id]
        registration = registration_service.register(
            db_session, registration_for(two_of_three, "ann@example.com", chosen),
        )

        assert registration.status == "confirmed"
        assert sorted(map(str, registration.assigned_squads)) == sorted(map(str, chosen))

    def test_reentry_allows_extra_squads(self, db_session, tournament_factory):
        tournament = tournament_factory(
            squads=[squad("Q1"), squad("Q2", day_offset=1), squad("Q3", day_offset=2)],
            squads_required_to_qualify=2,
            allow_reentry=True,
        )
        registration = registration_service.register(
            db_session, registration_for(tournament, "ann@example.com", [s.id for s in tournament.squads]),
        )
        assert len(registration.assigned_squads) == 3

    def test_non_qualifying_squads_do_not_count(self, db_session, tournament_factory):
        tournament = tournament_factory(
            squads=[squad("Practice", is_qualifying=False), squad("Q1", day_offset=1)],
        )
        with pytest.raises(BusinessRuleViolation) as exc_info:
            registration_service.register(
                db_session, registration_for(tournament, "ann@example.com", [tournament.squads[0].id]),
            )
        assert exc_info.value.message == "Must select at least 1 qualifying squad"


class TestTournamentChecks:

    def test_unknown_tournament(self, db_session, tournament_factory):
        tournament = tournament_factory()
        data = registration_for(tournament, "ann@example.com").model_copy(update={"tournament_id": uuid4()})

        with pytest.raises(NotFoundError):
            registration_service.register(db_session, data)

    @pytest.mark.parametrize("status", ["active", "completed", "cancelled"])
    def test_only_upcoming_tournaments_accept(self, db_session, tournament_factory, status):
        tournament = tournament_factory(status=status)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            registration_service.register(db_session, registration_for(tournament, "ann@example.com"))
        assert exc_info.value.message == "This tournament is not accepting registrations"

    def test_deadline_passed(self, db_session, tournament_factory):
        deadline = TOURNAMENT_START - timedelta(days=7)
        tournament = tournament_factory(registration_deadline=deadline)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            registration_service.register(
                db_session, registration_for(tournament, "ann@example.com"), now=deadline + timedelta(minutes=1),
            )
        assert exc_info.value.message == "Registration deadline has passed"

    def test_not_open_until_open_date_or_manual_override(self, db_session, tournament_factory):
        open_date = TOURNAMENT_START - timedelta(days=30)
        tournament = tournament_factory(registration_open_date=open_date)
        early = open_date - timedelta(days=1)

        with pytest.raises(BusinessRuleViolation) as exc_info:
            registration_service.register(db_session, registration_for(tournament, "ann@example.com"), now=early)
        assert exc_info.value.message == "Registration is not open yet"

        tournament.registration_manually_opened = True
        db_session.commit()
        registration = registration_service.register(
            db_session, registration_for(tournament, "ann@example.com"), now=early,
        )
        assert registration.status == "confirmed"

    def test_tournament_full(self, db_session, tournament_factory):
        tournament = tournament_factory(max_participants=1)
        registration_service.register(db_session, registration_for(tournament, "ann@example.com"))

        with pytest.raises(TournamentFullError) as exc_info:
            registration_service.register(db_session, registration_for(tournament, "ben@example.com"))
        assert exc_info.value.extra == {"waitlist_available": True}


class TestSquadChecks:

    def test_squad_required_when_tournament_has_squads(self, db_session, tournament_factory):
        tournament = tournament_factory()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            registration_service.register(db_session, registration_for(tournament, "ann@example.com", []))
        assert exc_info.value.message == "Please select at least one squad"

    def test_squad_from_elsewhere(self, db_session, tournament_factory):
        tournament = tournament_factory()

        with pytest.raises(ValidationError) as exc_info:
            registration_service.register(db_session, registration_for(tournament, "ann@example.com", [uuid4()]))
        assert exc_info.value.message == "Invalid squad selection"

    def test_full_squad_is_named(self, db_session, tournament_factory):
        tournament = tournament_factory(squads=[squad("Early Bird", capacity=1)])
        registration_service.register(db_session, registration_for(tournament, "ann@example.com"))

        with pytest.raises(SquadFullError) as exc_info:
            registration_service.register(db_session, registration_for(tournament, "ben@example.com"))
        assert exc_info.value.message == 'Squad "Early Bird" is full. Please select different squads.'

    def test_other_sessions_hold_blocks_last_slot(self, db_session, tournament_factory):
        tournament = tournament_factory(squads=[squad("Squad A", capacity=1)])
        reservation_service.create(db_session, tournament.id, [tournament.squads[0].id], "someone-else")

        with pytest.raises(SquadFullError):
            registration_service.register(
                db_session, registration_for(tournament, "ann@example.com", session_id="mine"),
            )

    def test_own_hold_is_used_and_released(self, db_session, tournament_factory):
        tournament = tournament_factory(squads=[squad("Squad A", capacity=1)])
        reservation_service.create(db_session, tournament.id, [tournament.squads[0].id], "mine")

        registration = registration_service.register(
            db_session, registration_for(tournament, "ann@example.com", session_id="mine"),
        )

        assert registration.status == "confirmed"
        assert db_session.query(SpotReservation).count() == 0

    def test_tournament_without_squads(self, db_session, tournament_factory):
        tournament = tournament_factory(squads=[])
        registration = registration_service.register(db_session, registration_for(tournament, "ann@example.com"))

        assert registration.assigned_squads == []


class TestDuplicates:

    def test_second_registration_with_same_email(self, db_session, tournament_factory):
        tournament = tournament_factory()
        registration_service.register(db_session, registration_for(tournament, "ann@example.com"))

        with pytest.raises(DuplicateRegistrationError) as exc_info:
            registration_service.register(db_session, registration_for(tournament, "ANN@example.com"))
        assert exc_info.value.message == "You have already registered for this tournament"

        tournament_after = db_session.get(type(tournament), tournament.id)
        assert tournament_after.registration_count == 1
        assert tournament_after.squads[0].registered_count == 1

    def test_duplicate_lost_at_commit_rolls_back_counters(self, db_session, tournament_factory, monkeypatch):
        tournament = tournament_factory()
        registration_service.register(db_session, registration_for(tournament, "ann@example.com"))

        # A second submission that passed its pre-check before the first committed
        monkeypatch.setattr(registration_service, "check_not_registered", lambda db, tournament, email: None)

        with pytest.raises(DuplicateRegistrationError) as exc_info:
            registration_service.register(db_session, registration_for(tournament, "ann@example.com"))
        assert exc_info.value.message == "You have already registered for this tournament"

        db_session.refresh(tournament)
        db_session.refresh(tournament.squads[0])
        assert tournament.registration_count == 1
        assert tournament.squads[0].registered_count == 1
        assert db_session.query(Registration).count() == 1

    def test_unique_constraint_backs_the_precheck(self, db_session, tournament_factory):
        tournament = tournament_factory()
        for _ in range(2):
            db_session.add(Registration(
                tournament_id=tournament.id,
                player_name="Ann",
                email="ann@example.com",
                phone="0412345678",
            ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestBowlerProfile:

    def test_profile_created_then_updated(self, db_session, tournament_factory):
        first = tournament_factory(name="Spring Classic")
        second = tournament_factory(name="Summer Open")

        registration_service.register(
            db_session, registration_for(first, "ann@example.com", player_name="Ann Smith", average_score=170),
        )
        registration_service.register(
            db_session,
            registration_for(second, "ann@example.com", player_name="Ann Jones", average_score=185, gender="female"),
        )

        bowlers = db_session.query(Bowler).all()
        assert len(bowlers) == 1
        bowler = bowlers[0]
        assert bowler.player_name == "Ann Jones"
        assert bowler.current_average == 185
        assert bowler.gender == "female"
        assert {entry.tournament_id for entry in bowler.tournaments_entered} == {first.id, second.id}
        assert len(bowler.registrations) == 2

    def test_profile_inserted_concurrently_is_reused(self, db_session, tournament_factory, monkeypatch):
        first = tournament_factory(name="Spring Classic")
        second = tournament_factory(name="Summer Open")
        registration_service.register(db_session, registration_for(first, "new@example.com"))

        # The lookup misses a profile another transaction has just committed
        real_lookup = bowler_service.get_by_email
        lookups = []

        def stale_lookup(db, email):
            lookups.append(email)
            return None if len(lookups) == 1 else real_lookup(db, email)

        monkeypatch.setattr(bowler_service, "get_by_email", stale_lookup)

        registration = registration_service.register(db_session, registration_for(second, "new@example.com"))

        assert registration.status == "confirmed"
        bowler = db_session.query(Bowler).one()
        assert registration.bowler_id == bowler.id
        assert {entry.tournament_id for entry in bowler.tournaments_entered} == {first.id, second.id}

    def test_rejected_registration_creates_no_profile(self, db_session, tournament_factory):
        tournament = tournament_factory(status="completed")

        with pytest.raises(BusinessRuleViolation):
            registration_service.register(db_session, registration_for(tournament, "ann@example.com"))
        assert db_session.query(Bowler).count() == 0


def test_confirmation_event_lists_squads(db_session, tournament_factory):
    tournament = tournament_factory(squads=[squad("Squad A", time="9:00 AM")])
    registration = registration_service.register(db_session, registration_for(tournament, "ann@example.com"))

    event = registration_service.confirmation_event(registration)

    assert event.recipient == "ann@example.com"
    assert event.tournament_name == "Spring Classic"
    assert event.squads == ["Squad A (9:00 AM)"]
    assert event.registration_id == registration.id
