"""
Integration tests for score entry, results and stage advancement.
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import registration_for, squad
from pinfall.core.exceptions import ValidationError
from pinfall.models.bowler import Bowler
from pinfall.schemas.registration import RegistrationUpdate, StageScoreUpdate
from pinfall.schemas.tournament import StageConfig, TournamentFormat
from pinfall.services.advancement_service import advancement_service, outgoing_carryover
from pinfall.services.leaderboard_service import leaderboard_service
from pinfall.services.scoring_service import load_format, result_for_registration
from pinfall.services.registration_service import registration_service


def staged_format(advancing=1, carryover_percentage=50):
    return TournamentFormat(
        use_handicap=True,
        handicap_base=220,
        handicap_percentage=90,
        female_handicap_pins=8,
        stages=[
            StageConfig(name="Qualifying", games=3, advancing_bowlers=advancing),
            StageConfig(
                name="Finals", games=2,
                carryover_pinfall=True, carryover_percentage=carryover_percentage,
            ),
        ],
    )


@pytest.fixture
def staged_tournament(tournament_factory):
    return tournament_factory(squads=[squad("Squad A")], format=staged_format())


def _register(db, tournament, email, **overrides):
    return registration_service.register(db, registration_for(tournament, email, **overrides))


def _enter_scores(db, registration, stage_index, scores, **extra):
    return registration_service.admin_update(
        db,
        registration.id,
        RegistrationUpdate(stage_scores=StageScoreUpdate(stage_index=stage_index, scores=scores, **extra)),
    )


def test_top_finisher_carries_half_their_total(db_session, staged_tournament):
    ann = _register(db_session, staged_tournament, "ann@example.com", gender="female", average_score=150)
    ben = _register(db_session, staged_tournament, "ben@example.com", average_score=200)

    _enter_scores(db_session, ann, 0, [180, 190, 170])  # 540 + 71 * 3 = 753
    _enter_scores(db_session, ben, 0, [200, 200, 200])  # 600 + 18 * 3 = 654

    assert advancement_service.advance(db_session, staged_tournament.id) == 1

    db_session.refresh(ann)
    db_session.refresh(ben)
    assert ann.current_stage == 1
    finals = ann.get_stage_score(1)
    assert finals.carryover == 377
    assert finals.scores == []
    assert ben.current_stage == 0
    assert ben.get_stage_score(1) is None


def test_rerun_only_picks_up_newly_completed_bowlers(db_session, tournament_factory):
    tournament = tournament_factory(squads=[squad("Squad A")], format=staged_format(advancing=2))
    ann = _register(db_session, tournament, "ann@example.com")
    ben = _register(db_session, tournament, "ben@example.com")

    _enter_scores(db_session, ann, 0, [200, 200, 200])
    _enter_scores(db_session, ben, 0, [210, 210])  # one game short

    assert advancement_service.advance(db_session, tournament.id) == 1
    assert advancement_service.advance(db_session, tournament.id) == 0

    _enter_scores(db_session, ben, 0, [210, 210, 210])
    assert advancement_service.advance(db_session, tournament.id) == 1

    db_session.refresh(ann)
    db_session.refresh(ben)
    assert ann.current_stage == 1
    assert ben.current_stage == 1


def test_rerun_keeps_finals_scores(db_session, staged_tournament):
    ann = _register(db_session, staged_tournament, "ann@example.com")
    _enter_scores(db_session, ann, 0, [200, 200, 200])
    advancement_service.advance(db_session, staged_tournament.id)

    _enter_scores(db_session, ann, 1, [250, 240])
    assert advancement_service.advance(db_session, staged_tournament.id) == 0

    db_session.refresh(ann)
    assert ann.get_stage_score(1).scores == [250, 240]


def test_failed_bowler_leaves_the_others_advanced(db_session, tournament_factory, monkeypatch):
    tournament = tournament_factory(squads=[squad("Squad A")], format=staged_format(advancing=3))
    ann = _register(db_session, tournament, "ann@example.com")
    ben = _register(db_session, tournament, "ben@example.com")
    cal = _register(db_session, tournament, "cal@example.com")
    _enter_scores(db_session, ann, 0, [200, 200, 200])
    _enter_scores(db_session, ben, 0, [190, 190, 190])
    _enter_scores(db_session, cal, 0, [180, 180, 180])

    real_move = advancement_service._move_to_stage

    def move(registration, stage_index, carryover):
        if registration.email == "ben@example.com":
            raise SQLAlchemyError("database is locked")
        real_move(registration, stage_index, carryover)

    monkeypatch.setattr(advancement_service, "_move_to_stage", move)

    assert advancement_service.advance(db_session, tournament.id) == 2

    for registration in (ann, ben, cal):
        db_session.refresh(registration)
    assert [ann.current_stage, ben.current_stage, cal.current_stage] == [1, 0, 1]
    assert ben.get_stage_score(1) is None


def test_admin_corrects_carryover(db_session, staged_tournament):
    ann = _register(db_session, staged_tournament, "ann@example.com")
    _enter_scores(db_session, ann, 0, [200, 200, 200])  # 600 + 36 * 3 = 708
    advancement_service.advance(db_session, staged_tournament.id)
    db_session.refresh(ann)
    assert ann.get_stage_score(1).carryover == 354

    _enter_scores(db_session, ann, 1, [250, 240], carryover=300)
    # Re-entering scores without a carryover keeps the corrected value
    updated = _enter_scores(db_session, ann, 1, [250, 240])

    finals = updated.get_stage_score(1)
    assert finals.carryover == 300
    fmt = load_format(staged_tournament.format)
    assert result_for_registration(updated, fmt, 1).grand_total == 490 + 36 * 2 + 300


def test_nothing_to_advance_without_completed_stages(db_session, staged_tournament):
    _register(db_session, staged_tournament, "ann@example.com")
    assert advancement_service.advance(db_session, staged_tournament.id) == 0


def test_final_stage_without_advancing_count_is_terminal(db_session, tournament_factory):
    fmt = TournamentFormat(stages=[StageConfig(name="Only", games=1)])
    tournament = tournament_factory(format=fmt)
    ann = _register(db_session, tournament, "ann@example.com")
    _enter_scores(db_session, ann, 0, [200])

    assert advancement_service.advance(db_session, tournament.id) == 0


def test_carryover_disabled_on_next_stage():
    assert outgoing_carryover(753, StageConfig(name="Finals", games=2, carryover_pinfall=False)) == 0
    assert outgoing_carryover(753, StageConfig(name="Finals", games=2, carryover_pinfall=True)) == 753


class TestScoreEntry:

    def test_too_many_games_rejected(self, db_session, staged_tournament):
        ann = _register(db_session, staged_tournament, "ann@example.com")

        with pytest.raises(ValidationError) as exc_info:
            _enter_scores(db_session, ann, 0, [200, 200, 200, 200])
        assert exc_info.value.message == "This stage allows at most 3 game scores"

    def test_unknown_stage_rejected(self, db_session, staged_tournament):
        ann = _register(db_session, staged_tournament, "ann@example.com")

        with pytest.raises(ValidationError):
            _enter_scores(db_session, ann, 5, [200])

    def test_single_stage_format_only_has_stage_zero(self, db_session, tournament_factory):
        tournament = tournament_factory()
        ann = _register(db_session, tournament, "ann@example.com")

        with pytest.raises(ValidationError):
            _enter_scores(db_session, ann, 1, [200])
        updated = _enter_scores(db_session, ann, 0, [200, 210, 220])
        assert updated.get_stage_score(0).total == 630

    def test_bonus_pins_capped(self, db_session, staged_tournament):
        ann = _register(db_session, staged_tournament, "ann@example.com")

        with pytest.raises(ValidationError):
            _enter_scores(db_session, ann, 0, [200], bonus_pins=[101])

    def test_match_results_become_bonus_pins(self, db_session, staged_tournament):
        ann = _register(db_session, staged_tournament, "ann@example.com")
        updated = _enter_scores(db_session, ann, 0, [200, 190, 180], match_results=["win", "tie", "loss"])

        assert updated.get_stage_score(0).bonus_pins == [30, 15, 0]

    def test_reentering_scores_replaces_them(self, db_session, staged_tournament):
        ann = _register(db_session, staged_tournament, "ann@example.com")
        _enter_scores(db_session, ann, 0, [100, 100, 100])
        updated = _enter_scores(db_session, ann, 0, [200, 200, 200])

        assert len(updated.stage_scores) == 1
        assert updated.get_stage_score(0).scores == [200, 200, 200]

    def test_bowler_stats_follow_score_entry(self, db_session, tournament_factory):
        first = tournament_factory(name="Spring Classic")
        second = tournament_factory(name="Summer Open")
        a = _register(db_session, first, "ann@example.com")
        b = _register(db_session, second, "ann@example.com")

        _enter_scores(db_session, a, 0, [180, 190, 200])
        _enter_scores(db_session, b, 0, [250, 150, 201])

        bowler = db_session.query(Bowler).filter(Bowler.email == "ann@example.com").one()
        assert bowler.tournament_average == 195  # 1171 / 6 = 195.17
        assert bowler.high_game == 250
        assert bowler.high_series == 601


class TestResults:

    def test_staged_results_group_by_stage(self, db_session, staged_tournament):
        ann = _register(db_session, staged_tournament, "ann@example.com", gender="female", average_score=150)
        ben = _register(db_session, staged_tournament, "ben@example.com", average_score=200)
        _register(db_session, staged_tournament, "cal@example.com")  # no games yet

        _enter_scores(db_session, ann, 0, [180, 190, 170])
        _enter_scores(db_session, ben, 0, [200, 200, 200])

        results = leaderboard_service.get_tournament_results(db_session, staged_tournament.id)

        assert results.has_stages is True
        qualifying, finals = results.stages
        assert [p.player_name for p in qualifying.players] == ["Ann", "Ben"]
        assert [p.grand_total for p in qualifying.players] == [753, 654]
        assert [p.advancing for p in qualifying.players] == [True, False]
        assert finals.players == []

    def test_flat_results_without_stages(self, db_session, tournament_factory):
        tournament = tournament_factory()
        ann = _register(db_session, tournament, "ann@example.com")
        _enter_scores(db_session, ann, 0, [200, 200, 200])

        results = leaderboard_service.get_tournament_results(db_session, tournament.id)

        assert results.has_stages is False
        assert results.stages is None
        assert results.players[0].position == 1
        assert results.players[0].grand_total == 600

    def test_cancelled_registrations_leave_the_leaderboard(self, db_session, tournament_factory):
        tournament = tournament_factory()
        ann = _register(db_session, tournament, "ann@example.com")
        _enter_scores(db_session, ann, 0, [200, 200, 200])
        registration_service.admin_update(db_session, ann.id, RegistrationUpdate(status="cancelled"))

        results = leaderboard_service.get_tournament_results(db_session, tournament.id)
        assert results.players == []
