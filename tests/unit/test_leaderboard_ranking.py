"""Unit tests for leaderboard ranking."""

from uuid import uuid4

from pinfall.schemas.tournament import TournamentFormat
from pinfall.services.leaderboard_service import rank_results
from pinfall.services.scoring_service import compute_stage_result


def _result(name, scores, registration_id=None):
    return compute_stage_result(
        scores=scores,
        bonus_pins=[],
        fmt=TournamentFormat(),
        player_name=name,
        registration_id=registration_id or uuid4(),
    )


def test_sorted_by_grand_total_with_positions():
    ranked = rank_results([
        _result("Casey", [150, 150]),
        _result("Alex", [220, 210]),
        _result("Blair", [190, 200]),
    ])

    assert [entry.player_name for entry in ranked] == ["Alex", "Blair", "Casey"]
    assert [entry.position for entry in ranked] == [1, 2, 3]


def test_ties_break_by_name_regardless_of_input_order():
    """Equal totals always come out in ascending name order."""
    zed = _result("Zed", [200, 200])
    amy = _result("amy", [210, 190])
    mia = _result("Mia", [250, 150])

    first = rank_results([zed, amy, mia])
    second = rank_results([mia, zed, amy])

    assert [entry.player_name for entry in first] == ["amy", "Mia", "Zed"]
    assert [entry.player_name for entry in second] == ["amy", "Mia", "Zed"]
    assert [entry.position for entry in first] == [1, 2, 3]


def test_same_name_same_total_falls_back_to_registration_id():
    low, high = sorted([uuid4(), uuid4()], key=str)
    ranked = rank_results([_result("Sam", [200], high), _result("Sam", [200], low)])

    assert [entry.registration_id for entry in ranked] == [low, high]


def test_advancing_flag_marks_top_finishers():
    ranked = rank_results(
        [_result("A", [300]), _result("B", [250]), _result("C", [200])],
        advancing_bowlers=2,
    )

    assert [entry.advancing for entry in ranked] == [True, True, False]


def test_no_advancing_count_marks_nobody():
    ranked = rank_results([_result("A", [300])])
    assert ranked[0].advancing is False


def test_empty_input():
    assert rank_results([]) == []
