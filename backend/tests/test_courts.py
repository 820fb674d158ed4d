"""Court names: string and list inputs must both produce correct labels."""
from datetime import datetime

from tourney.models.match import Match
from tourney.utils.courts import CourtOccupancy, parse_court_names


def test_parse_court_names_string_comma_separated():
    """'1,5,6' parses to ['1','5','6'] (no list('1,5,6') corruption)."""
    assert parse_court_names("1,5,6") == ["1", "5", "6"]


def test_parse_court_names_list_unchanged():
    assert parse_court_names(["Court 1", "Court 2"]) == ["Court 1", "Court 2"]


def test_parse_court_names_none_or_empty():
    assert parse_court_names(None) == []
    assert parse_court_names("") == []
    assert parse_court_names("   ") == []
    assert parse_court_names(" , ,") == []


def test_parse_court_names_strips_and_dedupes():
    assert parse_court_names(" 1 , 5 , 1 ") == ["1", "5"]
    assert parse_court_names([1, 5, " 6 ", 5]) == ["1", "5", "6"]


def test_occupancy_is_half_open():
    occupancy = CourtOccupancy()
    occupancy.occupy("Court 1", datetime(2099, 6, 1, 9, 0), 40)

    assert not occupancy.is_free("Court 1", datetime(2099, 6, 1, 9, 30), 40)
    assert occupancy.is_free("Court 1", datetime(2099, 6, 1, 9, 40), 40)
    assert occupancy.is_free("Court 2", datetime(2099, 6, 1, 9, 0), 40)


def test_occupancy_ignores_unplaced_matches():
    occupancy = CourtOccupancy()
    occupancy.occupy_match(Match(tournament_id=1, round=1, match_number=1, court="Court 1"), 40)
    occupancy.occupy_match(
        Match(tournament_id=1, round=1, match_number=2, court="Court 1", scheduled_time=datetime(2099, 6, 1, 9, 0), duration=60),
        40,
    )

    assert not occupancy.is_free("Court 1", datetime(2099, 6, 1, 9, 50), 10)
    assert occupancy.is_free("Court 1", datetime(2099, 6, 1, 10, 0), 40)
