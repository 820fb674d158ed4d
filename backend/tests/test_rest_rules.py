"""
Rest rules: team rest windows and feeder rest.

- Two matches sharing a team start at least MIN_REST apart
- Placeholder sides (no team yet) never clash
- A match waits MIN_REST after each scheduled feeder ends
"""

from datetime import datetime, timedelta

from tourney.models.match import Match
from tourney.utils.rest_rules import (
    RestStateTracker,
    check_rest_compatibility,
    intervals_overlap,
    rest_window,
    within_window,
)

NINE = datetime(2099, 6, 1, 9, 0)


def _match(team1_id=None, team2_id=None):
    return Match(tournament_id=1, round=1, match_number=1, team1_id=team1_id, team2_id=team2_id)


def test_intervals_overlap_half_open():
    ten = NINE + timedelta(hours=1)
    assert intervals_overlap(NINE, ten, NINE + timedelta(minutes=30), ten)
    assert not intervals_overlap(NINE, ten, ten, ten + timedelta(hours=1))


def test_rest_window_is_at_least_min_rest():
    assert rest_window(NINE, 40, 60) == (NINE, NINE + timedelta(minutes=60))
    assert rest_window(NINE, 90, 60) == (NINE, NINE + timedelta(minutes=90))


def test_within_window_is_strict():
    assert within_window(NINE, NINE + timedelta(minutes=59), 60)
    assert not within_window(NINE, NINE + timedelta(minutes=60), 60)
    assert within_window(NINE + timedelta(minutes=30), NINE, 60)


def test_shared_team_needs_min_rest():
    tracker = RestStateTracker(60)
    tracker.record([1, 2], NINE, 40)

    ok, violations = check_rest_compatibility(NINE + timedelta(minutes=50), 40, _match(1, 3), tracker)
    assert not ok
    assert [(v.team_id, v.violation_type) for v in violations] == [(1, "TEAM_REST")]
    assert violations[0].earliest_allowed_time == NINE + timedelta(minutes=60)

    ok, _ = check_rest_compatibility(NINE + timedelta(minutes=60), 40, _match(1, 3), tracker)
    assert ok


def test_rest_blocks_earlier_slots_too():
    tracker = RestStateTracker(60)
    tracker.record([1], NINE + timedelta(hours=2), 40)

    ok, _ = check_rest_compatibility(NINE + timedelta(minutes=70), 40, _match(1, 2), tracker)
    assert not ok
    ok, _ = check_rest_compatibility(NINE + timedelta(minutes=60), 40, _match(1, 2), tracker)
    assert ok


def test_placeholder_sides_are_skipped():
    tracker = RestStateTracker(60)
    tracker.record([1, 2], NINE, 40)

    ok, violations = check_rest_compatibility(NINE, 40, _match(), tracker)
    assert ok
    assert violations == []


def test_feeder_rest():
    tracker = RestStateTracker(60)
    feeder_end = NINE + timedelta(minutes=40)

    ok, violations = check_rest_compatibility(NINE + timedelta(minutes=90), 40, _match(), tracker, [feeder_end])
    assert not ok
    assert violations[0].violation_type == "FEEDER_REST"
    assert violations[0].earliest_allowed_time == NINE + timedelta(minutes=100)

    ok, _ = check_rest_compatibility(NINE + timedelta(minutes=100), 40, _match(), tracker, [feeder_end])
    assert ok


def test_record_match_uses_default_duration():
    tracker = RestStateTracker(30)
    scheduled = _match(5, 6)
    scheduled.scheduled_time = NINE
    tracker.record_match(scheduled, 45)
    tracker.record_match(_match(7, 8), 45)

    assert tracker.team_states[5].windows == [(NINE, NINE + timedelta(minutes=45))]
    assert 7 not in tracker.team_states
