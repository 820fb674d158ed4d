"""
Rest Rules - team rest and court exclusivity for match placement

Rules:
- A match occupies its court for [start, start + duration)
- A team's rest window is [start, start + max(duration, MIN_REST)); two matches
  sharing a team may not have overlapping rest windows, so their start times
  are at least MIN_REST apart
- A match may not start until every feeder match (next_match_id = this) has
  ended MIN_REST earlier
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from tourney.config import MIN_REST_MINUTES
from tourney.models.match import Match

Interval = Tuple[datetime, datetime]


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Check if [a_start, a_end) overlaps [b_start, b_end)."""
    return a_start < b_end and b_start < a_end


def rest_window(start: datetime, duration: int, min_rest: int = MIN_REST_MINUTES) -> Interval:
    return start, start + timedelta(minutes=max(duration, min_rest))


def within_window(a: datetime, b: datetime, window_minutes: int) -> bool:
    """True if a and b are strictly less than window_minutes apart"""
    return abs((a - b).total_seconds()) < window_minutes * 60


# ============================================================================
# Team Rest State Tracking
# ============================================================================


class TeamRestState:
    """Rest windows already claimed by a single team"""

    def __init__(self):
        self.windows: List[Interval] = []

    def add(self, window: Interval):
        self.windows.append(window)

    def clashes(self, window: Interval) -> Optional[Interval]:
        for existing in self.windows:
            if intervals_overlap(existing[0], existing[1], window[0], window[1]):
                return existing
        return None


class RestStateTracker:
    """Tracks rest windows for all teams during a scheduling run"""

    def __init__(self, min_rest: int = MIN_REST_MINUTES):
        self.min_rest = min_rest
        self.team_states: Dict[int, TeamRestState] = {}

    def get_or_create_state(self, team_id: int) -> TeamRestState:
        if team_id not in self.team_states:
            self.team_states[team_id] = TeamRestState()
        return self.team_states[team_id]

    def record(self, team_ids: Iterable[Optional[int]], start: datetime, duration: int):
        window = rest_window(start, duration, self.min_rest)
        for team_id in team_ids:
            if team_id is not None:
                self.get_or_create_state(team_id).add(window)

    def record_match(self, match: Match, default_duration: int):
        if match.scheduled_time is not None:
            self.record(match.teams(), match.scheduled_time, match.duration or default_duration)


class RestViolation:
    """Represents a rest rule violation"""

    def __init__(
        self,
        team_id: Optional[int],
        violation_type: str,  # "TEAM_REST" or "FEEDER_REST"
        required_rest_minutes: int,
        slot_start_time: datetime,
        earliest_allowed_time: Optional[datetime] = None,
    ):
        self.team_id = team_id
        self.violation_type = violation_type
        self.required_rest_minutes = required_rest_minutes
        self.slot_start_time = slot_start_time
        self.earliest_allowed_time = earliest_allowed_time


def check_rest_compatibility(
    slot_start: datetime,
    duration: int,
    match: Match,
    rest_tracker: RestStateTracker,
    feeder_end_times: Iterable[datetime] = (),
) -> Tuple[bool, List[RestViolation]]:
    """
    Check if a slot is compatible with a match regarding rest requirements.

    - Placeholder sides (team id None) are skipped
    - Feeders without a scheduled end time do not constrain the slot

    Returns:
        (is_compatible, violations)
    """
    violations = []
    window = rest_window(slot_start, duration, rest_tracker.min_rest)

    for team_id in match.teams():
        state = rest_tracker.team_states.get(team_id)
        if state is None:
            continue
        clash = state.clashes(window)
        if clash is not None:
            violations.append(
                RestViolation(
                    team_id=team_id,
                    violation_type="TEAM_REST",
                    required_rest_minutes=rest_tracker.min_rest,
                    slot_start_time=slot_start,
                    earliest_allowed_time=clash[1],
                )
            )

    for feeder_end in feeder_end_times:
        earliest_allowed = feeder_end + timedelta(minutes=rest_tracker.min_rest)
        if slot_start < earliest_allowed:
            violations.append(
                RestViolation(
                    team_id=None,
                    violation_type="FEEDER_REST",
                    required_rest_minutes=rest_tracker.min_rest,
                    slot_start_time=slot_start,
                    earliest_allowed_time=earliest_allowed,
                )
            )

    return len(violations) == 0, violations
