"""
Scheduler: court/time assignment for matches.

generate_schedule packs unscheduled matches into a daily grid:
- Slots start at start_time and advance by match_duration + break_duration
  while the match still ends by end_time, for every day of the window
- Courts are tried in order; a court is free if no persisted or newly placed
  match on it overlaps the slot
- A match fits if neither team has a rest-window clash (MIN_REST) and every
  feeder match ended MIN_REST before the slot; feeders still waiting for a
  slot block their successor
- Matches that do not fit wait for the next slot; leftovers are reported

Manual edits:
- bulk_schedule: per-item result, refused when either team plays within
  BULK_REST_WINDOW of the new time
- update_match_schedule: ConflictError when another match within
  UPDATE_REST_WINDOW shares a team or sits on the old or new court
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from tourney.config import BULK_REST_WINDOW_MINUTES, MIN_REST_MINUTES, UPDATE_REST_WINDOW_MINUTES
from tourney.exceptions import ConflictError, InvalidError
from tourney.models.match import FINISHED_STATUSES, PENDING_STATUSES, Match, MatchStatus
from tourney.models.tournament import Tournament, TournamentStatus
from tourney.store import Store
from tourney.utils.courts import CourtOccupancy, parse_court_names
from tourney.utils.rest_rules import RestStateTracker, check_rest_compatibility, within_window
from tourney.utils.timeparse import parse_clock, parse_date, parse_datetime

logger = logging.getLogger(__name__)

RESET_SOFT = "soft"
RESET_HARD = "hard"
RESET_PARTIAL = "partial"
RESET_MODES = (RESET_SOFT, RESET_HARD, RESET_PARTIAL)

UNSCHEDULABLE_STATUSES = FINISHED_STATUSES + (MatchStatus.bye.value, MatchStatus.cancelled.value)
UNASSIGNED_COURT = "Unassigned"


def _day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def _positive_minutes(value: Optional[int], default: int, field: str, allow_zero: bool = False) -> int:
    minutes = default if value is None else value
    if not isinstance(minutes, int) or isinstance(minutes, bool) or minutes < 0 or (minutes == 0 and not allow_zero):
        raise InvalidError(f"{field} must be a {'non-negative' if allow_zero else 'positive'} number of minutes", details={field: value})
    return minutes


def _shares_team(a: Match, b: Match) -> bool:
    return any(b.has_team(t) for t in a.teams())


# ============================================================================
# Generation
# ============================================================================


def generate_schedule(
    store: Store,
    tournament_id: int,
    start_date,
    end_date,
    start_time,
    end_time,
    courts,
    match_duration: Optional[int] = None,
    break_duration: Optional[int] = None,
) -> Dict[str, Any]:
    def _generate():
        tournament = store.lock_tournament(store.get_tournament(tournament_id))
        return _generate_schedule(
            store, tournament, start_date, end_date, start_time, end_time, courts, match_duration, break_duration
        )

    return store.with_transaction(_generate)


def _generate_schedule(
    store: Store,
    tournament: Tournament,
    start_date,
    end_date,
    start_time,
    end_time,
    courts,
    match_duration: Optional[int],
    break_duration: Optional[int],
) -> Dict[str, Any]:
    court_names = parse_court_names(courts)
    if not court_names:
        raise InvalidError("At least one court is required", details={"courts": courts})
    first_day = parse_date(start_date, "start_date")
    last_day = parse_date(end_date, "end_date")
    if last_day < first_day:
        raise InvalidError("end_date is before start_date", details={"start_date": str(first_day), "end_date": str(last_day)})
    day_start = parse_clock(start_time, "start_time")
    day_end = parse_clock(end_time, "end_time")
    if day_end <= day_start:
        raise InvalidError("end_time must be after start_time", details={"start_time": str(day_start), "end_time": str(day_end)})
    duration = _positive_minutes(match_duration, tournament.match_duration, "match_duration")
    pause = _positive_minutes(break_duration, tournament.break_duration, "break_duration", allow_zero=True)

    all_matches = store.list_matches(tournament.id)
    rest_tracker = RestStateTracker(MIN_REST_MINUTES)
    occupancy = CourtOccupancy()
    for match in all_matches:
        rest_tracker.record_match(match, tournament.match_duration)
        occupancy.occupy_match(match, tournament.match_duration)

    feeders: Dict[int, List[Match]] = {}
    for match in all_matches:
        if match.next_match_id is not None:
            feeders.setdefault(match.next_match_id, []).append(match)

    pending = [m for m in all_matches if m.scheduled_time is None and m.status not in UNSCHEDULABLE_STATUSES]
    pending_ids: Set[int] = {m.id for m in pending}
    total_pending = len(pending)
    placed: List[Match] = []

    def _fits(match: Match, slot: datetime) -> bool:
        feeder_ends = []
        for feeder in feeders.get(match.id, []):
            if feeder.id in pending_ids:
                return False
            if feeder.scheduled_time is not None:
                feeder_ends.append(feeder.end_time(tournament.match_duration))
        ok, _ = check_rest_compatibility(slot, duration, match, rest_tracker, feeder_ends)
        return ok

    day = first_day
    while day <= last_day and pending:
        slot = datetime.combine(day, day_start)
        closing = datetime.combine(day, day_end)
        while slot + timedelta(minutes=duration) <= closing and pending:
            for court in court_names:
                if not occupancy.is_free(court, slot, duration):
                    continue
                match = next((m for m in pending if _fits(m, slot)), None)
                if match is None:
                    break
                match.scheduled_time = slot
                match.court = court
                match.duration = duration
                store.save_match(match)
                pending.remove(match)
                pending_ids.discard(match.id)
                rest_tracker.record(match.teams(), slot, duration)
                occupancy.occupy(court, slot, duration, match.id)
                placed.append(match)
            slot += timedelta(minutes=duration + pause)
        day += timedelta(days=1)

    logger.info(
        "Generated schedule for tournament %d: %d of %d matches placed on %d courts, %d unscheduled",
        tournament.id,
        len(placed),
        total_pending,
        len(court_names),
        len(pending),
    )
    return {
        "tournament_id": tournament.id,
        "scheduled": placed,
        "scheduled_count": len(placed),
        "unscheduled_count": len(pending),
        "match_duration": duration,
        "break_duration": pause,
    }


# ============================================================================
# Manual edits
# ============================================================================


def bulk_schedule(store: Store, tournament_id: int, items: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Apply many (match_id, scheduled_time, court) placements; each item succeeds or fails on its own."""
    return store.with_transaction(_bulk_schedule, store, tournament_id, list(items))


def _bulk_schedule(store: Store, tournament_id: int, items: List[Dict[str, Any]]) -> Dict[str, Any]:
    tournament = store.lock_tournament(store.get_tournament(tournament_id))
    succeeded: List[Dict[str, Any]] = []
    failed: List[Dict[str, Any]] = []

    for item in items:
        match_id = item.get("match_id")
        match = store.find_match(match_id) if match_id is not None else None
        if match is None or match.tournament_id != tournament.id:
            failed.append({"match_id": match_id, "reason": "Match not found in this tournament"})
            continue
        try:
            when = parse_datetime(item.get("scheduled_time"))
        except InvalidError as exc:
            failed.append({"match_id": match_id, "reason": exc.message})
            continue

        nearby = [
            other
            for other in store.list_matches(tournament.id, team_ids=match.teams(), scheduled=True, exclude_id=match.id)
            if within_window(other.scheduled_time, when, BULK_REST_WINDOW_MINUTES)
        ]
        if nearby:
            failed.append(
                {
                    "match_id": match_id,
                    "reason": f"Team has another match within {BULK_REST_WINDOW_MINUTES} minutes",
                    "conflicting_match_ids": [m.id for m in nearby],
                }
            )
            continue

        match.scheduled_time = when
        if item.get("court"):
            match.court = str(item["court"])
        store.save_match(match)
        succeeded.append({"match_id": match.id, "match_number": match.match_number, "scheduled_time": when, "court": match.court})

    logger.info("Bulk schedule for tournament %d: %d succeeded, %d failed", tournament.id, len(succeeded), len(failed))
    return {"tournament_id": tournament.id, "succeeded": succeeded, "failed": failed}


def find_schedule_conflicts(
    store: Store,
    match: Match,
    when: datetime,
    courts: Iterable[Optional[str]],
    window_minutes: int = UPDATE_REST_WINDOW_MINUTES,
) -> List[Match]:
    """Other matches within the window that share a team or one of the courts"""
    court_set = {c for c in courts if c}
    return [
        other
        for other in store.list_matches(match.tournament_id, scheduled=True, exclude_id=match.id)
        if within_window(other.scheduled_time, when, window_minutes)
        and (_shares_team(match, other) or (other.court is not None and other.court in court_set))
    ]


def update_match_schedule(
    store: Store,
    match_id: int,
    scheduled_time=None,
    court: Optional[str] = None,
    duration: Optional[int] = None,
    referee: Optional[str] = None,
) -> Match:
    def _update():
        match = store.get_match(match_id)
        store.lock_tournament(store.get_tournament(match.tournament_id))

        new_time = parse_datetime(scheduled_time) if scheduled_time is not None else match.scheduled_time
        new_court = court if court is not None else match.court
        time_changed = scheduled_time is not None and new_time != match.scheduled_time
        court_changed = court is not None and court != match.court

        if new_time is not None and (time_changed or court_changed):
            conflicts = find_schedule_conflicts(store, match, new_time, (match.court, new_court))
            if conflicts:
                raise ConflictError(
                    "Scheduling conflict detected",
                    details={
                        "conflicts": [
                            {
                                "match_id": c.id,
                                "match_number": c.match_number,
                                "team1_id": c.team1_id,
                                "team2_id": c.team2_id,
                                "scheduled_time": c.scheduled_time.isoformat(),
                                "court": c.court,
                            }
                            for c in conflicts
                        ]
                    },
                )

        if time_changed:
            match.is_rescheduled = True
        match.scheduled_time = new_time
        match.court = new_court
        if duration is not None:
            match.duration = _positive_minutes(duration, duration, "duration")
        if referee is not None:
            match.referee = referee
        store.save_match(match)
        logger.info("Match %d schedule updated: %s on court %s", match.id, match.scheduled_time, match.court)
        return match

    return store.with_transaction(_update)


# ============================================================================
# Queries
# ============================================================================


def available_time_slots(
    store: Store,
    tournament_id: int,
    day,
    start_time: Optional[str] = "08:00",
    end_time: Optional[str] = "20:00",
    court: Optional[str] = None,
) -> Dict[str, Any]:
    tournament = store.get_tournament(tournament_id)
    target = parse_date(day, "date")
    opening = datetime.combine(target, parse_clock(start_time, "start_time", default="08:00"))
    closing = datetime.combine(target, parse_clock(end_time, "end_time", default="20:00"))
    duration = tournament.match_duration
    pause = tournament.break_duration

    day_start, day_end = _day_bounds(target)
    occupancy = CourtOccupancy()
    for match in store.list_matches(tournament.id, scheduled=True, court=court, scheduled_from=day_start):
        if match.scheduled_time >= day_end:
            continue
        occupancy.occupy(UNASSIGNED_COURT, match.scheduled_time, match.duration or duration, match.id)

    slots = []
    slot = opening
    while slot + timedelta(minutes=duration) <= closing:
        if occupancy.is_free(UNASSIGNED_COURT, slot, duration):
            slots.append({"start": slot, "end": slot + timedelta(minutes=duration), "duration": duration, "available": True})
        slot += timedelta(minutes=duration + pause)

    return {
        "date": target.isoformat(),
        "court": court,
        "time_slots": slots,
        "total_slots": len(slots),
        "match_duration": duration,
        "break_duration": pause,
    }


def schedule_for_date(
    store: Store,
    tournament_id: int,
    day,
    court: Optional[str] = None,
    status: Optional[str] = None,
) -> Dict[str, Any]:
    tournament = store.get_tournament(tournament_id)
    target = parse_date(day, "date")
    day_start, day_end = _day_bounds(target)
    matches = [
        m
        for m in store.list_matches(tournament.id, scheduled=True, court=court, status=status, scheduled_from=day_start)
        if m.scheduled_time < day_end
    ]
    matches.sort(key=lambda m: (m.scheduled_time, m.court or "", m.id))

    by_court: Dict[str, List[Match]] = {}
    for match in matches:
        by_court.setdefault(match.court or UNASSIGNED_COURT, []).append(match)
    return {"date": target.isoformat(), "matches": matches, "by_court": by_court, "total_matches": len(matches)}


def unscheduled_matches(store: Store, tournament_id: int) -> List[Match]:
    tournament = store.get_tournament(tournament_id)
    return store.list_matches(tournament.id, scheduled=False)


# ============================================================================
# Resets
# ============================================================================


def reset_schedule(store: Store, tournament_id: int, mode: str = RESET_SOFT) -> Dict[str, Any]:
    """
    soft: clear times, courts and referees on every match, keep matches
    hard: delete all matches, standings and groups; ongoing/completed -> open
    partial: clear only future scheduled/in-progress matches
    """
    if mode not in RESET_MODES:
        raise InvalidError(f"Unknown reset mode: {mode}", details={"mode": mode, "allowed": list(RESET_MODES)})
    return store.with_transaction(_reset_schedule, store, tournament_id, mode)


def _reset_schedule(store: Store, tournament_id: int, mode: str) -> Dict[str, Any]:
    tournament = store.lock_tournament(store.get_tournament(tournament_id))
    affected = 0

    if mode == RESET_SOFT:
        for match in store.list_matches(tournament.id):
            match.scheduled_time = None
            match.court = None
            match.referee = None
            match.actual_start_time = None
            match.actual_end_time = None
            match.is_rescheduled = False
            match.duration = tournament.match_duration
            store.save_match(match)
            affected += 1
    elif mode == RESET_HARD:
        store.delete_standings(tournament.id)
        affected = store.delete_matches(tournament.id)
        tournament.groups = []
        if tournament.status in (TournamentStatus.ongoing.value, TournamentStatus.completed.value):
            tournament.status = TournamentStatus.open.value
        store.save_tournament(tournament)
    else:
        now = datetime.now()
        for match in store.list_matches(tournament.id, status=list(PENDING_STATUSES), scheduled=True):
            if match.scheduled_time <= now:
                continue
            match.scheduled_time = None
            match.court = None
            match.referee = None
            match.status = MatchStatus.scheduled.value
            store.save_match(match)
            affected += 1

    logger.info("Schedule reset (%s) for tournament %d: %d matches affected", mode, tournament.id, affected)
    return {"tournament_id": tournament.id, "mode": mode, "matches_affected": affected, "tournament_status": tournament.status}


def can_reset_schedule(store: Store, tournament_id: int) -> Dict[str, Any]:
    tournament = store.get_tournament(tournament_id)
    matches = store.list_matches(tournament.id)
    now = datetime.now()

    completed = sum(1 for m in matches if m.status == MatchStatus.completed.value)
    in_progress = sum(1 for m in matches if m.status == MatchStatus.in_progress.value)
    upcoming = sum(1 for m in matches if m.scheduled_time is not None and m.scheduled_time > now and m.status in PENDING_STATUSES)

    warnings = []
    if completed:
        warnings.append(f"There are {completed} completed matches that will be unaffected by soft reset.")
    if in_progress:
        warnings.append(f"There are {in_progress} matches in progress.")

    return {
        "tournament_id": tournament.id,
        "can_reset": {
            RESET_SOFT: True,
            RESET_HARD: tournament.status != TournamentStatus.completed.value and completed == 0,
            RESET_PARTIAL: upcoming > 0,
        },
        "warnings": warnings,
        "statistics": {
            "total_matches": len(matches),
            "scheduled_matches": sum(1 for m in matches if m.scheduled_time is not None),
            "completed_matches": completed,
            "in_progress_matches": in_progress,
            "upcoming_matches": upcoming,
            "tournament_status": tournament.status,
        },
    }
