"""
Tournament lifecycle.

State machine:
    draft -> open        bracket generated
    open -> ongoing      explicit start (needs matches), or advance_round reaching the final
    ongoing -> completed explicit complete, no scheduled/in-progress match left
    any -> cancelled     explicit cancel

Soft delete hides a tournament from listings; hard delete removes it with its
matches, standings and registrations.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from tourney.exceptions import ConflictError, ForbiddenError, IncompleteError, InvalidError
from tourney.models.match import PENDING_STATUSES, Match
from tourney.models.tournament import Gender, LevelOfCompetition, Tournament, TournamentFormat, TournamentStatus
from tourney.services import standings_service
from tourney.services.bracket_builder import SeedingMethod, build_bracket
from tourney.store import Store

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "year",
    "start_date",
    "end_date",
    "format",
    "min_teams",
    "max_teams",
    "level_of_competition",
    "gender",
    "points_per_win",
    "points_per_draw",
    "points_per_loss",
    "match_duration",
    "break_duration",
)
POINTS_FIELDS = ("points_per_win", "points_per_draw", "points_per_loss")
READ_ONLY_FIELDS = ("id", "status", "registered_teams", "groups", "version", "created_at", "updated_at")


def _validate_choices(fields: Dict[str, Any]) -> None:
    choices = {
        "format": [f.value for f in TournamentFormat],
        "level_of_competition": [lvl.value for lvl in LevelOfCompetition],
        "gender": [g.value for g in Gender],
    }
    for field, allowed in choices.items():
        if field in fields and fields[field] not in allowed:
            raise InvalidError(f"{field} must be one of {allowed}", details={field: fields[field]})


def _validate_limits(tournament: Tournament) -> None:
    if not tournament.name or not tournament.name.strip():
        raise InvalidError("name is required")
    if tournament.min_teams < 2:
        raise InvalidError("min_teams must be at least 2", details={"min_teams": tournament.min_teams})
    if tournament.min_teams > tournament.max_teams:
        raise InvalidError(
            "min_teams cannot exceed max_teams",
            details={"min_teams": tournament.min_teams, "max_teams": tournament.max_teams},
        )
    if tournament.max_teams < tournament.team_count:
        raise InvalidError(
            f"max_teams cannot be below the {tournament.team_count} registered teams",
            details={"max_teams": tournament.max_teams, "registered": tournament.team_count},
        )
    if tournament.start_date and tournament.end_date and tournament.end_date < tournament.start_date:
        raise InvalidError("end_date is before start_date")
    if tournament.match_duration <= 0 or tournament.break_duration < 0:
        raise InvalidError("match_duration must be positive and break_duration non-negative")


def _require_unique(store: Store, name: str, year: int, tournament_id: Optional[int] = None) -> None:
    existing = store.find_tournament(name, year)
    if existing is not None and existing.id != tournament_id:
        raise ConflictError(
            f"A tournament named {name!r} already exists for {year}",
            details={"name": name, "year": year, "tournament_id": existing.id},
        )


# ============================================================================
# CRUD
# ============================================================================


def create_tournament(store: Store, data: Dict[str, Any]) -> Tournament:
    def _create():
        fields = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        _validate_choices(fields)
        tournament = Tournament(**fields)
        tournament.status = TournamentStatus.draft.value
        _validate_limits(tournament)
        _require_unique(store, tournament.name, tournament.year)
        store.save_tournament(tournament)
        logger.info("Tournament %d created: %s %d (%s)", tournament.id, tournament.name, tournament.year, tournament.format)
        return tournament

    return store.with_transaction(_create)


def list_tournaments(
    store: Store,
    status: Optional[str] = None,
    year: Optional[int] = None,
    level: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    if page < 1 or limit < 1:
        raise InvalidError("page and limit must be positive", details={"page": page, "limit": limit})
    tournaments, total = store.list_tournaments(status=status, year=year, level=level, offset=(page - 1) * limit, limit=limit)
    return {
        "tournaments": tournaments,
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if total else 0,
    }


def get_tournament_detail(store: Store, tournament_id: int) -> Dict[str, Any]:
    tournament = store.get_tournament(tournament_id)
    return {
        "tournament": tournament,
        "matches": store.list_matches(tournament.id),
        "standings": store.list_standings(tournament.id),
    }


def update_tournament(store: Store, tournament_id: int, fields: Dict[str, Any]) -> Tournament:
    return store.with_transaction(_update_tournament, store, tournament_id, dict(fields))


def _update_tournament(store: Store, tournament_id: int, fields: Dict[str, Any]) -> Tournament:
    tournament = store.lock_tournament(store.get_tournament(tournament_id))
    blocked = [f for f in fields if f in READ_ONLY_FIELDS]
    if blocked:
        raise InvalidError(f"Fields cannot be updated directly: {', '.join(blocked)}", details={"fields": blocked})
    unknown = [f for f in fields if f not in EDITABLE_FIELDS]
    if unknown:
        raise InvalidError(f"Unknown fields: {', '.join(unknown)}", details={"fields": unknown})
    _validate_choices(fields)

    old_name, old_year = tournament.name, tournament.year
    new_name, new_year = fields.get("name", old_name), fields.get("year", old_year)
    renamed = (new_name, new_year) != (old_name, old_year)
    # Queries autoflush, so they run before the row changes
    registrations = []
    if renamed:
        _require_unique(store, new_name, new_year, tournament.id)
        registrations = store.list_registrations(old_name, old_year)
    rescored = any(f in POINTS_FIELDS and fields[f] != getattr(tournament, f) for f in fields)

    for field, value in fields.items():
        setattr(tournament, field, value)
    _validate_limits(tournament)

    if rescored:
        groups = sorted({s.group for s in store.list_standings(tournament.id) if s.group is not None})
        for group in groups:
            standings_service.recompute_group(store, tournament, group)

    for registration in registrations:
        registration.tournament_name = new_name
        registration.year = new_year
        store.save_registration(registration)

    store.save_tournament(tournament)
    logger.info("Tournament %d updated: %s", tournament.id, ", ".join(sorted(fields)))
    return tournament


def soft_delete_tournament(store: Store, tournament_id: int) -> Tournament:
    def _soft_delete():
        tournament = store.lock_tournament(store.get_tournament(tournament_id))
        tournament.is_active = False
        store.save_tournament(tournament)
        logger.info("Tournament %d deactivated", tournament.id)
        return tournament

    return store.with_transaction(_soft_delete)


def delete_tournament(store: Store, tournament_id: int) -> Dict[str, Any]:
    def _delete():
        tournament = store.lock_tournament(store.get_tournament(tournament_id))
        matches = store.count_matches(tournament.id)
        standings = len(store.list_standings(tournament.id))
        for registration in store.list_registrations(tournament.name, tournament.year):
            store.delete_registration(registration)
        store.delete_tournament(tournament)
        logger.info("Tournament %d deleted with %d matches and %d standings", tournament_id, matches, standings)
        return {"tournament_id": tournament_id, "matches_deleted": matches, "standings_deleted": standings}

    return store.with_transaction(_delete)


# ============================================================================
# Transitions
# ============================================================================


def _require_status(tournament: Tournament, allowed_from: Sequence[str], target: str) -> None:
    if tournament.status not in allowed_from:
        raise ForbiddenError(
            f"Cannot move a {tournament.status} tournament to {target}",
            details={"tournament_id": tournament.id, "status": tournament.status, "target": target},
        )


def _transition(tournament: Tournament, target: str) -> None:
    logger.info("Tournament %d: %s -> %s", tournament.id, tournament.status, target)
    tournament.status = target


def start_tournament(store: Store, tournament_id: int) -> Tournament:
    def _start():
        tournament = store.lock_tournament(store.get_tournament(tournament_id))
        _require_status(tournament, (TournamentStatus.open.value,), TournamentStatus.ongoing.value)
        if store.count_matches(tournament.id) == 0:
            raise IncompleteError("Generate a bracket before starting the tournament", details={"tournament_id": tournament.id})
        _transition(tournament, TournamentStatus.ongoing.value)
        return store.save_tournament(tournament)

    return store.with_transaction(_start)


def complete_tournament(store: Store, tournament_id: int) -> Tournament:
    def _complete():
        tournament = store.lock_tournament(store.get_tournament(tournament_id))
        _require_status(tournament, (TournamentStatus.ongoing.value,), TournamentStatus.completed.value)
        pending: List[Match] = store.list_matches(tournament.id, status=list(PENDING_STATUSES))
        if pending:
            raise IncompleteError(
                f"Cannot complete tournament: {len(pending)} matches are not finished",
                details={"pending_matches": len(pending), "match_ids": [m.id for m in pending]},
            )
        _transition(tournament, TournamentStatus.completed.value)
        return store.save_tournament(tournament)

    return store.with_transaction(_complete)


def cancel_tournament(store: Store, tournament_id: int) -> Tournament:
    def _cancel():
        tournament = store.lock_tournament(store.get_tournament(tournament_id))
        if tournament.status != TournamentStatus.cancelled.value:
            _transition(tournament, TournamentStatus.cancelled.value)
            store.save_tournament(tournament)
        return tournament

    return store.with_transaction(_cancel)


def recreate_bracket(
    store: Store,
    tournament_id: int,
    format: Optional[str] = None,
    seeding: str = SeedingMethod.random.value,
    seed_order: Optional[Sequence[int]] = None,
    preserve_schedule: bool = False,
    seed: Optional[int] = None,
) -> List[Match]:
    """Throw away matches and standings and build the bracket again."""
    def _recreate():
        tournament = store.lock_tournament(store.get_tournament(tournament_id))
        if tournament.status in (TournamentStatus.completed.value, TournamentStatus.cancelled.value):
            raise ForbiddenError(
                f"Cannot recreate the bracket of a {tournament.status} tournament",
                details={"tournament_id": tournament.id, "status": tournament.status},
            )
        if preserve_schedule:
            scheduled = store.count_matches(tournament.id, scheduled=True)
            if scheduled:
                raise ForbiddenError(
                    f"Cannot recreate bracket while {scheduled} matches are scheduled; reset the schedule first",
                    details={"scheduled_matches": scheduled},
                )

        standings = store.delete_standings(tournament.id)
        removed = store.delete_matches(tournament.id)
        logger.info("Tournament %d: cleared %d matches and %d standings for recreation", tournament.id, removed, standings)
        return build_bracket(store, tournament, format, seeding, seed_order, seed)

    return store.with_transaction(_recreate)
