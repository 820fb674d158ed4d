"""
Team Roster: admission and removal of teams to a tournament.

Rules:
- Teams can only be added while the tournament is draft or open
- A team registers once per tournament edition (name + year)
- registered_teams never exceeds max_teams and never holds duplicates
- Removing a team leaves existing matches untouched
"""

import logging
from typing import Any, Dict, List, Sequence

from tourney.exceptions import AlreadyRegisteredError, AtCapacityError, ForbiddenError, InvalidError, NotFoundError
from tourney.models.team import PaymentStatus, Team, TeamRegistration
from tourney.models.tournament import Gender, LevelOfCompetition, Tournament, TournamentStatus
from tourney.store import Store

logger = logging.getLogger(__name__)

REGISTRATION_OPEN_STATUSES = (TournamentStatus.draft.value, TournamentStatus.open.value)
ROSTER_LOCKED_STATUSES = (TournamentStatus.ongoing.value, TournamentStatus.completed.value)

OUTCOME_ADDED = "added"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"


def _require_registration_open(tournament: Tournament) -> None:
    if tournament.status not in REGISTRATION_OPEN_STATUSES:
        raise ForbiddenError(
            f"Cannot add teams to a {tournament.status} tournament",
            details={"tournament_id": tournament.id, "status": tournament.status},
        )


def _is_registered(store: Store, tournament: Tournament, team_id: int) -> bool:
    if team_id in (tournament.registered_teams or []):
        return True
    return store.find_registration(team_id, tournament.name, tournament.year) is not None


def _admit(store: Store, tournament: Tournament, team: Team, paid: bool = False) -> TeamRegistration:
    tournament.registered_teams = list(tournament.registered_teams or []) + [team.id]
    store.save_tournament(tournament)
    registration = TeamRegistration(
        team_id=team.id,
        tournament_name=tournament.name,
        year=tournament.year,
        level_of_competition=team.level_of_competition,
        payment_status=PaymentStatus.paid.value if paid else PaymentStatus.pending.value,
        payment_complete=paid,
    )
    return store.save_registration(registration)


# ============================================================================
# Team catalogue
# ============================================================================


def create_team(store: Store, data: Dict[str, Any]) -> Team:
    def _create():
        team = Team(**data)
        if not team.name or not team.name.strip():
            raise InvalidError("Team name is required")
        store.save_team(team)
        logger.info("Team %d created: %s (%s, %s)", team.id, team.name, team.level_of_competition, team.gender)
        return team

    return store.with_transaction(_create)


def get_team(store: Store, team_id: int) -> Team:
    return store.get_team(team_id)


# ============================================================================
# Add / remove
# ============================================================================


def add_team(store: Store, tournament_id: int, team_id: int) -> TeamRegistration:
    return store.with_transaction(_add_team, store, tournament_id, team_id)


def _add_team(store: Store, tournament_id: int, team_id: int) -> TeamRegistration:
    tournament = store.lock_tournament(store.get_tournament(tournament_id))
    team = store.get_team(team_id)
    _require_registration_open(tournament)

    if _is_registered(store, tournament, team.id):
        raise AlreadyRegisteredError(
            f"Team {team.name} is already registered for {tournament.name} {tournament.year}",
            details={"tournament_id": tournament.id, "team_id": team.id},
        )
    if tournament.team_count >= tournament.max_teams:
        raise AtCapacityError(
            f"Tournament is full ({tournament.max_teams} teams)",
            details={"tournament_id": tournament.id, "max_teams": tournament.max_teams},
        )

    registration = _admit(store, tournament, team)
    logger.info("Team %d registered for tournament %d (%d/%d)", team.id, tournament.id, tournament.team_count, tournament.max_teams)
    return registration


def remove_team(store: Store, tournament_id: int, team_id: int) -> Tournament:
    return store.with_transaction(_remove_team, store, tournament_id, team_id)


def _remove_team(store: Store, tournament_id: int, team_id: int) -> Tournament:
    tournament = store.lock_tournament(store.get_tournament(tournament_id))
    if tournament.status in ROSTER_LOCKED_STATUSES:
        raise ForbiddenError(
            f"Cannot remove teams from a {tournament.status} tournament",
            details={"tournament_id": tournament.id, "status": tournament.status},
        )
    if team_id not in (tournament.registered_teams or []):
        raise NotFoundError(
            "Team is not registered in this tournament",
            details={"tournament_id": tournament.id, "team_id": team_id},
        )

    tournament.registered_teams = [t for t in tournament.registered_teams if t != team_id]
    tournament.groups = [
        {**group, "teams": [t for t in group.get("teams", []) if t != team_id]} for group in (tournament.groups or [])
    ]
    store.save_tournament(tournament)

    registration = store.find_registration(team_id, tournament.name, tournament.year)
    if registration is not None:
        store.delete_registration(registration)

    logger.info("Team %d removed from tournament %d", team_id, tournament.id)
    return tournament


def add_teams_batch(store: Store, tournament_id: int, team_ids: Sequence[int]) -> Dict[str, Any]:
    """
    Register many teams in one transaction.

    Each team gets an outcome: added, skipped (already registered) or
    failed (not_found / capacity). Once the tournament is full the remaining
    teams are still reported, as failed(capacity).
    """
    return store.with_transaction(_add_teams_batch, store, tournament_id, list(team_ids))


def _add_teams_batch(store: Store, tournament_id: int, team_ids: List[int]) -> Dict[str, Any]:
    tournament = store.lock_tournament(store.get_tournament(tournament_id))
    _require_registration_open(tournament)

    results: List[Dict[str, Any]] = []
    for team_id in team_ids:
        team = store.find_team(team_id)
        if team is None:
            results.append({"team_id": team_id, "outcome": OUTCOME_FAILED, "reason": "not_found"})
            continue
        if _is_registered(store, tournament, team.id):
            results.append({"team_id": team_id, "outcome": OUTCOME_SKIPPED, "reason": "already_registered"})
            continue
        if tournament.team_count >= tournament.max_teams:
            results.append({"team_id": team_id, "outcome": OUTCOME_FAILED, "reason": "capacity"})
            continue
        _admit(store, tournament, team, paid=True)
        results.append({"team_id": team_id, "outcome": OUTCOME_ADDED})

    summary = {
        OUTCOME_ADDED: sum(1 for r in results if r["outcome"] == OUTCOME_ADDED),
        OUTCOME_SKIPPED: sum(1 for r in results if r["outcome"] == OUTCOME_SKIPPED),
        OUTCOME_FAILED: sum(1 for r in results if r["outcome"] == OUTCOME_FAILED),
    }
    logger.info(
        "Batch registration for tournament %d: %d added, %d skipped, %d failed",
        tournament.id,
        summary[OUTCOME_ADDED],
        summary[OUTCOME_SKIPPED],
        summary[OUTCOME_FAILED],
    )
    return {
        "tournament_id": tournament.id,
        "results": results,
        "summary": summary,
        "registered_count": tournament.team_count,
    }


# ============================================================================
# Queries
# ============================================================================


def eligible_teams(store: Store, tournament_id: int) -> List[Team]:
    """Active teams that match level/gender and are not yet in this tournament edition"""
    tournament = store.get_tournament(tournament_id)
    level = None if tournament.level_of_competition == LevelOfCompetition.all.value else tournament.level_of_competition
    gender = None if tournament.gender == Gender.mixed.value else tournament.gender

    excluded = set(tournament.registered_teams or [])
    excluded.update(reg.team_id for reg in store.list_registrations(tournament.name, tournament.year))
    return store.list_teams(active=True, level=level, gender=gender, exclude_ids=sorted(excluded))


def registered_teams(store: Store, tournament_id: int, paid_only: bool = False) -> Dict[str, Any]:
    tournament = store.get_tournament(tournament_id)
    team_ids = list(tournament.registered_teams or [])
    teams = store.get_teams(team_ids)
    registrations = {reg.team_id: reg for reg in store.list_registrations(tournament.name, tournament.year)}

    entries = []
    for team_id in team_ids:
        team = teams.get(team_id)
        if team is None:
            continue
        registration = registrations.get(team_id)
        paid = registration is not None and registration.is_paid()
        entries.append({"team": team, "registration": registration, "paid": paid})

    paid_count = sum(1 for e in entries if e["paid"])
    if paid_only:
        entries = [e for e in entries if e["paid"]]
    return {
        "tournament_id": tournament.id,
        "teams": entries,
        "payment": {"total": len(team_ids), "paid": paid_count, "unpaid": len(team_ids) - paid_count},
    }
