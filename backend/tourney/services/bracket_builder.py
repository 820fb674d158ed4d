"""
Bracket Builder: initial match graph for a tournament.

Preconditions:
- Tournament is draft or open
- No matches exist yet
- At least max(min_teams, 2) registered teams

Seeding orders the registered teams (random, ranked or manual); the format
builder then lays that order out as matches:

- single-elimination: P = next power of two >= N. Round 1 has P/2 slots; the
  first N - P/2 slots pair consecutive seeds, the rest hold one seed each and
  are byes. Slot j of round r+1 consumes slots 2j and 2j+1 of round r through
  next_match_id. Bye teams are placed in their successor right away. P - 1
  matches, the last round is the final.
- double-elimination: the winners bracket above, plus floor(winners/2) empty
  consolation matches in the lower bracket, filled by hand later.
- round-robin: every pair once, one group.
- group-stage: shuffled into groups of up to 4, round robin inside each group.

Group formats get a zeroed standing per team. On success draft -> open.
"""

import logging
import random
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from tourney.exceptions import ForbiddenError, InvalidError, NotEnoughError, NotFoundError
from tourney.models.match import BracketLocation, BracketType, Match, MatchStatus
from tourney.models.team import Team
from tourney.models.tournament import LevelOfCompetition, Tournament, TournamentFormat, TournamentStatus
from tourney.services.standings_service import create_group_standings
from tourney.store import Store

logger = logging.getLogger(__name__)

BUILDABLE_STATUSES = (TournamentStatus.draft.value, TournamentStatus.open.value)
GROUP_SIZE = 4
DEFAULT_GROUP_NAME = "A"

LEVEL_ORDER = {LevelOfCompetition.gold.value: 0, LevelOfCompetition.silver.value: 1}


class SeedingMethod(str, Enum):
    random = "random"
    ranked = "ranked"
    manual = "manual"


def make_rng(seed: Optional[int] = None) -> random.Random:
    """Seeded RNG for tests; time-seeded when seed is None"""
    return random.Random(seed)


def next_power_of_two(n: int) -> int:
    size = 1
    while size < n:
        size *= 2
    return size


# ============================================================================
# Seeding
# ============================================================================


def seed_teams(
    store: Store,
    tournament: Tournament,
    seeding: str = SeedingMethod.random.value,
    seed_order: Optional[Sequence[int]] = None,
    rng: Optional[random.Random] = None,
) -> List[int]:
    """Order registered teams for round 1"""
    registered = list(tournament.registered_teams or [])

    if seeding == SeedingMethod.manual.value:
        order = list(seed_order or [])
        if len(order) != len(registered) or sorted(order) != sorted(registered):
            raise InvalidError(
                "seed_order must be a permutation of the registered teams",
                details={"registered_teams": registered, "seed_order": order},
            )
        return order

    if seeding == SeedingMethod.ranked.value:
        teams: Dict[int, Team] = store.get_teams(registered)
        missing = [t for t in registered if t not in teams]
        if missing:
            raise NotFoundError("Registered teams not found", details={"team_ids": missing})
        return sorted(
            registered,
            key=lambda t: (LEVEL_ORDER.get(teams[t].level_of_competition, len(LEVEL_ORDER)), teams[t].name, t),
        )

    if seeding == SeedingMethod.random.value:
        order = list(registered)
        (rng or make_rng()).shuffle(order)
        return order

    raise InvalidError(f"Unknown seeding method: {seeding}", details={"seeding": seeding})


# ============================================================================
# Format builders
# ============================================================================


def _build_knockout(store: Store, tournament: Tournament, teams: List[int]) -> List[Match]:
    size = next_power_of_two(len(teams))
    total_rounds = size.bit_length() - 1

    # Final first, so every earlier match can point at an existing successor
    layers: Dict[int, List[Match]] = {}
    for round_number in range(total_rounds, 0, -1):
        successors = layers.get(round_number + 1)
        layer = []
        for index in range(size >> round_number):
            is_final = round_number == total_rounds
            match = Match(
                tournament_id=tournament.id,
                round=round_number,
                match_number=index + 1,
                bracket_type=BracketType.final.value if is_final else BracketType.winners.value,
                bracket_location=BracketLocation.upper.value,
                next_match_id=successors[index // 2].id if successors else None,
                status=MatchStatus.scheduled.value,
            )
            layer.append(store.save_match(match))
        layers[round_number] = layer

    pair_slots = len(teams) - size // 2
    seeds = iter(teams)
    for index, match in enumerate(layers[1]):
        match.team1_id = next(seeds)
        if index < pair_slots:
            match.team2_id = next(seeds)
        else:
            match.status = MatchStatus.bye.value
            successor = layers[2][index // 2]
            if index % 2 == 0:
                successor.team1_id = match.team1_id
            else:
                successor.team2_id = match.team1_id
            store.save_match(successor)
        store.save_match(match)

    return [m for round_number in sorted(layers) for m in layers[round_number]]


def _build_single_elimination(store: Store, tournament: Tournament, teams: List[int], rng: random.Random) -> List[Match]:
    return _build_knockout(store, tournament, teams)


def _build_double_elimination(store: Store, tournament: Tournament, teams: List[int], rng: random.Random) -> List[Match]:
    matches = _build_knockout(store, tournament, teams)
    losers_round = (len(teams) - 1).bit_length() + 1  # ceil(log2 N) + 1
    for index in range(len(matches) // 2):
        match = Match(
            tournament_id=tournament.id,
            round=losers_round,
            match_number=index + 1,
            bracket_type=BracketType.losers.value,
            bracket_location=BracketLocation.lower.value,
            is_consolation=True,
            status=MatchStatus.scheduled.value,
        )
        matches.append(store.save_match(match))
    return matches


def _round_robin_matches(store: Store, tournament: Tournament, teams: List[int], group: str) -> List[Match]:
    matches = []
    match_number = 1
    for i in range(len(teams)):
        for j in range(i + 1, len(teams)):
            match = Match(
                tournament_id=tournament.id,
                round=1,
                match_number=match_number,
                team1_id=teams[i],
                team2_id=teams[j],
                group=group,
                status=MatchStatus.scheduled.value,
                bracket_type=BracketType.winners.value,
            )
            matches.append(store.save_match(match))
            match_number += 1
    return matches


def _build_round_robin(store: Store, tournament: Tournament, teams: List[int], rng: random.Random) -> List[Match]:
    names = tournament.group_names()
    group = names[0] if names and names[0] else DEFAULT_GROUP_NAME
    tournament.groups = [{"name": group, "teams": list(teams)}]
    return _round_robin_matches(store, tournament, teams, group)


def _build_group_stage(store: Store, tournament: Tournament, teams: List[int], rng: random.Random) -> List[Match]:
    shuffled = list(teams)
    rng.shuffle(shuffled)

    groups = []
    matches = []
    for offset in range(0, len(shuffled), GROUP_SIZE):
        name = chr(ord("A") + offset // GROUP_SIZE)
        members = shuffled[offset:offset + GROUP_SIZE]
        groups.append({"name": name, "teams": members})
        matches.extend(_round_robin_matches(store, tournament, members, name))
    tournament.groups = groups
    return matches


FORMAT_BUILDERS: Dict[str, Callable[[Store, Tournament, List[int], random.Random], List[Match]]] = {
    TournamentFormat.single_elimination.value: _build_single_elimination,
    TournamentFormat.double_elimination.value: _build_double_elimination,
    TournamentFormat.round_robin.value: _build_round_robin,
    TournamentFormat.group_stage.value: _build_group_stage,
}

GROUP_FORMATS = (TournamentFormat.round_robin.value, TournamentFormat.group_stage.value)


# ============================================================================
# Public operations
# ============================================================================


def build_bracket(
    store: Store,
    tournament: Tournament,
    format: Optional[str] = None,
    seeding: str = SeedingMethod.random.value,
    seed_order: Optional[Sequence[int]] = None,
    seed: Optional[int] = None,
) -> List[Match]:
    """Build the match graph for a locked tournament with no matches. Caller owns the transaction."""
    chosen_format = format or tournament.format
    builder = FORMAT_BUILDERS.get(chosen_format)
    if builder is None:
        raise InvalidError(f"Unknown tournament format: {chosen_format}", details={"format": chosen_format})

    required = max(tournament.min_teams, 2)
    if tournament.team_count < required:
        raise NotEnoughError(
            f"Need at least {required} teams, have {tournament.team_count}",
            details={"required": required, "registered": tournament.team_count},
        )

    rng = make_rng(seed)
    teams = seed_teams(store, tournament, seeding, seed_order, rng)

    tournament.format = chosen_format
    if chosen_format not in GROUP_FORMATS:
        tournament.groups = []
    matches = builder(store, tournament, teams, rng)

    if tournament.status == TournamentStatus.draft.value:
        tournament.status = TournamentStatus.open.value
    store.save_tournament(tournament)

    if chosen_format in GROUP_FORMATS:
        create_group_standings(store, tournament)

    logger.info(
        "Built %s bracket for tournament %d: %d teams, %d matches (seeding=%s)",
        chosen_format,
        tournament.id,
        len(teams),
        len(matches),
        seeding,
    )
    return matches


def generate_bracket(
    store: Store,
    tournament_id: int,
    format: Optional[str] = None,
    seeding: str = SeedingMethod.random.value,
    seed_order: Optional[Sequence[int]] = None,
    seed: Optional[int] = None,
) -> List[Match]:
    def _generate():
        tournament = store.lock_tournament(store.get_tournament(tournament_id))
        if tournament.status not in BUILDABLE_STATUSES:
            raise ForbiddenError(
                f"Cannot generate a bracket for a {tournament.status} tournament",
                details={"tournament_id": tournament.id, "status": tournament.status},
            )
        if store.count_matches(tournament.id) > 0:
            raise ForbiddenError(
                "Bracket already exists; recreate it instead",
                details={"tournament_id": tournament.id},
            )
        return build_bracket(store, tournament, format, seeding, seed_order, seed)

    return store.with_transaction(_generate)
