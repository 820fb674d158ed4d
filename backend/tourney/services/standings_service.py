"""
Group standings.

Rules:
- One standing per (tournament, team, group)
- played = wins + losses + draws
- points = wins * points_per_win + draws * points_per_draw + losses * points_per_loss
- Rank by (points desc, points_difference desc, points_for desc), stable on
  insertion order, rank = position from 1
- A finished match (completed or walkover) updates standings incrementally;
  a reset recomputes the whole group from its finished matches
"""

import logging
from typing import Dict, List, Optional

from tourney.models.match import FINISHED_STATUSES, Match
from tourney.models.standing import Standing
from tourney.models.tournament import Tournament
from tourney.store import Store

logger = logging.getLogger(__name__)

RESULT_WIN = "win"
RESULT_DRAW = "draw"
RESULT_LOSS = "loss"


def ranking_key(standing: Standing):
    return (-standing.points, -standing.points_difference, -standing.points_for)


def _get_or_create(store: Store, tournament_id: int, team_id: int, group: Optional[str]) -> Standing:
    standing = store.get_standing(tournament_id, team_id, group)
    if standing is None:
        standing = store.save_standing(Standing(tournament_id=tournament_id, team_id=team_id, group=group))
    return standing


def _apply(standing: Standing, tournament: Tournament, result: str, own_score: int, opponent_score: int) -> None:
    standing.played += 1
    if result == RESULT_DRAW:
        standing.draws += 1
        standing.points += tournament.points_per_draw
    elif result == RESULT_WIN:
        standing.wins += 1
        standing.points += tournament.points_per_win
    else:
        standing.losses += 1
        standing.points += tournament.points_per_loss
    standing.points_for += own_score
    standing.points_against += opponent_score
    standing.points_difference = standing.points_for - standing.points_against


def _result_for(match: Match, team_id: int) -> str:
    if match.winner_id is None:
        return RESULT_DRAW
    return RESULT_WIN if match.winner_id == team_id else RESULT_LOSS


def _apply_match(store: Store, tournament: Tournament, match: Match, cache: Dict[int, Standing]) -> None:
    score1 = match.team1_score or 0
    score2 = match.team2_score or 0
    sides = ((match.team1_id, score1, score2), (match.team2_id, score2, score1))
    for team_id, own, opponent in sides:
        if team_id is None:
            continue
        standing = cache.get(team_id)
        if standing is None:
            standing = _get_or_create(store, tournament.id, team_id, match.group)
            cache[team_id] = standing
        _apply(standing, tournament, _result_for(match, team_id), own, opponent)


# ============================================================================
# Public operations
# ============================================================================


def create_group_standings(store: Store, tournament: Tournament) -> List[Standing]:
    """Zeroed standing for every team of every group, ranked in group order"""
    created = []
    for group in tournament.groups or []:
        for position, team_id in enumerate(group.get("teams", []), start=1):
            standing = _get_or_create(store, tournament.id, team_id, group["name"])
            standing.rank = position
            created.append(store.save_standing(standing))
    return created


def apply_match_result(store: Store, tournament: Tournament, match: Match) -> List[Standing]:
    """Incremental update for one newly finished group match, then rerank the group."""
    if match.group is None or match.status not in FINISHED_STATUSES:
        return []
    cache: Dict[int, Standing] = {}
    _apply_match(store, tournament, match, cache)
    for standing in cache.values():
        store.save_standing(standing)
    return rerank_group(store, tournament.id, match.group)


def recompute_group(store: Store, tournament: Tournament, group: str) -> List[Standing]:
    """Rebuild a group's standings from scratch out of its finished matches."""
    standings = store.list_standings(tournament.id, group)
    for standing in standings:
        standing.clear()
    cache = {s.team_id: s for s in standings}

    finished = store.list_matches(tournament.id, group=group, status=list(FINISHED_STATUSES))
    for match in finished:
        _apply_match(store, tournament, match, cache)
    for standing in cache.values():
        store.save_standing(standing)

    logger.info("Recomputed standings for tournament %d group %s from %d matches", tournament.id, group, len(finished))
    return rerank_group(store, tournament.id, group)


def rerank_group(store: Store, tournament_id: int, group: str) -> List[Standing]:
    # list_standings is in insertion order, and sorted() is stable
    ranked = sorted(store.list_standings(tournament_id, group), key=ranking_key)
    for position, standing in enumerate(ranked, start=1):
        if standing.rank != position:
            standing.rank = position
            store.save_standing(standing)
    return ranked


def list_standings(store: Store, tournament_id: int, group: Optional[str] = None) -> Dict[str, List[Standing]]:
    """Standings keyed by group, each list in rank order"""
    store.get_tournament(tournament_id)
    by_group: Dict[str, List[Standing]] = {}
    for standing in store.list_standings(tournament_id, group):
        by_group.setdefault(standing.group or "", []).append(standing)
    return {name: sorted(rows, key=lambda s: (s.rank, s.id)) for name, rows in sorted(by_group.items())}
