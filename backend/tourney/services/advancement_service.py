"""
Progression: match results, winner propagation, resets and round advancement.

Rules:
- A result finishes a match (completed or walkover); the winner moves into the
  first empty slot of next_match in the same transaction
- A successor with two teams is scheduled; with one team it is a bye unless
  another feeder is still unresolved
- Group matches may end in a draw (no winner) and drive the standings
- A reset is refused once the successor holding the winner has finished
- advance_round pairs the round's winners (explicit winners plus bye teams)
  in RNG order and is idempotent once the next round exists
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from tourney.exceptions import ConflictError, ForbiddenError, IncompleteError, InvalidError, NotEnoughError, NotFoundError
from tourney.models.match import FINISHED_STATUSES, BracketLocation, BracketType, Match, MatchStatus
from tourney.models.tournament import Tournament, TournamentStatus
from tourney.services import standings_service
from tourney.services.bracket_builder import make_rng
from tourney.store import Store

logger = logging.getLogger(__name__)

CLOSED_TOURNAMENT_STATUSES = (TournamentStatus.completed.value, TournamentStatus.cancelled.value)
RESULT_STATUSES = (MatchStatus.completed.value, MatchStatus.walkover.value)
LOCKED_MATCH_STATUSES = FINISHED_STATUSES + (MatchStatus.cancelled.value,)

ADMIN_WALKOVER_REASON = "Declared by admin"


def _load(store: Store, match_id: int):
    match = store.get_match(match_id)
    tournament = store.lock_tournament(store.get_tournament(match.tournament_id))
    return match, tournament


def _is_score(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def recompute_status(store: Store, match: Match) -> str:
    """Status of an unfinished match from its teams and feeders"""
    present = match.teams()
    if len(present) == 2 or not present:
        return MatchStatus.scheduled.value
    feeders = store.list_matches(match.tournament_id, next_match_id=match.id) if match.id else []
    if any(not f.is_resolved() for f in feeders):
        return MatchStatus.scheduled.value
    return MatchStatus.bye.value


def _refresh_status(store: Store, match: Match) -> None:
    if match.status in (MatchStatus.scheduled.value, MatchStatus.bye.value):
        match.status = recompute_status(store, match)


def _propagate_winner(store: Store, match: Match) -> Optional[Match]:
    if match.next_match_id is None or match.winner_id is None:
        return None
    successor = store.get_match(match.next_match_id)
    if not successor.has_team(match.winner_id):
        if successor.team1_id is None:
            successor.team1_id = match.winner_id
        elif successor.team2_id is None:
            successor.team2_id = match.winner_id
        else:
            raise ConflictError(
                "Next match already has two teams",
                details={"match_id": match.id, "next_match_id": successor.id},
            )
    _refresh_status(store, successor)
    return store.save_match(successor)


def _finish(
    store: Store,
    tournament: Tournament,
    match: Match,
    team1_score: int,
    team2_score: int,
    status: str,
    winner_id: Optional[int],
    walkover_reason: Optional[str] = None,
    notes: Optional[str] = None,
) -> Match:
    match.team1_score = team1_score
    match.team2_score = team2_score
    match.winner_id = winner_id
    if winner_id is None:
        match.loser_id = None
    else:
        match.loser_id = match.team2_id if winner_id == match.team1_id else match.team1_id
    match.status = status
    match.walkover_reason = walkover_reason if status == MatchStatus.walkover.value else None
    if notes is not None:
        match.notes = notes
    match.actual_end_time = datetime.now()
    store.save_match(match)

    _propagate_winner(store, match)
    if match.group is not None:
        standings_service.apply_match_result(store, tournament, match)

    logger.info(
        "Match %d (tournament %d, round %d) %s: %s-%s, winner %s",
        match.id,
        tournament.id,
        match.round,
        status,
        team1_score,
        team2_score,
        winner_id,
    )
    return match


def _require_playable(tournament: Tournament, match: Match) -> None:
    if tournament.status in CLOSED_TOURNAMENT_STATUSES:
        raise ForbiddenError(
            f"Cannot record results in a {tournament.status} tournament",
            details={"tournament_id": tournament.id, "status": tournament.status},
        )
    if match.status in LOCKED_MATCH_STATUSES:
        raise ForbiddenError(
            f"Match is already {match.status}; reset it first",
            details={"match_id": match.id, "status": match.status},
        )
    if match.team1_id is None or match.team2_id is None:
        raise InvalidError("Both teams must be assigned before recording a result", details={"match_id": match.id})


def _require_participant(match: Match, team_id: int) -> None:
    if not match.has_team(team_id):
        raise InvalidError(
            "Winner must be one of the match teams",
            details={"match_id": match.id, "winner_id": team_id, "teams": match.teams()},
        )


def _score_of(match: Match, team_id: int, team1_score: int, team2_score: int) -> int:
    return team1_score if team_id == match.team1_id else team2_score


# ============================================================================
# Results
# ============================================================================


def record_result(
    store: Store,
    match_id: int,
    team1_score: Optional[int],
    team2_score: Optional[int],
    status: Optional[str] = None,
    notes: Optional[str] = None,
    walkover_reason: Optional[str] = None,
    winner_id: Optional[int] = None,
) -> Match:
    return store.with_transaction(
        _record_result, store, match_id, team1_score, team2_score, status, notes, walkover_reason, winner_id
    )


def _record_result(store, match_id, team1_score, team2_score, status, notes, walkover_reason, winner_id) -> Match:
    match, tournament = _load(store, match_id)
    _require_playable(tournament, match)

    status = status or MatchStatus.completed.value
    if status not in RESULT_STATUSES:
        raise InvalidError(f"Result status must be completed or walkover, got {status}", details={"status": status})

    if status == MatchStatus.walkover.value:
        team1_score = 0 if team1_score is None else team1_score
        team2_score = 0 if team2_score is None else team2_score
    if not (_is_score(team1_score) and _is_score(team2_score)):
        raise InvalidError(
            "Scores must be non-negative integers",
            details={"team1_score": team1_score, "team2_score": team2_score},
        )

    if status == MatchStatus.walkover.value:
        if winner_id is None or not walkover_reason:
            raise InvalidError("A walkover needs a winner and a reason", details={"match_id": match.id})
        _require_participant(match, winner_id)
        return _finish(store, tournament, match, team1_score, team2_score, status, winner_id, walkover_reason, notes)

    if team1_score == team2_score:
        if match.group is None:
            raise InvalidError("Knockout matches cannot end in a draw", details={"match_id": match.id})
        if winner_id is None:
            return _finish(store, tournament, match, team1_score, team2_score, status, None, None, notes)
    elif winner_id is None:
        winner_id = match.team1_id if team1_score > team2_score else match.team2_id

    _require_participant(match, winner_id)
    loser_id = match.team2_id if winner_id == match.team1_id else match.team1_id
    if _score_of(match, winner_id, team1_score, team2_score) < _score_of(match, loser_id, team1_score, team2_score):
        raise InvalidError(
            "Winner cannot have fewer points than the loser",
            details={"winner_id": winner_id, "team1_score": team1_score, "team2_score": team2_score},
        )
    return _finish(store, tournament, match, team1_score, team2_score, status, winner_id, None, notes)


def quick_declare_winner(
    store: Store,
    match_id: int,
    winner_id: int,
    team1_score: int = 0,
    team2_score: int = 0,
    is_walkover: bool = False,
) -> Match:
    """Admin shortcut: explicit winner, scores default to 0-0."""
    def _declare():
        match, tournament = _load(store, match_id)
        _require_playable(tournament, match)
        _require_participant(match, winner_id)
        score1 = team1_score or 0
        score2 = team2_score or 0
        if not (_is_score(score1) and _is_score(score2)):
            raise InvalidError(
                "Scores must be non-negative integers",
                details={"team1_score": team1_score, "team2_score": team2_score},
            )
        loser_id = match.team2_id if winner_id == match.team1_id else match.team1_id
        if not is_walkover and _score_of(match, winner_id, score1, score2) < _score_of(match, loser_id, score1, score2):
            raise InvalidError(
                "Winner cannot have fewer points than the loser",
                details={"winner_id": winner_id, "team1_score": score1, "team2_score": score2},
            )
        status = MatchStatus.walkover.value if is_walkover else MatchStatus.completed.value
        reason = ADMIN_WALKOVER_REASON if is_walkover else None
        return _finish(store, tournament, match, score1, score2, status, winner_id, reason)

    return store.with_transaction(_declare)


def reset_match(store: Store, match_id: int) -> Match:
    return store.with_transaction(_reset_match, store, match_id)


def _reset_match(store: Store, match_id: int) -> Match:
    match, tournament = _load(store, match_id)
    if tournament.status == TournamentStatus.completed.value:
        raise ForbiddenError("Cannot reset matches in a completed tournament", details={"tournament_id": tournament.id})

    was_finished = match.is_finished()
    winner_id = match.winner_id
    successor = None
    if match.next_match_id is not None and winner_id is not None:
        successor = store.get_match(match.next_match_id)
        if successor.has_team(winner_id):
            if successor.is_finished():
                raise ForbiddenError(
                    "Next match has already been played; reset it first",
                    details={"match_id": match.id, "next_match_id": successor.id},
                )
        else:
            successor = None
    elif match.next_match_id is None and winner_id is not None:
        # Rounds built by advance_round carry no back-links to their sources
        advanced = [
            m
            for m in store.list_matches(tournament.id, round=match.round + 1, team_ids=[winner_id])
            if m.group is None and m.bracket_type != BracketType.losers.value
        ]
        if advanced:
            raise ForbiddenError(
                f"Team {winner_id} already advanced to round {match.round + 1}; reset that round first",
                details={"match_id": match.id, "advanced_match_ids": [m.id for m in advanced]},
            )

    match.winner_id = None
    match.loser_id = None
    match.team1_score = None
    match.team2_score = None
    match.walkover_reason = None
    match.notes = None
    match.actual_end_time = None
    match.status = recompute_status(store, match)
    store.save_match(match)

    if successor is not None:
        if successor.team1_id == winner_id:
            successor.team1_id = None
        else:
            successor.team2_id = None
        _refresh_status(store, successor)
        store.save_match(successor)

    if match.group is not None and was_finished:
        standings_service.recompute_group(store, tournament, match.group)

    logger.info("Match %d reset (tournament %d)", match.id, tournament.id)
    return match


def assign_match_teams(
    store: Store,
    match_id: int,
    team1_id: Optional[int],
    team2_id: Optional[int],
    position: Optional[str] = None,
) -> Match:
    """Place teams by hand (losers bracket, corrections). position limits the change to one side."""
    def _assign():
        match, tournament = _load(store, match_id)
        if tournament.status in CLOSED_TOURNAMENT_STATUSES:
            raise ForbiddenError(
                f"Cannot change matches of a {tournament.status} tournament",
                details={"tournament_id": tournament.id},
            )
        if match.status in LOCKED_MATCH_STATUSES:
            raise ForbiddenError(f"Cannot change teams of a {match.status} match", details={"match_id": match.id})
        if position not in (None, "team1", "team2"):
            raise InvalidError("position must be team1 or team2", details={"position": position})

        registered = set(tournament.registered_teams or [])
        for team_id in (team1_id, team2_id):
            if team_id is not None and team_id not in registered:
                raise InvalidError(
                    "Team is not registered for this tournament",
                    details={"tournament_id": tournament.id, "team_id": team_id},
                )

        if position == "team1":
            match.team1_id = team1_id
        elif position == "team2":
            match.team2_id = team2_id
        else:
            match.team1_id = team1_id
            match.team2_id = team2_id
        if match.team1_id is not None and match.team1_id == match.team2_id:
            raise InvalidError("A team cannot play itself", details={"team_id": match.team1_id})

        match.status = recompute_status(store, match)
        return store.save_match(match)

    return store.with_transaction(_assign)


# ============================================================================
# Rounds
# ============================================================================


def _round_winners(matches: List[Match]) -> List[int]:
    winners = []
    for match in matches:
        team_id = match.winner_id if match.winner_id is not None else match.bye_team()
        if team_id is not None and team_id not in winners:
            winners.append(team_id)
    return winners


def _round_is_complete(matches: List[Match]) -> bool:
    return bool(matches) and all(
        m.is_finished() or m.status in (MatchStatus.bye.value, MatchStatus.cancelled.value) for m in matches
    )


def advance_round(store: Store, tournament_id: int, from_round: int, seed: Optional[int] = None) -> Dict[str, Any]:
    return store.with_transaction(_advance_round, store, tournament_id, from_round, seed)


def _advance_round(store: Store, tournament_id: int, from_round: int, seed: Optional[int]) -> Dict[str, Any]:
    tournament = store.lock_tournament(store.get_tournament(tournament_id))
    matches = store.list_matches(tournament.id, round=from_round)
    if not matches:
        raise NotFoundError(f"No matches in round {from_round}", details={"round": from_round})

    incomplete = [m for m in matches if not m.is_resolved()]
    if incomplete:
        raise IncompleteError(
            f"Cannot advance: {len(incomplete)} matches without winners",
            details={"incomplete_matches": [{"match_id": m.id, "match_number": m.match_number} for m in incomplete]},
        )

    winners = _round_winners(matches)
    if len(winners) < 2:
        raise NotEnoughError(
            f"Need at least 2 winning teams to advance, found {len(winners)}",
            details={"round": from_round, "winners": winners},
        )

    next_round = from_round + 1
    existing = store.list_matches(tournament.id, round=next_round)
    if existing:
        return {"round": next_round, "created": False, "matches": existing, "tournament_status": tournament.status}

    make_rng(seed).shuffle(winners)
    is_final = len(winners) == 2
    created = []
    for index in range(math.ceil(len(winners) / 2)):
        pair = winners[index * 2:index * 2 + 2]
        match = Match(
            tournament_id=tournament.id,
            round=next_round,
            match_number=index + 1,
            team1_id=pair[0],
            team2_id=pair[1] if len(pair) > 1 else None,
            status=MatchStatus.scheduled.value if len(pair) > 1 else MatchStatus.bye.value,
            bracket_type=BracketType.final.value if is_final else BracketType.winners.value,
            bracket_location=BracketLocation.upper.value,
        )
        created.append(store.save_match(match))

    if is_final and tournament.status == TournamentStatus.open.value:
        tournament.status = TournamentStatus.ongoing.value
        logger.info("Tournament %d reached its final, now ongoing", tournament.id)
    store.save_tournament(tournament)

    logger.info("Tournament %d advanced to round %d with %d matches", tournament.id, next_round, len(created))
    return {"round": next_round, "created": True, "matches": created, "tournament_status": tournament.status}


def get_progress(store: Store, tournament_id: int) -> Dict[str, Any]:
    tournament = store.get_tournament(tournament_id)
    by_round: Dict[int, List[Match]] = {}
    for match in store.list_matches(tournament.id):
        by_round.setdefault(match.round, []).append(match)

    rounds = []
    for round_number in sorted(by_round):
        matches = by_round[round_number]
        completed = sum(1 for m in matches if m.is_finished())
        rounds.append(
            {
                "round": round_number,
                "total": len(matches),
                "completed": completed,
                "completion_percentage": round(completed * 100 / len(matches)),
                "winners": _round_winners(matches),
                "is_complete": _round_is_complete(matches),
                "has_byes": any(m.status == MatchStatus.bye.value for m in matches),
            }
        )

    current = next((r for r in rounds if not r["is_complete"]), rounds[-1] if rounds else None)
    current_round = current["round"] if current else 1
    current_matches = by_round.get(current_round, [])
    next_round_exists = bool(by_round.get(current_round + 1))
    all_resolved = bool(current_matches) and all(m.is_resolved() for m in current_matches)

    return {
        "tournament_id": tournament.id,
        "tournament_status": tournament.status,
        "rounds": rounds,
        "current_round": current_round,
        "total_rounds": len(rounds),
        "next_round_exists": next_round_exists,
        "can_advance": all_resolved and not next_round_exists and len(_round_winners(current_matches)) >= 2,
        "is_final_round": any(m.bracket_type == BracketType.final.value for m in current_matches)
        or (bool(current_matches) and len({t for m in current_matches for t in m.teams()}) <= 2),
    }


def round_summary(store: Store, tournament_id: int, round_number: int) -> Dict[str, Any]:
    tournament = store.get_tournament(tournament_id)
    matches = store.list_matches(tournament.id, round=round_number)
    counts = {status.value: 0 for status in MatchStatus}
    for match in matches:
        counts[match.status] = counts.get(match.status, 0) + 1

    winners = [m for m in matches if m.winner_id is not None]
    incomplete = [m for m in matches if not m.is_resolved()]
    return {
        "tournament_id": tournament.id,
        "round": round_number,
        "total_matches": len(matches),
        "status_counts": counts,
        "matches_with_winners": len(winners),
        "is_round_complete": bool(matches) and not incomplete,
        "can_advance": bool(matches) and not incomplete and len(_round_winners(matches)) >= 2,
        "winners": [{"team_id": m.winner_id, "match_id": m.id, "match_number": m.match_number} for m in winners],
        "incomplete_matches": [
            {"match_id": m.id, "match_number": m.match_number, "team1_id": m.team1_id, "team2_id": m.team2_id, "status": m.status}
            for m in incomplete
        ],
        "next_round": round_number + 1,
        "next_round_exists": store.count_matches(tournament.id, round=round_number + 1) > 0,
        "tournament_status": tournament.status,
    }


def round_winners(store: Store, tournament_id: int, round_number: int) -> List[Dict[str, Any]]:
    """Winners of a round, bye teams included"""
    tournament = store.get_tournament(tournament_id)
    matches = store.list_matches(tournament.id, round=round_number)

    result = []
    for match in matches:
        if match.winner_id is None:
            continue
        result.append(
            {
                "team_id": match.winner_id,
                "match_id": match.id,
                "match_number": match.match_number,
                "opponent_id": match.loser_id,
                "score": {"team1": match.team1_score, "team2": match.team2_score},
                "status": match.status,
                "is_walkover": match.status == MatchStatus.walkover.value,
                "walkover_reason": match.walkover_reason,
            }
        )
    for match in matches:
        team_id = match.bye_team()
        if team_id is None:
            continue
        result.append(
            {
                "team_id": team_id,
                "match_id": match.id,
                "match_number": match.match_number,
                "opponent_id": None,
                "score": {"team1": 0, "team2": 0},
                "status": MatchStatus.bye.value,
                "is_walkover": False,
                "walkover_reason": "Bye",
            }
        )
    return result
