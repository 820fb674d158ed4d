"""
Store - persistence abstraction for tournaments, matches, standings and teams.

All multi-document mutations go through Store.with_transaction, which:
- commits everything the callback wrote, or nothing (rollback on any error)
- re-checks every tournament registered via lock_tournament() at commit time
  with a conditional version bump (optimistic per-tournament lock)
- retries the callback on a stale lock, up to max_retries, then raises ConflictError
- enforces an optional request deadline before every store call
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

from sqlalchemy import func, or_, text
from sqlmodel import Session, select

from tourney.config import TRANSACTION_MAX_RETRIES
from tourney.exceptions import ConflictError, DeadlineExceededError, NotFoundError, StaleTournamentError
from tourney.models.match import Match
from tourney.models.standing import Standing
from tourney.models.team import Team, TeamRegistration
from tourney.models.tournament import Tournament

logger = logging.getLogger(__name__)

T = TypeVar("T")

StatusFilter = Union[str, Sequence[str], None]


class Deadline:
    """Monotonic-clock deadline for one request."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return self.expires_at - time.monotonic()

    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, operation: str) -> None:
        if self.expired():
            raise DeadlineExceededError(
                f"Deadline of {self.seconds:g}s exceeded before {operation}",
                details={"operation": operation},
            )


class Store:
    def __init__(self, session: Session, deadline: Optional[Deadline] = None, max_retries: int = TRANSACTION_MAX_RETRIES):
        self.session = session
        self.deadline = deadline
        self.max_retries = max_retries
        self._locks: Dict[int, int] = {}
        self._in_transaction = False

    def _checkpoint(self, operation: str) -> None:
        if self.deadline is not None:
            self.deadline.check(operation)

    # ========================================================================
    # Transactions
    # ========================================================================

    def with_transaction(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run fn atomically. Nested calls join the outer transaction."""
        if self._in_transaction:
            return fn(*args, **kwargs)

        attempt = 0
        while True:
            attempt += 1
            self._locks = {}
            self._in_transaction = True
            try:
                result = fn(*args, **kwargs)
                self._checkpoint("commit")
                self.session.flush()
                self._bump_locked_versions()
                self.session.commit()
                return result
            except StaleTournamentError as exc:
                self.session.rollback()
                if attempt > self.max_retries:
                    raise ConflictError(
                        f"Tournament {exc.tournament_id} was modified concurrently; gave up after {attempt} attempts",
                        details={"tournament_id": exc.tournament_id, "attempts": attempt},
                    )
                logger.warning(
                    "Stale tournament %d (seen version %d), retrying transaction (attempt %d/%d)",
                    exc.tournament_id,
                    exc.seen_version,
                    attempt,
                    self.max_retries + 1,
                )
            except Exception:
                self.session.rollback()
                raise
            finally:
                self._in_transaction = False
                self._locks = {}

    def lock_tournament(self, tournament: Tournament) -> Tournament:
        """Register the version seen for tournament; re-checked at commit."""
        if tournament.id is not None and tournament.id not in self._locks:
            self._locks[tournament.id] = tournament.version
        return tournament

    def _bump_locked_versions(self) -> None:
        for tournament_id, seen in self._locks.items():
            result = self.session.execute(
                text("UPDATE tournament SET version = version + 1 WHERE id = :tournament_id AND version = :seen"),
                {"tournament_id": tournament_id, "seen": seen},
            )
            if result.rowcount != 1:
                raise StaleTournamentError(tournament_id, seen)

    # ========================================================================
    # Tournaments
    # ========================================================================

    def get_tournament(self, tournament_id: int) -> Tournament:
        self._checkpoint("get_tournament")
        tournament = self.session.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament not found", details={"tournament_id": tournament_id})
        return tournament

    def find_tournament(self, name: str, year: int) -> Optional[Tournament]:
        self._checkpoint("find_tournament")
        return self.session.exec(select(Tournament).where(Tournament.name == name, Tournament.year == year)).first()

    def list_tournaments(
        self,
        status: Optional[str] = None,
        year: Optional[int] = None,
        level: Optional[str] = None,
        active_only: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Tournament], int]:
        """Filtered page of tournaments (newest start date first) and the total count."""
        self._checkpoint("list_tournaments")
        conditions = []
        if active_only:
            conditions.append(Tournament.is_active == True)  # noqa: E712
        if status:
            conditions.append(Tournament.status == status)
        if year:
            conditions.append(Tournament.year == year)
        if level and level != "All":
            conditions.append(Tournament.level_of_competition == level)

        total = self.session.exec(select(func.count(Tournament.id)).where(*conditions)).one()
        query = (
            select(Tournament)
            .where(*conditions)
            .order_by(Tournament.start_date.desc(), Tournament.id.desc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        return list(self.session.exec(query).all()), total

    def save_tournament(self, tournament: Tournament) -> Tournament:
        self._checkpoint("save_tournament")
        tournament.updated_at = datetime.utcnow()
        self.session.add(tournament)
        self.session.flush()
        return tournament

    def delete_tournament(self, tournament: Tournament) -> None:
        """Hard delete; matches and standings go with it."""
        self.delete_standings(tournament.id)
        self.delete_matches(tournament.id)
        self._checkpoint("delete_tournament")
        self._locks.pop(tournament.id, None)
        self.session.delete(tournament)
        self.session.flush()

    # ========================================================================
    # Matches
    # ========================================================================

    def get_match(self, match_id: int) -> Match:
        match = self.find_match(match_id)
        if match is None:
            raise NotFoundError("Match not found", details={"match_id": match_id})
        return match

    def find_match(self, match_id: int) -> Optional[Match]:
        self._checkpoint("get_match")
        return self.session.get(Match, match_id)

    def _match_query(
        self,
        tournament_id: int,
        round: Optional[int] = None,
        group: Optional[str] = None,
        status: StatusFilter = None,
        bracket_type: Optional[str] = None,
        next_match_id: Optional[int] = None,
        team_ids: Optional[Sequence[int]] = None,
        scheduled: Optional[bool] = None,
        court: Optional[str] = None,
        scheduled_from: Optional[datetime] = None,
        scheduled_to: Optional[datetime] = None,
        exclude_id: Optional[int] = None,
    ):
        query = select(Match).where(Match.tournament_id == tournament_id)
        if round is not None:
            query = query.where(Match.round == round)
        if group is not None:
            query = query.where(Match.group == group)
        if status is not None:
            statuses = [status] if isinstance(status, str) else list(status)
            query = query.where(Match.status.in_(statuses))
        if bracket_type is not None:
            query = query.where(Match.bracket_type == bracket_type)
        if next_match_id is not None:
            query = query.where(Match.next_match_id == next_match_id)
        if team_ids is not None:
            ids = [t for t in team_ids if t is not None]
            if not ids:
                return None
            query = query.where(or_(Match.team1_id.in_(ids), Match.team2_id.in_(ids)))
        if scheduled is True:
            query = query.where(Match.scheduled_time.is_not(None))
        elif scheduled is False:
            query = query.where(Match.scheduled_time.is_(None))
        if court is not None:
            query = query.where(Match.court == court)
        if scheduled_from is not None:
            query = query.where(Match.scheduled_time >= scheduled_from)
        if scheduled_to is not None:
            query = query.where(Match.scheduled_time <= scheduled_to)
        if exclude_id is not None:
            query = query.where(Match.id != exclude_id)
        return query

    def list_matches(self, tournament_id: int, **filters: Any) -> List[Match]:
        """Matches of a tournament, ordered by (round, group, match_number)."""
        self._checkpoint("list_matches")
        query = self._match_query(tournament_id, **filters)
        if query is None:
            return []
        query = query.order_by(Match.round, Match.group, Match.match_number, Match.id)
        return list(self.session.exec(query).all())

    def count_matches(self, tournament_id: int, **filters: Any) -> int:
        return len(self.list_matches(tournament_id, **filters))

    def save_match(self, match: Match) -> Match:
        self._checkpoint("save_match")
        self.session.add(match)
        self.session.flush()
        return match

    def delete_matches(self, tournament_id: int, **filters: Any) -> int:
        """Delete matching matches; successor references to them are cleared first."""
        doomed = self.list_matches(tournament_id, **filters)
        if not doomed:
            return 0
        self._checkpoint("delete_matches")
        doomed_ids = [m.id for m in doomed]
        referrers = self.session.exec(select(Match).where(Match.next_match_id.in_(doomed_ids))).all()
        for match in referrers:
            match.next_match_id = None
            self.session.add(match)
        self.session.flush()
        for match in doomed:
            self.session.delete(match)
        self.session.flush()
        return len(doomed)

    # ========================================================================
    # Standings
    # ========================================================================

    def get_standing(self, tournament_id: int, team_id: int, group: Optional[str]) -> Optional[Standing]:
        self._checkpoint("get_standing")
        return self.session.exec(
            select(Standing).where(
                Standing.tournament_id == tournament_id,
                Standing.team_id == team_id,
                Standing.group == group,
            )
        ).first()

    def save_standing(self, standing: Standing) -> Standing:
        self._checkpoint("save_standing")
        standing.updated_at = datetime.utcnow()
        self.session.add(standing)
        self.session.flush()
        return standing

    def list_standings(self, tournament_id: int, group: Optional[str] = None) -> List[Standing]:
        """Standings in insertion order (the stable base for ranking)."""
        self._checkpoint("list_standings")
        query = select(Standing).where(Standing.tournament_id == tournament_id)
        if group is not None:
            query = query.where(Standing.group == group)
        return list(self.session.exec(query.order_by(Standing.id)).all())

    def delete_standings(self, tournament_id: int, group: Optional[str] = None) -> int:
        standings = self.list_standings(tournament_id, group)
        self._checkpoint("delete_standings")
        for standing in standings:
            self.session.delete(standing)
        self.session.flush()
        return len(standings)

    # ========================================================================
    # Teams
    # ========================================================================

    def get_team(self, team_id: int) -> Team:
        team = self.find_team(team_id)
        if team is None:
            raise NotFoundError("Team not found", details={"team_id": team_id})
        return team

    def find_team(self, team_id: int) -> Optional[Team]:
        self._checkpoint("get_team")
        return self.session.get(Team, team_id)

    def get_teams(self, team_ids: Sequence[int]) -> Dict[int, Team]:
        self._checkpoint("get_teams")
        if not team_ids:
            return {}
        teams = self.session.exec(select(Team).where(Team.id.in_(list(team_ids)))).all()
        return {t.id: t for t in teams}

    def list_teams(
        self,
        active: Optional[bool] = None,
        level: Optional[str] = None,
        gender: Optional[str] = None,
        exclude_ids: Optional[Sequence[int]] = None,
    ) -> List[Team]:
        self._checkpoint("list_teams")
        query = select(Team)
        if active is not None:
            query = query.where(Team.is_active == active)
        if level is not None:
            query = query.where(Team.level_of_competition == level)
        if gender is not None:
            query = query.where(Team.gender == gender)
        if exclude_ids:
            query = query.where(Team.id.not_in(list(exclude_ids)))
        return list(self.session.exec(query.order_by(Team.name, Team.id)).all())

    def save_team(self, team: Team) -> Team:
        self._checkpoint("save_team")
        self.session.add(team)
        self.session.flush()
        return team

    def find_registration(self, team_id: int, tournament_name: str, year: int) -> Optional[TeamRegistration]:
        self._checkpoint("find_registration")
        return self.session.exec(
            select(TeamRegistration).where(
                TeamRegistration.team_id == team_id,
                TeamRegistration.tournament_name == tournament_name,
                TeamRegistration.year == year,
            )
        ).first()

    def list_registrations(self, tournament_name: str, year: int) -> List[TeamRegistration]:
        self._checkpoint("list_registrations")
        return list(
            self.session.exec(
                select(TeamRegistration)
                .where(TeamRegistration.tournament_name == tournament_name, TeamRegistration.year == year)
                .order_by(TeamRegistration.id)
            ).all()
        )

    def save_registration(self, registration: TeamRegistration) -> TeamRegistration:
        self._checkpoint("save_registration")
        self.session.add(registration)
        self.session.flush()
        return registration

    def delete_registration(self, registration: TeamRegistration) -> None:
        self._checkpoint("delete_registration")
        self.session.delete(registration)
        self.session.flush()
