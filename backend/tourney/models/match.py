from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from sqlalchemy import Index
from sqlmodel import Field, SQLModel


class MatchStatus(str, Enum):
    scheduled = "scheduled"
    in_progress = "in-progress"
    completed = "completed"
    walkover = "walkover"
    bye = "bye"
    cancelled = "cancelled"


class BracketType(str, Enum):
    winners = "winners"
    losers = "losers"
    final = "final"


class BracketLocation(str, Enum):
    upper = "upper"
    lower = "lower"


# A finished match has a final result (winner, or draw for group matches)
FINISHED_STATUSES = (MatchStatus.completed.value, MatchStatus.walkover.value)
PENDING_STATUSES = (MatchStatus.scheduled.value, MatchStatus.in_progress.value)


class Match(SQLModel, table=True):
    __table_args__ = (
        Index("ix_match_tournament_round", "tournament_id", "round", "match_number"),
        Index("ix_match_tournament_schedule", "tournament_id", "status", "scheduled_time"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round: int
    match_number: int

    # Either side may be empty during construction or after a reset
    team1_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team2_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team1_score: Optional[int] = Field(default=None)
    team2_score: Optional[int] = Field(default=None)
    winner_id: Optional[int] = Field(default=None, foreign_key="team.id")
    loser_id: Optional[int] = Field(default=None, foreign_key="team.id")

    status: str = Field(default=MatchStatus.scheduled.value)
    bracket_type: str = Field(default=BracketType.winners.value)
    bracket_location: str = Field(default=BracketLocation.upper.value)
    group: Optional[str] = Field(default=None)
    is_consolation: bool = Field(default=False)

    # Successor in the winners graph (round + 1)
    next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")

    # Schedule
    scheduled_time: Optional[datetime] = Field(default=None, index=True)
    court: Optional[str] = Field(default=None)
    referee: Optional[str] = Field(default=None)
    duration: Optional[int] = Field(default=None)  # minutes
    actual_start_time: Optional[datetime] = Field(default=None)
    actual_end_time: Optional[datetime] = Field(default=None)
    is_rescheduled: bool = Field(default=False)

    walkover_reason: Optional[str] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def teams(self) -> List[int]:
        """Present team ids, team1 first"""
        return [t for t in (self.team1_id, self.team2_id) if t is not None]

    def has_team(self, team_id: Optional[int]) -> bool:
        return team_id is not None and team_id in (self.team1_id, self.team2_id)

    def bye_team(self) -> Optional[int]:
        """Team that advances without play, if this is a bye"""
        if self.status != MatchStatus.bye.value:
            return None
        present = self.teams()
        return present[0] if len(present) == 1 else None

    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def is_resolved(self) -> bool:
        """Resolved matches no longer block a round from advancing"""
        return self.winner_id is not None or self.status in (MatchStatus.bye.value, MatchStatus.cancelled.value)

    def end_time(self, default_duration: int) -> Optional[datetime]:
        if self.scheduled_time is None:
            return None
        return self.scheduled_time + timedelta(minutes=self.duration or default_duration)
