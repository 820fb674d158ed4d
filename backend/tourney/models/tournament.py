from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel

from tourney.config import (
    BREAK_DURATION_MINUTES,
    MATCH_DURATION_MINUTES,
    POINTS_PER_DRAW,
    POINTS_PER_LOSS,
    POINTS_PER_WIN,
)


class TournamentFormat(str, Enum):
    single_elimination = "single-elimination"
    double_elimination = "double-elimination"
    round_robin = "round-robin"
    group_stage = "group-stage"


class TournamentStatus(str, Enum):
    draft = "draft"
    open = "open"
    ongoing = "ongoing"
    completed = "completed"
    cancelled = "cancelled"


class LevelOfCompetition(str, Enum):
    gold = "Gold"
    silver = "Silver"
    all = "All"


class Gender(str, Enum):
    male = "Male"
    female = "Female"
    mixed = "Mixed"


class Tournament(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("name", "year", name="uq_tournament_name_year"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    year: int = Field(default_factory=lambda: date.today().year)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    format: str = Field(default=TournamentFormat.single_elimination.value)
    min_teams: int = Field(default=4)
    max_teams: int = Field(default=16)
    level_of_competition: str = Field(default=LevelOfCompetition.all.value)
    gender: str = Field(default=Gender.mixed.value)
    status: str = Field(default=TournamentStatus.draft.value, index=True)
    is_active: bool = Field(default=True)

    # Settings
    points_per_win: int = Field(default=POINTS_PER_WIN)
    points_per_draw: int = Field(default=POINTS_PER_DRAW)
    points_per_loss: int = Field(default=POINTS_PER_LOSS)
    match_duration: int = Field(default=MATCH_DURATION_MINUTES)
    break_duration: int = Field(default=BREAK_DURATION_MINUTES)

    # Ordered team ids; groups are [{"name": "A", "teams": [ids...]}, ...]
    # JSON columns are reassigned, never mutated in place, so changes are tracked.
    registered_teams: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    groups: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # Optimistic lock, bumped by Store on every committed mutation
    version: int = Field(default=1)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    @property
    def team_count(self) -> int:
        return len(self.registered_teams or [])

    def group_names(self) -> List[str]:
        return [g.get("name") for g in (self.groups or [])]
