from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Standing(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "team_id", "group", name="uq_standing_team_group"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    team_id: int = Field(foreign_key="team.id")
    group: Optional[str] = Field(default=None, index=True)

    played: int = Field(default=0)
    wins: int = Field(default=0)
    losses: int = Field(default=0)
    draws: int = Field(default=0)
    points_for: int = Field(default=0)
    points_against: int = Field(default=0)
    points_difference: int = Field(default=0)
    points: int = Field(default=0)
    rank: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    def clear(self) -> None:
        self.played = self.wins = self.losses = self.draws = 0
        self.points_for = self.points_against = self.points_difference = self.points = 0
        self.rank = 0
