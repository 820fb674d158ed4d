from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"


class Team(SQLModel, table=True):
    """Club team. Tournaments reference teams; they never own them."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    grade: Optional[str] = None
    gender: str  # "Male" | "Female"
    level_of_competition: str  # "Gold" | "Silver"
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    registrations: List["TeamRegistration"] = Relationship(back_populates="team")


class TeamRegistration(SQLModel, table=True):
    """A team's entry in one tournament edition (name + year)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    tournament_name: str
    year: int
    registration_date: datetime = Field(default_factory=datetime.utcnow)
    level_of_competition: Optional[str] = None
    payment_status: str = Field(default=PaymentStatus.pending.value)
    payment_complete: bool = Field(default=False)
    amount_paid: float = Field(default=0)

    team: Optional[Team] = Relationship(back_populates="registrations")

    def is_paid(self) -> bool:
        return (
            self.payment_complete
            or self.payment_status in (PaymentStatus.paid.value, "completed")
            or (self.amount_paid or 0) > 0
        )
