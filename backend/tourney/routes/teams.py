from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator

from tourney.models.tournament import Gender, LevelOfCompetition
from tourney.routes.deps import get_store
from tourney.services import roster
from tourney.store import Store

router = APIRouter()

TEAM_GENDERS = (Gender.male.value, Gender.female.value)
TEAM_LEVELS = (LevelOfCompetition.gold.value, LevelOfCompetition.silver.value)


class TeamCreate(BaseModel):
    name: str
    grade: Optional[str] = None
    gender: str
    level_of_competition: str
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("gender")
    @classmethod
    def validate_gender(cls, v):
        if v not in TEAM_GENDERS:
            raise ValueError(f"gender must be one of {list(TEAM_GENDERS)}")
        return v

    @field_validator("level_of_competition")
    @classmethod
    def validate_level(cls, v):
        if v not in TEAM_LEVELS:
            raise ValueError(f"level_of_competition must be one of {list(TEAM_LEVELS)}")
        return v


class TeamResponse(BaseModel):
    id: int
    name: str
    grade: Optional[str]
    gender: str
    level_of_competition: str
    is_active: bool

    class Config:
        from_attributes = True


class RegistrationResponse(BaseModel):
    id: int
    team_id: int
    tournament_name: str
    year: int
    registration_date: datetime
    level_of_competition: Optional[str]
    payment_status: str
    payment_complete: bool
    amount_paid: float

    class Config:
        from_attributes = True


class RegisteredTeamEntry(BaseModel):
    team: TeamResponse
    registration: Optional[RegistrationResponse]
    paid: bool


class RegisteredTeamsResponse(BaseModel):
    tournament_id: int
    teams: List[RegisteredTeamEntry]
    payment: Dict[str, int]


class BatchAddRequest(BaseModel):
    team_ids: List[int]


class BatchResult(BaseModel):
    team_id: int
    outcome: str
    reason: Optional[str] = None


class BatchAddResponse(BaseModel):
    tournament_id: int
    results: List[BatchResult]
    summary: Dict[str, int]
    registered_count: int


class RemoveTeamResponse(BaseModel):
    tournament_id: int
    team_id: int
    registered_teams: List[int]


# ============================================================================
# Team catalogue
# ============================================================================


@router.post("/teams", response_model=TeamResponse, status_code=201)
def create_team(team_data: TeamCreate, store: Store = Depends(get_store)):
    return roster.create_team(store, team_data.model_dump())


@router.get("/teams/{team_id}", response_model=TeamResponse)
def get_team(team_id: int, store: Store = Depends(get_store)):
    return roster.get_team(store, team_id)


# ============================================================================
# Tournament roster
# ============================================================================


# Registered before /teams/{team_id} so "batch" is not read as a team id
@router.post("/tournaments/{tournament_id}/teams/batch", response_model=BatchAddResponse)
def add_teams_batch(tournament_id: int, payload: BatchAddRequest, store: Store = Depends(get_store)):
    """Register several teams; each one reports added, skipped or failed"""
    return roster.add_teams_batch(store, tournament_id, payload.team_ids)


@router.post("/tournaments/{tournament_id}/teams/{team_id}", response_model=RegistrationResponse, status_code=201)
def add_team(tournament_id: int, team_id: int, store: Store = Depends(get_store)):
    return roster.add_team(store, tournament_id, team_id)


@router.delete("/tournaments/{tournament_id}/teams/{team_id}", response_model=RemoveTeamResponse)
def remove_team(tournament_id: int, team_id: int, store: Store = Depends(get_store)):
    tournament = roster.remove_team(store, tournament_id, team_id)
    return {"tournament_id": tournament.id, "team_id": team_id, "registered_teams": tournament.registered_teams}


@router.get("/tournaments/{tournament_id}/teams", response_model=RegisteredTeamsResponse)
def list_registered_teams(tournament_id: int, paid_only: bool = False, store: Store = Depends(get_store)):
    """Registered teams with their payment state"""
    return roster.registered_teams(store, tournament_id, paid_only=paid_only)


@router.get("/tournaments/{tournament_id}/eligible-teams", response_model=List[TeamResponse])
def eligible_teams(tournament_id: int, store: Store = Depends(get_store)):
    """Active teams matching the tournament's level and gender that are not registered yet"""
    return roster.eligible_teams(store, tournament_id)
