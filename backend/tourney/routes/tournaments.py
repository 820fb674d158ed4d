from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator, model_validator

from tourney.routes.deps import get_store
from tourney.routes.matches import MatchResponse, StandingResponse
from tourney.services import bracket_builder, lifecycle
from tourney.store import Store

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    description: Optional[str] = None
    year: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    format: Optional[str] = None
    min_teams: Optional[int] = None
    max_teams: Optional[int] = None
    level_of_competition: Optional[str] = None
    gender: Optional[str] = None
    points_per_win: Optional[int] = None
    points_per_draw: Optional[int] = None
    points_per_loss: Optional[int] = None
    match_duration: Optional[int] = None
    break_duration: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class TournamentUpdate(BaseModel):
    """Partial update. Unknown and read-only fields pass through so the service can reject them."""

    name: Optional[str] = None
    description: Optional[str] = None
    year: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    format: Optional[str] = None
    min_teams: Optional[int] = None
    max_teams: Optional[int] = None
    level_of_competition: Optional[str] = None
    gender: Optional[str] = None
    points_per_win: Optional[int] = None
    points_per_draw: Optional[int] = None
    points_per_loss: Optional[int] = None
    match_duration: Optional[int] = None
    break_duration: Optional[int] = None

    class Config:
        extra = "allow"


class TournamentResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    year: int
    start_date: Optional[date]
    end_date: Optional[date]
    format: str
    min_teams: int
    max_teams: int
    level_of_competition: str
    gender: str
    status: str
    is_active: bool
    points_per_win: int
    points_per_draw: int
    points_per_loss: int
    match_duration: int
    break_duration: int
    registered_teams: List[int] = []
    groups: List[Dict[str, Any]] = []
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TournamentListResponse(BaseModel):
    tournaments: List[TournamentResponse]
    total: int
    page: int
    pages: int


class TournamentDetailResponse(BaseModel):
    tournament: TournamentResponse
    matches: List[MatchResponse]
    standings: List[StandingResponse]


class TournamentDeleteResponse(BaseModel):
    tournament_id: int
    matches_deleted: int
    standings_deleted: int


class BracketCreate(BaseModel):
    format: Optional[str] = None
    seeding: str = bracket_builder.SeedingMethod.random.value
    seed_order: Optional[List[int]] = None
    seed: Optional[int] = None


class BracketRecreate(BracketCreate):
    preserve_schedule: bool = False


class BracketResponse(BaseModel):
    tournament_id: int
    format: str
    status: str
    match_count: int
    matches: List[MatchResponse]


# ============================================================================
# CRUD
# ============================================================================


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, store: Store = Depends(get_store)):
    """Create a draft tournament"""
    return lifecycle.create_tournament(store, tournament_data.model_dump(exclude_none=True))


@router.get("/tournaments", response_model=TournamentListResponse)
def list_tournaments(
    status: Optional[str] = None,
    year: Optional[int] = None,
    level: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    store: Store = Depends(get_store),
):
    """Active tournaments, newest first"""
    return lifecycle.list_tournaments(store, status=status, year=year, level=level, page=page, limit=limit)


@router.get("/tournaments/{tournament_id}", response_model=TournamentDetailResponse)
def get_tournament(tournament_id: int, store: Store = Depends(get_store)):
    """Tournament with its matches and standings"""
    return lifecycle.get_tournament_detail(store, tournament_id)


@router.patch("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, store: Store = Depends(get_store)):
    return lifecycle.update_tournament(store, tournament_id, tournament_data.model_dump(exclude_unset=True))


@router.delete("/tournaments/{tournament_id}", response_model=TournamentResponse)
def soft_delete_tournament(tournament_id: int, store: Store = Depends(get_store)):
    """Hide the tournament from listings"""
    return lifecycle.soft_delete_tournament(store, tournament_id)


@router.delete("/tournaments/{tournament_id}/hard", response_model=TournamentDeleteResponse)
def delete_tournament(tournament_id: int, store: Store = Depends(get_store)):
    """Remove the tournament with its matches, standings and registrations"""
    return lifecycle.delete_tournament(store, tournament_id)


# ============================================================================
# Lifecycle
# ============================================================================


@router.post("/tournaments/{tournament_id}/start", response_model=TournamentResponse)
def start_tournament(tournament_id: int, store: Store = Depends(get_store)):
    return lifecycle.start_tournament(store, tournament_id)


@router.post("/tournaments/{tournament_id}/complete", response_model=TournamentResponse)
def complete_tournament(tournament_id: int, store: Store = Depends(get_store)):
    return lifecycle.complete_tournament(store, tournament_id)


@router.post("/tournaments/{tournament_id}/cancel", response_model=TournamentResponse)
def cancel_tournament(tournament_id: int, store: Store = Depends(get_store)):
    return lifecycle.cancel_tournament(store, tournament_id)


# ============================================================================
# Brackets
# ============================================================================


def _bracket_response(store: Store, tournament_id: int, matches) -> Dict[str, Any]:
    tournament = store.get_tournament(tournament_id)
    return {
        "tournament_id": tournament.id,
        "format": tournament.format,
        "status": tournament.status,
        "match_count": len(matches),
        "matches": matches,
    }


@router.post("/tournaments/{tournament_id}/brackets", response_model=BracketResponse, status_code=201)
def generate_bracket(tournament_id: int, bracket_data: BracketCreate, store: Store = Depends(get_store)):
    """Build the initial match graph"""
    matches = bracket_builder.generate_bracket(
        store,
        tournament_id,
        format=bracket_data.format,
        seeding=bracket_data.seeding,
        seed_order=bracket_data.seed_order,
        seed=bracket_data.seed,
    )
    return _bracket_response(store, tournament_id, matches)


@router.post("/tournaments/{tournament_id}/brackets/recreate", response_model=BracketResponse)
def recreate_bracket(tournament_id: int, bracket_data: BracketRecreate, store: Store = Depends(get_store)):
    """Delete matches and standings, then build the bracket again"""
    matches = lifecycle.recreate_bracket(
        store,
        tournament_id,
        format=bracket_data.format,
        seeding=bracket_data.seeding,
        seed_order=bracket_data.seed_order,
        preserve_schedule=bracket_data.preserve_schedule,
        seed=bracket_data.seed,
    )
    return _bracket_response(store, tournament_id, matches)
