from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, model_validator

from tourney.routes.deps import get_store
from tourney.services import advancement_service, standings_service
from tourney.store import Store

router = APIRouter()


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    round: int
    match_number: int
    team1_id: Optional[int]
    team2_id: Optional[int]
    team1_score: Optional[int]
    team2_score: Optional[int]
    winner_id: Optional[int]
    loser_id: Optional[int]
    status: str
    bracket_type: str
    bracket_location: str
    group: Optional[str]
    is_consolation: bool
    next_match_id: Optional[int]
    scheduled_time: Optional[datetime]
    court: Optional[str]
    referee: Optional[str]
    duration: Optional[int]
    actual_start_time: Optional[datetime]
    actual_end_time: Optional[datetime]
    is_rescheduled: bool
    walkover_reason: Optional[str]
    notes: Optional[str]

    class Config:
        from_attributes = True


class StandingResponse(BaseModel):
    id: int
    tournament_id: int
    team_id: int
    group: Optional[str]
    played: int
    wins: int
    losses: int
    draws: int
    points_for: int
    points_against: int
    points_difference: int
    points: int
    rank: int

    class Config:
        from_attributes = True


class MatchResultUpdate(BaseModel):
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    status: Optional[str] = None
    winner_id: Optional[int] = None
    walkover_reason: Optional[str] = None
    notes: Optional[str] = None


class QuickWinnerRequest(BaseModel):
    winner_id: int
    team1_score: int = 0
    team2_score: int = 0
    is_walkover: bool = False


class MatchTeamsUpdate(BaseModel):
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    position: Optional[str] = None

    @model_validator(mode="after")
    def validate_position(self):
        if self.position not in (None, "team1", "team2"):
            raise ValueError("position must be team1 or team2")
        return self


class AdvanceRoundRequest(BaseModel):
    seed: Optional[int] = None


class AdvanceRoundResponse(BaseModel):
    round: int
    created: bool
    matches: List[MatchResponse]
    tournament_status: str


# ============================================================================
# Match results
# ============================================================================


@router.post("/matches/{match_id}/result", response_model=MatchResponse)
def record_result(match_id: int, result: MatchResultUpdate, store: Store = Depends(get_store)):
    """Finish a match and move its winner forward"""
    return advancement_service.record_result(
        store,
        match_id,
        result.team1_score,
        result.team2_score,
        status=result.status,
        notes=result.notes,
        walkover_reason=result.walkover_reason,
        winner_id=result.winner_id,
    )


@router.post("/matches/{match_id}/quick-winner", response_model=MatchResponse)
def quick_declare_winner(match_id: int, payload: QuickWinnerRequest, store: Store = Depends(get_store)):
    return advancement_service.quick_declare_winner(
        store,
        match_id,
        payload.winner_id,
        team1_score=payload.team1_score,
        team2_score=payload.team2_score,
        is_walkover=payload.is_walkover,
    )


@router.post("/matches/{match_id}/reset", response_model=MatchResponse)
def reset_match(match_id: int, store: Store = Depends(get_store)):
    """Clear a result and pull the winner back out of the next match"""
    return advancement_service.reset_match(store, match_id)


@router.put("/matches/{match_id}/teams", response_model=MatchResponse)
def assign_match_teams(match_id: int, payload: MatchTeamsUpdate, store: Store = Depends(get_store)):
    return advancement_service.assign_match_teams(
        store, match_id, payload.team1_id, payload.team2_id, position=payload.position
    )


# ============================================================================
# Rounds & progress
# ============================================================================


@router.post("/tournaments/{tournament_id}/rounds/{round_number}/advance", response_model=AdvanceRoundResponse)
def advance_round(
    tournament_id: int,
    round_number: int,
    payload: Optional[AdvanceRoundRequest] = None,
    store: Store = Depends(get_store),
):
    """Pair the round's winners into the next round (no-op if it already exists)"""
    seed = payload.seed if payload else None
    return advancement_service.advance_round(store, tournament_id, round_number, seed=seed)


@router.get("/tournaments/{tournament_id}/progress")
def get_progress(tournament_id: int, store: Store = Depends(get_store)) -> Dict[str, Any]:
    return advancement_service.get_progress(store, tournament_id)


@router.get("/tournaments/{tournament_id}/rounds/{round_number}/summary")
def round_summary(tournament_id: int, round_number: int, store: Store = Depends(get_store)) -> Dict[str, Any]:
    return advancement_service.round_summary(store, tournament_id, round_number)


@router.get("/tournaments/{tournament_id}/rounds/{round_number}/winners")
def round_winners(tournament_id: int, round_number: int, store: Store = Depends(get_store)) -> List[Dict[str, Any]]:
    """Winners of a round, bye teams included"""
    return advancement_service.round_winners(store, tournament_id, round_number)


@router.get("/tournaments/{tournament_id}/standings", response_model=Dict[str, List[StandingResponse]])
def list_standings(tournament_id: int, group: Optional[str] = None, store: Store = Depends(get_store)):
    """Standings per group, in rank order"""
    return standings_service.list_standings(store, tournament_id, group=group)
