from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tourney.routes.deps import get_store
from tourney.routes.matches import MatchResponse
from tourney.services import scheduler
from tourney.store import Store

router = APIRouter()


class ScheduleGenerateRequest(BaseModel):
    start_date: str
    end_date: str
    start_time: str
    end_time: str
    # "Court 1,Court 2" or ["Court 1", "Court 2"]
    courts: Union[str, List[str]]
    match_duration: Optional[int] = None
    break_duration: Optional[int] = None


class ScheduleGenerateResponse(BaseModel):
    tournament_id: int
    scheduled: List[MatchResponse]
    scheduled_count: int
    unscheduled_count: int
    match_duration: int
    break_duration: int


class BulkScheduleItem(BaseModel):
    match_id: int
    scheduled_time: str
    court: Optional[str] = None


class BulkScheduleRequest(BaseModel):
    matches: List[BulkScheduleItem]


class MatchScheduleUpdate(BaseModel):
    scheduled_time: Optional[str] = None
    court: Optional[str] = None
    duration: Optional[int] = None
    referee: Optional[str] = None


class ScheduleDayResponse(BaseModel):
    date: str
    matches: List[MatchResponse]
    by_court: Dict[str, List[MatchResponse]]
    total_matches: int


class TimeSlot(BaseModel):
    start: datetime
    end: datetime
    duration: int
    available: bool


class AvailableSlotsResponse(BaseModel):
    date: str
    court: Optional[str]
    time_slots: List[TimeSlot]
    total_slots: int
    match_duration: int
    break_duration: int


class ScheduleResetRequest(BaseModel):
    mode: str = scheduler.RESET_SOFT


@router.post("/tournaments/{tournament_id}/schedule/generate", response_model=ScheduleGenerateResponse)
def generate_schedule(tournament_id: int, payload: ScheduleGenerateRequest, store: Store = Depends(get_store)):
    """Pack unscheduled matches onto courts and time slots"""
    return scheduler.generate_schedule(
        store,
        tournament_id,
        payload.start_date,
        payload.end_date,
        payload.start_time,
        payload.end_time,
        payload.courts,
        match_duration=payload.match_duration,
        break_duration=payload.break_duration,
    )


@router.post("/tournaments/{tournament_id}/schedule/bulk")
def bulk_schedule(tournament_id: int, payload: BulkScheduleRequest, store: Store = Depends(get_store)) -> Dict[str, Any]:
    items = [item.model_dump() for item in payload.matches]
    return scheduler.bulk_schedule(store, tournament_id, items)


@router.patch("/matches/{match_id}/schedule", response_model=MatchResponse)
def update_match_schedule(match_id: int, payload: MatchScheduleUpdate, store: Store = Depends(get_store)):
    """Move a single match; 409 with the clashing matches on conflict"""
    return scheduler.update_match_schedule(
        store,
        match_id,
        scheduled_time=payload.scheduled_time,
        court=payload.court,
        duration=payload.duration,
        referee=payload.referee,
    )


@router.get("/tournaments/{tournament_id}/schedule", response_model=ScheduleDayResponse)
def schedule_for_date(
    tournament_id: int,
    date: str,
    court: Optional[str] = None,
    status: Optional[str] = None,
    store: Store = Depends(get_store),
):
    return scheduler.schedule_for_date(store, tournament_id, date, court=court, status=status)


@router.get("/tournaments/{tournament_id}/schedule/available-slots", response_model=AvailableSlotsResponse)
def available_time_slots(
    tournament_id: int,
    date: str,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    court: Optional[str] = None,
    store: Store = Depends(get_store),
):
    """Free slots of one day; defaults to 08:00-20:00"""
    return scheduler.available_time_slots(store, tournament_id, date, start_time=start_time, end_time=end_time, court=court)


@router.get("/tournaments/{tournament_id}/schedule/unscheduled", response_model=List[MatchResponse])
def unscheduled_matches(tournament_id: int, store: Store = Depends(get_store)):
    return scheduler.unscheduled_matches(store, tournament_id)


@router.post("/tournaments/{tournament_id}/schedule/reset")
def reset_schedule(
    tournament_id: int,
    payload: Optional[ScheduleResetRequest] = None,
    store: Store = Depends(get_store),
) -> Dict[str, Any]:
    mode = payload.mode if payload else scheduler.RESET_SOFT
    return scheduler.reset_schedule(store, tournament_id, mode)


@router.get("/tournaments/{tournament_id}/schedule/can-reset")
def can_reset_schedule(tournament_id: int, store: Store = Depends(get_store)) -> Dict[str, Any]:
    return scheduler.can_reset_schedule(store, tournament_id)
