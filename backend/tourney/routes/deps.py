from fastapi import Depends
from sqlmodel import Session

from tourney.config import REQUEST_DEADLINE_SECONDS
from tourney.database import get_session
from tourney.store import Deadline, Store


def get_store(session: Session = Depends(get_session)) -> Store:
    """Per-request Store with the request deadline applied"""
    return Store(session, deadline=Deadline(REQUEST_DEADLINE_SECONDS))
