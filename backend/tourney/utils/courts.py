"""
Court names and court occupancy.

Handles both string ("1,5,6") and list (["1","5","6"]) inputs so we never
silently corrupt labels (e.g. list("1,5,6") -> ['1', ',', '5', ...]).
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple, Union

from tourney.models.match import Match
from tourney.utils.rest_rules import intervals_overlap


def parse_court_names(court_names: Optional[Union[str, List[str]]]) -> List[str]:
    """
    Normalize court_names to a list of non-empty, unique strings (order kept).

    - None or "" -> []
    - String (e.g. "1,5,6") -> split on commas, strip whitespace, drop empties -> ["1","5","6"]
    - List (e.g. ["1","5","6"]) -> coerce each to str(x).strip(), drop empties
    """
    if court_names is None:
        return []
    if isinstance(court_names, str):
        labels = [x.strip() for x in court_names.split(",")]
    elif isinstance(court_names, (list, tuple)):
        labels = [str(x).strip() for x in court_names]
    else:
        return []
    seen = set()
    result = []
    for label in labels:
        if label and label not in seen:
            seen.add(label)
            result.append(label)
    return result


class CourtOccupancy:
    """Occupied [start, end) intervals per court"""

    def __init__(self):
        self.intervals: Dict[str, List[Tuple[datetime, datetime, Optional[int]]]] = {}

    def occupy(self, court: str, start: datetime, duration: int, match_id: Optional[int] = None):
        end = start + timedelta(minutes=duration)
        self.intervals.setdefault(court, []).append((start, end, match_id))

    def occupy_match(self, match: Match, default_duration: int):
        if match.court and match.scheduled_time is not None:
            self.occupy(match.court, match.scheduled_time, match.duration or default_duration, match.id)

    def is_free(self, court: str, start: datetime, duration: int) -> bool:
        end = start + timedelta(minutes=duration)
        for busy_start, busy_end, _ in self.intervals.get(court, []):
            if intervals_overlap(busy_start, busy_end, start, end):
                return False
        return True
