"""
Travel log: per-day location pins and one cover photo, stored inside the
sprint document under `travelLog.<date>`.

Each call returns the full updated travel log so callers can adopt it
wholesale instead of merging.
"""

from __future__ import annotations

from typing import Dict, Optional

from jetjot.db import DocumentStore
from jetjot.errors import SprintNotFound
from jetjot.sprints import require_day, validate_coordinates
from shared import sprint_types
from shared.sprint_types import DayLog, Location, Sprint


def travel_log_field(date_key: str) -> str:
    return f"travelLog.{date_key}"


class TravelLogStore:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _sprint(self, owner: str, sid: str) -> Sprint:
        sprint = self.store.get_sprint(owner, sid)
        if sprint is None:
            raise SprintNotFound()
        return sprint

    def _sprint_with_day(self, owner: str, sid: str, date_key: str) -> Sprint:
        sprint = self._sprint(owner, sid)
        require_day(sprint, date_key)
        return sprint

    def get(self, owner: str, sid: str) -> Dict[str, DayLog]:
        return self._sprint(owner, sid).travel_log

    def _write(
        self, owner: str, sid: str, date_key: str, travel_log: Dict[str, DayLog]
    ) -> Dict[str, DayLog]:
        self.store.update_sprint(
            owner,
            sid,
            {
                travel_log_field(date_key): sprint_types.day_log_to_document(
                    travel_log[date_key]
                )
            },
        )
        return travel_log

    def add_location(
        self,
        owner: str,
        sid: str,
        date_key: str,
        lat: float,
        lng: float,
        name: str,
        *,
        location_id: Optional[str] = None,
    ) -> Dict[str, DayLog]:
        validate_coordinates(lat, lng)
        sprint = self._sprint_with_day(owner, sid, date_key)
        location = Location(
            id=location_id or sprint_types.new_id(),
            lat=lat,
            lng=lng,
            name=name,
        )
        travel_log = sprint_types.with_location(sprint.travel_log, date_key, location)
        return self._write(owner, sid, date_key, travel_log)

    def remove_location(
        self, owner: str, sid: str, date_key: str, location_id: str
    ) -> Dict[str, DayLog]:
        sprint = self._sprint_with_day(owner, sid, date_key)
        travel_log = sprint_types.without_location(
            sprint.travel_log, date_key, location_id
        )
        return self._write(owner, sid, date_key, travel_log)

    def set_photo(
        self, owner: str, sid: str, date_key: str, photo: Optional[str]
    ) -> Dict[str, DayLog]:
        """Replace the day's photo; `None` clears it. No history is kept."""
        sprint = self._sprint_with_day(owner, sid, date_key)
        travel_log = sprint_types.with_photo(sprint.travel_log, date_key, photo or None)
        return self._write(owner, sid, date_key, travel_log)
