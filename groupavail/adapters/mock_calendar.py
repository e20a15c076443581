"""
JSON-file interval source for running without a calendar backend.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..domain.exceptions import AdapterUnavailable
from ..domain.models import BusyInterval, BusyKind, TimeWindow, parse_instant

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockCalendarClient:
    """
    Loads busy intervals from a JSON list of events.

    Each event looks like::

        {"calendarId": "alice", "start": "2025-03-03T10:00:00Z",
         "end": "2025-03-03T11:00:00Z", "busyKind": "HARD"}

    ``calendar_ids`` maps person ids to the calendar ids used in the file;
    unmapped people are looked up by their own id.
    """

    def __init__(
        self,
        data_file: Optional[Path] = None,
        calendar_ids: Optional[Mapping[str, str]] = None,
    ):
        self.data_file = data_file or DEFAULT_DATA_FILE
        self.calendar_ids = dict(calendar_ids or {})
        self._events: Optional[List[Dict[str, Any]]] = None

    def _load_events(self) -> List[Dict[str, Any]]:
        """Load the event list once, on first use."""
        if self._events is None:
            try:
                with open(self.data_file, "r", encoding="utf-8") as f:
                    events = json.load(f)
            except (OSError, ValueError) as exc:
                logger.error("Could not read calendar data %s: %s", self.data_file, exc)
                raise AdapterUnavailable(
                    f"Could not read calendar data from {self.data_file}: {exc}"
                ) from exc

            if not isinstance(events, list):
                raise AdapterUnavailable(
                    f"Calendar data in {self.data_file} must be a list of events"
                )
            self._events = events
        return self._events

    async def list_intervals(
        self,
        person_ids: Sequence[str],
        window: TimeWindow,
    ) -> Dict[str, List[BusyInterval]]:
        """
        Return intervals overlapping ``window`` per person, ordered by start.

        Raises:
            AdapterUnavailable: If the data file cannot be read
        """
        events = self._load_events()
        result: Dict[str, List[BusyInterval]] = {}

        for person_id in person_ids:
            calendar_id = self.calendar_ids.get(person_id) or person_id
            intervals: List[BusyInterval] = []

            for event in events:
                if event.get("calendarId") != calendar_id:
                    continue

                try:
                    interval = BusyInterval(
                        person_id=person_id,
                        start_utc=parse_instant(event["start"]),
                        end_utc=parse_instant(event["end"]),
                        busy_kind=BusyKind(event.get("busyKind", "HARD")),
                    )
                except (KeyError, ValueError) as exc:
                    logger.debug("Skipping invalid mock event %r: %s", event, exc)
                    continue

                if interval.overlaps(window.start_utc, window.end_utc):
                    intervals.append(interval)

            result[person_id] = sorted(intervals, key=lambda i: i.start_utc)

        return result
