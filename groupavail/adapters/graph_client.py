"""
Microsoft Graph API client supplying busy intervals per person.
"""

import asyncio
import logging
from typing import Any, Dict, List, Sequence

import requests

from ..domain.exceptions import AdapterUnavailable
from ..domain.models import BusyInterval, BusyKind, TimeWindow, format_instant, parse_instant

logger = logging.getLogger(__name__)

# Graph free/busy statuses and how strongly they block
STATUS_KINDS = {
    "busy": BusyKind.HARD,
    "oof": BusyKind.HARD,
    "workingelsewhere": BusyKind.HARD,
    "tentative": BusyKind.SOFT,
}


class GraphClient:
    """
    Interval source backed by the Microsoft Graph ``getSchedule`` endpoint.

    Person ids are the mailbox addresses Graph knows the schedules by.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    def __init__(self, access_token: str, timeout: float = 30):
        """
        Initialize the Graph API client.

        Args:
            access_token: Valid Microsoft Graph access token
            timeout: Request timeout in seconds
        """
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def list_intervals(
        self,
        person_ids: Sequence[str],
        window: TimeWindow,
    ) -> Dict[str, List[BusyInterval]]:
        """
        Get busy intervals overlapping ``window`` for every person.

        Returns:
            Dictionary mapping person id -> intervals ordered by start

        Raises:
            AdapterUnavailable: If the API call fails or returns garbage
        """
        return await asyncio.to_thread(self._fetch, list(person_ids), window)

    def _fetch(self, person_ids: List[str], window: TimeWindow) -> Dict[str, List[BusyInterval]]:
        url = f"{self.GRAPH_API_ENDPOINT}/me/calendar/getSchedule"

        payload = {
            "schedules": person_ids,
            "startTime": {"dateTime": format_instant(window.start_utc), "timeZone": "UTC"},
            "endTime": {"dateTime": format_instant(window.end_utc), "timeZone": "UTC"},
            "availabilityViewInterval": window.resolution_minutes,
        }

        try:
            response = requests.post(
                url,
                headers=self.headers,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            logger.error("Graph getSchedule failed: %s", exc)
            raise AdapterUnavailable(
                f"Failed to fetch schedule from Microsoft Graph: {exc}"
            ) from exc

        if not isinstance(data, dict) or not isinstance(data.get("value", []), list):
            logger.error("Graph getSchedule returned an unexpected body: %r", data)
            raise AdapterUnavailable("Unexpected getSchedule response from Microsoft Graph")

        try:
            intervals = self._parse_schedule_response(data, window)
        except (AttributeError, TypeError) as exc:
            logger.error("Graph getSchedule returned malformed schedules: %s", exc)
            raise AdapterUnavailable(
                f"Malformed getSchedule response from Microsoft Graph: {exc}"
            ) from exc

        return {person_id: intervals.get(person_id.lower(), []) for person_id in person_ids}

    def _parse_schedule_response(
        self,
        response_data: Dict[str, Any],
        window: TimeWindow,
    ) -> Dict[str, List[BusyInterval]]:
        """
        Parse the getSchedule response into busy intervals.

        Response format:
        {
            "value": [
                {
                    "scheduleId": "user@example.com",
                    "scheduleItems": [
                        {
                            "status": "busy",
                            "start": {"dateTime": "...", "timeZone": "UTC"},
                            "end": {"dateTime": "...", "timeZone": "UTC"}
                        }
                    ]
                }
            ]
        }
        """
        result: Dict[str, List[BusyInterval]] = {}

        for schedule in response_data.get("value", []):
            person_id = schedule.get("scheduleId", "")
            intervals: List[BusyInterval] = []

            for item in schedule.get("scheduleItems", []):
                kind = STATUS_KINDS.get(item.get("status", "").lower())
                if kind is None:
                    continue

                try:
                    interval = BusyInterval(
                        person_id=person_id,
                        start_utc=parse_instant(item["start"]["dateTime"]),
                        end_utc=parse_instant(item["end"]["dateTime"]),
                        busy_kind=kind,
                    )
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Could not parse schedule item for %s: %s", person_id, exc)
                    continue

                if interval.overlaps(window.start_utc, window.end_utc):
                    intervals.append(interval)

            result[person_id.lower()] = sorted(intervals, key=lambda i: i.start_utc)

        return result
