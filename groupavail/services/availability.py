"""
Application service for group availability queries.

The service reads busy intervals and presence concurrently, builds the slot
grid once, resolves every person against it and hands the verdicts to the
aggregator. Collaborators are injected through small protocols so the real
calendar and Redis adapters can be swapped for in-memory ones in tests.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.aggregator import GroupAggregator
from ..domain.exceptions import AdapterUnavailable, InvalidWindow, StoreUnavailable
from ..domain.models import (
    BusyInterval,
    CommonFreeSlot,
    GroupAvailability,
    HeatmapEntry,
    MeetingWindow,
    PresenceOverride,
    PresenceSnapshot,
    TimeWindow,
    utc_now,
)
from ..domain.resolver import AvailabilityResolver
from ..domain.slot_grid import SlotGrid

logger = logging.getLogger(__name__)


class IntervalSourceProtocol(Protocol):
    """Protocol describing the busy-interval source needed by the service."""

    async def list_intervals(
        self,
        person_ids: Sequence[str],
        window: TimeWindow,
    ) -> Dict[str, List[BusyInterval]]:
        """Return busy intervals per person, ordered by start."""


class PresenceReaderProtocol(Protocol):
    """Read side of a presence store."""

    async def get(self, person_id: str) -> Optional[PresenceOverride]:
        """Return the live override for one person, if any."""

    async def get_many(self, person_ids: Sequence[str]) -> PresenceSnapshot:
        """Return live overrides keyed by person id."""


@dataclass
class GroupReport:
    """Everything a group view needs, computed from a single read."""
    availability: GroupAvailability
    heatmap: List[HeatmapEntry] = field(default_factory=list)
    common_free_times: List[CommonFreeSlot] = field(default_factory=list)
    best_meeting_windows: List[MeetingWindow] = field(default_factory=list)


class AvailabilityService:
    """
    Orchestrates interval/presence retrieval, resolution and aggregation.

    Queries are read-only: abandoning one midway leaves nothing to undo.
    """

    def __init__(
        self,
        interval_source: IntervalSourceProtocol,
        presence_store: PresenceReaderProtocol,
        resolver: Optional[AvailabilityResolver] = None,
        clock: Callable[[], DateTime] = utc_now,
    ) -> None:
        self._interval_source = interval_source
        self._presence_store = presence_store
        self._clock = clock
        self._resolver = resolver or AvailabilityResolver(clock=clock)

    async def group_availability(
        self,
        person_ids: Sequence[str],
        window: TimeWindow,
    ) -> GroupAvailability:
        """
        Resolve per-slot verdicts for every person.

        Raises:
            AdapterUnavailable: If busy intervals cannot be fetched; no
                partial result is returned
        """
        people = list(dict.fromkeys(person_ids))

        intervals, presences = await asyncio.gather(
            self._fetch_intervals(people, window),
            self._fetch_presences(people),
        )

        grid = SlotGrid(window)
        now = self._clock()

        verdicts = {
            person_id: self._resolver.resolve(
                person_id,
                intervals.get(person_id, []),
                presences.get(person_id),
                window,
                now=now,
                grid=grid,
            )
            for person_id in people
        }

        return GroupAvailability(
            window=window,
            verdicts=verdicts,
            presence_degraded=presences.degraded,
        )

    async def common_free_times(
        self,
        person_ids: Sequence[str],
        window: TimeWindow,
    ) -> List[CommonFreeSlot]:
        availability = await self.group_availability(person_ids, window)
        return GroupAggregator(window).common_free_times(availability.verdicts)

    async def heatmap(
        self,
        person_ids: Sequence[str],
        window: TimeWindow,
    ) -> List[HeatmapEntry]:
        availability = await self.group_availability(person_ids, window)
        return GroupAggregator(window).heatmap(availability.verdicts)

    async def best_meeting_windows(
        self,
        person_ids: Sequence[str],
        window: TimeWindow,
        duration_minutes: int,
    ) -> List[MeetingWindow]:
        availability = await self.group_availability(person_ids, window)
        return GroupAggregator(window).best_meeting_windows(
            availability.verdicts, duration_minutes
        )

    async def group_report(
        self,
        person_ids: Sequence[str],
        window: TimeWindow,
        duration_minutes: Optional[int] = None,
    ) -> GroupReport:
        """Verdicts, heat-map, common free slots and (optionally) meeting candidates."""
        availability = await self.group_availability(person_ids, window)
        aggregator = GroupAggregator(window)

        report = GroupReport(
            availability=availability,
            heatmap=aggregator.heatmap(availability.verdicts),
            common_free_times=aggregator.common_free_times(availability.verdicts),
        )
        if duration_minutes is not None:
            report.best_meeting_windows = aggregator.best_meeting_windows(
                availability.verdicts, duration_minutes
            )
        return report

    async def free_now(
        self,
        person_ids: Sequence[str],
        resolution_minutes: int = 15,
    ) -> List[str]:
        """
        People free in the slot containing the current instant.

        The slot is aligned to multiples of ``resolution_minutes`` since the
        Unix epoch.
        """
        if resolution_minutes <= 0:
            raise InvalidWindow(
                f"resolution_minutes must be greater than zero, got {resolution_minutes}"
            )

        now = self._clock()
        step = resolution_minutes * 60
        slot_start = now.subtract(seconds=now.int_timestamp % step, microseconds=now.microsecond)
        window = TimeWindow(
            start_utc=slot_start,
            end_utc=slot_start.add(minutes=resolution_minutes),
            resolution_minutes=resolution_minutes,
        )

        availability = await self.group_availability(person_ids, window)
        return GroupAggregator(window).free_persons_at(availability.verdicts, 0)

    async def _fetch_intervals(
        self,
        person_ids: List[str],
        window: TimeWindow,
    ) -> Dict[str, List[BusyInterval]]:
        try:
            return await self._interval_source.list_intervals(person_ids, window)
        except AdapterUnavailable:
            logger.error("Interval source unavailable; failing query for %d people", len(person_ids))
            raise

    async def _fetch_presences(self, person_ids: List[str]) -> PresenceSnapshot:
        try:
            snapshot = await self._presence_store.get_many(person_ids)
        except StoreUnavailable as exc:
            logger.warning("Presence store unavailable, resolving from calendars only: %s", exc)
            return PresenceSnapshot(degraded=True)

        if not isinstance(snapshot, PresenceSnapshot):
            snapshot = PresenceSnapshot(snapshot)
        if snapshot.degraded:
            logger.warning("Presence degraded; resolving %d people from calendars only", len(person_ids))
        return snapshot
