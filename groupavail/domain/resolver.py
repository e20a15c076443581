"""
Per-person free/busy resolution over a slot grid.

This is pure domain logic: it combines calendar-derived busy intervals
with an optional presence override and performs no I/O.
"""

from typing import Callable, List, Optional, Sequence

from pendulum import DateTime

from .models import (
    BusyInterval,
    PresenceOverride,
    PresenceStatus,
    SlotReason,
    SlotVerdict,
    TimeWindow,
    utc_now,
)
from .slot_grid import SlotGrid

FREE_STATUSES = frozenset({PresenceStatus.FREE, PresenceStatus.FREE_NOW})


class AvailabilityResolver:
    """
    Produces one SlotVerdict per grid slot for a single person.

    Precedence:
    1. A live FREE / FREE_NOW presence makes every slot free
    2. A live BUSY presence makes every slot busy
    3. Otherwise (no presence, expired presence, or AWAY) the calendar
       decides: a slot is busy iff some interval strictly overlaps it

    AWAY deliberately does not override the calendar, and SOFT intervals
    block exactly like HARD ones.
    """

    def __init__(self, clock: Callable[[], DateTime] = utc_now):
        self._clock = clock

    def resolve(
        self,
        person_id: str,
        intervals: Sequence[BusyInterval],
        presence: Optional[PresenceOverride],
        window: TimeWindow,
        *,
        now: Optional[DateTime] = None,
        grid: Optional[SlotGrid] = None,
    ) -> List[SlotVerdict]:
        """
        Resolve the verdict sequence for ``person_id`` in slot order.

        Args:
            person_id: Person the intervals and presence belong to
            intervals: Busy intervals, already filtered to the window
            presence: Current presence record, if any
            window: Query window defining the grid
            now: Instant used for the liveness check (defaults to the clock)
            grid: Prebuilt grid for ``window``, shared across a group query

        Returns:
            List of SlotVerdict, one per slot
        """
        grid = grid or SlotGrid(window)
        now = now or self._clock()

        # Liveness is decided once per query; presence does not change mid-query.
        live = presence if presence is not None and presence.is_live(now) else None

        if live is not None and live.status in FREE_STATUSES:
            reason = (
                SlotReason.FREE_NOW
                if live.status is PresenceStatus.FREE_NOW
                else SlotReason.PRESENCE_OVERRIDE
            )
            return [SlotVerdict(free=True, reason=reason) for _ in range(len(grid))]

        if live is not None and live.status is PresenceStatus.BUSY:
            return [
                SlotVerdict(free=False, reason=SlotReason.PRESENCE_BUSY)
                for _ in range(len(grid))
            ]

        return [self._calendar_verdict(intervals, start, end) for start, end in grid]

    @staticmethod
    def _calendar_verdict(
        intervals: Sequence[BusyInterval],
        slot_start: DateTime,
        slot_end: DateTime,
    ) -> SlotVerdict:
        if any(interval.overlaps(slot_start, slot_end) for interval in intervals):
            return SlotVerdict(free=False, reason=SlotReason.CALENDAR_EVENT)
        return SlotVerdict(free=True, reason=SlotReason.FREE)
