"""
Partitioning of a query window into fixed-width, half-open slots.

Slot ``i`` of a window is
``[start_utc + i * resolution, start_utc + (i + 1) * resolution)``,
with the last slot truncated at ``end_utc``. Slot boundaries are always
aligned to the window start, never to calendar event boundaries.
"""

import math
from typing import Iterator, Optional, Tuple

from pendulum import DateTime

from .models import TimeWindow

Slot = Tuple[DateTime, DateTime]


class SlotGrid:
    """
    A lazy, restartable sequence of ``(slot_start, slot_end)`` pairs.

    Iterating the grid twice yields the same slots; nothing is
    materialized up front.
    """

    def __init__(self, window: TimeWindow):
        self.window = window
        self._count = self._slot_count(window)

    @staticmethod
    def _slot_count(window: TimeWindow) -> int:
        span_us = round((window.end_utc - window.start_utc).total_seconds() * 1_000_000)
        step_us = window.resolution_minutes * 60 * 1_000_000
        return math.ceil(span_us / step_us)

    @property
    def resolution_minutes(self) -> int:
        return self.window.resolution_minutes

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[Slot]:
        for index in range(self._count):
            yield self.slot_at(index)

    def slot_at(self, index: int) -> Slot:
        """
        Return the bounds of slot ``index``.

        Raises:
            IndexError: If the index falls outside the grid
        """
        if not 0 <= index < self._count:
            raise IndexError(f"Slot index {index} outside grid of {self._count} slots")

        start = self.window.start_utc.add(minutes=index * self.resolution_minutes)
        end = start.add(minutes=self.resolution_minutes)
        return start, min(end, self.window.end_utc)

    def index_of(self, instant: DateTime) -> Optional[int]:
        """Return the index of the slot containing ``instant``, or None."""
        if instant < self.window.start_utc or instant >= self.window.end_utc:
            return None
        elapsed = (instant - self.window.start_utc).total_seconds()
        return min(int(elapsed // (self.resolution_minutes * 60)), self._count - 1)
