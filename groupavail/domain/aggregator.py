"""
Group-level views built from per-person verdict sequences.

All verdict sequences handed to the aggregator must come from the same
TimeWindow, so that index ``i`` refers to the same slot for everyone.
"""

import math
from typing import Dict, List, Mapping, Sequence

from .exceptions import InvalidWindow
from .models import CommonFreeSlot, HeatmapEntry, MeetingWindow, SlotVerdict, TimeWindow
from .slot_grid import SlotGrid

Verdicts = Mapping[str, Sequence[SlotVerdict]]


class GroupAggregator:
    """
    Computes common free slots, a heat-map and meeting candidates.

    Example (60 minute resolution, 09:00 - 13:00):
        A free:  09 10 -- 12
        B free:  09 10 11 12
        common:  09 10    12
        best 120 min -> [09:00 - 11:00]
    """

    def __init__(self, window: TimeWindow):
        self.window = window
        self.grid = SlotGrid(window)

    def common_free_times(self, verdicts: Verdicts) -> List[CommonFreeSlot]:
        """Slots at which every person in the group is free."""
        flags = self._common_flags(verdicts)
        total = len(verdicts)

        return [
            CommonFreeSlot(start=start, end=end, free_count=total, total=total)
            for (start, end), is_common in zip(self.grid, flags)
            if is_common
        ]

    def heatmap(self, verdicts: Verdicts) -> List[HeatmapEntry]:
        """One dense entry per slot with the count and share of free people."""
        self._check_alignment(verdicts)
        total = len(verdicts)
        entries: List[HeatmapEntry] = []

        for index, (start, end) in enumerate(self.grid):
            free_count = sum(1 for person in verdicts.values() if person[index].free)
            entries.append(
                HeatmapEntry(
                    start=start,
                    end=end,
                    free_count=free_count,
                    total=total,
                    percentage=(free_count / total) * 100 if total > 0 else 0,
                )
            )

        return entries

    def best_meeting_windows(
        self,
        verdicts: Verdicts,
        duration_minutes: int,
    ) -> List[MeetingWindow]:
        """
        Non-overlapping runs of common free slots long enough for a meeting.

        Each candidate spans exactly ceil(duration / resolution) slots.
        Scanning resumes right after a consumed run, so candidates never
        share a slot.

        Raises:
            InvalidWindow: If duration_minutes is not positive
        """
        if duration_minutes <= 0:
            raise InvalidWindow(
                f"duration_minutes must be greater than zero, got {duration_minutes}"
            )

        flags = self._common_flags(verdicts)
        resolution = self.grid.resolution_minutes
        required = math.ceil(duration_minutes / resolution)
        participants = len(verdicts)

        windows: List[MeetingWindow] = []
        run_start = 0
        run_length = 0

        for index, is_common in enumerate(flags):
            if not is_common:
                run_length = 0
                continue

            if run_length == 0:
                run_start = index
            run_length += 1

            if run_length == required:
                start, _ = self.grid.slot_at(run_start)
                windows.append(
                    MeetingWindow(
                        start=start,
                        end=start.add(minutes=required * resolution),
                        duration_minutes=duration_minutes,
                        participants=participants,
                    )
                )
                run_length = 0

        return windows

    def free_persons_at(self, verdicts: Verdicts, index: int) -> List[str]:
        """Person ids free at slot ``index``, in input order."""
        self._check_alignment(verdicts)
        self.grid.slot_at(index)
        return [person_id for person_id, person in verdicts.items() if person[index].free]

    def _common_flags(self, verdicts: Verdicts) -> List[bool]:
        self._check_alignment(verdicts)
        return [
            all(person[index].free for person in verdicts.values())
            for index in range(len(self.grid))
        ]

    def _check_alignment(self, verdicts: Verdicts) -> None:
        expected = len(self.grid)
        mismatched: Dict[str, int] = {
            person_id: len(person)
            for person_id, person in verdicts.items()
            if len(person) != expected
        }
        if mismatched:
            raise ValueError(
                f"Verdict sequences do not match the {expected}-slot grid: {mismatched}"
            )
