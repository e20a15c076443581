"""
Tests for group aggregation.
"""

import pytest

from groupavail.domain.aggregator import GroupAggregator
from groupavail.domain.exceptions import InvalidWindow
from groupavail.domain.models import CommonFreeSlot, TimeWindow

from conftest import utc, verdicts_from

# 09:00 - 17:00 in one-hour slots
WORKDAY = TimeWindow(
    start_utc=utc("2025-03-03 09:00"),
    end_utc=utc("2025-03-03 17:00"),
    resolution_minutes=60,
)


class TestCommonFreeTimes:
    """Tests for common free slot detection."""

    def test_single_shared_slot(self):
        """Two people free together only between 14:00 and 15:00."""
        verdicts = {
            "a": verdicts_from("BBBFFFBB"),
            "b": verdicts_from("FFBBBFFF"),
        }

        common = GroupAggregator(WORKDAY).common_free_times(verdicts)

        assert common == [
            CommonFreeSlot(start=utc("2025-03-03 14:00"), end=utc("2025-03-03 15:00"), free_count=2, total=2)
        ]

    def test_nobody_free_together(self):
        verdicts = {"a": verdicts_from("FFFFBBBB"), "b": verdicts_from("BBBBFFFF")}
        assert GroupAggregator(WORKDAY).common_free_times(verdicts) == []

    def test_misaligned_verdicts_rejected(self):
        with pytest.raises(ValueError, match="do not match"):
            GroupAggregator(WORKDAY).common_free_times({"a": verdicts_from("FFF")})


class TestHeatmap:
    """Tests for the heat-map."""

    def test_counts_and_percentages(self):
        verdicts = {
            "a": verdicts_from("FFBBFFFF"),
            "b": verdicts_from("FBBFFFFB"),
            "c": verdicts_from("FFFBBFFB"),
            "d": verdicts_from("FFBBBBFF"),
        }

        heatmap = GroupAggregator(WORKDAY).heatmap(verdicts)

        assert len(heatmap) == 8
        assert [entry.free_count for entry in heatmap] == [4, 3, 1, 1, 2, 3, 4, 2]
        assert heatmap[2].percentage == 25
        assert all(entry.total == 4 for entry in heatmap)
        assert heatmap[0].start == utc("2025-03-03 09:00")
        assert heatmap[-1].end == utc("2025-03-03 17:00")

    def test_full_count_matches_common_free_slots(self):
        verdicts = {"a": verdicts_from("FBFFBFFB"), "b": verdicts_from("FFFBBFBB")}
        aggregator = GroupAggregator(WORKDAY)

        full = [entry.start for entry in aggregator.heatmap(verdicts) if entry.free_count == entry.total]
        common = [slot.start for slot in aggregator.common_free_times(verdicts)]

        assert full == common

    def test_empty_group_has_zero_percentage(self):
        heatmap = GroupAggregator(WORKDAY).heatmap({})

        assert len(heatmap) == 8
        assert all(entry.total == 0 and entry.percentage == 0 for entry in heatmap)


class TestBestMeetingWindows:
    """Tests for the meeting window search."""

    def test_candidates_do_not_overlap(self):
        """Six free hours and a two-hour meeting give three back-to-back candidates."""
        verdicts = {"a": verdicts_from("FFFFFFBB"), "b": verdicts_from("FFFFFFFF")}

        windows = GroupAggregator(WORKDAY).best_meeting_windows(verdicts, 120)

        assert [(w.start.hour, w.end.hour) for w in windows] == [(9, 11), (11, 13), (13, 15)]
        assert all(w.participants == 2 and w.duration_minutes == 120 for w in windows)

    def test_leftover_slot_is_not_reused(self):
        """A three-slot run fits one two-slot meeting; the third slot starts nothing."""
        verdicts = {"a": verdicts_from("FFFBFFBB")}

        windows = GroupAggregator(WORKDAY).best_meeting_windows(verdicts, 120)

        assert [(w.start.hour, w.end.hour) for w in windows] == [(9, 11), (13, 15)]

    def test_short_runs_produce_nothing(self):
        verdicts = {"a": verdicts_from("FBFBFBFB")}
        assert GroupAggregator(WORKDAY).best_meeting_windows(verdicts, 120) == []

    def test_duration_rounds_up_to_whole_slots(self):
        window = TimeWindow(start_utc=utc("2025-03-03 09:00"), end_utc=utc("2025-03-03 11:00"), resolution_minutes=30)
        verdicts = {"a": verdicts_from("FFFF")}

        windows = GroupAggregator(window).best_meeting_windows(verdicts, 45)

        assert len(windows) == 2
        assert windows[0].start == utc("2025-03-03 09:00")
        assert windows[0].end == utc("2025-03-03 10:00")
        assert windows[0].duration_minutes == 45

    def test_requires_everybody_free(self):
        verdicts = {"a": verdicts_from("FFFFFFFF"), "b": verdicts_from("BFFBFFFB")}

        windows = GroupAggregator(WORKDAY).best_meeting_windows(verdicts, 120)

        assert [(w.start.hour, w.end.hour) for w in windows] == [(10, 12), (13, 15)]

    def test_non_positive_duration_rejected(self):
        with pytest.raises(InvalidWindow):
            GroupAggregator(WORKDAY).best_meeting_windows({"a": verdicts_from("FFFFFFFF")}, 0)


class TestFreePersonsAt:
    """Tests for per-slot membership."""

    def test_lists_free_people_in_order(self):
        verdicts = {"a": verdicts_from("FBFFFFFF"), "b": verdicts_from("FFFFFFFF"), "c": verdicts_from("BBFFFFFF")}
        aggregator = GroupAggregator(WORKDAY)

        assert aggregator.free_persons_at(verdicts, 0) == ["a", "b"]
        assert aggregator.free_persons_at(verdicts, 1) == ["b"]

    def test_index_outside_grid(self):
        with pytest.raises(IndexError):
            GroupAggregator(WORKDAY).free_persons_at({"a": verdicts_from("FFFFFFFF")}, 8)
