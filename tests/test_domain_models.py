"""
Tests for domain models.
"""

import pendulum
import pytest

from groupavail.domain.exceptions import InvalidStatus, InvalidWindow
from groupavail.domain.models import (
    BusyInterval,
    BusyKind,
    PresenceOverride,
    PresenceStatus,
    TimeWindow,
)

from conftest import utc


class TestBusyInterval:
    """Tests for BusyInterval."""

    def test_invalid_interval_raises_error(self):
        """Start must come before end."""
        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            BusyInterval(person_id="a", start_utc=utc("2025-03-03 11:00"), end_utc=utc("2025-03-03 10:00"))

    def test_default_kind_is_hard(self):
        interval = BusyInterval(person_id="a", start_utc=utc("2025-03-03 10:00"), end_utc=utc("2025-03-03 11:00"))
        assert interval.busy_kind is BusyKind.HARD

    def test_overlap_is_half_open(self):
        """Touching boundaries do not overlap."""
        interval = BusyInterval(person_id="a", start_utc=utc("2025-03-03 10:00"), end_utc=utc("2025-03-03 11:00"))

        assert interval.overlaps(utc("2025-03-03 10:30"), utc("2025-03-03 10:45"))
        assert interval.overlaps(utc("2025-03-03 09:30"), utc("2025-03-03 10:01"))
        assert not interval.overlaps(utc("2025-03-03 11:00"), utc("2025-03-03 12:00"))
        assert not interval.overlaps(utc("2025-03-03 09:00"), utc("2025-03-03 10:00"))


class TestTimeWindow:
    """Tests for TimeWindow validation."""

    def test_non_positive_resolution_rejected(self):
        with pytest.raises(InvalidWindow):
            TimeWindow(start_utc=utc("2025-03-03 09:00"), end_utc=utc("2025-03-03 10:00"), resolution_minutes=0)

    def test_end_before_start_rejected(self):
        with pytest.raises(InvalidWindow):
            TimeWindow(start_utc=utc("2025-03-03 10:00"), end_utc=utc("2025-03-03 10:00"))

    def test_invalid_window_is_a_value_error(self):
        """Callers catching ValueError also catch InvalidWindow."""
        with pytest.raises(ValueError):
            TimeWindow(start_utc=utc("2025-03-03 10:00"), end_utc=utc("2025-03-03 09:00"))

    def test_bounds_normalized_to_utc(self):
        start = pendulum.parse("2025-03-03 10:00", tz="Europe/Berlin")
        window = TimeWindow(start_utc=start, end_utc=start.add(hours=1))

        assert window.start_utc.timezone_name == "UTC"
        assert window.start_utc.hour == 9
        assert window.duration_minutes() == 60

    def test_spanning_days(self):
        window = TimeWindow.spanning_days(utc("2025-03-03 00:00"), days=2, resolution_minutes=60)
        assert window.end_utc == utc("2025-03-05 00:00")


class TestPresence:
    """Tests for presence status parsing and liveness."""

    def test_parse_known_status(self):
        assert PresenceStatus.parse("FREE_NOW") is PresenceStatus.FREE_NOW

    def test_parse_unknown_status(self):
        with pytest.raises(InvalidStatus, match="Must be one of"):
            PresenceStatus.parse("available")

    def test_no_expiry_is_always_live(self):
        record = PresenceOverride(person_id="a", status=PresenceStatus.BUSY, updated_at=utc("2025-01-01 00:00"))
        assert record.is_live(utc("2030-01-01 00:00"))

    def test_live_until_expiry_instant(self):
        expiry = utc("2025-03-03 12:00")
        record = PresenceOverride(
            person_id="a",
            status=PresenceStatus.FREE,
            updated_at=utc("2025-03-03 11:00"),
            expires_at=expiry,
        )

        assert record.is_live(expiry)
        assert not record.is_live(expiry.add(seconds=1))

    def test_payload_restores_record(self):
        record = PresenceOverride(
            person_id="a",
            status=PresenceStatus.FREE_NOW,
            updated_at=utc("2025-03-03 11:00"),
            expires_at=utc("2025-03-03 12:00"),
        )

        payload = record.to_payload()

        assert payload["status"] == "FREE_NOW"
        assert payload["expires_at"].startswith("2025-03-03T12:00:00")
        assert PresenceOverride.from_payload("a", payload) == record
