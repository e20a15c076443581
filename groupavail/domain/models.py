"""
Domain models for busy intervals, presence overrides and slot verdicts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import DateTime

from .exceptions import InvalidStatus, InvalidWindow


class BusyKind(str, Enum):
    """How strongly a calendar entry blocks its owner."""
    HARD = "HARD"
    SOFT = "SOFT"  # transparent / tentative entry


class PresenceStatus(str, Enum):
    """Closed vocabulary of operator-asserted presence states."""
    FREE = "FREE"
    FREE_NOW = "FREE_NOW"
    BUSY = "BUSY"
    AWAY = "AWAY"

    @classmethod
    def parse(cls, value: "str | PresenceStatus") -> "PresenceStatus":
        """
        Convert a raw status string into a PresenceStatus.

        Raises:
            InvalidStatus: If the value is not part of the vocabulary
        """
        if isinstance(value, PresenceStatus):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(status.value for status in cls)
            raise InvalidStatus(
                f"Invalid status {value!r}. Must be one of: {allowed}"
            ) from None


class SlotReason(str, Enum):
    """Explains why a slot verdict came out free or busy."""
    FREE = "free"
    CALENDAR_EVENT = "calendar_event"
    FREE_NOW = "free_now"
    PRESENCE_OVERRIDE = "presence_override"
    PRESENCE_BUSY = "presence_busy"


def utc_now() -> DateTime:
    return pendulum.now("UTC")


def to_utc(value: DateTime) -> DateTime:
    """Normalize an aware datetime to UTC."""
    return pendulum.instance(value).in_timezone("UTC")


def parse_instant(value: str) -> DateTime:
    """
    Parse an ISO 8601 string into a UTC pendulum DateTime.

    Naive strings are interpreted as UTC.

    Raises:
        ValueError: If the string is not a datetime
    """
    parsed = pendulum.parse(value, tz="UTC")
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value}")
    return parsed.in_timezone("UTC")


def format_instant(value: Optional[DateTime]) -> Optional[str]:
    """Render an instant as an ISO 8601 UTC string (None passes through)."""
    if value is None:
        return None
    return to_utc(value).to_iso8601_string()


@dataclass(frozen=True)
class BusyInterval:
    """
    A half-open busy interval [start_utc, end_utc) taken from a calendar.

    Invariant: start_utc must be before end_utc.
    """
    person_id: str
    start_utc: DateTime
    end_utc: DateTime
    busy_kind: BusyKind = BusyKind.HARD

    def __post_init__(self):
        if self.start_utc >= self.end_utc:
            raise ValueError(
                f"Start time {self.start_utc} must be before end time {self.end_utc}"
            )

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        """Strict half-open overlap test against [start, end)."""
        return self.start_utc < end and self.end_utc > start


@dataclass(frozen=True)
class PresenceOverride:
    """
    A person's current presence record.

    ``expires_at`` of None means the record never expires on its own.
    """
    person_id: str
    status: PresenceStatus
    updated_at: DateTime
    expires_at: Optional[DateTime] = None

    def is_live(self, now: DateTime) -> bool:
        """A record stays live up to and including its expiry instant."""
        return self.expires_at is None or self.expires_at >= now

    def to_payload(self) -> Dict[str, Any]:
        """Serialize the record body (the person id lives in the key)."""
        return {
            "status": self.status.value,
            "expires_at": format_instant(self.expires_at),
            "updated_at": format_instant(self.updated_at),
        }

    @classmethod
    def from_payload(cls, person_id: str, payload: Dict[str, Any]) -> "PresenceOverride":
        """
        Rebuild a record from its stored body.

        Raises:
            KeyError: If a required field is missing
            ValueError: If a field cannot be parsed
        """
        expires_at = payload.get("expires_at")
        return cls(
            person_id=person_id,
            status=PresenceStatus.parse(payload["status"]),
            updated_at=parse_instant(payload["updated_at"]),
            expires_at=parse_instant(expires_at) if expires_at else None,
        )


@dataclass(frozen=True)
class TimeWindow:
    """
    The query window, partitioned into slots of ``resolution_minutes``.

    Both bounds are stored in UTC.
    """
    start_utc: DateTime
    end_utc: DateTime
    resolution_minutes: int = 15

    def __post_init__(self):
        if self.resolution_minutes <= 0:
            raise InvalidWindow(
                f"resolution_minutes must be greater than zero, got {self.resolution_minutes}"
            )
        if self.end_utc <= self.start_utc:
            raise InvalidWindow(
                f"Window end {self.end_utc} must be after window start {self.start_utc}"
            )
        object.__setattr__(self, "start_utc", to_utc(self.start_utc))
        object.__setattr__(self, "end_utc", to_utc(self.end_utc))

    @classmethod
    def spanning_days(
        cls,
        start: DateTime,
        days: int,
        resolution_minutes: int = 15,
    ) -> "TimeWindow":
        """Build a window of ``days`` whole days beginning at ``start``."""
        return cls(
            start_utc=start,
            end_utc=start.add(days=days),
            resolution_minutes=resolution_minutes,
        )

    def duration_minutes(self) -> float:
        """Return the window length in minutes."""
        return (self.end_utc - self.start_utc).total_seconds() / 60


@dataclass(frozen=True)
class SlotVerdict:
    """Free/busy verdict for one person in one slot."""
    free: bool
    reason: SlotReason


@dataclass(frozen=True)
class CommonFreeSlot:
    """A slot at which every person in the group is free."""
    start: DateTime
    end: DateTime
    free_count: int
    total: int


@dataclass(frozen=True)
class HeatmapEntry:
    """Per-slot density of free people."""
    start: DateTime
    end: DateTime
    free_count: int
    total: int
    percentage: float


@dataclass(frozen=True)
class MeetingWindow:
    """A candidate meeting window where the whole group is free."""
    start: DateTime
    end: DateTime
    duration_minutes: int
    participants: int


class PresenceSnapshot(dict):
    """
    Result of a bulk presence read: person id -> live override.

    ``degraded`` is True when the backend could not be reached and the
    mapping is empty for that reason rather than because nobody has an
    override.
    """

    def __init__(self, *args, degraded: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.degraded = degraded


@dataclass
class GroupAvailability:
    """Per-person verdicts for one window plus read diagnostics."""
    window: TimeWindow
    verdicts: Dict[str, List[SlotVerdict]] = field(default_factory=dict)
    presence_degraded: bool = False

    @property
    def person_ids(self) -> List[str]:
        return list(self.verdicts.keys())
