"""
Domain layer - Pure availability logic without external dependencies.
"""

from .aggregator import GroupAggregator
from .exceptions import (
    AdapterUnavailable,
    AvailabilityError,
    InvalidStatus,
    InvalidWindow,
    StoreUnavailable,
)
from .models import (
    BusyInterval,
    BusyKind,
    CommonFreeSlot,
    GroupAvailability,
    HeatmapEntry,
    MeetingWindow,
    PresenceOverride,
    PresenceSnapshot,
    PresenceStatus,
    SlotReason,
    SlotVerdict,
    TimeWindow,
)
from .resolver import AvailabilityResolver
from .slot_grid import SlotGrid

__all__ = [
    "AdapterUnavailable",
    "AvailabilityError",
    "AvailabilityResolver",
    "BusyInterval",
    "BusyKind",
    "CommonFreeSlot",
    "GroupAggregator",
    "GroupAvailability",
    "HeatmapEntry",
    "InvalidStatus",
    "InvalidWindow",
    "MeetingWindow",
    "PresenceOverride",
    "PresenceSnapshot",
    "PresenceStatus",
    "SlotGrid",
    "SlotReason",
    "SlotVerdict",
    "StoreUnavailable",
    "TimeWindow",
]
