"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import (
    AvailabilityService,
    GroupReport,
    IntervalSourceProtocol,
    PresenceReaderProtocol,
)
from .presence import (
    PresenceChannelProtocol,
    PresencePropagator,
    PresenceService,
    PresenceStoreProtocol,
    PresenceUpdate,
    presence_changed_message,
)

__all__ = [
    "AvailabilityService",
    "GroupReport",
    "IntervalSourceProtocol",
    "PresenceChannelProtocol",
    "PresencePropagator",
    "PresenceReaderProtocol",
    "PresenceService",
    "PresenceStoreProtocol",
    "PresenceUpdate",
    "presence_changed_message",
]
