"""
Presence writes and their propagation to observers.

A status update is two related but independently failing steps: the store
write (the durable fact) and one broadcast of the change (best-effort
notification). A failed broadcast never rolls back the write and is never
retried here; callers that need guaranteed delivery poll the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.models import (
    PresenceOverride,
    PresenceSnapshot,
    PresenceStatus,
    format_instant,
    to_utc,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_DONE_EARLY_MINUTES = 60


class PresenceStoreProtocol(Protocol):
    """Protocol describing the presence store behaviour needed by the service."""

    async def set(
        self,
        person_id: str,
        status: PresenceStatus,
        expires_at: Optional[DateTime] = None,
    ) -> PresenceOverride:
        """Write a person's presence, replacing any previous record."""

    async def get(self, person_id: str) -> Optional[PresenceOverride]:
        """Return the live override for one person, if any."""

    async def get_many(self, person_ids: Sequence[str]) -> PresenceSnapshot:
        """Return live overrides keyed by person id."""

    async def clear(self, person_id: str) -> None:
        """Remove a person's override."""


class PresenceChannelProtocol(Protocol):
    """Anything that can broadcast a presence-changed message."""

    async def publish(self, message: Dict[str, Any]) -> None:
        """Deliver ``message`` to every current observer."""


def presence_changed_message(record: PresenceOverride) -> Dict[str, Any]:
    """The wire payload observers receive for a presence change."""
    return {
        "person_id": record.person_id,
        "status": record.status.value,
        "expires_at": format_instant(record.expires_at),
        "updated_at": format_instant(record.updated_at),
    }


class PresencePropagator:
    """Publishes each successful presence write exactly once."""

    def __init__(self, channel: PresenceChannelProtocol) -> None:
        self._channel = channel

    async def announce(self, record: PresenceOverride) -> bool:
        """
        Publish ``record`` on the channel.

        Returns:
            True if the publish went out, False if it failed
        """
        try:
            await self._channel.publish(presence_changed_message(record))
        except Exception as exc:
            logger.warning(
                "Presence change for %s stored but not broadcast: %s", record.person_id, exc
            )
            return False
        return True


@dataclass(frozen=True)
class PresenceUpdate:
    """Outcome of a status write."""
    record: PresenceOverride
    published: bool


class PresenceService:
    """
    Validates, stores and announces presence changes.

    Concurrent writes for the same person race freely; the last write to
    reach the store is the live value.
    """

    def __init__(
        self,
        store: PresenceStoreProtocol,
        propagator: PresencePropagator,
        clock: Callable[[], DateTime] = utc_now,
        done_early_minutes: int = DEFAULT_DONE_EARLY_MINUTES,
    ) -> None:
        self._store = store
        self._propagator = propagator
        self._clock = clock
        self.done_early_minutes = done_early_minutes

    async def set_status(
        self,
        person_id: str,
        status: "str | PresenceStatus",
        expires_at: Optional[DateTime] = None,
    ) -> PresenceUpdate:
        """
        Store a new presence for ``person_id`` and broadcast it.

        Raises:
            InvalidStatus: If ``status`` is not a known presence status
            StoreUnavailable: If the store write fails (nothing is published)
        """
        parsed = PresenceStatus.parse(status)
        expiry = to_utc(expires_at) if expires_at is not None else None

        record = await self._store.set(person_id, parsed, expiry)
        logger.info(
            "Presence for %s set to %s (expires %s)",
            person_id,
            parsed.value,
            format_instant(expiry) or "never",
        )

        published = await self._propagator.announce(record)
        return PresenceUpdate(record=record, published=published)

    async def done_early(
        self,
        person_id: str,
        until: Optional[DateTime] = None,
    ) -> PresenceUpdate:
        """Mark a person FREE_NOW until ``until`` (default: one done-early period)."""
        expires_at = until or self._clock().add(minutes=self.done_early_minutes)
        return await self.set_status(person_id, PresenceStatus.FREE_NOW, expires_at)

    async def clear_status(self, person_id: str) -> None:
        """
        Raises:
            StoreUnavailable: If the store cannot be reached
        """
        await self._store.clear(person_id)
        logger.info("Presence for %s cleared", person_id)

    async def get_status(self, person_id: str) -> Optional[PresenceOverride]:
        return await self._store.get(person_id)

    async def get_statuses(self, person_ids: Sequence[str]) -> PresenceSnapshot:
        return await self._store.get_many(person_ids)
