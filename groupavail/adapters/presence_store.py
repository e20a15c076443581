"""
Presence stores: one expiring override per person, last write wins.

Expiry is lazy. A record whose ``expires_at`` has passed is treated as
absent by whichever read touches it next, whether or not the backend has
physically removed it yet.

When the backend is unreachable, reads degrade to "no presence for anyone"
(flagged via ``PresenceSnapshot.degraded``) while writes raise
StoreUnavailable.
"""

import json
import logging
import math
from typing import Callable, Dict, List, Optional, Sequence

import redis.asyncio as redis
from pendulum import DateTime
from redis.exceptions import RedisError

from ..domain.exceptions import StoreUnavailable
from ..domain.models import PresenceOverride, PresenceSnapshot, PresenceStatus, utc_now

logger = logging.getLogger(__name__)


class InMemoryPresenceStore:
    """
    Dict-backed presence store with an injectable clock.

    Setting ``available`` to False simulates an unreachable backend.
    """

    def __init__(self, clock: Callable[[], DateTime] = utc_now):
        self._records: Dict[str, PresenceOverride] = {}
        self._clock = clock
        self.available = True

    async def set(
        self,
        person_id: str,
        status: PresenceStatus,
        expires_at: Optional[DateTime] = None,
    ) -> PresenceOverride:
        self._ensure_available()
        record = PresenceOverride(
            person_id=person_id,
            status=status,
            updated_at=self._clock(),
            expires_at=expires_at,
        )
        self._records[person_id] = record
        return record

    async def get(self, person_id: str) -> Optional[PresenceOverride]:
        if not self.available:
            logger.warning("Presence store unavailable; reading %s as no presence", person_id)
            return None
        return self._live_record(person_id, self._clock())

    async def get_many(self, person_ids: Sequence[str]) -> PresenceSnapshot:
        if not self.available:
            logger.warning("Presence store unavailable; reading %d people as no presence", len(person_ids))
            return PresenceSnapshot(degraded=True)

        now = self._clock()
        snapshot = PresenceSnapshot()
        for person_id in person_ids:
            record = self._live_record(person_id, now)
            if record is not None:
                snapshot[person_id] = record
        return snapshot

    async def clear(self, person_id: str) -> None:
        self._ensure_available()
        self._records.pop(person_id, None)

    def _live_record(self, person_id: str, now: DateTime) -> Optional[PresenceOverride]:
        record = self._records.get(person_id)
        if record is None:
            return None
        if not record.is_live(now):
            del self._records[person_id]
            return None
        return record

    def _ensure_available(self) -> None:
        if not self.available:
            raise StoreUnavailable("Presence store is unavailable")


class RedisPresenceStore:
    """
    Presence store backed by Redis string keys ``<prefix><person_id>``.

    Values are JSON ``{status, expires_at, updated_at}``. Expiring records
    also get a Redis TTL so the server reclaims them without a sweep.
    """

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "presence:",
        clock: Callable[[], DateTime] = utc_now,
    ):
        self.client = client
        self.key_prefix = key_prefix
        self._clock = clock

    def _key(self, person_id: str) -> str:
        return f"{self.key_prefix}{person_id}"

    async def set(
        self,
        person_id: str,
        status: PresenceStatus,
        expires_at: Optional[DateTime] = None,
    ) -> PresenceOverride:
        """
        Write (or overwrite) a person's presence.

        A past ``expires_at`` is accepted; the record is stored with the
        minimum TTL and reads already treat it as absent.

        Raises:
            StoreUnavailable: If Redis cannot be reached
        """
        now = self._clock()
        record = PresenceOverride(
            person_id=person_id,
            status=status,
            updated_at=now,
            expires_at=expires_at,
        )
        payload = json.dumps(record.to_payload())

        try:
            if expires_at is None:
                await self.client.set(self._key(person_id), payload)
            else:
                ttl_ms = math.ceil((expires_at - now).total_seconds() * 1000)
                await self.client.set(self._key(person_id), payload, px=max(ttl_ms, 1))
        except RedisError as exc:
            raise StoreUnavailable(f"Failed to write presence for {person_id}: {exc}") from exc

        return record

    async def get(self, person_id: str) -> Optional[PresenceOverride]:
        key = self._key(person_id)
        try:
            raw = await self.client.get(key)
        except RedisError as exc:
            logger.warning("Presence read for %s degraded to no presence: %s", person_id, exc)
            return None

        record = self._decode(person_id, raw)
        if record is None:
            return None

        if not record.is_live(self._clock()):
            try:
                await self.client.delete(key)
            except RedisError as exc:
                logger.debug("Could not delete stale presence %s: %s", key, exc)
            return None

        return record

    async def get_many(self, person_ids: Sequence[str]) -> PresenceSnapshot:
        ids: List[str] = list(person_ids)
        if not ids:
            return PresenceSnapshot()

        try:
            values = await self.client.mget([self._key(person_id) for person_id in ids])
        except RedisError as exc:
            logger.warning(
                "Bulk presence read for %d people degraded to no presence: %s", len(ids), exc
            )
            return PresenceSnapshot(degraded=True)

        now = self._clock()
        snapshot = PresenceSnapshot()
        for person_id, raw in zip(ids, values):
            record = self._decode(person_id, raw)
            if record is not None and record.is_live(now):
                snapshot[person_id] = record
        return snapshot

    async def clear(self, person_id: str) -> None:
        """
        Raises:
            StoreUnavailable: If Redis cannot be reached
        """
        try:
            await self.client.delete(self._key(person_id))
        except RedisError as exc:
            raise StoreUnavailable(f"Failed to clear presence for {person_id}: {exc}") from exc

    @staticmethod
    def _decode(person_id: str, raw: Optional[str]) -> Optional[PresenceOverride]:
        if not raw:
            return None
        try:
            return PresenceOverride.from_payload(person_id, json.loads(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Ignoring undecodable presence for %s: %s", person_id, exc)
            return None
