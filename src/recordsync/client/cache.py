"""Time-bounded cache of list results.

This module provides:
- CacheEnvelope: Timestamped snapshot of the records returned for a filter
- CacheStore: One envelope per filter key on top of a KeyValueStore

Persistence failures never escape the cache: they are wrapped in CacheError,
logged and swallowed. A failed read behaves like a cache miss and a failed
write leaves the previous envelope (if any) in place.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from recordsync.client.sync.types import CacheError
from recordsync.core.config import DEFAULT_CACHE_TTL
from recordsync.core.records import FilterSpec, Record

if TYPE_CHECKING:
    from collections.abc import Iterable

    from recordsync.client.kvstore import KeyValueStore

logger = logging.getLogger(__name__)

# Prefix of every cache key in the key-value store
CACHE_KEY_PREFIX = "records_cache:"


def cache_key(filters: FilterSpec) -> str:
    """Key-value store key for a filter."""
    return CACHE_KEY_PREFIX + filters.cache_key()


@dataclass(frozen=True)
class CacheEnvelope:
    """Snapshot of the last successful remote fetch for one filter.

    Attributes:
        data: Records in the order they were fetched.
        stored_at: Unix timestamp of the fetch.
    """

    data: tuple[Record, ...]
    stored_at: float

    def age(self, now: float) -> float:
        """Seconds elapsed since the envelope was stored."""
        return now - self.stored_at

    def is_fresh(self, now: float, ttl: float = DEFAULT_CACHE_TTL) -> bool:
        """Check if the envelope may still be served."""
        return self.age(now) < ttl

    def to_bytes(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(
            {
                "data": [r.to_dict() for r in self.data],
                "stored_at": self.stored_at,
            }
        ).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes) -> CacheEnvelope:
        """Deserialize from JSON bytes.

        Raises:
            ValueError, KeyError, TypeError: If the payload is malformed.
        """
        payload = json.loads(raw.decode("utf-8"))
        return cls(
            data=tuple(Record.from_dict(r) for r in payload["data"]),
            stored_at=float(payload["stored_at"]),
        )


class CacheStore:
    """Per-filter cache of list results.

    Usage:
        cache = CacheStore(SQLiteKeyValueStore(path))
        await cache.put(filters, records)
        envelope = await cache.get(filters)
        if envelope and cache.is_fresh(envelope):
            ...
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Persistent key-value store.
            ttl: Seconds an envelope stays fresh.
            clock: Returns the current Unix timestamp.
        """
        self._store = store
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> float:
        """Freshness window in seconds."""
        return self._ttl

    def now(self) -> float:
        """Current time according to the cache clock."""
        return self._clock()

    def is_fresh(self, envelope: CacheEnvelope) -> bool:
        """Check an envelope against the cache TTL and clock."""
        return envelope.is_fresh(self._clock(), self._ttl)

    async def get(self, filters: FilterSpec) -> CacheEnvelope | None:
        """Return the envelope for filters, or None.

        A read or decode failure is logged and reported as a miss.
        """
        key = cache_key(filters)
        try:
            raw = await self._store.read(key)
        except Exception as e:
            self._log_failure(CacheError(f"Cache read failed for {key}: {e}"))
            return None
        if raw is None:
            return None
        try:
            return CacheEnvelope.from_bytes(raw)
        except (ValueError, KeyError, TypeError) as e:
            self._log_failure(CacheError(f"Corrupt cache entry {key}: {e}"))
            return None

    async def put(self, filters: FilterSpec, records: Iterable[Record]) -> CacheEnvelope:
        """Store records for filters, replacing any previous envelope.

        Returns:
            The envelope that was written (or attempted).
        """
        envelope = CacheEnvelope(data=tuple(records), stored_at=self._clock())
        key = cache_key(filters)
        try:
            await self._store.write(key, envelope.to_bytes())
            logger.debug("Cached %d records under %s", len(envelope.data), key)
        except Exception as e:
            self._log_failure(CacheError(f"Cache write failed for {key}: {e}"))
        return envelope

    async def clear(self, filters: FilterSpec | None = None) -> None:
        """Remove the envelope for filters, or every envelope if None."""
        try:
            if filters is not None:
                await self._store.remove(cache_key(filters))
                return
            keys = await self._store.keys(CACHE_KEY_PREFIX)
            for key in keys:
                await self._store.remove(key)
            logger.info("Cleared %d cached record lists", len(keys))
        except Exception as e:
            self._log_failure(CacheError(f"Cache clear failed: {e}"))

    @staticmethod
    def _log_failure(error: CacheError) -> None:
        logger.warning("%s", error)
