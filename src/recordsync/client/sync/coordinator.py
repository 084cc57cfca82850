"""Sync coordinator for offline-resilient record operations.

This module provides:
- SyncCoordinator: Resolves one logical operation (fetch-list, create,
  update, delete) against connectivity, cache and remote source
- CoordinatorStats: Operation counters

Every operation samples connectivity first. Decision order:

    | Operation  | Connected | Outcome                                         |
    |------------|-----------|-------------------------------------------------|
    | fetch_list | no        | fresh cache -> records (offline), else          |
    |            |           | NoConnectivityError (stale data never served)   |
    | fetch_list | yes       | remote list -> write-through cache -> records;  |
    |            |           | remote failure -> RemoteError                   |
    | mutation   | no        | NoConnectivityError (never queued)              |
    | mutation   | yes       | update/delete check existence (NotFound), then  |
    |            |           | attachments upload, then the record write       |

Blobs are only ever deleted once no record references them any more: after
a successful update (removed attachments), after a successful delete, or
when an upload batch failed before any record write.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from recordsync.client.connectivity import probe_connectivity
from recordsync.client.sync.attachments import delete_blobs, upload_attachments
from recordsync.client.sync.types import (
    FetchResult,
    NoConnectivityError,
    RecordNotFoundError,
    RemoteError,
)
from recordsync.core.config import SyncSettings

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from recordsync.client.cache import CacheStore
    from recordsync.client.connectivity import ConnectivityMonitor
    from recordsync.client.sync.types import BlobStore, RemoteDataSource
    from recordsync.core.records import (
        FilterSpec,
        NewAttachment,
        Record,
        RecordInput,
        RecordUpdate,
    )

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CoordinatorStats:
    """Statistics for the coordinator."""

    fetches: int = 0
    cache_hits: int = 0
    creates: int = 0
    updates: int = 0
    deletes: int = 0
    offline_rejections: int = 0
    remote_errors: int = 0
    shared_fetches: int = 0


class SyncCoordinator:
    """Central orchestrator for record operations.

    The coordinator holds no record state of its own. Callers apply the
    outcome to a ViewStateStore (see RecordActions).

    Usage:
        coordinator = SyncCoordinator(
            connectivity=HTTPConnectivityMonitor(config),
            cache=CacheStore(SQLiteKeyValueStore(path)),
            remote=HTTPRecordSource(client),
            blobs=HTTPBlobStore(client),
        )
        result = await coordinator.fetch_list(FilterSpec(resolved=False))
    """

    def __init__(
        self,
        connectivity: ConnectivityMonitor,
        cache: CacheStore,
        remote: RemoteDataSource,
        blobs: BlobStore,
        settings: SyncSettings | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            connectivity: Reachability monitor, sampled per operation.
            cache: Per-filter cache of list results.
            remote: Remote data source (source of truth).
            blobs: Blob store for attachments.
            settings: Sync settings (blob prefix, in-flight dedupe).
        """
        self._connectivity = connectivity
        self._cache = cache
        self._remote = remote
        self._blobs = blobs
        self._settings = settings or SyncSettings()

        # Filter cache key -> in-flight remote fetch (only with dedupe_inflight)
        self._inflight: dict[str, asyncio.Task[tuple[Record, ...]]] = {}

        self._stats = CoordinatorStats()

    @property
    def stats(self) -> CoordinatorStats:
        """Get coordinator statistics."""
        return self._stats

    @property
    def cache(self) -> CacheStore:
        """The cache this coordinator writes through to."""
        return self._cache

    # === Reads ===

    async def fetch_list(self, filters: FilterSpec) -> FetchResult:
        """Fetch records matching filters.

        Raises:
            NoConnectivityError: Offline and no fresh cached list.
            RemoteError: Online but the remote call failed.
        """
        self._stats.fetches += 1

        if not await probe_connectivity(self._connectivity):
            return await self._fetch_offline(filters)

        if self._settings.dedupe_inflight:
            records = await self._fetch_shared(filters)
        else:
            records = await self._fetch_remote(filters)
        return FetchResult(records=records, is_offline=False)

    async def _fetch_offline(self, filters: FilterSpec) -> FetchResult:
        envelope = await self._cache.get(filters)
        if envelope is None:
            self._stats.offline_rejections += 1
            raise NoConnectivityError(
                "No internet connection and no cached records available"
            )
        if not self._cache.is_fresh(envelope):
            self._stats.offline_rejections += 1
            logger.info(
                "Cached records are %.0fs old (ttl %.0fs), refusing to serve offline",
                envelope.age(self._cache.now()),
                self._cache.ttl,
            )
            raise NoConnectivityError(
                "No internet connection and the cached records have expired"
            )

        self._stats.cache_hits += 1
        logger.debug("Serving %d cached records offline", len(envelope.data))
        return FetchResult(records=envelope.data, is_offline=True)

    async def _fetch_remote(self, filters: FilterSpec) -> tuple[Record, ...]:
        records = tuple(await self._call("fetch records", self._remote.list(filters)))
        await self._cache.put(filters, records)
        logger.info("Fetched %d records", len(records))
        return records

    async def _fetch_shared(self, filters: FilterSpec) -> tuple[Record, ...]:
        """Join an in-flight fetch for the same filter, or start one."""
        key = filters.cache_key()
        task = self._inflight.get(key)
        if task is not None:
            self._stats.shared_fetches += 1
            logger.debug("Joining in-flight fetch for %s", key)
            return await task

        task = asyncio.ensure_future(self._fetch_remote(filters))
        self._inflight[key] = task
        try:
            return await task
        finally:
            self._inflight.pop(key, None)

    # === Mutations ===

    async def create(self, data: RecordInput) -> Record:
        """Create a record, uploading its attachments first.

        Raises:
            NoConnectivityError: Offline.
            RemoteError: An upload or the record write failed.
        """
        await self._require_connectivity("create record")

        urls = await self._upload(data.attachments)
        record = await self._call(
            "create record", self._remote.create(data.to_payload(urls))
        )

        self._stats.creates += 1
        logger.info("Created record %s", record.id)
        return record

    async def update(self, record_id: str, changes: RecordUpdate) -> Record:
        """Update a record.

        Removed attachments are deleted from blob storage only after the
        record update succeeded.

        Raises:
            NoConnectivityError: Offline.
            RecordNotFoundError: The record no longer exists.
            RemoteError: An upload or the record write failed.
        """
        await self._require_connectivity("update record")
        existing = await self._require_existing(record_id)

        new_urls = await self._upload(changes.attachments)
        payload = changes.to_payload(existing.attachments, new_urls)
        record = await self._call(
            "update record", self._remote.update(record_id, payload)
        )

        unlinked = [
            url for url in changes.removed_attachments
            if url in existing.attachments and url not in record.attachments
        ]
        if unlinked:
            await delete_blobs(self._blobs, unlinked)

        self._stats.updates += 1
        logger.info("Updated record %s", record_id)
        return record

    async def delete(self, record_id: str) -> None:
        """Delete a record, then its attachment blobs.

        Raises:
            NoConnectivityError: Offline.
            RecordNotFoundError: The record no longer exists.
            RemoteError: The delete failed.
        """
        await self._require_connectivity("delete record")
        existing = await self._require_existing(record_id)

        await self._call("delete record", self._remote.delete(record_id))
        if existing.attachments:
            await delete_blobs(self._blobs, list(existing.attachments))

        self._stats.deletes += 1
        logger.info("Deleted record %s", record_id)

    async def clear_cache(self, filters: FilterSpec | None = None) -> None:
        """Invalidate the cached list for filters, or all cached lists."""
        await self._cache.clear(filters)

    # === Helpers ===

    async def _require_connectivity(self, operation: str) -> None:
        if not await probe_connectivity(self._connectivity):
            self._stats.offline_rejections += 1
            logger.info("Rejecting %s: offline", operation)
            raise NoConnectivityError("No internet connection available")

    async def _require_existing(self, record_id: str) -> Record:
        existing = await self._call("look up record", self._remote.get(record_id))
        if existing is None:
            raise RecordNotFoundError(record_id)
        return existing

    async def _upload(self, attachments: tuple[NewAttachment, ...]) -> list[str]:
        try:
            return await upload_attachments(
                self._blobs, attachments, self._settings.blob_prefix
            )
        except RemoteError:
            self._stats.remote_errors += 1
            raise

    async def _call(self, operation: str, call: Awaitable[T]) -> T:
        """Await a remote call, mapping failures to the sync taxonomy."""
        try:
            return await call
        except (RecordNotFoundError, RemoteError):
            raise
        except Exception as e:
            self._stats.remote_errors += 1
            logger.error("Failed to %s: %s", operation, e)
            raise RemoteError(f"Failed to {operation}: {e}") from e
