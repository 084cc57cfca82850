"""Record actions: apply coordinator outcomes to the view state.

RecordActions is the single writer of remote outcomes into a ViewStateStore.
Mutations are applied only after the remote side confirmed them. Every
error is re-raised after its transition has been applied, so callers can
still react to it (e.g. show a dialog).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from recordsync.client.sync.types import NoConnectivityError, SyncError

if TYPE_CHECKING:
    from recordsync.client.sync.coordinator import SyncCoordinator
    from recordsync.client.sync.types import FetchResult
    from recordsync.client.view_state import ViewStateStore
    from recordsync.core.records import FilterSpec, Record, RecordInput, RecordUpdate

logger = logging.getLogger(__name__)


class RecordActions:
    """Runs sync operations and records their outcome in a view store."""

    def __init__(self, coordinator: SyncCoordinator, store: ViewStateStore) -> None:
        self._coordinator = coordinator
        self._store = store

    @property
    def store(self) -> ViewStateStore:
        """The view store updated by these actions."""
        return self._store

    async def fetch_records(self, filters: FilterSpec | None = None) -> FetchResult:
        """Load records into the view.

        Args:
            filters: Filters to apply, or None for the store's active filters.
        """
        if filters is None:
            filters = self._store.snapshot.filters
        self._store.begin_fetch()
        try:
            result = await self._coordinator.fetch_list(filters)
        except SyncError as e:
            if isinstance(e, NoConnectivityError):
                self._store.set_offline(True)
            self._store.fetch_failed(str(e))
            raise
        self._store.fetch_succeeded(result.records, result.is_offline)
        return result

    async def create_record(self, data: RecordInput) -> Record:
        """Create a record and prepend it to the view."""
        try:
            record = await self._coordinator.create(data)
        except SyncError as e:
            self._mutation_failed(e)
            raise
        self._confirmed()
        self._store.record_created(record)
        return record

    async def update_record(self, record_id: str, changes: RecordUpdate) -> Record:
        """Update a record and replace it in the view."""
        try:
            record = await self._coordinator.update(record_id, changes)
        except SyncError as e:
            self._mutation_failed(e)
            raise
        self._confirmed()
        self._store.record_updated(record)
        return record

    async def delete_record(self, record_id: str) -> None:
        """Delete a record and remove it from the view."""
        try:
            await self._coordinator.delete(record_id)
        except SyncError as e:
            self._mutation_failed(e)
            raise
        self._confirmed()
        self._store.record_deleted(record_id)

    async def clear_cache(self, filters: FilterSpec | None = None) -> None:
        """Invalidate cached lists. The view itself is left as is."""
        await self._coordinator.clear_cache(filters)

    def _confirmed(self) -> None:
        # A confirmed mutation reached the remote store
        if self._store.snapshot.is_offline:
            self._store.set_offline(False)

    def _mutation_failed(self, error: SyncError) -> None:
        logger.info("Mutation failed: %s", error)
        if isinstance(error, NoConnectivityError):
            self._store.set_offline(True)
        self._store.mutation_failed(str(error))
