"""Shared types for sync operations.

This module provides:
- SyncError and its subclasses: the error taxonomy of the sync layer
- FetchResult: Outcome of a list fetch
- Protocols for the collaborators consumed by the coordinator
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from recordsync.core.records import FilterSpec, Record


class SyncError(Exception):
    """Base exception for sync errors."""


class NoConnectivityError(SyncError):
    """Disconnected with no usable cache, or a write attempted while offline."""


class RecordNotFoundError(SyncError):
    """Mutation target no longer exists remotely."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class RemoteError(SyncError):
    """The remote call failed for any reason other than a missing record."""


class CacheError(SyncError):
    """Local persistence failure. Logged by the cache, never propagated."""


@dataclass(frozen=True)
class FetchResult:
    """Result of a fetch_list operation.

    Attributes:
        records: Records in the order the source returned them.
        is_offline: True when served from the cache while disconnected.
    """

    records: tuple[Record, ...]
    is_offline: bool


class RemoteDataSource(Protocol):
    """Backing store for records.

    Every method may raise any exception on failure; the coordinator turns
    those into RemoteError.
    """

    async def list(self, filters: FilterSpec) -> list[Record]:
        """List records matching filters, newest first."""
        ...

    async def get(self, record_id: str) -> Record | None:
        """Get a record, or None if it does not exist."""
        ...

    async def create(self, payload: dict[str, Any]) -> Record:
        """Create a record and return it fully hydrated."""
        ...

    async def update(self, record_id: str, changes: dict[str, Any]) -> Record:
        """Apply changes to a record and return it fully hydrated."""
        ...

    async def delete(self, record_id: str) -> None:
        """Delete a record."""
        ...


class BlobStore(Protocol):
    """Storage for attachment content."""

    async def upload(self, content: bytes, name: str) -> str:
        """Store content under name and return its URL."""
        ...

    async def delete(self, url: str) -> None:
        """Delete the blob at url."""
        ...
