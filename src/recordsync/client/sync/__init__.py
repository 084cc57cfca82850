"""Offline-resilient record sync.

Architecture:
    RecordActions → SyncCoordinator → (ConnectivityMonitor, CacheStore,
                                       RemoteDataSource, BlobStore)
                  → ViewStateStore

Components:
- **SyncCoordinator**: Applies the per-operation decision order
  (connectivity, cache, remote) and the attachment upload fan-out
- **RecordActions**: Applies coordinator outcomes to the view state
- **attachments**: Concurrent uploads and blob cleanup
- **types**: Error taxonomy, FetchResult and collaborator protocols
"""

from recordsync.client.sync.actions import RecordActions
from recordsync.client.sync.attachments import (
    blob_name,
    delete_blobs,
    upload_attachments,
)
from recordsync.client.sync.coordinator import CoordinatorStats, SyncCoordinator
from recordsync.client.sync.types import (
    BlobStore,
    CacheError,
    FetchResult,
    NoConnectivityError,
    RecordNotFoundError,
    RemoteDataSource,
    RemoteError,
    SyncError,
)

__all__ = [
    # Coordinator
    "CoordinatorStats",
    "SyncCoordinator",
    # Actions
    "RecordActions",
    # Attachments
    "blob_name",
    "delete_blobs",
    "upload_attachments",
    # Types
    "BlobStore",
    "CacheError",
    "FetchResult",
    "NoConnectivityError",
    "RecordNotFoundError",
    "RemoteDataSource",
    "RemoteError",
    "SyncError",
]
