"""Wiring of the sync stack for one CLI invocation."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from recordsync.client.api import HTTPBlobStore, HTTPClient, HTTPRecordSource
from recordsync.client.cache import CacheStore
from recordsync.client.cli.config import (
    get_cache_path,
    get_server_config,
    get_sync_settings,
    load_config,
)
from recordsync.client.connectivity import HTTPConnectivityMonitor
from recordsync.client.kvstore import SQLiteKeyValueStore
from recordsync.client.sync import RecordActions, SyncCoordinator
from recordsync.client.view_state import ViewStateStore


def get_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for the HTTP client (None selects the network default)."""
    return None


@asynccontextmanager
async def open_actions() -> AsyncIterator[RecordActions]:
    """Build RecordActions over the configured server and local cache."""
    config = load_config()
    server_config = get_server_config(config)
    settings = get_sync_settings(config)

    client = HTTPClient(server_config, transport=get_transport())
    kv = SQLiteKeyValueStore(get_cache_path())
    try:
        coordinator = SyncCoordinator(
            connectivity=HTTPConnectivityMonitor(server_config, client.http),
            cache=CacheStore(kv, ttl=settings.cache_ttl),
            remote=HTTPRecordSource(client),
            blobs=HTTPBlobStore(client),
            settings=settings,
        )
        yield RecordActions(coordinator, ViewStateStore())
    finally:
        await client.aclose()
        kv.close()
