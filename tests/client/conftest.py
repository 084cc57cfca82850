"""Shared fakes and fixtures for client tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from recordsync.client.cache import CacheStore
from recordsync.client.connectivity import StaticConnectivityMonitor
from recordsync.client.kvstore import MemoryKeyValueStore
from recordsync.client.sync import SyncCoordinator
from recordsync.core.records import FilterSpec, Record, parse_datetime

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def make_record(
    record_id: str = "rec-1",
    days_ago: int = 0,
    category: str = "checkup",
    **kwargs: Any,
) -> Record:
    """Build a record dated days_ago before T0."""
    return Record(
        id=record_id,
        date=T0 - timedelta(days=days_ago),
        category=category,
        created_at=T0,
        updated_at=T0,
        **kwargs,
    )


class FakeClock:
    """Manually advanced clock returning Unix timestamps."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRemote:
    """In-memory RemoteDataSource recording every call."""

    def __init__(self, records: list[Record] | None = None) -> None:
        self.records: dict[str, Record] = {r.id: r for r in records or []}
        self.calls: list[tuple[str, Any]] = []
        self.fail_on: set[str] = set()
        self.list_delay = 0.0
        self._next_id = 1

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise ConnectionError(f"{operation} unavailable")

    async def list(self, filters: FilterSpec) -> list[Record]:
        self.calls.append(("list", filters))
        if self.list_delay:
            await asyncio.sleep(self.list_delay)
        self._maybe_fail("list")
        matching = [r for r in self.records.values() if filters.matches(r)]
        return sorted(matching, key=lambda r: r.date, reverse=True)

    async def get(self, record_id: str) -> Record | None:
        self.calls.append(("get", record_id))
        self._maybe_fail("get")
        return self.records.get(record_id)

    async def create(self, payload: dict[str, Any]) -> Record:
        self.calls.append(("create", payload))
        self._maybe_fail("create")
        record_id = f"new-{self._next_id}"
        self._next_id += 1
        record = Record(
            id=record_id,
            date=parse_datetime(payload["date"]),
            category=payload["category"],
            severity=payload.get("severity"),
            resolved=payload.get("resolved", False),
            resolved_at=parse_datetime(payload.get("resolved_at")),
            attachments=tuple(payload.get("attachments", ())),
            fields=payload.get("fields", {}),
            created_at=T0,
            updated_at=T0,
        )
        self.records[record_id] = record
        return record

    async def update(self, record_id: str, changes: dict[str, Any]) -> Record:
        self.calls.append(("update", (record_id, changes)))
        self._maybe_fail("update")
        current = self.records[record_id]
        values = dict(changes)
        for name in ("date", "resolved_at"):
            if name in values:
                values[name] = parse_datetime(values[name])
        if "attachments" in values:
            values["attachments"] = tuple(values["attachments"])
        record = replace(current, **values)
        self.records[record_id] = record
        return record

    async def delete(self, record_id: str) -> None:
        self.calls.append(("delete", record_id))
        self._maybe_fail("delete")
        del self.records[record_id]

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


class FakeBlobStore:
    """In-memory BlobStore; uploads whose name contains a failing marker fail."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.failing_names: set[str] = set()
        self.failing_deletes: set[str] = set()

    async def upload(self, content: bytes, name: str) -> str:
        # Let the other uploads of a batch start before this one resolves
        await asyncio.sleep(0)
        if any(marker in name for marker in self.failing_names):
            raise ConnectionError(f"upload of {name} failed")
        url = f"https://blobs.example.com/{name}"
        self.blobs[url] = content
        return url

    async def delete(self, url: str) -> None:
        if url in self.failing_deletes:
            raise ConnectionError(f"delete of {url} failed")
        self.deleted.append(url)
        self.blobs.pop(url, None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def cache(kv: MemoryKeyValueStore, clock: FakeClock) -> CacheStore:
    return CacheStore(kv, clock=clock)


@pytest.fixture
def connectivity() -> StaticConnectivityMonitor:
    return StaticConnectivityMonitor(connected=True)


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote(
        [
            make_record("rec-1", days_ago=1, category="vaccination"),
            make_record("rec-2", days_ago=3, category="illness", severity="high"),
            make_record("rec-3", days_ago=10, category="checkup", resolved=True),
        ]
    )


@pytest.fixture
def blobs() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def coordinator(
    connectivity: StaticConnectivityMonitor,
    cache: CacheStore,
    remote: FakeRemote,
    blobs: FakeBlobStore,
) -> SyncCoordinator:
    return SyncCoordinator(
        connectivity=connectivity,
        cache=cache,
        remote=remote,
        blobs=blobs,
    )


@pytest.fixture
def record_factory() -> Callable[..., Record]:
    return make_record
