"""Tests for SyncCoordinator.

Covers the per-operation decision order:
- fetch_list online: remote list, write-through cache
- fetch_list offline: fresh cache only, stale/absent -> NoConnectivityError
- mutations: fail fast offline, existence check, attachments before record
- blob deletion only after the record no longer references the blob
"""

import asyncio
from datetime import timedelta

import pytest

from recordsync.client.cache import CacheEnvelope, CacheStore
from recordsync.client.connectivity import StaticConnectivityMonitor
from recordsync.client.sync import (
    NoConnectivityError,
    RecordNotFoundError,
    RemoteError,
    SyncCoordinator,
)
from recordsync.core.config import SyncSettings
from recordsync.core.records import FilterSpec, NewAttachment, RecordInput, RecordUpdate


class TestFetchListOnline:
    """Tests for fetch_list while connected."""

    @pytest.mark.asyncio
    async def test_returns_remote_records(self, coordinator, remote) -> None:
        """Should return records from the remote source, not offline."""
        result = await coordinator.fetch_list(FilterSpec())

        assert [r.id for r in result.records] == ["rec-1", "rec-2", "rec-3"]
        assert result.is_offline is False
        assert remote.count("list") == 1

    @pytest.mark.asyncio
    async def test_writes_through_to_cache(self, coordinator, cache, clock) -> None:
        """Cached envelope should equal the returned records."""
        filters = FilterSpec(categories=frozenset({"illness"}))
        before = clock()

        result = await coordinator.fetch_list(filters)

        envelope = await cache.get(filters)
        assert envelope is not None
        assert envelope.data == result.records
        assert before <= envelope.stored_at <= clock()

    @pytest.mark.asyncio
    async def test_cache_is_per_filter(self, coordinator, cache) -> None:
        """Fetching one filter should not populate another filter's entry."""
        await coordinator.fetch_list(FilterSpec(resolved=True))

        assert await cache.get(FilterSpec(resolved=False)) is None
        assert await cache.get(FilterSpec(resolved=True)) is not None

    @pytest.mark.asyncio
    async def test_remote_failure_raises_remote_error(self, coordinator, remote, cache) -> None:
        """A failing remote list should raise RemoteError and leave cache alone."""
        remote.fail_on.add("list")

        with pytest.raises(RemoteError):
            await coordinator.fetch_list(FilterSpec())

        assert await cache.get(FilterSpec()) is None
        assert coordinator.stats.remote_errors == 1

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_previous_envelope(
        self, coordinator, remote, cache
    ) -> None:
        """An earlier envelope should survive a later remote failure."""
        await coordinator.fetch_list(FilterSpec())
        remote.fail_on.add("list")

        with pytest.raises(RemoteError):
            await coordinator.fetch_list(FilterSpec())

        envelope = await cache.get(FilterSpec())
        assert envelope is not None
        assert len(envelope.data) == 3

    @pytest.mark.asyncio
    async def test_online_never_serves_cache(self, coordinator, remote, cache) -> None:
        """While online the remote is always called, even with a fresh envelope."""
        await cache.put(FilterSpec(), [])

        result = await coordinator.fetch_list(FilterSpec())

        assert len(result.records) == 3
        assert remote.count("list") == 1

    @pytest.mark.asyncio
    async def test_failing_cache_does_not_fail_fetch(
        self, connectivity, remote, blobs, clock
    ) -> None:
        """Cache write errors are swallowed; the fetch still succeeds."""

        class BrokenStore:
            async def read(self, key):
                raise OSError("disk gone")

            async def write(self, key, value):
                raise OSError("disk gone")

            async def remove(self, key):
                raise OSError("disk gone")

            async def keys(self, prefix=""):
                raise OSError("disk gone")

        coordinator = SyncCoordinator(
            connectivity=connectivity,
            cache=CacheStore(BrokenStore(), clock=clock),
            remote=remote,
            blobs=blobs,
        )

        result = await coordinator.fetch_list(FilterSpec())
        assert len(result.records) == 3


class TestFetchListOffline:
    """Tests for fetch_list while disconnected."""

    @pytest.mark.asyncio
    async def test_serves_fresh_cache_without_remote_call(
        self, coordinator, connectivity, remote
    ) -> None:
        """Fresh envelope should be served offline without touching remote."""
        online = await coordinator.fetch_list(FilterSpec())
        connectivity.set_connected(False)

        result = await coordinator.fetch_list(FilterSpec())

        assert result.is_offline is True
        assert result.records == online.records
        assert remote.count("list") == 1
        assert coordinator.stats.cache_hits == 1

    @pytest.mark.asyncio
    async def test_absent_cache_raises(self, coordinator, connectivity, remote) -> None:
        """No envelope while offline should raise NoConnectivityError."""
        connectivity.set_connected(False)

        with pytest.raises(NoConnectivityError):
            await coordinator.fetch_list(FilterSpec())
        assert remote.count("list") == 0

    @pytest.mark.asyncio
    async def test_stale_cache_raises(self, coordinator, connectivity, clock) -> None:
        """Stale envelope while offline should raise, never serve stale data."""
        await coordinator.fetch_list(FilterSpec())
        connectivity.set_connected(False)
        clock.advance(10 * 60)

        with pytest.raises(NoConnectivityError):
            await coordinator.fetch_list(FilterSpec())

    @pytest.mark.asyncio
    async def test_ttl_boundary(self, coordinator, connectivity, clock) -> None:
        """Served at 4m59s after storing, refused at 5m01s."""
        await coordinator.fetch_list(FilterSpec())
        connectivity.set_connected(False)

        clock.advance(timedelta(minutes=4, seconds=59).total_seconds())
        result = await coordinator.fetch_list(FilterSpec())
        assert result.is_offline is True
        assert len(result.records) == 3

        clock.advance(2)  # now t0 + 5m01s
        with pytest.raises(NoConnectivityError):
            await coordinator.fetch_list(FilterSpec())

    @pytest.mark.asyncio
    async def test_envelope_exactly_at_ttl_is_stale(
        self, coordinator, connectivity, cache, clock
    ) -> None:
        """Freshness is strictly less than the TTL."""
        await cache.put(FilterSpec(), [])
        connectivity.set_connected(False)
        clock.advance(cache.ttl)

        with pytest.raises(NoConnectivityError):
            await coordinator.fetch_list(FilterSpec())

    @pytest.mark.asyncio
    async def test_other_filter_cache_not_used(self, coordinator, connectivity) -> None:
        """A cached list for one filter does not answer another filter."""
        await coordinator.fetch_list(FilterSpec())
        connectivity.set_connected(False)

        with pytest.raises(NoConnectivityError):
            await coordinator.fetch_list(FilterSpec(resolved=True))

    @pytest.mark.asyncio
    async def test_failing_monitor_counts_as_offline(self, cache, remote, blobs) -> None:
        """A monitor that raises is treated as disconnected."""

        class BrokenMonitor:
            async def currently_connected(self) -> bool:
                raise RuntimeError("no network stack")

        coordinator = SyncCoordinator(BrokenMonitor(), cache, remote, blobs)

        with pytest.raises(NoConnectivityError):
            await coordinator.fetch_list(FilterSpec())
        assert remote.count("list") == 0

    @pytest.mark.asyncio
    async def test_connectivity_sampled_per_operation(
        self, coordinator, connectivity
    ) -> None:
        """Every fetch takes a fresh reading."""
        await coordinator.fetch_list(FilterSpec())
        await coordinator.fetch_list(FilterSpec())

        assert connectivity.probes == 2


class TestClearCache:
    """Tests for cache invalidation through the coordinator."""

    @pytest.mark.asyncio
    async def test_clear_is_idempotent(self, coordinator, cache) -> None:
        """Clearing twice should not fail and leave the entry empty."""
        await coordinator.fetch_list(FilterSpec())

        await coordinator.clear_cache(FilterSpec())
        await coordinator.clear_cache(FilterSpec())

        assert await cache.get(FilterSpec()) is None

    @pytest.mark.asyncio
    async def test_clear_all(self, coordinator, cache) -> None:
        """Clearing without a filter should drop every cached list."""
        await coordinator.fetch_list(FilterSpec())
        await coordinator.fetch_list(FilterSpec(resolved=True))

        await coordinator.clear_cache()

        assert await cache.get(FilterSpec()) is None
        assert await cache.get(FilterSpec(resolved=True)) is None

    @pytest.mark.asyncio
    async def test_offline_after_clear_raises(self, coordinator, connectivity) -> None:
        """A cleared filter cannot be served offline."""
        await coordinator.fetch_list(FilterSpec())
        await coordinator.clear_cache(FilterSpec())
        connectivity.set_connected(False)

        with pytest.raises(NoConnectivityError):
            await coordinator.fetch_list(FilterSpec())


class TestInflightFetches:
    """Tests for overlapping fetches of the same filter."""

    @pytest.mark.asyncio
    async def test_without_dedupe_each_fetch_calls_remote(
        self, coordinator, remote
    ) -> None:
        """By default overlapping fetches each hit the remote."""
        remote.list_delay = 0.01

        await asyncio.gather(
            coordinator.fetch_list(FilterSpec()),
            coordinator.fetch_list(FilterSpec()),
        )

        assert remote.count("list") == 2

    @pytest.mark.asyncio
    async def test_dedupe_shares_one_remote_call(
        self, connectivity, cache, remote, blobs
    ) -> None:
        """With dedupe_inflight, overlapping fetches share one call."""
        remote.list_delay = 0.01
        coordinator = SyncCoordinator(
            connectivity, cache, remote, blobs,
            settings=SyncSettings(dedupe_inflight=True),
        )

        first, second = await asyncio.gather(
            coordinator.fetch_list(FilterSpec()),
            coordinator.fetch_list(FilterSpec()),
        )

        assert remote.count("list") == 1
        assert first.records == second.records
        assert coordinator.stats.shared_fetches == 1

    @pytest.mark.asyncio
    async def test_dedupe_is_per_filter(self, connectivity, cache, remote, blobs) -> None:
        """Different filters are never shared."""
        remote.list_delay = 0.01
        coordinator = SyncCoordinator(
            connectivity, cache, remote, blobs,
            settings=SyncSettings(dedupe_inflight=True),
        )

        await asyncio.gather(
            coordinator.fetch_list(FilterSpec()),
            coordinator.fetch_list(FilterSpec(resolved=True)),
        )

        assert remote.count("list") == 2


class TestCreate:
    """Tests for create."""

    @pytest.mark.asyncio
    async def test_create_returns_hydrated_record(
        self, coordinator, remote, record_factory
    ) -> None:
        """Should return the record as created by the remote."""
        date = record_factory().date
        record = await coordinator.create(
            RecordInput(date=date, category="treatment", fields={"description": "Dewormer"})
        )

        assert record.id in remote.records
        assert record.category == "treatment"
        assert record.description == "Dewormer"
        assert coordinator.stats.creates == 1

    @pytest.mark.asyncio
    async def test_create_offline_fails_fast(
        self, coordinator, connectivity, remote, blobs, record_factory
    ) -> None:
        """Offline create should raise without uploading or writing."""
        connectivity.set_connected(False)

        with pytest.raises(NoConnectivityError):
            await coordinator.create(
                RecordInput(
                    date=record_factory().date,
                    category="treatment",
                    attachments=(NewAttachment("a.png", b"a"),),
                )
            )

        assert remote.count("create") == 0
        assert blobs.blobs == {}
        assert coordinator.stats.offline_rejections == 1

    @pytest.mark.asyncio
    async def test_create_links_uploaded_attachments(
        self, coordinator, blobs, record_factory
    ) -> None:
        """Uploaded URLs should be linked to the new record in order."""
        record = await coordinator.create(
            RecordInput(
                date=record_factory().date,
                category="injury",
                attachments=(
                    NewAttachment("first.png", b"1"),
                    NewAttachment("second.png", b"2"),
                ),
            )
        )

        assert len(record.attachments) == 2
        assert record.attachments[0].endswith("first.png")
        assert record.attachments[1].endswith("second.png")
        assert set(record.attachments) == set(blobs.blobs)

    @pytest.mark.asyncio
    async def test_second_upload_failure_writes_no_record(
        self, coordinator, remote, blobs, record_factory
    ) -> None:
        """One failed upload fails the create and orphans no blob."""
        blobs.failing_names.add("second")
        before = len(remote.records)

        with pytest.raises(RemoteError):
            await coordinator.create(
                RecordInput(
                    date=record_factory().date,
                    category="injury",
                    attachments=(
                        NewAttachment("first.png", b"1"),
                        NewAttachment("second.png", b"2"),
                    ),
                )
            )

        assert remote.count("create") == 0
        assert len(remote.records) == before
        linked = {url for r in remote.records.values() for url in r.attachments}
        assert not any(url.endswith("first.png") for url in linked)
        # The successful upload is rolled back
        assert len(blobs.deleted) == 1
        assert blobs.deleted[0].endswith("first.png")
        assert blobs.blobs == {}

    @pytest.mark.asyncio
    async def test_create_remote_failure_raises_remote_error(
        self, coordinator, remote, record_factory
    ) -> None:
        """A failing record write should raise RemoteError."""
        remote.fail_on.add("create")

        with pytest.raises(RemoteError) as exc_info:
            await coordinator.create(
                RecordInput(date=record_factory().date, category="checkup")
            )
        assert isinstance(exc_info.value.__cause__, ConnectionError)


class TestUpdate:
    """Tests for update."""

    @pytest.mark.asyncio
    async def test_update_applies_changes(self, coordinator, remote) -> None:
        """Should send only the changed columns."""
        record = await coordinator.update("rec-2", RecordUpdate(severity="low"))

        assert record.severity == "low"
        _, (record_id, changes) = remote.calls[-1]
        assert record_id == "rec-2"
        assert changes == {"severity": "low"}

    @pytest.mark.asyncio
    async def test_update_missing_record_raises_not_found(self, coordinator, blobs) -> None:
        """Missing target should raise RecordNotFoundError before uploading."""
        with pytest.raises(RecordNotFoundError) as exc_info:
            await coordinator.update(
                "missing",
                RecordUpdate(attachments=(NewAttachment("a.png", b"a"),)),
            )

        assert exc_info.value.record_id == "missing"
        assert blobs.blobs == {}

    @pytest.mark.asyncio
    async def test_update_offline_fails_fast(self, coordinator, connectivity, remote) -> None:
        """Offline update should raise without any remote call."""
        connectivity.set_connected(False)

        with pytest.raises(NoConnectivityError):
            await coordinator.update("rec-1", RecordUpdate(resolved=True))
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_update_appends_new_attachments(
        self, coordinator, remote, record_factory
    ) -> None:
        """New attachments are appended to the existing ones."""
        remote.records["rec-1"] = record_factory("rec-1", attachments=("https://old/a",))

        record = await coordinator.update(
            "rec-1", RecordUpdate(attachments=(NewAttachment("b.png", b"b"),))
        )

        assert record.attachments[0] == "https://old/a"
        assert record.attachments[1].endswith("b.png")

    @pytest.mark.asyncio
    async def test_removed_attachment_deleted_after_success(
        self, coordinator, remote, blobs, record_factory
    ) -> None:
        """Removed blob is deleted once the update succeeded."""
        remote.records["rec-1"] = record_factory(
            "rec-1", attachments=("https://blobs/keep", "https://blobs/drop")
        )

        record = await coordinator.update(
            "rec-1", RecordUpdate(removed_attachments=("https://blobs/drop",))
        )

        assert record.attachments == ("https://blobs/keep",)
        assert blobs.deleted == ["https://blobs/drop"]

    @pytest.mark.asyncio
    async def test_failed_update_keeps_removed_blob(
        self, coordinator, remote, blobs, record_factory
    ) -> None:
        """If the record update fails, the removed blob is not deleted."""
        remote.records["rec-1"] = record_factory(
            "rec-1", attachments=("https://blobs/drop",)
        )
        remote.fail_on.add("update")

        with pytest.raises(RemoteError):
            await coordinator.update(
                "rec-1", RecordUpdate(removed_attachments=("https://blobs/drop",))
            )

        assert blobs.deleted == []

    @pytest.mark.asyncio
    async def test_unknown_removed_url_not_deleted(
        self, coordinator, remote, blobs, record_factory
    ) -> None:
        """URLs not linked to the record are never deleted."""
        remote.records["rec-1"] = record_factory("rec-1", attachments=("https://blobs/a",))

        await coordinator.update(
            "rec-1", RecordUpdate(removed_attachments=("https://blobs/other",))
        )

        assert blobs.deleted == []

    @pytest.mark.asyncio
    async def test_blob_cleanup_failure_does_not_fail_update(
        self, coordinator, remote, blobs, record_factory
    ) -> None:
        """Cleanup failures after a successful update are only logged."""
        remote.records["rec-1"] = record_factory("rec-1", attachments=("https://blobs/a",))
        blobs.failing_deletes.add("https://blobs/a")

        record = await coordinator.update(
            "rec-1", RecordUpdate(removed_attachments=("https://blobs/a",))
        )

        assert record.attachments == ()

    @pytest.mark.asyncio
    async def test_lookup_failure_raises_remote_error(self, coordinator, remote) -> None:
        """A failing existence check is a RemoteError, not NotFound."""
        remote.fail_on.add("get")

        with pytest.raises(RemoteError):
            await coordinator.update("rec-1", RecordUpdate(resolved=True))


class TestDelete:
    """Tests for delete."""

    @pytest.mark.asyncio
    async def test_delete_removes_record_then_blobs(
        self, coordinator, remote, blobs, record_factory
    ) -> None:
        """Attachments are deleted after the record."""
        remote.records["rec-1"] = record_factory(
            "rec-1", attachments=("https://blobs/a", "https://blobs/b")
        )

        await coordinator.delete("rec-1")

        assert "rec-1" not in remote.records
        assert sorted(blobs.deleted) == ["https://blobs/a", "https://blobs/b"]
        assert coordinator.stats.deletes == 1

    @pytest.mark.asyncio
    async def test_delete_missing_raises_not_found(self, coordinator, remote) -> None:
        """Missing target should raise RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError):
            await coordinator.delete("missing")
        assert remote.count("delete") == 0

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_blobs(
        self, coordinator, remote, blobs, record_factory
    ) -> None:
        """If the record delete fails, no blob is deleted."""
        remote.records["rec-1"] = record_factory("rec-1", attachments=("https://blobs/a",))
        remote.fail_on.add("delete")

        with pytest.raises(RemoteError):
            await coordinator.delete("rec-1")

        assert blobs.deleted == []

    @pytest.mark.asyncio
    async def test_delete_offline_fails_fast(self, coordinator, connectivity, remote) -> None:
        """Offline delete should raise without any remote call."""
        connectivity.set_connected(False)

        with pytest.raises(NoConnectivityError):
            await coordinator.delete("rec-1")
        assert "rec-1" in remote.records


class TestCacheEnvelopeRoundTrip:
    """Envelope contents served offline match what was fetched."""

    @pytest.mark.asyncio
    async def test_envelope_survives_serialization(self, coordinator, cache) -> None:
        result = await coordinator.fetch_list(FilterSpec())
        envelope = await cache.get(FilterSpec())

        assert isinstance(envelope, CacheEnvelope)
        assert envelope.data == result.records


def test_static_monitor_default_online() -> None:
    assert StaticConnectivityMonitor().connected is True
