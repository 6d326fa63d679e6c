"""Tests for the client sync engine against an in-memory remote."""

import asyncio
from datetime import timedelta

import pytest

from conftest import USER_ID
from papertrail.client.repository import RecordRepository
from papertrail.client.store import LAST_SYNC_KEY
from papertrail.client.sync_engine import SyncEngine, SyncPhase
from papertrail.errors import AuthenticationError, TransientSyncError, ValidationError
from papertrail.models.document import Category, DocumentRecord, SyncStatus, new_document_id
from papertrail.models.sync_history import SyncResultStatus
from papertrail.models.types import utcnow


def _server_record(title: str, **fields) -> DocumentRecord:
    now = utcnow()
    data = {
        "id": new_document_id(),
        "title": title,
        "location": "Office",
        "category": Category.LEGAL,
        "created_at": now,
        "updated_at": now,
    }
    data.update(fields)
    return DocumentRecord(**data)


class TestSyncDocuments:
    """A full push / fetch / reconcile / complete cycle."""

    async def test_pull_brings_remote_records_into_local_store(self, engine, remote, store):
        remote.put(_server_record("Car title"))
        remote.put(_server_record("Birth certificate"))

        assert await engine.sync_documents() is True

        titles = {record.title for record in await engine.repository.get_all()}
        assert titles == {"Car title", "Birth certificate"}
        assert engine.phase == SyncPhase.IDLE
        assert engine.in_progress is False
        assert engine.last_sync_at is not None
        assert await store.get_state(USER_ID, LAST_SYNC_KEY) == engine.last_sync_at.isoformat()
        assert remote.history[-1].status == SyncResultStatus.SUCCESS
        assert remote.history[-1].document_count == 2

    async def test_push_sends_pending_changes_and_marks_them_synced(self, engine, remote):
        record = await engine.repository.create({"title": "Lease", "location": "Folder", "category": "legal"})

        assert await engine.sync_documents() is True

        assert record.id in remote.documents
        stored = await engine.repository.get(record.id)
        assert stored.sync_status == SyncStatus.SYNCED
        assert await engine.repository.pending_changes() == []

    async def test_local_delete_propagates_and_tombstone_is_purged(self, engine, remote):
        record = await engine.repository.create({"title": "Old ID", "location": "Drawer", "category": "id-document"})
        await engine.sync_documents()

        await engine.repository.delete(record.id)
        assert await engine.sync_documents() is True

        assert remote.documents[record.id].deleted is True
        assert await engine.repository.pending_changes() == []
        assert await engine.repository.purge_tombstones([record.id]) == 0

    async def test_stale_local_edit_loses_to_newer_server_version(self, engine, remote):
        record = await engine.repository.create({"title": "Will", "location": "Lawyer", "category": "legal"})
        await engine.sync_documents()

        edited = await engine.repository.update(record.id, {"location": "Home safe"})
        newer = remote.documents[record.id].model_copy(
            update={"location": "Bank vault", "updated_at": edited.updated_at + timedelta(minutes=5)}
        )
        remote.put(newer)

        assert await engine.sync_documents() is True
        assert (await engine.repository.get(record.id)).location == "Bank vault"
        assert remote.documents[record.id].location == "Bank vault"

    async def test_later_local_edit_beats_an_earlier_edit_that_reached_the_server_first(self, engine, remote):
        record = await engine.repository.create({"title": "Deed", "location": "Desk", "category": "legal"})
        await engine.sync_documents()

        edited = await engine.repository.update(record.id, {"location": "Fire safe"})
        # Another device edited a minute earlier but pushed before this one
        remote.put(
            remote.documents[record.id].model_copy(
                update={"location": "Attic", "updated_at": edited.updated_at - timedelta(minutes=1)}
            )
        )

        assert await engine.sync_documents() is True
        assert remote.documents[record.id].location == "Fire safe"
        assert remote.documents[record.id].updated_at == edited.updated_at
        assert (await engine.repository.get(record.id)).location == "Fire safe"

    async def test_incremental_fetch_uses_last_sync_cursor(self, engine, remote):
        remote.put(_server_record("First"))
        await engine.sync_documents()
        remote.completed.clear()

        remote.put(_server_record("Second", updated_at=utcnow() + timedelta(seconds=1)))
        await engine.sync_documents()

        assert len(remote.completed[-1]) == 1

    async def test_force_sync_is_idempotent(self, engine, remote):
        remote.put(_server_record("Passport", category=Category.ID_DOCUMENT))
        remote.put(_server_record("Mortgage", category=Category.FINANCIAL))

        assert await engine.sync_documents(force_sync=True) is True
        first = await engine.repository.get_all()
        assert await engine.sync_documents(force_sync=True) is True
        second = await engine.repository.get_all()

        assert [r.model_dump() for r in first] == [r.model_dump() for r in second]


class TestRetryAndGuard:
    """Retry termination, permanent errors and mutual exclusion."""

    async def test_fault_on_every_attempt_stops_after_max_retries(self, engine, remote, store):
        remote.fetch_error = TransientSyncError("server unavailable")

        assert await engine.sync_documents(max_retries=3) is False

        assert remote.fetch_calls == 3
        assert engine.last_sync_at is None
        assert await store.get_state(USER_ID, LAST_SYNC_KEY) is None
        assert remote.history[-1].status == SyncResultStatus.FAILED
        assert engine.in_progress is False

    async def test_retry_count_below_one_is_rejected(self, engine, remote):
        with pytest.raises(ValidationError):
            await engine.sync_documents(max_retries=0)
        assert remote.fetch_calls == 0
        assert engine.in_progress is False

    async def test_permanent_error_is_not_retried(self, engine, remote):
        remote.fetch_error = AuthenticationError("token expired", 401)

        assert await engine.sync_documents(max_retries=3) is False
        assert remote.fetch_calls == 1

    async def test_backoff_doubles_between_attempts(self, store, remote, registry):
        delays = []

        async def record_sleep(seconds):
            delays.append(seconds)

        engine = SyncEngine(RecordRepository(store, USER_ID), remote, registry, backoff_base=1.0, sleep=record_sleep)
        remote.fetch_error = TransientSyncError("flaky")

        assert await engine.sync_documents(max_retries=3) is False
        assert delays == [2.0, 4.0]

    async def test_concurrent_call_returns_false_without_side_effects(self, engine, remote, store):
        remote.fetch_gate = asyncio.Event()
        running = asyncio.create_task(engine.sync_documents())
        while remote.fetch_calls == 0:
            await asyncio.sleep(0)
        history_before = len(remote.history)

        assert engine.in_progress is True
        assert await engine.sync_documents() is False
        assert len(remote.history) == history_before
        assert await store.get_state(USER_ID, LAST_SYNC_KEY) is None

        remote.fetch_gate.set()
        assert await running is True

    async def test_live_lock_held_elsewhere_blocks_sync(self, engine, remote, store):
        assert await store.acquire_lock(engine.lock_name, "other-process", ttl_seconds=60) is True

        assert await engine.sync_documents() is False
        assert remote.fetch_calls == 0

    async def test_expired_lock_is_taken_over(self, engine, remote, store):
        assert await store.acquire_lock(engine.lock_name, "crashed-process", ttl_seconds=-1) is True

        assert await engine.sync_documents() is True
        assert await store.acquire_lock(engine.lock_name, "next-process", ttl_seconds=60) is True

    async def test_registration_failure_returns_false(self, engine, remote):
        await engine.registry.ensure_registered()
        remote.heartbeat_errors = [TransientSyncError("offline")] * 5

        assert await engine.sync_documents() is False
        assert remote.fetch_calls == 0


class TestAutoSync:
    """Timer lifecycle."""

    async def test_activate_runs_an_initial_sync(self, engine, remote):
        task = engine.activate(interval_minutes=60)

        assert await task is True
        assert engine.auto_sync_running is True
        assert remote.fetch_calls == 1

    async def test_start_is_idempotent(self, engine):
        engine.start_auto_sync(60)
        first = engine._timer
        engine.start_auto_sync(60)

        with pytest.raises(asyncio.CancelledError):
            await first
        assert engine._timer is not first
        assert engine.auto_sync_running is True

    async def test_no_sync_runs_after_stop(self, engine, remote):
        engine.start_auto_sync(interval_minutes=0.0005)
        for _ in range(300):
            if remote.fetch_calls:
                break
            await asyncio.sleep(0.01)
        assert remote.fetch_calls >= 1

        await engine.shutdown()
        calls = remote.fetch_calls
        await asyncio.sleep(0.1)

        assert remote.fetch_calls == calls
        assert engine.auto_sync_running is False

    async def test_listener_receives_document_count(self, engine, remote):
        seen = []
        engine.add_listener(seen.append)
        remote.put(_server_record("Tax return"))

        await engine.request_sync()
        assert seen == [1]

    async def test_failing_listener_does_not_fail_the_sync(self, engine, remote, store):
        seen = []

        def broken(count):
            raise RuntimeError("listener bug")

        engine.add_listener(broken)
        engine.add_listener(seen.append)
        remote.put(_server_record("Pension statement"))

        assert await engine.sync_documents() is True
        assert seen == [1]
        assert engine.last_error is None
        assert await store.get_state(USER_ID, LAST_SYNC_KEY) is not None
