"""Background reconciliation between the local store and the remote service.

One sync runs as: register device, push pending local changes, fetch remote
changes since the last sync, reconcile them last-writer-wins, then confirm
with the server. Push through confirm are retried with exponential backoff.
"""

import asyncio
import time
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Set
from uuid import UUID, uuid4

from papertrail.client.device_registry import DeviceRegistry
from papertrail.client.remote import RemoteDocumentClient
from papertrail.client.repository import ApplyOutcome, RecordRepository
from papertrail.client.store import LAST_SYNC_KEY
from papertrail.config.logger import app_logger, log_performance, log_sync_outcome
from papertrail.config.settings import settings
from papertrail.errors import PermanentSyncError, ValidationError
from papertrail.models.document import DocumentRecord
from papertrail.models.sync_history import (
    SyncAction,
    SyncHistoryCreate,
    SyncHistoryRead,
    SyncResultStatus,
)


class SyncPhase(str, Enum):
    IDLE = "idle"
    REGISTERING = "registering"
    PUSHING = "pushing"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    COMPLETING = "completing"
    FAILED = "failed"


class SyncEngine:
    def __init__(
        self,
        repository: RecordRepository,
        remote: RemoteDocumentClient,
        registry: DeviceRegistry,
        backoff_base: Optional[float] = None,
        lock_ttl_seconds: Optional[int] = None,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.repository = repository
        self.remote = remote
        self.registry = registry
        self.store = repository.store
        self.user_id = repository.user_id
        self.backoff_base = settings.SYNC_BACKOFF_BASE_SECONDS if backoff_base is None else backoff_base
        self.lock_ttl_seconds = settings.SYNC_LOCK_TTL_SECONDS if lock_ttl_seconds is None else lock_ttl_seconds
        self._sleep = sleep

        self._owner = uuid4().hex
        self._in_progress = False
        self._phase = SyncPhase.IDLE
        self._last_sync_at: Optional[datetime] = None
        self.last_error: Optional[Exception] = None

        self._timer: Optional[asyncio.Task] = None
        self._generation = 0
        self._background: Set[asyncio.Task] = set()
        self._listeners: List[Callable[[int], None]] = []

    @property
    def lock_name(self) -> str:
        return f"sync:{self.user_id}"

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def last_sync_at(self) -> Optional[datetime]:
        return self._last_sync_at

    @property
    def auto_sync_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def load_state(self) -> Optional[datetime]:
        """Load the persisted last sync timestamp."""
        value = await self.store.get_state(self.user_id, LAST_SYNC_KEY)
        self._last_sync_at = datetime.fromisoformat(value) if value else None
        return self._last_sync_at

    def add_listener(self, callback: Callable[[int], None]) -> None:
        """Called with the fetched document count after every successful sync."""
        self._listeners.append(callback)

    async def sync_documents(self, force_sync: bool = False, max_retries: Optional[int] = None) -> bool:
        max_retries = settings.SYNC_MAX_RETRIES if max_retries is None else max_retries
        if max_retries < 1:
            raise ValidationError(f"max_retries must be at least 1, got {max_retries}")

        # Check and set with no await in between: atomic on the event loop
        if self._in_progress:
            app_logger.info("Sync already in progress")
            return False
        self._in_progress = True

        try:
            if not await self.store.acquire_lock(self.lock_name, self._owner, self.lock_ttl_seconds):
                app_logger.info(f"Sync lock {self.lock_name} is held elsewhere")
                return False
            try:
                return await self._run(force_sync, max_retries)
            finally:
                await self.store.release_lock(self.lock_name, self._owner)
        except Exception as e:
            app_logger.exception(f"Sync aborted: {e}")
            self.last_error = e
            return False
        finally:
            self._in_progress = False
            self._phase = SyncPhase.IDLE

    async def _run(self, force_sync: bool, max_retries: int) -> bool:
        started = time.perf_counter()
        self._phase = SyncPhase.REGISTERING
        try:
            device_id = await self.registry.ensure_registered()
        except Exception as e:
            self._fail(e)
            log_sync_outcome(False, 0, error=str(e))
            return False

        attempts = 0
        while attempts < max_retries:
            attempts += 1
            try:
                count = await self._attempt(device_id, force_sync)
            except (PermanentSyncError, ValidationError) as e:
                app_logger.error(f"Sync attempt {attempts} failed permanently: {e}")
                self.last_error = e
                break
            except Exception as e:
                app_logger.warning(f"Sync attempt {attempts}/{max_retries} failed: {e}")
                self.last_error = e
                if attempts < max_retries:
                    await self._sleep(self.backoff_base * 2 ** attempts)
                continue

            self.last_error = None
            log_sync_outcome(True, attempts, device_id)
            log_performance("sync_documents", time.perf_counter() - started, documents=count, attempts=attempts)
            self._notify(count)
            return True

        self._fail(self.last_error)
        log_sync_outcome(False, attempts, device_id, error=str(self.last_error))
        await self._record_failure(device_id, self.last_error)
        return False

    def _notify(self, count: int) -> None:
        for callback in list(self._listeners):
            try:
                callback(count)
            except Exception:
                app_logger.exception(f"Sync listener {callback!r} failed")

    def _fail(self, error: Optional[Exception]) -> None:
        self._phase = SyncPhase.FAILED
        self.last_error = error

    async def _attempt(self, device_id: str, force_sync: bool) -> int:
        self._phase = SyncPhase.PUSHING
        pending = await self.repository.pending_changes()
        if pending:
            pushed = await self.remote.push_documents(device_id, pending)
            await self.repository.apply_remote_all(pushed.accepted + pushed.rejected)
            app_logger.info(
                f"Pushed {len(pending)} changes: accepted={len(pushed.accepted)} "
                f"rejected={len(pushed.rejected)} skipped={pushed.skipped}"
            )

        self._phase = SyncPhase.FETCHING
        since = None if force_sync else await self.load_state()
        batch = await self.remote.fetch_documents(since)
        app_logger.info(f"Syncing {len(batch.documents)} documents")

        self._phase = SyncPhase.RECONCILING
        counts = await self.repository.apply_remote_all(batch.documents)
        if counts[ApplyOutcome.KEPT_LOCAL]:
            app_logger.info(f"Kept {counts[ApplyOutcome.KEPT_LOCAL]} newer local changes")

        self._phase = SyncPhase.COMPLETING
        await self.remote.complete_sync([doc.id for doc in batch.documents], device_id, SyncAction.SYNC_DOWN)
        await self.store.set_state(self.user_id, LAST_SYNC_KEY, batch.server_time.isoformat())
        self._last_sync_at = batch.server_time
        return len(batch.documents)

    async def _record_failure(self, device_id: Optional[str], error: Optional[Exception]) -> None:
        try:
            await self.remote.record_sync_history(
                SyncHistoryCreate(
                    device_id=UUID(device_id) if device_id else None,
                    action=SyncAction.SYNC_DOWN,
                    document_count=0,
                    status=SyncResultStatus.FAILED,
                    error_message=str(error)[:1000] if error else None,
                )
            )
        except Exception as e:
            app_logger.warning(f"Could not record failed sync: {e}")

    # Background scheduling

    def request_sync(self, force_sync: bool = False) -> asyncio.Task:
        """Run a sync in the background and return its task."""
        task = asyncio.create_task(self.sync_documents(force_sync=force_sync))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def start_auto_sync(self, interval_minutes: Optional[float] = None) -> None:
        self.stop_auto_sync()
        interval = settings.SYNC_INTERVAL_MINUTES if interval_minutes is None else interval_minutes
        self._timer = asyncio.create_task(self._auto_sync_loop(self._generation, interval * 60))
        app_logger.info(f"Auto-sync started every {interval} minutes")

    def stop_auto_sync(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            app_logger.info("Auto-sync stopped")

    async def _auto_sync_loop(self, generation: int, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            if generation != self._generation:
                return
            # A running sync finishes even if the timer is cancelled meanwhile
            await asyncio.shield(self.request_sync())

    def activate(self, interval_minutes: Optional[float] = None) -> asyncio.Task:
        """Kick off an immediate background sync and start the timer."""
        task = self.request_sync()
        self.start_auto_sync(interval_minutes)
        return task

    async def shutdown(self) -> None:
        """Stop the timer and wait for in-flight syncs to finish."""
        self.stop_auto_sync()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # Read-only status

    async def sync_history(self, limit: int = 10) -> List[SyncHistoryRead]:
        return await self.remote.sync_history(limit)

    async def sync_conflicts(self) -> List[DocumentRecord]:
        return await self.remote.sync_conflicts()
