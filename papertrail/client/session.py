"""Per-login client context owning the store, repository, registry and engine."""

from typing import Optional

import httpx

from papertrail.client.device_registry import DeviceRegistry
from papertrail.client.remote import RemoteDocumentClient
from papertrail.client.repository import RecordRepository
from papertrail.client.store import LocalStore
from papertrail.client.sync_engine import SyncEngine
from papertrail.config.logger import app_logger


class ClientSession:
    """Everything one signed-in user needs on this device.

    Build it with `ClientSession.login(...)` and call `close()` on logout; no
    sync callback runs after `close()` returns.
    """

    def __init__(
        self,
        user_id: str,
        remote: RemoteDocumentClient,
        store: LocalStore,
        user_agent: Optional[str] = None,
        backoff_base: Optional[float] = None,
    ):
        self.user_id = str(user_id)
        self.remote = remote
        self.store = store
        self.registry = DeviceRegistry(remote, store, self.user_id, user_agent=user_agent)
        self.repository = RecordRepository(store, self.user_id)
        self.engine = SyncEngine(self.repository, remote, self.registry, backoff_base=backoff_base)

    @classmethod
    async def login(
        cls,
        email: str,
        password: str,
        base_url: Optional[str] = None,
        store_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ) -> "ClientSession":
        remote = RemoteDocumentClient(base_url=base_url, transport=transport)
        await remote.boot()
        try:
            token = await remote.login(email, password)
        except Exception:
            await remote.close()
            raise

        store = LocalStore(store_url)
        await store.open()
        session = cls(token.user_id, remote, store, **kwargs)
        await session.open()
        app_logger.info(f"Client session opened for {email}")
        return session

    async def open(self) -> None:
        """Load persisted state; local reads and writes work from here on, offline included."""
        await self.store.open()
        self.repository.device_id = await self.registry.load()
        await self.engine.load_state()

    def activate(self, interval_minutes: Optional[float] = None):
        """Start background syncing: one sync now, then on a timer."""
        task = self.engine.activate(interval_minutes)
        task.add_done_callback(lambda _: self._refresh_device_id())
        return task

    def _refresh_device_id(self) -> None:
        self.repository.device_id = self.registry.device_id

    async def sync_now(self, force_sync: bool = False) -> bool:
        result = await self.engine.sync_documents(force_sync=force_sync)
        self._refresh_device_id()
        return result

    async def close(self) -> None:
        await self.engine.shutdown()
        await self.remote.close()
        await self.store.close()
        app_logger.info(f"Client session closed for user {self.user_id}")

    async def __aenter__(self) -> "ClientSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
