"""Shared fixtures: temporary SQLite stores, an in-memory remote and an API client."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from papertrail.api.sync.schemas import PushResponse, SyncDocumentsResponse
from papertrail.client.device_registry import DeviceRegistry
from papertrail.client.repository import RecordRepository
from papertrail.client.store import LocalStore
from papertrail.client.sync_engine import SyncEngine
from papertrail.config.settings import settings
from papertrail.errors import RemoteNotFoundError
from papertrail.models.device import DeviceRead
from papertrail.models.document import DocumentRecord, SyncStatus
from papertrail.models.sync_history import SyncHistoryRead, SyncResultStatus
from papertrail.models.types import utcnow

USER_ID = "5b0c1f7e-4a4e-4f0e-9d7a-1f2b3c4d5e6f"


class FrozenClock:
    """Controllable clock for deterministic timestamps."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeRemote:
    """In-memory stand-in for RemoteDocumentClient with fault injection."""

    def __init__(self):
        self.documents: Dict[str, DocumentRecord] = {}
        # Server write time per id; the fetch cursor filters on this
        self.changed_at: Dict[str, datetime] = {}
        self.devices: Dict[str, DeviceRead] = {}
        self.history: List[SyncHistoryRead] = []
        self.completed: List[List[str]] = []
        self.fetch_calls = 0
        self.register_calls = 0
        self.heartbeat_calls = 0
        self.fetch_error: Optional[Exception] = None
        self.heartbeat_errors: List[Exception] = []
        self.fetch_gate: Optional[asyncio.Event] = None

    def _history(self, device_id, action, count, status, error=None) -> SyncHistoryRead:
        entry = SyncHistoryRead(
            id=uuid4(),
            device_id=device_id,
            action=action,
            document_count=count,
            status=status,
            error_message=error,
            created_at=utcnow(),
        )
        self.history.append(entry)
        return entry

    async def register_device(self, device_name, device_type, user_agent) -> DeviceRead:
        self.register_calls += 1
        now = utcnow()
        device = DeviceRead(
            id=uuid4(),
            device_name=device_name,
            device_type=device_type,
            user_agent=user_agent,
            last_seen_at=now,
            is_active=True,
            created_at=now,
        )
        self.devices[str(device.id)] = device
        return device

    async def heartbeat(self, device_id: str) -> bool:
        self.heartbeat_calls += 1
        if self.heartbeat_errors:
            raise self.heartbeat_errors.pop(0)
        device = self.devices.get(device_id)
        if device is None or not device.is_active:
            raise RemoteNotFoundError(f"Device {device_id} not found", 404)
        return True

    async def list_devices(self) -> List[DeviceRead]:
        return [d for d in self.devices.values() if d.is_active]

    async def deactivate_device(self, device_id: str) -> bool:
        device = self.devices.get(device_id)
        if device is None:
            return False
        self.devices[device_id] = device.model_copy(update={"is_active": False})
        return True

    async def fetch_documents(self, since=None) -> SyncDocumentsResponse:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        server_time = utcnow()
        changed = [d for d in self.documents.values() if since is None or self.changed_at[d.id] > since]
        changed.sort(key=lambda d: self.changed_at[d.id], reverse=True)
        return SyncDocumentsResponse(documents=changed, server_time=server_time)

    async def push_documents(self, device_id, records) -> PushResponse:
        accepted, rejected = [], []
        for record in records:
            current = self.documents.get(record.id)
            if current is not None and current.updated_at >= record.updated_at:
                rejected.append(current)
                continue
            stored = self._store(record)
            accepted.append(stored)
        return PushResponse(accepted=accepted, rejected=rejected, skipped=0)

    async def complete_sync(self, document_ids, device_id, action):
        self.completed.append(list(document_ids))
        return self._history(device_id, action, len(document_ids), SyncResultStatus.SUCCESS)

    async def record_sync_history(self, entry):
        return self._history(entry.device_id, entry.action, entry.document_count, entry.status, entry.error_message)

    async def sync_history(self, limit: int = 10):
        return list(reversed(self.history))[:limit]

    async def sync_conflicts(self):
        return [d for d in self.documents.values() if d.sync_status == SyncStatus.CONFLICT]

    def put(self, record: DocumentRecord) -> DocumentRecord:
        """Seed a server-side record directly."""
        return self._store(record)

    def _store(self, record: DocumentRecord) -> DocumentRecord:
        now = utcnow()
        stored = record.model_copy(update={"sync_status": SyncStatus.SYNCED, "server_updated_at": now})
        self.documents[stored.id] = stored
        self.changed_at[stored.id] = now
        return stored


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
async def store(tmp_path):
    local = LocalStore(f"sqlite+aiosqlite:///{tmp_path / 'local.db'}")
    await local.open()
    yield local
    await local.close()


@pytest.fixture
async def repository(store, clock):
    return RecordRepository(store, USER_ID, device_id="device-test", clock=clock)


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def registry(remote, store):
    return DeviceRegistry(remote, store, USER_ID, user_agent="pytest (X11; Linux x86_64)")


@pytest.fixture
async def engine(store, remote, registry):
    repo = RecordRepository(store, USER_ID)
    sync_engine = SyncEngine(repo, remote, registry, backoff_base=0)
    yield sync_engine
    await sync_engine.shutdown()


@pytest.fixture
def server_db_url(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path / 'server.db'}"
    monkeypatch.setattr(settings, "DATABASE_URL", url)
    monkeypatch.setattr(settings, "SEED_ADMIN_ON_STARTUP", False)
    return url


@pytest.fixture
def api_client(server_db_url):
    from papertrail.main import app

    with TestClient(app) as client:
        yield client


def register_user(client: TestClient, email: str = "owner@example.com", password: str = "correct-horse-1") -> dict:
    """Register a user and return Authorization headers for them."""
    response = client.post("/v1/auth/register", json={"email": email, "password": password})
    assert response.status_code == 201, response.text
    token = response.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


def document_payload(**overrides) -> dict:
    payload = {
        "title": "US Passport",
        "location": "Home safe, top shelf",
        "category": "id-document",
        "urgency_tags": ["renewal-due"],
    }
    payload.update(overrides)
    return payload
