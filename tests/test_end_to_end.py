"""Two client devices syncing through the real API over an in-process transport."""

import httpx
import pytest

from papertrail.client.remote import RemoteDocumentClient
from papertrail.client.session import ClientSession
from papertrail.db.db import close_db, init_db
from papertrail.errors import AuthenticationError
from papertrail.main import app

BASE_URL = "http://testserver"
EMAIL = "traveller@example.com"
PASSWORD = "correct-horse-1"


@pytest.fixture
async def transport(server_db_url):
    await init_db(server_db_url)
    asgi = httpx.ASGITransport(app=app)
    async with RemoteDocumentClient(BASE_URL, transport=asgi) as remote:
        await remote.register(EMAIL, PASSWORD)
    yield asgi
    await close_db()


async def _open_device(transport, tmp_path, name: str, user_agent: str) -> ClientSession:
    return await ClientSession.login(
        EMAIL,
        PASSWORD,
        base_url=BASE_URL,
        store_url=f"sqlite+aiosqlite:///{tmp_path / f'{name}.db'}",
        transport=transport,
        user_agent=user_agent,
        backoff_base=0,
    )


class TestTwoDevices:
    """Changes made on one device reach the other."""

    async def test_create_update_delete_propagate(self, transport, tmp_path):
        phone = await _open_device(transport, tmp_path, "phone", "Mozilla/5.0 (iPhone) Mobile")
        laptop = await _open_device(transport, tmp_path, "laptop", "Mozilla/5.0 (X11; Linux x86_64)")
        try:
            created = await phone.repository.create(
                {"title": "Passport", "location": "Safe", "category": "id-document"}
            )
            assert await phone.sync_now() is True
            assert await laptop.sync_now() is True
            assert [r.id for r in await laptop.repository.get_all()] == [created.id]

            await laptop.repository.update(created.id, {"location": "Carry-on bag"})
            assert await laptop.sync_now() is True
            assert await phone.sync_now() is True
            assert (await phone.repository.get(created.id)).location == "Carry-on bag"

            assert await phone.repository.delete(created.id) is True
            assert await phone.sync_now() is True
            assert await laptop.sync_now() is True
            assert await laptop.repository.get_all() == []

            assert phone.registry.device_id != laptop.registry.device_id
            devices = await phone.registry.list_devices()
            assert {str(d.id) for d in devices} == {phone.registry.device_id, laptop.registry.device_id}
            assert {d.device_type.value for d in devices} == {"mobile", "desktop"}
        finally:
            await phone.close()
            await laptop.close()

    async def test_later_offline_edit_wins(self, transport, tmp_path):
        phone = await _open_device(transport, tmp_path, "phone", "Mozilla/5.0 (iPhone) Mobile")
        laptop = await _open_device(transport, tmp_path, "laptop", "Mozilla/5.0 (X11; Linux x86_64)")
        try:
            created = await phone.repository.create({"title": "Will", "location": "Lawyer", "category": "legal"})
            await phone.sync_now()
            await laptop.sync_now()

            # Both edit while offline; the laptop edits last
            await phone.repository.update(created.id, {"location": "Home safe"})
            await laptop.repository.update(created.id, {"location": "Bank vault"})

            assert await phone.sync_now() is True
            assert await laptop.sync_now() is True
            assert await phone.sync_now() is True

            assert (await phone.repository.get(created.id)).location == "Bank vault"
            assert (await laptop.repository.get(created.id)).location == "Bank vault"
            assert await phone.repository.pending_changes() == []

            history = await laptop.engine.sync_history(limit=20)
            assert history
            assert history[0].created_at >= history[-1].created_at
            assert await laptop.engine.sync_conflicts() == []
        finally:
            await phone.close()
            await laptop.close()

    async def test_activate_syncs_in_background(self, transport, tmp_path):
        phone = await _open_device(transport, tmp_path, "phone", "Mozilla/5.0 (iPhone) Mobile")
        try:
            await phone.repository.create({"title": "Insurance card", "location": "Wallet", "category": "medical"})
            assert await phone.activate(interval_minutes=60) is True
            assert phone.repository.device_id == phone.registry.device_id
            assert await phone.repository.pending_changes() == []
        finally:
            await phone.close()
        assert phone.engine.auto_sync_running is False


async def test_login_with_wrong_password_fails(transport, tmp_path):
    with pytest.raises(AuthenticationError):
        await ClientSession.login(
            EMAIL,
            "not-the-password",
            base_url=BASE_URL,
            store_url=f"sqlite+aiosqlite:///{tmp_path / 'bad.db'}",
            transport=transport,
        )
