"""HTTP client for the remote document service."""

from datetime import datetime
from typing import Any, List, Optional, Sequence

import httpx

from papertrail.api.auth.schemas import TokenResponse
from papertrail.api.sync.schemas import PushResponse, SyncDocumentsResponse
from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.errors import (
    AuthenticationError,
    PermanentSyncError,
    RemoteNotFoundError,
    TransientSyncError,
    ValidationError,
)
from papertrail.models.device import DeviceRead, DeviceType
from papertrail.models.document import DocumentRecord
from papertrail.models.sync_history import (
    SyncAction,
    SyncHistoryCreate,
    SyncHistoryRead,
)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)


def raise_for_status(response: httpx.Response) -> None:
    """Map an HTTP failure onto the sync error taxonomy."""
    code = response.status_code
    if code < 400:
        return
    detail = _error_detail(response)
    message = f"{response.request.method} {response.request.url.path} failed with {code}: {detail}"
    if code >= 500:
        raise TransientSyncError(message)
    if code in (401, 403):
        raise AuthenticationError(message, code)
    if code in (404, 410):
        raise RemoteNotFoundError(message, code)
    if code in (400, 422):
        raise ValidationError(message)
    raise PermanentSyncError(message, code)


class RemoteDocumentClient:
    """Async client for the `/v1` API.

    Failures surface as `TransientSyncError`, `PermanentSyncError` (and its
    subclasses) or `ValidationError` for rejected payloads.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.PAPERTRAIL_API_URL).rstrip("/")
        self.token = token
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def boot(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteDocumentClient":
        await self.boot()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        endpoint: str,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Send a request and return the `data` member of the response envelope."""
        if self._client is None:
            await self.boot()

        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = await self._client.request(method, endpoint, json=json, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransientSyncError(f"{method} {endpoint} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientSyncError(f"{method} {endpoint} failed: {exc}") from exc

        if response.status_code >= 400:
            app_logger.warning(f"Remote call {method} {endpoint} returned {response.status_code}")
        raise_for_status(response)

        if response.status_code == 204 or not response.content:
            return None
        body = response.json()
        return body.get("data") if isinstance(body, dict) and "data" in body else body

    # Auth

    async def register(self, email: str, password: str, **profile: Any) -> TokenResponse:
        data = await self.request("POST", "/v1/auth/register", json={"email": email, "password": password, **profile})
        token = TokenResponse.model_validate(data)
        self.token = token.access_token
        return token

    async def login(self, email: str, password: str) -> TokenResponse:
        data = await self.request("POST", "/v1/auth/login", json={"email": email, "password": password})
        token = TokenResponse.model_validate(data)
        self.token = token.access_token
        return token

    # Devices

    async def register_device(self, device_name: str, device_type: DeviceType, user_agent: str) -> DeviceRead:
        data = await self.request(
            "POST",
            "/v1/devices/register",
            json={"device_name": device_name, "device_type": DeviceType(device_type).value, "user_agent": user_agent},
        )
        return DeviceRead.model_validate(data)

    async def heartbeat(self, device_id: str) -> bool:
        data = await self.request("PUT", f"/v1/devices/{device_id}/heartbeat")
        return bool(data and data.get("success"))

    async def list_devices(self) -> List[DeviceRead]:
        data = await self.request("GET", "/v1/devices")
        return [DeviceRead.model_validate(item) for item in data or []]

    async def deactivate_device(self, device_id: str) -> bool:
        data = await self.request("DELETE", f"/v1/devices/{device_id}")
        return bool(data and data.get("success"))

    # Sync

    async def fetch_documents(self, since: Optional[datetime] = None) -> SyncDocumentsResponse:
        params = {"since": since.isoformat()} if since is not None else None
        data = await self.request("GET", "/v1/sync/documents", params=params)
        return SyncDocumentsResponse.model_validate(data)

    async def push_documents(self, device_id: Optional[str], records: Sequence[DocumentRecord]) -> PushResponse:
        payload = {
            "device_id": device_id,
            "documents": [record.model_dump(mode="json") for record in records],
        }
        data = await self.request("POST", "/v1/sync/push", json=payload)
        return PushResponse.model_validate(data)

    async def complete_sync(
        self,
        document_ids: Sequence[str],
        device_id: Optional[str],
        action: SyncAction = SyncAction.SYNC_DOWN,
    ) -> SyncHistoryRead:
        data = await self.request(
            "POST",
            "/v1/sync/complete",
            json={"document_ids": list(document_ids), "device_id": device_id, "action": action.value},
        )
        return SyncHistoryRead.model_validate(data)

    async def record_sync_history(self, entry: SyncHistoryCreate) -> SyncHistoryRead:
        data = await self.request("POST", "/v1/sync/history", json=entry.model_dump(mode="json"))
        return SyncHistoryRead.model_validate(data)

    async def sync_history(self, limit: int = 10) -> List[SyncHistoryRead]:
        data = await self.request("GET", "/v1/sync/history", params={"limit": limit})
        return [SyncHistoryRead.model_validate(item) for item in data or []]

    async def sync_conflicts(self) -> List[DocumentRecord]:
        data = await self.request("GET", "/v1/sync/conflicts")
        return [DocumentRecord.model_validate(item) for item in data or []]
