"""Client-side device registration and liveness."""

import platform
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from papertrail.client.remote import RemoteDocumentClient
from papertrail.client.store import DEVICE_ID_KEY, LocalStore
from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.errors import RemoteNotFoundError, TransientSyncError, ValidationError
from papertrail.models.device import DeviceRead, DeviceType
from papertrail.models.types import utcnow

_HANDHELD_UA = re.compile(r"Mobile|Android|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini|Tablet", re.IGNORECASE)
_TABLET_UA = re.compile(r"iPad|Tablet", re.IGNORECASE)


@dataclass
class DeviceInfo:
    device_name: str
    device_type: DeviceType
    user_agent: str


def classify_user_agent(user_agent: str) -> DeviceType:
    if _TABLET_UA.search(user_agent):
        return DeviceType.TABLET
    if _HANDHELD_UA.search(user_agent):
        return DeviceType.MOBILE
    return DeviceType.DESKTOP


def default_user_agent() -> str:
    system = platform.system() or "Unknown"
    return f"papertrail-client/{settings.APP_VERSION} ({system} {platform.release()}; {platform.machine()})"


def device_name_for(device_type: DeviceType, platform_name: Optional[str] = None, clock: Callable = utcnow) -> str:
    """e.g. `Desktop (Linux x86_64) - 2026-10-19`."""
    platform_name = platform_name or f"{platform.system()} {platform.machine()}".strip() or "Unknown"
    return f"{device_type.value.capitalize()} ({platform_name}) - {clock().date().isoformat()}"


def detect_device_info(user_agent: Optional[str] = None, clock: Callable = utcnow) -> DeviceInfo:
    user_agent = user_agent or default_user_agent()
    device_type = classify_user_agent(user_agent)
    return DeviceInfo(
        device_name=device_name_for(device_type, clock=clock),
        device_type=device_type,
        user_agent=user_agent,
    )


class DeviceRegistry:
    """Registers this device with the server and caches its id in the local store.

    A cached id is verified with a heartbeat before use. If the server no
    longer knows the device (404/410) a fresh registration replaces the cached
    id; transient heartbeat failures are retried and never cause a new row.
    """

    def __init__(
        self,
        remote: RemoteDocumentClient,
        store: LocalStore,
        user_id: str,
        user_agent: Optional[str] = None,
        heartbeat_retries: Optional[int] = None,
        clock: Callable = utcnow,
    ):
        self.remote = remote
        self.store = store
        self.user_id = str(user_id)
        self.user_agent = user_agent
        self.heartbeat_retries = settings.HEARTBEAT_RETRIES if heartbeat_retries is None else heartbeat_retries
        if self.heartbeat_retries < 1:
            raise ValidationError(f"heartbeat_retries must be at least 1, got {self.heartbeat_retries}")
        self._clock = clock
        self._device_id: Optional[str] = None

    @property
    def device_id(self) -> Optional[str]:
        return self._device_id

    async def load(self) -> Optional[str]:
        """Read the cached device id from the local store."""
        self._device_id = await self.store.get_state(self.user_id, DEVICE_ID_KEY)
        return self._device_id

    async def register(self, device_info: Optional[DeviceInfo] = None) -> DeviceRead:
        info = device_info or detect_device_info(self.user_agent, clock=self._clock)
        device = await self.remote.register_device(info.device_name, info.device_type, info.user_agent)
        self._device_id = str(device.id)
        await self.store.set_state(self.user_id, DEVICE_ID_KEY, self._device_id)
        app_logger.info(f"Device registered: {info.device_name} ({self._device_id})")
        return device

    async def ensure_registered(self) -> str:
        cached = await self.load()
        if not cached:
            return str((await self.register()).id)

        last_error: Optional[Exception] = None
        for attempt in range(1, self.heartbeat_retries + 1):
            try:
                await self.remote.heartbeat(cached)
                return cached
            except RemoteNotFoundError:
                app_logger.warning(f"Device {cached} is gone on the server, registering again")
                return str((await self.register()).id)
            except TransientSyncError as exc:
                last_error = exc
                app_logger.warning(f"Heartbeat attempt {attempt}/{self.heartbeat_retries} failed: {exc}")

        raise TransientSyncError(f"Device heartbeat failed after {self.heartbeat_retries} attempts: {last_error}")

    async def deactivate(self, device_id: Optional[str] = None) -> bool:
        device_id = device_id or self._device_id or await self.load()
        if not device_id:
            return False
        success = await self.remote.deactivate_device(device_id)
        if device_id == self._device_id:
            self._device_id = None
            await self.store.set_state(self.user_id, DEVICE_ID_KEY, None)
        return success

    async def list_devices(self) -> List[DeviceRead]:
        return await self.remote.list_devices()
