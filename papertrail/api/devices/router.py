"""Device registry endpoints used by the client sync engine."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from papertrail.api.devices.schemas import OperationResult, DeviceRegisterRequest
from papertrail.db.db import get_session
from papertrail.errors import NotFoundError
from papertrail.models.device import DeviceRead
from papertrail.services import device_registry
from papertrail.utils.auth import require_auth
from papertrail.utils.responses import SuccessResponse, success_response

router = APIRouter(prefix="/v1/devices", tags=["devices"])


@router.post("/register", response_model=SuccessResponse[DeviceRead])
async def register_device(
    body: DeviceRegisterRequest,
    request: Request,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """Register the calling device. Always creates a new device row."""
    device = await device_registry.register_device(
        session,
        user_id=user_id,
        device_name=body.device_name or "Unknown Device",
        device_type=body.device_type,
        user_agent=body.user_agent or request.headers.get("user-agent") or "Unknown",
    )
    return success_response(data=DeviceRead.model_validate(device), message="Device registered")


@router.get("", response_model=SuccessResponse[List[DeviceRead]])
async def list_devices(
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    devices = await device_registry.list_devices(session, user_id)
    return success_response(data=[DeviceRead.model_validate(d) for d in devices])


@router.put("/{device_id}/heartbeat", response_model=SuccessResponse[OperationResult])
async def heartbeat(
    device_id: UUID,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """Refresh last_seen_at. 404 tells the client to register again."""
    if not await device_registry.heartbeat(session, device_id, user_id):
        raise NotFoundError(f"Device {device_id} not found")
    return success_response(data=OperationResult(success=True), message="Heartbeat recorded")


@router.delete("/{device_id}", response_model=SuccessResponse[OperationResult])
async def deactivate_device(
    device_id: UUID,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    success = await device_registry.deactivate_device(session, device_id, user_id)
    return success_response(
        data=OperationResult(success=success),
        message="Device deactivated" if success else "Device not found",
    )
