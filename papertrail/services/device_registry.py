"""Server-side device registration and liveness tracking."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from papertrail.config.logger import app_logger
from papertrail.models.device import Device, DeviceType
from papertrail.models.types import utcnow


async def register_device(
    session: AsyncSession,
    user_id: UUID,
    device_name: str,
    device_type: DeviceType,
    user_agent: Optional[str],
) -> Device:
    """Create a new device row.

    Registration is not an upsert: a device that lost its cached id gets a
    fresh row and the old one ages out as inactive history.
    """
    now = utcnow()
    device = Device(
        user_id=user_id,
        device_name=device_name,
        device_type=device_type,
        user_agent=user_agent,
        last_seen_at=now,
        created_at=now,
    )
    session.add(device)
    await session.commit()
    await session.refresh(device)
    app_logger.info(f"Device registered: {device.id} ({device.device_type.value}) for user {user_id}")
    return device


async def heartbeat(session: AsyncSession, device_id: UUID, user_id: UUID) -> bool:
    """Refresh last_seen_at. False when no active device of this user matched."""
    result = await session.execute(
        update(Device)
        .where(Device.id == device_id, Device.user_id == user_id, Device.is_active == True)  # noqa: E712
        .values(last_seen_at=utcnow())
    )
    await session.commit()
    return (result.rowcount or 0) > 0


async def list_devices(session: AsyncSession, user_id: UUID) -> List[Device]:
    """Active devices, most recently seen first."""
    result = await session.execute(
        select(Device)
        .where(Device.user_id == user_id, Device.is_active == True)  # noqa: E712
        .order_by(Device.last_seen_at.desc())
    )
    return list(result.scalars().all())


async def deactivate_device(session: AsyncSession, device_id: UUID, user_id: UUID) -> bool:
    result = await session.execute(
        update(Device)
        .where(Device.id == device_id, Device.user_id == user_id, Device.is_active == True)  # noqa: E712
        .values(is_active=False)
    )
    await session.commit()
    deactivated = (result.rowcount or 0) > 0
    if deactivated:
        app_logger.info(f"Device deactivated: {device_id} (user {user_id})")
    return deactivated
