"""Registered client device model."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel
from sqlalchemy import Text
from sqlmodel import Field, SQLModel

from papertrail.models.types import UTCDateTime, utcnow


class DeviceType(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"
    TABLET = "tablet"


class Device(SQLModel, table=True):
    """One registered client instance of the application.

    Deactivation only flips `is_active`; rows are kept for sync history.
    """

    __tablename__ = "devices"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    device_name: str = Field(max_length=255)
    device_type: DeviceType = Field(default=DeviceType.DESKTOP)
    user_agent: Optional[str] = Field(default=None, sa_type=Text)
    last_seen_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class DeviceRead(BaseModel):
    """Schema for device responses."""

    id: UUID
    device_name: str
    device_type: DeviceType
    user_agent: Optional[str] = None
    last_seen_at: datetime
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
