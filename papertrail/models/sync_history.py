"""Sync history model (append-only)."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field as PydanticField
from sqlalchemy import Text
from sqlmodel import Field, SQLModel

from papertrail.models.types import UTCDateTime, utcnow


class SyncAction(str, Enum):
    SYNC_DOWN = "sync_down"
    SYNC_UP = "sync_up"
    CONFLICT_RESOLUTION = "conflict_resolution"


class SyncResultStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


class SyncHistory(SQLModel, table=True):
    """Audit row for one sync operation.

    Append-only: rows are never updated or deleted by normal operation.
    """

    __tablename__ = "sync_history"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    device_id: Optional[UUID] = Field(default=None, index=True)
    action: SyncAction = Field(index=True)
    document_count: int = Field(default=0, ge=0)
    status: SyncResultStatus = Field(default=SyncResultStatus.SUCCESS)
    error_message: Optional[str] = Field(default=None, sa_type=Text)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)


class SyncHistoryCreate(BaseModel):
    """Schema for appending a sync history entry."""

    device_id: Optional[UUID] = None
    action: SyncAction = SyncAction.SYNC_DOWN
    document_count: int = PydanticField(0, ge=0)
    status: SyncResultStatus = SyncResultStatus.SUCCESS
    error_message: Optional[str] = None


class SyncHistoryRead(BaseModel):
    """Schema for sync history responses."""

    id: UUID
    device_id: Optional[UUID] = None
    action: SyncAction
    document_count: int
    status: SyncResultStatus
    error_message: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
