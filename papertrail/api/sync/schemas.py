"""Request and response schemas for device sync endpoints."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from papertrail.models.document import DocumentRecord
from papertrail.models.sync_history import SyncAction


class SyncDocumentsResponse(BaseModel):
    """Documents changed since the requested cursor."""

    documents: List[DocumentRecord]
    server_time: datetime = Field(..., description="Server clock at query time minus the cursor overlap; use as the next `since` cursor")


class PushRequest(BaseModel):
    """Local pending changes sent by a device, tombstones included."""

    device_id: Optional[UUID] = None
    documents: List[DocumentRecord] = Field(default_factory=list)


class PushResponse(BaseModel):
    accepted: List[DocumentRecord] = Field(default_factory=list, description="Stored versions of accepted changes")
    rejected: List[DocumentRecord] = Field(default_factory=list, description="Newer server versions that won")
    skipped: int = 0


class SyncCompleteRequest(BaseModel):
    document_ids: List[str] = Field(default_factory=list)
    device_id: Optional[UUID] = None
    action: SyncAction = SyncAction.SYNC_DOWN
