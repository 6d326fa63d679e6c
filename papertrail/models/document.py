"""Document record model shared by the server and the offline client."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field as PydanticField, field_validator
from sqlalchemy import JSON, Text
from sqlmodel import Field, SQLModel

from papertrail.models.types import UTCDateTime, utcnow


class Category(str, Enum):
    ID_DOCUMENT = "id-document"
    LEGAL = "legal"
    MEDICAL = "medical"
    FINANCIAL = "financial"


class UrgencyTag(str, Enum):
    EXPIRES_SOON = "expires-soon"
    NEED_FOR_TAXES = "need-for-taxes"
    RENEWAL_DUE = "renewal-due"


class SyncStatus(str, Enum):
    SYNCED = "synced"
    PENDING = "pending"
    CONFLICT = "conflict"


def new_document_id() -> str:
    """Globally unique document id, assigned once on the creating device."""
    return uuid4().hex


class DocumentBase(SQLModel):
    """Columns common to the server `documents` table and the local store."""

    id: str = Field(default_factory=new_document_id, primary_key=True, max_length=32)
    title: str = Field(max_length=255, index=True)
    location: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, sa_type=Text)
    category: Category = Field(index=True)
    urgency_tags: List[str] = Field(default_factory=list, sa_type=JSON)
    expiration_date: Optional[date] = Field(default=None, index=True)
    image_data: Optional[str] = Field(default=None, sa_type=Text)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    sync_status: SyncStatus = Field(default=SyncStatus.PENDING, index=True)
    last_modified_device: Optional[str] = Field(default=None, max_length=64)
    # Tombstone: deletions are kept until every device has had a chance to see them
    deleted: bool = Field(default=False, index=True)
    deleted_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class Document(DocumentBase, table=True):
    """Server of record for a user's documents."""

    __tablename__ = "documents"

    user_id: UUID = Field(foreign_key="users.id", index=True)
    # Server clock at the last write. The sync cursor filters on this; `updated_at`
    # stays the editing device's time and decides last-writer-wins
    server_updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)


# Pydantic models for API and repository input/output
class DocumentFields(BaseModel):
    """Validated user-editable document fields."""

    title: str = PydanticField(..., min_length=1, max_length=255)
    location: str = PydanticField(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Category
    urgency_tags: List[UrgencyTag] = PydanticField(default_factory=list)
    expiration_date: Optional[date] = None
    image_data: Optional[str] = PydanticField(default=None, description="Base64 encoded image")

    @field_validator("title", "location", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("urgency_tags")
    @classmethod
    def _dedupe_tags(cls, value: List[UrgencyTag]) -> List[UrgencyTag]:
        return list(dict.fromkeys(value))


class DocumentCreate(DocumentFields):
    """Schema for creating a document."""

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "example": {
                "title": "US Passport",
                "location": "Home safe, top shelf",
                "category": "id-document",
                "urgency_tags": ["renewal-due"],
                "expiration_date": "2027-03-01",
            }
        },
    }


class DocumentUpdate(BaseModel):
    """Schema for a partial document update. Identity fields are not accepted."""

    title: Optional[str] = PydanticField(None, min_length=1, max_length=255)
    location: Optional[str] = PydanticField(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[Category] = None
    urgency_tags: Optional[List[UrgencyTag]] = None
    expiration_date: Optional[date] = None
    image_data: Optional[str] = None

    model_config = {"extra": "forbid"}

    @field_validator("title", "location", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("title", "location", "category", "urgency_tags")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be cleared")
        return value

    @field_validator("urgency_tags")
    @classmethod
    def _dedupe_tags(cls, value):
        return list(dict.fromkeys(value))

    def changes(self) -> dict:
        """Fields explicitly set by the caller, in storage form."""
        data = self.model_dump(exclude_unset=True, mode="python")
        if "urgency_tags" in data:
            data["urgency_tags"] = [UrgencyTag(tag).value for tag in data["urgency_tags"]]
        return data


class DocumentRecord(DocumentFields):
    """A document as returned by the repository and exchanged during sync."""

    id: str
    created_at: datetime
    updated_at: datetime
    sync_status: SyncStatus = SyncStatus.PENDING
    last_modified_device: Optional[str] = None
    deleted: bool = False
    deleted_at: Optional[datetime] = None
    server_updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DocumentStats(BaseModel):
    """Aggregate document counts, recomputed on demand."""

    total_docs: int
    expiring_docs: int
    categories: int


def storage_fields(fields: DocumentFields) -> dict:
    """Dump validated fields in the shape stored in a table row."""
    data = fields.model_dump(mode="python")
    data["urgency_tags"] = [UrgencyTag(tag).value for tag in data["urgency_tags"]]
    return data


# Fields a sync peer is allowed to overwrite; identity and bookkeeping stay local
SYNCED_FIELDS = (
    "title",
    "location",
    "description",
    "category",
    "urgency_tags",
    "expiration_date",
    "image_data",
    "deleted",
    "deleted_at",
)


def synced_values(record: DocumentRecord) -> dict:
    values = record.model_dump(include=set(SYNCED_FIELDS), mode="python")
    values["urgency_tags"] = [UrgencyTag(tag).value for tag in values["urgency_tags"]]
    return values
