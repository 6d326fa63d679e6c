"""Models module - imports all models for SQLModel registration."""

from papertrail.models.user import User
from papertrail.models.document import Document
from papertrail.models.device import Device
from papertrail.models.sync_history import SyncHistory

__all__ = [
    "User",
    "Document",
    "Device",
    "SyncHistory",
]
