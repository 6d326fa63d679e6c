"""Sync-facing surface of the document service.

Devices push their pending changes, pull everything modified after their last
sync, then confirm. Reconciliation is last-writer-wins on `updated_at`, at
record granularity. The `since` cursor follows `server_updated_at`, the
server clock at the last write, so an edit made offline long ago still
reaches devices that synced in the meantime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.models.document import Document, DocumentRecord, SyncStatus, synced_values
from papertrail.models.sync_history import (
    SyncAction,
    SyncHistory,
    SyncHistoryCreate,
    SyncResultStatus,
)
from papertrail.models.types import utcnow
from papertrail.models.user import User


@dataclass
class PushOutcome:
    """Result of applying one batch of device changes."""

    accepted: List[Document] = field(default_factory=list)
    rejected: List[Document] = field(default_factory=list)
    skipped: int = 0


async def documents_for_sync(
    session: AsyncSession,
    user_id: UUID,
    since: Optional[datetime] = None,
) -> List[Document]:
    """Documents written to the server strictly after `since` (all when None), newest first.

    Tombstones are included so deletions reach other devices.
    """
    query = select(Document).where(Document.user_id == user_id)
    if since is not None:
        query = query.where(Document.server_updated_at > since)
    result = await session.execute(query.order_by(Document.server_updated_at.desc()))
    return list(result.scalars().all())


async def push_documents(
    session: AsyncSession,
    user_id: UUID,
    device_id: Optional[UUID],
    records: Sequence[DocumentRecord],
) -> PushOutcome:
    """Apply device changes with last-writer-wins on `updated_at`.

    The comparison uses the edit time each device recorded, so the later edit
    wins regardless of which device reaches the server first. Accepted records
    keep that edit time and get a fresh `server_updated_at`. Stale records
    (older or equal edit time) are rejected and the current server copy is
    returned instead. Ids owned by another user are skipped without revealing
    anything about them.
    """
    outcome = PushOutcome()
    if not records:
        return outcome

    now = utcnow()
    ids = [record.id for record in records]
    result = await session.execute(select(Document).where(Document.id.in_(ids)))
    existing = {doc.id: doc for doc in result.scalars().all()}

    for record in records:
        current = existing.get(record.id)
        if current is not None and current.user_id != user_id:
            app_logger.warning(f"Push skipped foreign document id {record.id} (user {user_id})")
            outcome.skipped += 1
            continue
        if current is not None and current.updated_at >= record.updated_at:
            outcome.rejected.append(current)
            continue

        if current is None:
            current = Document(id=record.id, user_id=user_id, created_at=record.created_at)
            existing[record.id] = current

        for key, value in synced_values(record).items():
            setattr(current, key, value)
        current.updated_at = record.updated_at
        current.server_updated_at = now
        current.sync_status = SyncStatus.SYNCED
        current.last_modified_device = record.last_modified_device or (
            str(device_id) if device_id else None
        )
        session.add(current)
        outcome.accepted.append(current)

    if outcome.rejected:
        session.add(
            SyncHistory(
                user_id=user_id,
                device_id=device_id,
                action=SyncAction.CONFLICT_RESOLUTION,
                document_count=len(outcome.rejected),
                status=SyncResultStatus.SUCCESS,
            )
        )

    await session.commit()
    app_logger.info(
        f"Push applied for user {user_id}: accepted={len(outcome.accepted)} "
        f"rejected={len(outcome.rejected)} skipped={outcome.skipped}"
    )
    return outcome


async def mark_synced(session: AsyncSession, document_ids: Sequence[str], user_id: UUID) -> int:
    """Bulk-set sync_status=synced. Ids the user does not own are ignored."""
    if not document_ids:
        return 0
    result = await session.execute(
        update(Document)
        .where(Document.id.in_(list(document_ids)), Document.user_id == user_id)
        .values(sync_status=SyncStatus.SYNCED)
    )
    await session.commit()
    return result.rowcount or 0


async def record_sync_history(
    session: AsyncSession, user_id: UUID, entry: SyncHistoryCreate
) -> SyncHistory:
    history = SyncHistory(user_id=user_id, **entry.model_dump())
    session.add(history)
    await session.commit()
    await session.refresh(history)
    return history


async def sync_history(session: AsyncSession, user_id: UUID, limit: int = 10) -> List[SyncHistory]:
    result = await session.execute(
        select(SyncHistory)
        .where(SyncHistory.user_id == user_id)
        .order_by(SyncHistory.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def sync_conflicts(session: AsyncSession, user_id: UUID) -> List[Document]:
    result = await session.execute(
        select(Document).where(
            Document.user_id == user_id,
            Document.sync_status == SyncStatus.CONFLICT,
            Document.deleted == False,  # noqa: E712
        )
    )
    return list(result.scalars().all())


async def purge_expired_tombstones(session: AsyncSession, before: Optional[datetime] = None) -> int:
    """Physically remove tombstones older than the retention window."""
    before = before or utcnow() - timedelta(days=settings.TOMBSTONE_RETENTION_DAYS)
    result = await session.execute(
        delete(Document)
        .where(Document.deleted == True, Document.deleted_at < before)  # noqa: E712
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    purged = result.rowcount or 0
    if purged:
        app_logger.info(f"Purged {purged} expired tombstones")
    return purged


async def complete_sync(
    session: AsyncSession,
    user_id: UUID,
    document_ids: Sequence[str],
    device_id: Optional[UUID],
    action: SyncAction = SyncAction.SYNC_DOWN,
) -> SyncHistory:
    """Confirm a device sync: mark documents synced and append the history row."""
    await mark_synced(session, document_ids, user_id)

    user = await session.get(User, user_id)
    if user is not None:
        user.last_sync_at = utcnow()
        user.sync_enabled = True
        session.add(user)

    history = await record_sync_history(
        session,
        user_id,
        SyncHistoryCreate(
            device_id=device_id,
            action=action,
            document_count=len(document_ids),
            status=SyncResultStatus.SUCCESS,
        ),
    )
    await purge_expired_tombstones(session)
    return history
