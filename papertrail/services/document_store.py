"""Server-side document CRUD and queries, always scoped to the owning user."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.errors import NotFoundError
from papertrail.models.document import (
    Category,
    Document,
    DocumentCreate,
    DocumentStats,
    DocumentUpdate,
    SyncStatus,
    storage_fields,
)
from papertrail.models.types import utcnow
from papertrail.services import document_queries


async def list_documents(session: AsyncSession, user_id: UUID) -> List[Document]:
    """All live documents for a user, most recently updated first."""
    result = await session.execute(
        select(Document)
        .where(Document.user_id == user_id, Document.deleted == False)  # noqa: E712
        .order_by(Document.updated_at.desc())
    )
    return list(result.scalars().all())


async def get_document(session: AsyncSession, document_id: str, user_id: UUID) -> Document:
    result = await session.execute(
        select(Document).where(
            Document.id == document_id,
            Document.user_id == user_id,
            Document.deleted == False,  # noqa: E712
        )
    )
    document = result.scalar_one_or_none()
    if document is None:
        raise NotFoundError(f"Document {document_id} not found")
    return document


async def create_document(
    session: AsyncSession,
    user_id: UUID,
    fields: DocumentCreate,
    device_id: Optional[str] = None,
) -> Document:
    now = utcnow()
    document = Document(
        **storage_fields(fields),
        user_id=user_id,
        created_at=now,
        updated_at=now,
        server_updated_at=now,
        sync_status=SyncStatus.PENDING,
        last_modified_device=device_id,
    )
    session.add(document)
    await session.commit()
    await session.refresh(document)
    app_logger.info(f"Document created: {document.id} (user {user_id})")
    return document


async def update_document(
    session: AsyncSession,
    document_id: str,
    user_id: UUID,
    updates: DocumentUpdate,
    device_id: Optional[str] = None,
) -> Document:
    document = await get_document(session, document_id, user_id)
    for key, value in updates.changes().items():
        setattr(document, key, value)
    now = utcnow()
    document.updated_at = document_queries.next_updated_at(document.updated_at, now)
    document.server_updated_at = now
    document.sync_status = SyncStatus.PENDING
    document.last_modified_device = device_id
    session.add(document)
    await session.commit()
    await session.refresh(document)
    return document


async def delete_document(session: AsyncSession, document_id: str, user_id: UUID) -> bool:
    """Tombstone a document. Returns False if it does not exist for this user."""
    try:
        document = await get_document(session, document_id, user_id)
    except NotFoundError:
        return False

    now = utcnow()
    document.deleted = True
    document.deleted_at = now
    document.updated_at = document_queries.next_updated_at(document.updated_at, now)
    document.server_updated_at = now
    document.sync_status = SyncStatus.PENDING
    session.add(document)
    await session.commit()
    app_logger.info(f"Document tombstoned: {document_id} (user {user_id})")
    return True


async def search_documents(session: AsyncSession, query: str, user_id: UUID) -> List[Document]:
    return document_queries.search(await list_documents(session, user_id), query)


async def documents_by_category(
    session: AsyncSession, category: Category, user_id: UUID
) -> List[Document]:
    result = await session.execute(
        select(Document)
        .where(
            Document.user_id == user_id,
            Document.category == category,
            Document.deleted == False,  # noqa: E712
        )
        .order_by(Document.updated_at.desc())
    )
    return list(result.scalars().all())


async def expiring_documents(
    session: AsyncSession,
    days_ahead: int,
    user_id: UUID,
    today: Optional[date] = None,
) -> List[Document]:
    today = today or utcnow().date()
    return document_queries.expiring(await list_documents(session, user_id), today, days_ahead)


async def document_stats(
    session: AsyncSession, user_id: UUID, today: Optional[date] = None
) -> DocumentStats:
    today = today or utcnow().date()
    return document_queries.compute_stats(
        await list_documents(session, user_id), today, settings.STATS_EXPIRING_WINDOW_DAYS
    )
