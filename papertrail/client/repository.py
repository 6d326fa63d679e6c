"""Typed CRUD and query operations over the local record store.

Every operation is scoped to one user and works offline. Mutations mark the
record `pending`; the sync engine is the only writer of `synced`.
"""

from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, literal_column, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from papertrail.client.store import LocalDocument, LocalStore
from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.errors import NotFoundError, ValidationError, validation_error_from
from papertrail.models.document import (
    Category,
    DocumentCreate,
    DocumentRecord,
    DocumentStats,
    DocumentUpdate,
    SyncStatus,
    storage_fields,
    synced_values,
)
from papertrail.models.types import utcnow
from papertrail.services import document_queries

_IDENTITY_FIELDS = frozenset({"id", "created_at", "user_id"})


class ApplyOutcome(str, Enum):
    """What reconciling one remote record did to the local store."""

    APPLIED = "applied"
    REMOVED = "removed"
    KEPT_LOCAL = "kept_local"
    SKIPPED = "skipped"


class RecordRepository:
    def __init__(
        self,
        store: LocalStore,
        user_id: str,
        device_id: Optional[str] = None,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.user_id = str(user_id)
        self.device_id = device_id
        self._clock = clock

    def _live(self):
        return select(LocalDocument).where(
            LocalDocument.user_id == self.user_id,
            LocalDocument.deleted == False,  # noqa: E712
        )

    async def _load(self, session: AsyncSession, document_id: str) -> LocalDocument:
        result = await session.execute(self._live().where(LocalDocument.id == document_id))
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def _all_live(self) -> List[LocalDocument]:
        async with self.store.session() as session:
            result = await session.execute(
                self._live().order_by(LocalDocument.updated_at.desc(), literal_column("rowid"))
            )
            return list(result.scalars().all())

    @staticmethod
    def _records(documents: Iterable[LocalDocument]) -> List[DocumentRecord]:
        return [DocumentRecord.model_validate(doc) for doc in documents]

    async def create(self, fields: Union[DocumentCreate, Mapping[str, Any]]) -> DocumentRecord:
        if not isinstance(fields, DocumentCreate):
            try:
                fields = DocumentCreate.model_validate(dict(fields))
            except PydanticValidationError as exc:
                raise validation_error_from(exc) from exc

        now = self._clock()
        document = LocalDocument(
            **storage_fields(fields),
            user_id=self.user_id,
            created_at=now,
            updated_at=now,
            sync_status=SyncStatus.PENDING,
            last_modified_device=self.device_id,
        )
        async with self.store.session() as session:
            session.add(document)
            await session.commit()
            await session.refresh(document)
        app_logger.debug(f"Local document created: {document.id}")
        return DocumentRecord.model_validate(document)

    async def get(self, document_id: str) -> DocumentRecord:
        async with self.store.session() as session:
            return DocumentRecord.model_validate(await self._load(session, document_id))

    async def get_all(self) -> List[DocumentRecord]:
        """Live records, most recently updated first."""
        return self._records(await self._all_live())

    async def update(
        self, document_id: str, partial: Union[DocumentUpdate, Mapping[str, Any]]
    ) -> DocumentRecord:
        if not isinstance(partial, DocumentUpdate):
            partial = dict(partial)
            locked = _IDENTITY_FIELDS.intersection(partial)
            if locked:
                raise ValidationError(f"Cannot change {', '.join(sorted(locked))}")
            try:
                partial = DocumentUpdate.model_validate(partial)
            except PydanticValidationError as exc:
                raise validation_error_from(exc) from exc

        async with self.store.session() as session:
            document = await self._load(session, document_id)
            for key, value in partial.changes().items():
                setattr(document, key, value)
            document.updated_at = document_queries.next_updated_at(document.updated_at, self._clock())
            document.sync_status = SyncStatus.PENDING
            document.last_modified_device = self.device_id
            session.add(document)
            await session.commit()
            await session.refresh(document)
            return DocumentRecord.model_validate(document)

    async def delete(self, document_id: str) -> bool:
        """Tombstone a record. False when there is nothing to delete."""
        async with self.store.session() as session:
            try:
                document = await self._load(session, document_id)
            except NotFoundError:
                return False
            now = self._clock()
            document.deleted = True
            document.deleted_at = now
            document.updated_at = document_queries.next_updated_at(document.updated_at, now)
            document.sync_status = SyncStatus.PENDING
            document.last_modified_device = self.device_id
            session.add(document)
            await session.commit()
        app_logger.debug(f"Local document tombstoned: {document_id}")
        return True

    async def search(self, query: str) -> List[DocumentRecord]:
        return self._records(document_queries.search(await self._all_live(), query))

    async def by_category(self, category: Union[Category, str]) -> List[DocumentRecord]:
        try:
            category = Category(category)
        except ValueError as exc:
            raise ValidationError(f"Unknown category: {category}") from exc
        async with self.store.session() as session:
            result = await session.execute(
                self._live()
                .where(LocalDocument.category == category)
                .order_by(LocalDocument.updated_at.desc(), literal_column("rowid"))
            )
            return self._records(result.scalars().all())

    async def expiring(self, days_ahead: int) -> List[DocumentRecord]:
        """Records expiring between today and today + days_ahead, soonest first."""
        if days_ahead < 0:
            raise ValidationError("days_ahead must be zero or positive")
        today = self._clock().date()
        return self._records(document_queries.expiring(await self._all_live(), today, days_ahead))

    async def stats(self) -> DocumentStats:
        today = self._clock().date()
        return document_queries.compute_stats(
            await self._all_live(), today, settings.STATS_EXPIRING_WINDOW_DAYS
        )

    # Sync support

    async def pending_changes(self) -> List[DocumentRecord]:
        """Unsynced records, tombstones included, oldest change first."""
        async with self.store.session() as session:
            result = await session.execute(
                select(LocalDocument)
                .where(
                    LocalDocument.user_id == self.user_id,
                    LocalDocument.sync_status == SyncStatus.PENDING,
                )
                .order_by(LocalDocument.updated_at)
            )
            return self._records(result.scalars().all())

    async def _apply(self, session: AsyncSession, record: DocumentRecord) -> ApplyOutcome:
        local = await session.get(LocalDocument, record.id)
        if local is not None and local.user_id != self.user_id:
            app_logger.warning(f"Remote record {record.id} collides with another user's local row")
            return ApplyOutcome.SKIPPED

        # Last writer wins; an unsynced local edit survives only if strictly newer
        if (
            local is not None
            and local.sync_status == SyncStatus.PENDING
            and local.updated_at > record.updated_at
        ):
            return ApplyOutcome.KEPT_LOCAL

        if record.deleted:
            if local is None:
                return ApplyOutcome.SKIPPED
            await session.delete(local)
            return ApplyOutcome.REMOVED

        if local is None:
            local = LocalDocument(id=record.id, user_id=self.user_id, created_at=record.created_at)
        for key, value in synced_values(record).items():
            setattr(local, key, value)
        local.updated_at = record.updated_at
        local.sync_status = SyncStatus.SYNCED
        local.last_modified_device = record.last_modified_device
        session.add(local)
        return ApplyOutcome.APPLIED

    async def apply_remote(self, record: DocumentRecord) -> ApplyOutcome:
        async with self.store.session() as session:
            outcome = await self._apply(session, record)
            await session.commit()
            return outcome

    async def apply_remote_all(self, records: Sequence[DocumentRecord]) -> Dict[ApplyOutcome, int]:
        """Reconcile a batch in one transaction; returns a count per outcome."""
        counts = {outcome: 0 for outcome in ApplyOutcome}
        if not records:
            return counts
        async with self.store.session() as session:
            for record in records:
                counts[await self._apply(session, record)] += 1
            await session.commit()
        return counts

    async def mark_synced(self, document_ids: Sequence[str]) -> int:
        if not document_ids:
            return 0
        async with self.store.session() as session:
            result = await session.execute(
                update(LocalDocument)
                .where(LocalDocument.user_id == self.user_id, LocalDocument.id.in_(list(document_ids)))
                .values(sync_status=SyncStatus.SYNCED)
            )
            await session.commit()
            return result.rowcount or 0

    async def purge_tombstones(self, document_ids: Optional[Sequence[str]] = None) -> int:
        """Physically drop synced tombstones (or the given ones)."""
        query = delete(LocalDocument).where(
            LocalDocument.user_id == self.user_id,
            LocalDocument.deleted == True,  # noqa: E712
        )
        if document_ids is None:
            query = query.where(LocalDocument.sync_status == SyncStatus.SYNCED)
        else:
            query = query.where(LocalDocument.id.in_(list(document_ids)))
        async with self.store.session() as session:
            result = await session.execute(query.execution_options(synchronize_session=False))
            await session.commit()
            return result.rowcount or 0
