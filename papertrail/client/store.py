"""Embedded per-device store: document records, sync state and the sync lock."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncGenerator, Optional

from sqlalchemy import or_, update
from sqlalchemy import Text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import Field, SQLModel

from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.db.db import get_db_url
from papertrail.models.document import DocumentBase
from papertrail.models.types import UTCDateTime, utcnow

DEVICE_ID_KEY = "device_id"
LAST_SYNC_KEY = "last_sync_at"


class LocalDocument(DocumentBase, table=True):
    """Device-local copy of a document record."""

    __tablename__ = "local_documents"

    user_id: str = Field(index=True, max_length=64)


class LocalState(SQLModel, table=True):
    """Per-user key/value state that must survive restarts."""

    __tablename__ = "local_state"

    user_id: str = Field(primary_key=True, max_length=64)
    key: str = Field(primary_key=True, max_length=64)
    value: Optional[str] = Field(default=None, sa_type=Text)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class SyncLock(SQLModel, table=True):
    """Durable sync lock. A row with no owner or an expired lease is free."""

    __tablename__ = "sync_locks"

    name: str = Field(primary_key=True, max_length=128)
    owner: Optional[str] = Field(default=None, max_length=64)
    expires_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class LocalStore:
    """SQLite-backed store opened once per client session."""

    def __init__(self, url: Optional[str] = None):
        self.url = get_db_url(url or settings.LOCAL_STORE_URL)
        self._engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def open(self) -> None:
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, echo=False)
        self._session_maker = async_sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)
        tables = [LocalDocument.__table__, LocalState.__table__, SyncLock.__table__]
        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all, tables=tables)
        app_logger.info(f"Local store opened: {self.url}")

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_maker = None
            app_logger.info("Local store closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_maker is None:
            raise RuntimeError("Local store is not open. Call open() first.")
        async with self._session_maker() as session:
            yield session

    async def get_state(self, user_id: str, key: str) -> Optional[str]:
        async with self.session() as session:
            row = await session.get(LocalState, (user_id, key))
            return row.value if row else None

    async def set_state(self, user_id: str, key: str, value: Optional[str]) -> None:
        async with self.session() as session:
            row = await session.get(LocalState, (user_id, key))
            if row is None:
                row = LocalState(user_id=user_id, key=key)
            row.value = value
            row.updated_at = utcnow()
            session.add(row)
            await session.commit()

    async def acquire_lock(self, name: str, owner: str, ttl_seconds: Optional[int] = None) -> bool:
        """Take the named lock if it is free, expired or already ours.

        The conditional UPDATE is the compare-and-swap: exactly one contender
        sees a non-zero rowcount.
        """
        ttl = ttl_seconds if ttl_seconds is not None else settings.SYNC_LOCK_TTL_SECONDS
        now = utcnow()
        async with self.session() as session:
            await session.execute(
                sqlite_insert(SyncLock.__table__).values(name=name).on_conflict_do_nothing(index_elements=["name"])
            )
            result = await session.execute(
                update(SyncLock)
                .where(
                    SyncLock.name == name,
                    or_(
                        SyncLock.owner.is_(None),
                        SyncLock.owner == owner,
                        SyncLock.expires_at.is_(None),
                        SyncLock.expires_at < now,
                    ),
                )
                .values(owner=owner, expires_at=now + timedelta(seconds=ttl))
            )
            await session.commit()
            return (result.rowcount or 0) > 0

    async def release_lock(self, name: str, owner: str) -> bool:
        async with self.session() as session:
            result = await session.execute(
                update(SyncLock)
                .where(SyncLock.name == name, SyncLock.owner == owner)
                .values(owner=None, expires_at=None)
            )
            await session.commit()
            return (result.rowcount or 0) > 0
