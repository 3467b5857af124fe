"""Async database service with SQLModel and SQLAlchemy 2.0.

Holds the single local replica: cached entity tables, freshness metadata and
the offline mutation queue. Every failure is logged and re-raised as
:class:`PersistenceError` so callers can downgrade it to a cache miss.
"""

from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar
from sqlmodel import SQLModel, select
from sqlalchemy import delete, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from contextlib import asynccontextmanager

from core.config import Settings
from core.exceptions import PersistenceError
from core.logging import get_logger
from models.records import Outlet, Sale, DashboardStats  # noqa: F401  (table registration)
from models.cache import CacheMetadata
from models.queue import QueuedOperationRow

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

_STORAGE_ERRORS = (SQLAlchemyError, RuntimeError, OSError)


def _persistence_error(operation: str, error: Exception, **context) -> PersistenceError:
    logger.error("Database operation failed", operation=operation, error=str(error), **context)
    return PersistenceError(operation, str(error))


class Database:
    """Async database service with SQLModel."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            self.engine = create_async_engine(
                self.settings.database_url,
                echo=self.settings.database_echo,
                future=True
            )

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully", url=self.settings.database_url)

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def check_health(self) -> bool:
        """Run a trivial query against the store."""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except _STORAGE_ERRORS as e:
            logger.warning("Database health check failed", error=str(e))
            return False

    # ============================================================================
    # Cached Records
    # ============================================================================

    async def get_record(self, model: Type[ModelT], record_id: str) -> Optional[ModelT]:
        """Get a single record by primary key."""
        try:
            async with self.get_session() as session:
                return await session.get(model, record_id)
        except _STORAGE_ERRORS as e:
            raise _persistence_error("get_record", e, table=model.__tablename__, record_id=record_id) from e

    async def get_records(self, model: Type[ModelT]) -> List[ModelT]:
        """Get every record of a table."""
        try:
            async with self.get_session() as session:
                result = await session.execute(select(model))
                return list(result.scalars().all())
        except _STORAGE_ERRORS as e:
            raise _persistence_error("get_records", e, table=model.__tablename__) from e

    async def get_records_by(self, model: Type[ModelT], field: str, value: Any) -> List[ModelT]:
        """Get records whose column ``field`` equals ``value``."""
        try:
            column = getattr(model, field)
            async with self.get_session() as session:
                result = await session.execute(select(model).where(column == value))
                return list(result.scalars().all())
        except _STORAGE_ERRORS as e:
            raise _persistence_error("get_records_by", e, table=model.__tablename__, field=field) from e

    async def upsert_records(self, model: Type[ModelT], records: Sequence[ModelT]) -> int:
        """Insert or update records by primary key."""
        try:
            async with self.get_session() as session:
                for record in records:
                    await session.merge(record)
                await session.commit()
                return len(records)
        except _STORAGE_ERRORS as e:
            raise _persistence_error("upsert_records", e, table=model.__tablename__, count=len(records)) from e

    async def replace_records(self, model: Type[ModelT], records: Sequence[ModelT]) -> int:
        """Replace the whole table content in one transaction."""
        try:
            async with self.get_session() as session:
                await session.execute(delete(model))
                for record in records:
                    await session.merge(record)
                await session.commit()
                return len(records)
        except _STORAGE_ERRORS as e:
            raise _persistence_error("replace_records", e, table=model.__tablename__, count=len(records)) from e

    async def clear_records(self, model: Type[ModelT]) -> int:
        """Delete every record of a table. Returns count deleted."""
        try:
            async with self.get_session() as session:
                result = await session.execute(delete(model))
                await session.commit()
                return result.rowcount or 0
        except _STORAGE_ERRORS as e:
            raise _persistence_error("clear_records", e, table=model.__tablename__) from e

    async def count_records(self, model: Type[ModelT]) -> int:
        """Count records of a table."""
        try:
            async with self.get_session() as session:
                result = await session.execute(select(func.count()).select_from(model))
                return int(result.scalar_one())
        except _STORAGE_ERRORS as e:
            raise _persistence_error("count_records", e, table=model.__tablename__) from e

    # ============================================================================
    # Cache Metadata
    # ============================================================================

    async def get_cache_metadata(self, key: str) -> Optional[CacheMetadata]:
        """Get freshness metadata for a cache key."""
        try:
            async with self.get_session() as session:
                return await session.get(CacheMetadata, key)
        except _STORAGE_ERRORS as e:
            raise _persistence_error("get_cache_metadata", e, key=key) from e

    async def set_cache_metadata(self, key: str, timestamp: float,
                                 expires_at: Optional[float] = None,
                                 version: Optional[int] = None) -> None:
        """Create or overwrite freshness metadata for a cache key."""
        try:
            async with self.get_session() as session:
                await session.merge(CacheMetadata(
                    key=key,
                    timestamp=timestamp,
                    expires_at=expires_at,
                    version=version
                ))
                await session.commit()
        except _STORAGE_ERRORS as e:
            raise _persistence_error("set_cache_metadata", e, key=key) from e

    async def get_all_cache_metadata(self) -> Dict[str, CacheMetadata]:
        """Get freshness metadata for every key."""
        try:
            async with self.get_session() as session:
                result = await session.execute(select(CacheMetadata))
                return {entry.key: entry for entry in result.scalars().all()}
        except _STORAGE_ERRORS as e:
            raise _persistence_error("get_all_cache_metadata", e) from e

    async def clear_cache_metadata(self) -> int:
        """Remove all freshness metadata."""
        try:
            async with self.get_session() as session:
                result = await session.execute(delete(CacheMetadata))
                await session.commit()
                return result.rowcount or 0
        except _STORAGE_ERRORS as e:
            raise _persistence_error("clear_cache_metadata", e) from e

    # ============================================================================
    # Offline Queue
    # ============================================================================

    async def add_queued_operation(self, row: QueuedOperationRow) -> None:
        """Persist a pending operation."""
        try:
            async with self.get_session() as session:
                await session.merge(row)
                await session.commit()
        except _STORAGE_ERRORS as e:
            raise _persistence_error("add_queued_operation", e, operation_id=row.id) from e

    async def get_queued_operations(self) -> List[QueuedOperationRow]:
        """Get pending operations in enqueue order."""
        try:
            async with self.get_session() as session:
                stmt = select(QueuedOperationRow).order_by(
                    QueuedOperationRow.enqueued_at, QueuedOperationRow.id
                )
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except _STORAGE_ERRORS as e:
            raise _persistence_error("get_queued_operations", e) from e

    async def update_queued_retry_count(self, operation_id: str, retry_count: int) -> bool:
        """Persist an incremented retry count."""
        try:
            async with self.get_session() as session:
                row = await session.get(QueuedOperationRow, operation_id)
                if not row:
                    return False
                row.retry_count = retry_count
                await session.commit()
                return True
        except _STORAGE_ERRORS as e:
            raise _persistence_error("update_queued_retry_count", e, operation_id=operation_id) from e

    async def delete_queued_operation(self, operation_id: str) -> bool:
        """Delete a pending operation."""
        try:
            async with self.get_session() as session:
                result = await session.execute(
                    delete(QueuedOperationRow).where(QueuedOperationRow.id == operation_id)
                )
                await session.commit()
                return bool(result.rowcount)
        except _STORAGE_ERRORS as e:
            raise _persistence_error("delete_queued_operation", e, operation_id=operation_id) from e

    async def count_queued_operations(self) -> int:
        """Count pending operations."""
        try:
            async with self.get_session() as session:
                result = await session.execute(select(func.count()).select_from(QueuedOperationRow))
                return int(result.scalar_one())
        except _STORAGE_ERRORS as e:
            raise _persistence_error("count_queued_operations", e) from e

    async def clear_queued_operations(self) -> int:
        """Drop every pending operation."""
        try:
            async with self.get_session() as session:
                result = await session.execute(delete(QueuedOperationRow))
                await session.commit()
                return result.rowcount or 0
        except _STORAGE_ERRORS as e:
            raise _persistence_error("clear_queued_operations", e) from e
