"""Typed record cache over the local SQLite replica.

Thin async facade keyed by table model. All operations may raise
:class:`PersistenceError`; the sync orchestrator treats that as a miss.
"""

from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from sqlmodel import SQLModel

from core.database import Database
from core.logging import get_logger, log_cache_operation
from models.records import RECORD_TABLES

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


class RecordCache:
    """Persistent cache of domain entities, one table per entity kind."""

    def __init__(self, database: Database):
        self.database = database

    async def get(self, table: Type[ModelT], record_id: str) -> Optional[ModelT]:
        """Get one record by id."""
        record = await self.database.get_record(table, record_id)
        log_cache_operation(logger, "get", f"{table.__tablename__}:{record_id}", hit=record is not None)
        return record

    async def get_all(self, table: Type[ModelT]) -> List[ModelT]:
        """Get every cached record of a table."""
        records = await self.database.get_records(table)
        log_cache_operation(logger, "get_all", table.__tablename__, hit=bool(records), count=len(records))
        return records

    async def get_by_index(self, table: Type[ModelT], field: str, value: Any) -> List[ModelT]:
        """Get records through a declared secondary index."""
        indexed = getattr(table, "indexed_fields", frozenset())
        if field not in indexed:
            raise ValueError(f"{table.__tablename__} has no index on '{field}'")
        records = await self.database.get_records_by(table, field, value)
        log_cache_operation(logger, "get_by_index", f"{table.__tablename__}:{field}={value}",
                            hit=bool(records), count=len(records))
        return records

    async def put(self, table: Type[ModelT], record: ModelT) -> None:
        """Upsert one record."""
        await self.bulk_put(table, [record])

    async def bulk_put(self, table: Type[ModelT], records: Sequence[ModelT]) -> None:
        """Upsert records by id; rows not in ``records`` are kept."""
        if not records:
            return
        await self.database.upsert_records(table, records)
        log_cache_operation(logger, "bulk_put", table.__tablename__, count=len(records))

    async def replace_all(self, table: Type[ModelT], records: Sequence[ModelT]) -> None:
        """Replace the table content with ``records``."""
        await self.database.replace_records(table, records)
        log_cache_operation(logger, "replace_all", table.__tablename__, count=len(records))

    async def clear(self, table: Type[ModelT]) -> int:
        """Remove every record of a table."""
        deleted = await self.database.clear_records(table)
        log_cache_operation(logger, "clear", table.__tablename__, deleted=deleted)
        return deleted

    async def count(self, table: Type[ModelT]) -> int:
        return await self.database.count_records(table)

    async def clear_all(self) -> Dict[str, int]:
        """Clear every entity table."""
        return {table.__tablename__: await self.clear(table) for table in RECORD_TABLES}
