"""Sync engine value models.

Scopes and entity specs drive the cache-first fetch protocol; queued
operations are the in-memory view of rows in the ``offline_queue`` table.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from sqlmodel import SQLModel

from models.queue import QueuedOperationRow


class FetchOrigin(str, Enum):
    """Provenance of a fetch result."""
    FRESH = "fresh"                    # Just fetched from the remote API
    CACHED = "cached"                  # Served from the local cache
    OFFLINE_CACHED = "offline-cached"  # Served from the local cache while offline


class OperationKind(str, Enum):
    """Kinds of queued writes."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class RemoteResult:
    """Outcome reported by a remote fetch collaborator."""
    success: bool
    items: List[Any] = field(default_factory=list)
    item: Optional[Any] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> "RemoteResult":
        return cls(success=False, message=message)


RemoteFetch = Callable[[], Awaitable[RemoteResult]]
RemoteKeyedFetch = Callable[[str], Awaitable[RemoteResult]]


@dataclass(frozen=True)
class Scope:
    """Requested subset of an entity kind.

    Either the whole collection, a keyed partition (``field == value``), or a
    single record by id.
    """
    entity: str
    field: Optional[str] = None
    value: Optional[str] = None
    record_id: Optional[str] = None

    @classmethod
    def whole(cls, entity: str) -> "Scope":
        return cls(entity=entity)

    @classmethod
    def partition(cls, entity: str, field: str, value: str) -> "Scope":
        return cls(entity=entity, field=field, value=value)

    @classmethod
    def record(cls, entity: str, record_id: str) -> "Scope":
        return cls(entity=entity, record_id=record_id)

    @property
    def is_whole(self) -> bool:
        return self.field is None and self.record_id is None

    @property
    def is_record(self) -> bool:
        return self.record_id is not None

    def __str__(self) -> str:
        if self.record_id is not None:
            return f"{self.entity}#{self.record_id}"
        if self.field is not None:
            return f"{self.entity}[{self.field}={self.value}]"
        return self.entity


@dataclass
class EntitySpec:
    """Per entity kind wiring for the orchestrator."""
    name: str
    model: Type[SQLModel]
    cache_key: str
    fetch_all: RemoteFetch
    ttl: Optional[float] = None
    fetch_by_id: Optional[RemoteKeyedFetch] = None
    fetch_partition: Optional[RemoteKeyedFetch] = None
    partition_field: Optional[str] = None


@dataclass
class FetchResult:
    """Answer to a cache-first fetch, tagged with its origin."""
    payload: Any
    origin: FetchOrigin
    message: Optional[str] = None

    @property
    def is_fresh(self) -> bool:
        return self.origin == FetchOrigin.FRESH

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict (records rendered in API shape)."""
        payload = self.payload
        if isinstance(payload, list):
            rendered: Any = [_render(item) for item in payload]
        else:
            rendered = _render(payload) if payload is not None else None
        return {
            "payload": rendered,
            "origin": self.origin.value,
            "message": self.message,
        }


def _render(record: Any) -> Any:
    if hasattr(record, "to_api"):
        return record.to_api()
    if isinstance(record, SQLModel):
        return record.model_dump()
    return record


@dataclass
class QueuedOperation:
    """Pending write awaiting replay."""
    id: str
    kind: OperationKind
    entity_type: str
    payload: Dict[str, Any]
    enqueued_at: float = field(default_factory=time.time)
    retry_count: int = 0

    @classmethod
    def create(cls, kind: OperationKind, entity_type: str, payload: Dict[str, Any],
               clock: Callable[[], float] = time.time) -> "QueuedOperation":
        """Build a new operation with an id derived from the enqueue time."""
        now = clock()
        return cls(
            id=f"q_{time.time_ns()}_{uuid.uuid4().hex[:9]}",
            kind=OperationKind(kind),
            entity_type=entity_type,
            payload=dict(payload),
            enqueued_at=now,
            retry_count=0,
        )

    def to_row(self) -> QueuedOperationRow:
        return QueuedOperationRow(
            id=self.id,
            kind=self.kind.value,
            entity_type=self.entity_type,
            payload=self.payload,
            enqueued_at=self.enqueued_at,
            retry_count=self.retry_count,
        )

    @classmethod
    def from_row(cls, row: QueuedOperationRow) -> "QueuedOperation":
        return cls(
            id=row.id,
            kind=OperationKind(row.kind),
            entity_type=row.entity_type,
            payload=dict(row.payload or {}),
            enqueued_at=row.enqueued_at,
            retry_count=row.retry_count,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "entity_type": self.entity_type,
            "payload": self.payload,
            "enqueued_at": self.enqueued_at,
            "retry_count": self.retry_count,
        }
