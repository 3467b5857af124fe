"""Offline mutation queue table."""

from typing import Any, Dict
from sqlmodel import SQLModel, Field, Column, JSON


class QueuedOperationRow(SQLModel, table=True):
    """Persisted pending write, replayed in enqueue order."""

    __tablename__ = "offline_queue"

    id: str = Field(primary_key=True, max_length=64)
    kind: str = Field(index=True, max_length=16)         # create | update | delete
    entity_type: str = Field(index=True, max_length=32)  # sale | outlet | dashboard
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    enqueued_at: float = Field(index=True)               # Unix timestamp
    retry_count: int = Field(default=0)
