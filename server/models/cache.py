"""Freshness metadata model, one row per cache key.

A row records when an entity kind was last written from the remote API and,
optionally, when that copy stops being fresh.
"""

import time
from typing import Optional
from sqlmodel import SQLModel, Field


class CacheMetadata(SQLModel, table=True):
    """Write/expiry bookkeeping for one cache key.

    ``expires_at`` left unset means the key never expires on its own.
    """

    __tablename__ = "cache_metadata"

    key: str = Field(primary_key=True, max_length=255)
    timestamp: float = Field(default_factory=time.time, index=True)  # Unix timestamp
    expires_at: Optional[float] = Field(default=None)
    version: Optional[int] = Field(default=None)
