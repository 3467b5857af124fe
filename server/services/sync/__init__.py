"""Offline-first sync package.

- Cache-first reads with origin tagging (fresh, cached, offline-cached)
- Durable mutation queue replayed in order on reconnect
- Bounded retry with dead-lettering
- Pluggable executor and notifier
"""

from .models import (
    FetchOrigin,
    OperationKind,
    RemoteResult,
    Scope,
    EntitySpec,
    FetchResult,
    QueuedOperation,
)
from .orchestrator import SyncOrchestrator, OFFLINE_MESSAGE
from .queue import MutationQueue
from .executor import OperationExecutor, HttpOperationExecutor
from .notifier import SyncNotifier, LoggingNotifier, summarize_sync

__all__ = [
    # Models
    "FetchOrigin",
    "OperationKind",
    "RemoteResult",
    "Scope",
    "EntitySpec",
    "FetchResult",
    "QueuedOperation",
    # Orchestrator
    "SyncOrchestrator",
    "OFFLINE_MESSAGE",
    # Queue
    "MutationQueue",
    # Executor
    "OperationExecutor",
    "HttpOperationExecutor",
    # Notifier
    "SyncNotifier",
    "LoggingNotifier",
    "summarize_sync",
]
