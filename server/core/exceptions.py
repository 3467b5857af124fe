"""Sync engine exception hierarchy."""


class SyncError(Exception):
    """Base exception for all data-access and sync errors."""


class PersistenceError(SyncError):
    """Local storage failure. Callers downgrade it to a cache miss."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class RemoteFetchError(SyncError):
    """Remote collaborator reported a failure or raised."""

    def __init__(self, entity: str, message: str):
        self.entity = entity
        super().__init__(f"[{entity}] {message}")


class NoCachedData(SyncError):
    """Offline with nothing cached for the requested scope."""

    def __init__(self, scope: str):
        self.scope = scope
        super().__init__(f"Offline and no cached data for {scope}")


class QueueExhausted(SyncError):
    """Queued operation dropped after exhausting its retry cap."""

    def __init__(self, operation_id: str, retry_count: int, kind: str = "", entity_type: str = ""):
        self.operation_id = operation_id
        self.retry_count = retry_count
        self.kind = kind
        self.entity_type = entity_type
        super().__init__(
            f"Operation {operation_id} ({kind} {entity_type}) dropped after {retry_count} attempts"
        )
