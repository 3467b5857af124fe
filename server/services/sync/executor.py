"""Queue operation executors.

Maps a queued ``(kind, entity_type, payload)`` to one idempotent remote call:

    create -> POST   {base}/{collection}              Idempotency-Key: <op id>
    update -> PUT    {base}/{collection}/{payload.id}
    delete -> DELETE {base}/{collection}/{payload.id}

A 2xx answer is success. A 409 on create and a 404 on delete mean the write
was already applied by an earlier attempt and also count as success.
"""

from typing import Optional, Protocol

import httpx

from constants import WRITABLE_COLLECTIONS
from core.logging import get_logger
from .models import OperationKind, QueuedOperation

logger = get_logger(__name__)


class OperationExecutor(Protocol):
    """Applies one queued operation remotely."""

    async def execute(self, operation: QueuedOperation) -> bool:
        """Return True when the remote side confirmed the write."""
        ...


class HttpOperationExecutor:
    """Replays queued writes against the REST API."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def build_request(self, operation: QueuedOperation) -> httpx.Request:
        """Translate an operation into an HTTP request.

        Raises:
            ValueError: entity type is not writable or the payload lacks an id
        """
        collection = WRITABLE_COLLECTIONS.get(operation.entity_type)
        if collection is None:
            raise ValueError(f"Entity type '{operation.entity_type}' is read-only")

        url = f"{self.base_url}/{collection}"
        headers = {"Idempotency-Key": operation.id}

        if operation.kind == OperationKind.CREATE:
            return self._get_client().build_request("POST", url, json=operation.payload, headers=headers)

        record_id = operation.payload.get("id")
        if not record_id:
            raise ValueError(f"{operation.kind.value} {operation.entity_type} requires an id")
        url = f"{url}/{record_id}"
        if operation.kind == OperationKind.UPDATE:
            return self._get_client().build_request("PUT", url, json=operation.payload, headers=headers)
        return self._get_client().build_request("DELETE", url, headers=headers)

    async def execute(self, operation: QueuedOperation) -> bool:
        try:
            request = self.build_request(operation)
        except ValueError as e:
            logger.error("Operation cannot be replayed", operation_id=operation.id, error=str(e))
            return False

        try:
            response = await self._get_client().send(request)
        except httpx.HTTPError as e:
            logger.warning("Operation replay failed", operation_id=operation.id, error=str(e))
            return False

        if response.is_success:
            return True
        if operation.kind == OperationKind.CREATE and response.status_code == 409:
            logger.info("Create already applied", operation_id=operation.id)
            return True
        if operation.kind == OperationKind.DELETE and response.status_code == 404:
            logger.info("Delete already applied", operation_id=operation.id)
            return True

        logger.warning("Operation rejected", operation_id=operation.id,
                       status_code=response.status_code, method=request.method)
        return False
