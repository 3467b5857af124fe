"""Durable offline mutation queue.

Writes that could not be confirmed remotely are persisted to the
``offline_queue`` table and replayed in enqueue order when connectivity comes
back. Each failed replay increments the operation's retry count; at the cap
the operation is dead-lettered (deleted and logged), never retried again.

Replay passes run only:
    - right after an enqueue, when the probe confirms we are online
    - after a confirmed platform transition to online
There is no timer and no backoff.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from constants import DEFAULT_QUEUE_MAX_RETRIES, ENTITY_TYPES, OPERATION_KINDS, is_writable_entity
from core.database import Database
from core.exceptions import PersistenceError, QueueExhausted
from core.logging import get_logger, log_sync_pass
from models.queue import QueuedOperationRow
from services.connectivity import ConnectivityProbe
from services.state import ObservableValue
from .executor import OperationExecutor
from .models import OperationKind, QueuedOperation
from .notifier import LoggingNotifier, SyncNotifier

logger = get_logger(__name__)


class MutationQueue:
    """FIFO of pending writes with bounded retry."""

    def __init__(self, database: Database, probe: ConnectivityProbe,
                 executor: OperationExecutor, notifier: Optional[SyncNotifier] = None,
                 max_retries: int = DEFAULT_QUEUE_MAX_RETRIES,
                 clock: Callable[[], float] = time.time):
        self.database = database
        self.probe = probe
        self.executor = executor
        self.notifier = notifier or LoggingNotifier()
        self.max_retries = max_retries
        self._clock = clock
        self._processing = False
        self._count: ObservableValue[int] = ObservableValue(0, name="pending_operations")
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe_reconnect: Optional[Callable[[], None]] = None
        self.last_result: Optional[Tuple[int, int]] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Drain automatically on confirmed reconnects."""
        if self._unsubscribe_reconnect is None:
            self._unsubscribe_reconnect = self.probe.on_reconnect(self._on_reconnect)
        await self._publish_count()
        logger.info("Mutation queue started", pending=self._count.value, max_retries=self.max_retries)

    async def stop(self) -> None:
        if self._unsubscribe_reconnect is not None:
            self._unsubscribe_reconnect()
            self._unsubscribe_reconnect = None
        await self.wait_idle()
        logger.info("Mutation queue stopped")

    async def wait_idle(self) -> None:
        """Wait for scheduled processing passes to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _on_reconnect(self) -> None:
        logger.info("Network online, processing queue")
        await self.process_queue()

    @property
    def is_processing(self) -> bool:
        return self._processing

    # =========================================================================
    # WRITES
    # =========================================================================

    async def enqueue(self, kind: OperationKind, entity_type: str,
                      payload: Dict[str, Any]) -> QueuedOperation:
        """Persist a pending write and kick off a pass if online.

        Raises:
            ValueError: unknown kind or entity type
            PersistenceError: the operation could not be stored
        """
        operation = self._build(kind, entity_type, payload)
        await self._enqueue_operation(operation)
        return operation

    async def submit(self, kind: OperationKind, entity_type: str,
                     payload: Dict[str, Any]) -> bool:
        """Write-through: apply now when online, otherwise queue.

        Returns True when the remote side confirmed the write immediately.
        """
        operation = self._build(kind, entity_type, payload)
        if await self.probe.check_now():
            if await self._attempt(operation):
                logger.info("Write applied", kind=operation.kind.value, entity_type=entity_type)
                return True
            logger.info("Immediate write failed, queueing", operation_id=operation.id)
        # Same id is kept so the replay reuses the idempotency key
        await self._enqueue_operation(operation)
        return False

    def _build(self, kind: OperationKind, entity_type: str, payload: Dict[str, Any]) -> QueuedOperation:
        kind_value = kind.value if isinstance(kind, OperationKind) else kind
        if kind_value not in OPERATION_KINDS:
            raise ValueError(f"Unknown operation kind: {kind}")
        if entity_type not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity type: {entity_type}")
        if not is_writable_entity(entity_type):
            raise ValueError(f"Entity type '{entity_type}' is read-only")
        return QueuedOperation.create(OperationKind(kind_value), entity_type, payload, clock=self._clock)

    async def _enqueue_operation(self, operation: QueuedOperation) -> None:
        try:
            await self.database.add_queued_operation(operation.to_row())
        except PersistenceError:
            logger.error("Failed to queue operation", operation_id=operation.id)
            raise
        logger.info("Operation queued", operation_id=operation.id,
                    kind=operation.kind.value, entity_type=operation.entity_type)
        await self._publish_count()

        if await self.probe.check_now():
            self._schedule_processing()

    def _schedule_processing(self) -> None:
        task = asyncio.create_task(self.process_queue())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # REPLAY
    # =========================================================================

    async def process_queue(self) -> Optional[Tuple[int, int]]:
        """Run one replay pass over every pending operation.

        Returns ``(succeeded, dead_lettered)``, or None when the pass did not
        run (another pass in flight, offline, or the queue is unreadable).
        """
        if self._processing:
            logger.debug("Queue pass already in flight")
            return None

        self._processing = True
        try:
            if not await self.probe.check_now():
                logger.info("Skipping queue processing, offline")
                return None

            try:
                rows = await self.database.get_queued_operations()
            except PersistenceError as e:
                logger.error("Error loading queue", error=str(e))
                return None
            if not rows:
                return 0, 0

            logger.info("Processing queued operations", count=len(rows))
            succeeded = 0
            failed = 0
            for row in rows:
                operation = self._decode(row)
                if operation is None:
                    await self._discard_malformed(row)
                    failed += 1
                    continue
                if await self._attempt(operation):
                    await self._delete(operation)
                    succeeded += 1
                    continue

                operation.retry_count += 1
                if operation.retry_count >= self.max_retries:
                    exhausted = QueueExhausted(operation.id, operation.retry_count,
                                               operation.kind.value, operation.entity_type)
                    logger.error("Operation dead-lettered", error=str(exhausted),
                                 operation_id=operation.id, payload=operation.payload)
                    await self._delete(operation)
                    failed += 1
                else:
                    await self._save_retry(operation)

            self.last_result = (succeeded, failed)
            log_sync_pass(logger, len(rows), succeeded, failed)
            if succeeded or failed:
                self._notify(succeeded, failed)
            await self._publish_count()
            return succeeded, failed
        finally:
            self._processing = False

    @staticmethod
    def _decode(row: QueuedOperationRow) -> Optional[QueuedOperation]:
        """Row to operation; None when the stored row cannot be replayed."""
        try:
            return QueuedOperation.from_row(row)
        except (ValueError, TypeError) as e:
            logger.warning("Malformed queued operation", operation_id=row.id, kind=row.kind, error=str(e))
            return None

    async def _discard_malformed(self, row: QueuedOperationRow) -> None:
        exhausted = QueueExhausted(row.id, row.retry_count or 0, str(row.kind), str(row.entity_type))
        logger.error("Operation dead-lettered", error=str(exhausted),
                     operation_id=row.id, payload=row.payload)
        try:
            await self.database.delete_queued_operation(row.id)
        except PersistenceError as e:
            logger.error("Could not remove operation", operation_id=row.id, error=str(e))

    async def _attempt(self, operation: QueuedOperation) -> bool:
        try:
            return bool(await self.executor.execute(operation))
        except Exception as e:
            logger.warning("Executor raised", operation_id=operation.id, error=str(e))
            return False

    async def _delete(self, operation: QueuedOperation) -> None:
        try:
            await self.database.delete_queued_operation(operation.id)
        except PersistenceError as e:
            logger.error("Could not remove operation", operation_id=operation.id, error=str(e))

    async def _save_retry(self, operation: QueuedOperation) -> None:
        try:
            await self.database.update_queued_retry_count(operation.id, operation.retry_count)
        except PersistenceError as e:
            logger.error("Could not record retry", operation_id=operation.id, error=str(e))

    def _notify(self, succeeded: int, failed: int) -> None:
        try:
            self.notifier.sync_completed(succeeded, failed)
        except Exception as e:
            logger.warning("Sync notifier failed", error=str(e))

    # =========================================================================
    # INSPECTION
    # =========================================================================

    async def pending_operations(self) -> List[QueuedOperation]:
        try:
            rows = await self.database.get_queued_operations()
        except PersistenceError:
            return []
        operations = (self._decode(row) for row in rows)
        return [operation for operation in operations if operation is not None]

    async def pending_count(self) -> int:
        try:
            return await self.database.count_queued_operations()
        except PersistenceError:
            return 0

    async def clear(self) -> None:
        """Drop every pending operation."""
        try:
            await self.database.clear_queued_operations()
        except PersistenceError as e:
            logger.error("Failed to clear queue", error=str(e))
            return
        await self._publish_count()

    async def subscribe(self, listener: Callable[[int], None]) -> Callable[[], None]:
        """Observe the pending count: called now, then after every change."""
        listener(await self.pending_count())
        return self._count.subscribe(listener)

    async def _publish_count(self) -> None:
        self._count.set(await self.pending_count())
