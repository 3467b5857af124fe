"""Sync result notifiers.

The mutation queue reports each replay pass through a constructor-injected
notifier, so it never depends on a presentation layer.

Usage:
    from services.sync.notifier import LoggingNotifier

    queue = MutationQueue(database, probe, executor, notifier=LoggingNotifier())
"""

from typing import Optional, Protocol, Tuple

from core.logging import get_logger

logger = get_logger(__name__)


class SyncNotifier(Protocol):
    """Receives the aggregate outcome of one queue replay pass."""

    def sync_completed(self, succeeded: int, failed: int) -> None:
        """Called after a pass that handled at least one operation."""
        ...


def summarize_sync(succeeded: int, failed: int) -> Optional[Tuple[str, str]]:
    """Build a ``(level, message)`` summary, or None when nothing happened."""
    def plural(n: int) -> str:
        return f"{n} operation{'s' if n > 1 else ''}"

    if succeeded > 0 and failed == 0:
        return "positive", f"Successfully synced {plural(succeeded)}"
    if succeeded > 0 and failed > 0:
        return "warning", f"Synced {plural(succeeded)}, {failed} failed"
    if failed > 0:
        return "negative", f"Failed to sync {plural(failed)}"
    return None


class LoggingNotifier:
    """Default notifier: writes the pass summary to the log."""

    def sync_completed(self, succeeded: int, failed: int) -> None:
        summary = summarize_sync(succeeded, failed)
        if summary is None:
            return
        level, message = summary
        if level == "positive":
            logger.info(message, succeeded=succeeded, failed=failed)
        else:
            logger.warning(message, succeeded=succeeded, failed=failed)
