"""Health check utilities.

Provides uptime tracking and the sync engine's health snapshot for the
/health endpoint.
"""
import time
from typing import Dict, Any, TYPE_CHECKING

import psutil

if TYPE_CHECKING:
    from core.config import Settings
    from core.database import Database
    from services.connectivity import ConnectivityProbe
    from services.sync import MutationQueue, SyncOrchestrator

# Module-level startup time tracking
_startup_time: float = 0.0


def set_startup_time() -> None:
    """Record the application startup time. Call once during lifespan startup."""
    global _startup_time
    _startup_time = time.time()


def get_uptime() -> float:
    """Get uptime in seconds since startup."""
    return time.time() - _startup_time if _startup_time else 0.0


def get_memory_mb() -> float:
    """Get current process memory usage in MB."""
    try:
        return psutil.Process().memory_info().rss / (1024 * 1024)
    except psutil.Error:
        return 0.0


async def get_health_status(
    database: "Database",
    probe: "ConnectivityProbe",
    queue: "MutationQueue",
    orchestrator: "SyncOrchestrator",
    settings: "Settings"
) -> Dict[str, Any]:
    """Get health status for /health endpoint.

    The service is "healthy" with a working local replica; being offline
    is a normal operating mode and does not degrade it.
    """
    db_healthy = await database.check_health()
    pending = await queue.pending_count()
    stats = await orchestrator.cache_stats()

    return {
        "status": "healthy" if db_healthy else "degraded",
        "uptime_seconds": round(get_uptime(), 1),
        "memory_mb": round(get_memory_mb(), 1),
        "checks": {
            "database": db_healthy,
        },
        "connectivity": {
            "online": probe.is_online_cached(),
            "probe_url": probe.probe_url,
        },
        "queue": {
            "pending": pending,
            "processing": queue.is_processing,
            "max_retries": settings.queue_max_retries,
        },
        "cache": stats,
    }
