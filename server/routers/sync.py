"""Sync engine control routes: status, queue replay, connectivity, cache."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.container import container
from core.logging import get_logger
from services.connectivity import ConnectivityProbe
from services.sync import MutationQueue, SyncOrchestrator

logger = get_logger(__name__)
router = APIRouter(prefix="/api/sync", tags=["sync"])


class ConnectivityEvent(BaseModel):
    online: bool


@router.get("/status")
async def sync_status(
    probe: ConnectivityProbe = Depends(lambda: container.probe()),
    queue: MutationQueue = Depends(lambda: container.queue()),
    orchestrator: SyncOrchestrator = Depends(lambda: container.orchestrator())
):
    """Connectivity, pending operations and cache statistics."""
    operations = await queue.pending_operations()
    last = queue.last_result
    return {
        "success": True,
        "online": probe.is_online_cached(),
        "processing": queue.is_processing,
        "pending_count": len(operations),
        "pending": [op.to_dict() for op in operations],
        "last_pass": {"succeeded": last[0], "failed": last[1]} if last else None,
        "cache": await orchestrator.cache_stats(),
    }


@router.post("/process")
async def process_queue(
    queue: MutationQueue = Depends(lambda: container.queue())
):
    """Run one replay pass now."""
    result = await queue.process_queue()
    if result is None:
        return {
            "success": False,
            "error": "Queue pass skipped (offline or already running)",
            "pending_count": await queue.pending_count(),
        }
    succeeded, failed = result
    return {
        "success": True,
        "succeeded": succeeded,
        "failed": failed,
        "pending_count": await queue.pending_count(),
    }


@router.get("/connectivity")
async def check_connectivity(
    probe: ConnectivityProbe = Depends(lambda: container.probe())
):
    """Authoritative connectivity check."""
    return {"success": True, "online": await probe.check_now()}


@router.post("/connectivity")
async def platform_connectivity_event(
    event: ConnectivityEvent,
    probe: ConnectivityProbe = Depends(lambda: container.probe())
):
    """Inject a platform online/offline transition."""
    logger.info("Platform connectivity event", online=event.online)
    await probe.dispatch_platform_event(event.online)
    return {"success": True, "online": probe.is_online_cached()}


@router.post("/preload")
async def preload_cache(
    orchestrator: SyncOrchestrator = Depends(lambda: container.orchestrator())
):
    """Hydrate in-memory working sets from the local cache."""
    return {"success": True, "loaded": await orchestrator.preload()}


@router.delete("/cache")
async def clear_cache(
    orchestrator: SyncOrchestrator = Depends(lambda: container.orchestrator())
):
    """Erase cached records and freshness metadata."""
    await orchestrator.clear_cache()
    return {"success": True}


@router.delete("/queue")
async def clear_queue(
    queue: MutationQueue = Depends(lambda: container.queue())
):
    """Drop every pending operation."""
    await queue.clear()
    return {"success": True, "pending_count": await queue.pending_count()}
