"""Domain data routes served through the offline-first sync engine.

Every read answers with ``{success, payload, origin, message}`` where
``origin`` is one of ``fresh``, ``cached`` or ``offline-cached``. Offline with
nothing cached surfaces as 503; a failed remote fetch with nothing cached as
502 (see the exception handlers in main).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from core.container import container
from core.logging import get_logger
from services.stores import DashboardStore, OutletStore, SaleDraft, SalesStore
from services.sync import FetchOrigin

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["data"])


# ============================================================================
# Outlets
# ============================================================================

@router.get("/outlets")
async def list_outlets(
    refresh: bool = Query(False, description="Bypass the freshness window"),
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    store: OutletStore = Depends(lambda: container.outlet_store())
):
    """List outlets."""
    result = await store.get_outlets(force_refresh=refresh)
    response = {"success": True, **result.to_dict()}
    if active is not None:
        outlets = store.active_outlets(result.payload) if active else store.inactive_outlets(result.payload)
        response["payload"] = [o.to_api() for o in outlets]
    return response


@router.get("/outlets/{outlet_id}")
async def get_outlet(
    outlet_id: str,
    refresh: bool = Query(False),
    store: OutletStore = Depends(lambda: container.outlet_store())
):
    """Get a single outlet."""
    result = await store.get_outlet(outlet_id, force_refresh=refresh)
    return {"success": True, **result.to_dict()}


@router.get("/regions/{region}/outlets")
async def list_region_outlets(
    region: str,
    store: OutletStore = Depends(lambda: container.outlet_store())
):
    """Cached outlets in a region (local lookup, never hits the network)."""
    outlets = await store.outlets_in_region(region)
    return {
        "success": True,
        "payload": [o.to_api() for o in outlets],
        "origin": FetchOrigin.CACHED.value,
        "message": None,
    }


@router.get("/outlets/{outlet_id}/sales")
async def list_outlet_sales(
    outlet_id: str,
    refresh: bool = Query(False),
    store: SalesStore = Depends(lambda: container.sales_store())
):
    """Sales for one outlet, with the outlet total."""
    result = await store.get_sales_by_outlet(outlet_id, force_refresh=refresh)
    totals = store.totals_by_outlet(result.payload)
    return {
        "success": True,
        **result.to_dict(),
        "total_amount": totals.get(outlet_id, 0.0),
    }


# ============================================================================
# Sales
# ============================================================================

@router.get("/sales")
async def list_sales(
    refresh: bool = Query(False),
    store: SalesStore = Depends(lambda: container.sales_store())
):
    """All sales, with totals per outlet."""
    result = await store.get_all_sales(force_refresh=refresh)
    return {
        "success": True,
        **result.to_dict(),
        "totals_by_outlet": store.totals_by_outlet(result.payload),
    }


@router.post("/sales", status_code=status.HTTP_201_CREATED)
async def create_sale(
    draft: SaleDraft,
    store: SalesStore = Depends(lambda: container.sales_store())
):
    """Record a sale; applied immediately when online, queued otherwise."""
    submission = await store.add_sale(draft)
    return {
        "success": True,
        "payload": submission.sale.to_api(),
        "applied": submission.applied,
        "queued": not submission.applied,
        "persisted": submission.persisted,
    }


# ============================================================================
# Dashboard
# ============================================================================

@router.get("/dashboard/stats")
async def get_dashboard_stats(
    refresh: bool = Query(False),
    store: DashboardStore = Depends(lambda: container.dashboard_store())
):
    """Regional sales statistics."""
    result = await store.get_stats(force_refresh=refresh)
    return {"success": True, **result.to_dict()}
