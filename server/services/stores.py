"""Domain stores for outlets, sales and dashboard statistics.

Thin facades over the sync orchestrator: each store knows its entity kind,
scopes and derived views, and leaves caching and connectivity to the engine.
"""

import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from constants import (
    CACHE_KEYS,
    DASHBOARD_STATS_ID,
    ENTITY_DASHBOARD,
    ENTITY_OUTLET,
    ENTITY_SALE,
)
from core.cache import RecordCache
from core.config import Settings
from core.exceptions import PersistenceError
from core.logging import get_logger
from models.records import DashboardStats, Outlet, Sale
from services.remote import DashboardApi, OutletApi, SalesApi
from services.sync import (
    EntitySpec,
    FetchResult,
    MutationQueue,
    OperationKind,
    Scope,
    SyncOrchestrator,
)

logger = get_logger(__name__)


def build_entity_specs(settings: Settings, outlet_api: OutletApi, sales_api: SalesApi,
                       dashboard_api: DashboardApi) -> List[EntitySpec]:
    """Orchestrator wiring for every entity kind."""
    return [
        EntitySpec(
            name=ENTITY_OUTLET,
            model=Outlet,
            cache_key=CACHE_KEYS[ENTITY_OUTLET],
            fetch_all=outlet_api.fetch_all,
            fetch_by_id=outlet_api.fetch_by_id,
            ttl=settings.outlets_ttl,
        ),
        EntitySpec(
            name=ENTITY_SALE,
            model=Sale,
            cache_key=CACHE_KEYS[ENTITY_SALE],
            fetch_all=sales_api.fetch_all,
            fetch_by_id=sales_api.fetch_by_id,
            fetch_partition=sales_api.fetch_by_outlet,
            partition_field="outlet_id",
            ttl=settings.sales_ttl,
        ),
        EntitySpec(
            name=ENTITY_DASHBOARD,
            model=DashboardStats,
            cache_key=CACHE_KEYS[ENTITY_DASHBOARD],
            fetch_all=dashboard_api.fetch_all,
            ttl=settings.dashboard_ttl,
        ),
    ]


# ============================================================================
# Outlets
# ============================================================================

class OutletStore:
    """Outlet reference data."""

    def __init__(self, orchestrator: SyncOrchestrator, cache: RecordCache):
        self.orchestrator = orchestrator
        self.cache = cache

    async def get_outlets(self, force_refresh: bool = False) -> FetchResult:
        return await self.orchestrator.fetch(Scope.whole(ENTITY_OUTLET), force_refresh=force_refresh)

    async def get_outlet(self, outlet_id: str, force_refresh: bool = False) -> FetchResult:
        return await self.orchestrator.fetch(Scope.record(ENTITY_OUTLET, outlet_id),
                                             force_refresh=force_refresh)

    async def outlets_in_region(self, region: str) -> List[Outlet]:
        """Cached outlets in ``region``; local index lookup, no network."""
        try:
            return await self.cache.get_by_index(Outlet, "region", region)
        except PersistenceError as e:
            logger.warning("Region lookup failed", region=region, error=str(e))
            return []

    @staticmethod
    def active_outlets(outlets: List[Outlet]) -> List[Outlet]:
        return [o for o in outlets if o.is_active]

    @staticmethod
    def inactive_outlets(outlets: List[Outlet]) -> List[Outlet]:
        return [o for o in outlets if not o.is_active]


# ============================================================================
# Sales
# ============================================================================

class SaleDraft(BaseModel):
    """New sale as entered by a user (camelCase or snake_case accepted)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    outlet_id: str = Field(min_length=1)
    date: str = Field(min_length=1)
    product_name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    customer_name: str = ""
    payment_method: str = ""


@dataclass
class SaleSubmission:
    """Outcome of recording a sale locally and pushing it upstream."""
    sale: Sale
    applied: bool      # Remote side confirmed immediately
    persisted: bool    # Written to the local cache


class SalesStore:
    """Sales records partitioned by outlet."""

    def __init__(self, orchestrator: SyncOrchestrator, queue: MutationQueue):
        self.orchestrator = orchestrator
        self.queue = queue

    async def get_sales_by_outlet(self, outlet_id: str, force_refresh: bool = False) -> FetchResult:
        scope = Scope.partition(ENTITY_SALE, "outlet_id", outlet_id)
        return await self.orchestrator.fetch(scope, force_refresh=force_refresh)

    async def get_all_sales(self, force_refresh: bool = False) -> FetchResult:
        return await self.orchestrator.fetch(Scope.whole(ENTITY_SALE), force_refresh=force_refresh)

    async def add_sale(self, draft: SaleDraft, sale_id: Optional[str] = None) -> SaleSubmission:
        """Record a sale locally, then apply it remotely or queue it."""
        sale = Sale(
            id=sale_id or f"s_{uuid.uuid4().hex[:12]}",
            outlet_id=draft.outlet_id,
            date=draft.date,
            product_name=draft.product_name,
            quantity=draft.quantity,
            unit_price=draft.unit_price,
            total_amount=draft.quantity * draft.unit_price,
            customer_name=draft.customer_name,
            payment_method=draft.payment_method,
        )
        persisted = await self.orchestrator.upsert_local(ENTITY_SALE, sale)
        applied = await self.queue.submit(OperationKind.CREATE, ENTITY_SALE, sale.to_api())
        logger.info("Sale recorded", sale_id=sale.id, outlet_id=sale.outlet_id,
                    applied=applied, persisted=persisted)
        return SaleSubmission(sale=sale, applied=applied, persisted=persisted)

    @staticmethod
    def totals_by_outlet(sales: List[Sale]) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for sale in sales:
            totals[sale.outlet_id] = totals.get(sale.outlet_id, 0.0) + sale.total_amount
        return totals


# ============================================================================
# Dashboard
# ============================================================================

class DashboardStore:
    """Regional sales statistics snapshot."""

    def __init__(self, orchestrator: SyncOrchestrator):
        self.orchestrator = orchestrator

    async def get_stats(self, force_refresh: bool = False) -> FetchResult:
        scope = Scope.record(ENTITY_DASHBOARD, DASHBOARD_STATS_ID)
        return await self.orchestrator.fetch(scope, force_refresh=force_refresh)
