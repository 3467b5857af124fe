"""Remote REST collaborators for outlets, sales and dashboard statistics.

Every call resolves to a ``RemoteResult``; transport errors, non-2xx answers
and malformed bodies come back as ``success=False`` rather than raising, so
the orchestrator can apply its cache fallback uniformly.

Endpoints (relative to ``api_base_url``):
    GET /outlets                -> {success, outlets: [...]}
    GET /outlets/{id}           -> {success, outlet: {...}}
    GET /sales                  -> {success, sales: [...]}
    GET /sales?outletId={id}    -> {success, sales: [...]}
    GET /sales/{id}             -> {success, sale: {...}}
    GET /dashboard/stats        -> {success, stats: [...], totalSales, totalOutlets}
"""

import time
from typing import Any, Callable, Dict, Optional

import httpx

from constants import DASHBOARD_STATS_ID
from core.logging import get_logger, log_execution_time
from models.records import DashboardStats, Outlet, Sale
from services.sync.models import RemoteResult

logger = get_logger(__name__)


class RemoteApiClient:
    """Shared httpx client wrapper for the REST API."""

    def __init__(self, base_url: str, timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None):
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

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET ``path`` and return the decoded body.

        Raises:
            httpx.HTTPError: transport failure or non-2xx status
            ValueError: body is not a JSON object
        """
        start_time = time.time()
        response = await self._get_client().get(f"{self.base_url}{path}", params=params)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"Unexpected response body for {path}")
        log_execution_time(logger, f"GET {path}", start_time, time.time())
        return body

    async def fetch(self, path: str, parse: Callable[[Dict[str, Any]], RemoteResult],
                    params: Optional[Dict[str, Any]] = None) -> RemoteResult:
        """GET and parse, folding every failure into ``RemoteResult.failure``."""
        try:
            body = await self.get_json(path, params=params)
        except httpx.HTTPStatusError as e:
            logger.warning("Remote API rejected request", path=path, status_code=e.response.status_code)
            return RemoteResult.failure(_error_message(e.response) or f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Remote API call failed", path=path, error=str(e) or type(e).__name__)
            return RemoteResult.failure(str(e) or type(e).__name__)

        if not body.get("success", True):
            return RemoteResult.failure(body.get("message") or "Remote API reported failure")
        try:
            return parse(body)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed remote payload", path=path, error=str(e))
            return RemoteResult.failure(f"Malformed response: {e}")


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("message") or body.get("detail")
    return None


class OutletApi:
    """Outlet reference data."""

    def __init__(self, client: RemoteApiClient):
        self.client = client

    async def fetch_all(self) -> RemoteResult:
        return await self.client.fetch("/outlets", lambda body: RemoteResult(
            success=True,
            items=[Outlet.from_api(o) for o in body.get("outlets", [])],
            message=body.get("message"),
        ))

    async def fetch_by_id(self, outlet_id: str) -> RemoteResult:
        def parse(body: Dict[str, Any]) -> RemoteResult:
            data = body.get("outlet")
            if not data:
                return RemoteResult.failure(body.get("message") or f"Outlet with ID {outlet_id} not found")
            return RemoteResult(success=True, item=Outlet.from_api(data), message=body.get("message"))

        return await self.client.fetch(f"/outlets/{outlet_id}", parse)


class SalesApi:
    """Sales records."""

    def __init__(self, client: RemoteApiClient):
        self.client = client

    @staticmethod
    def _parse_list(body: Dict[str, Any]) -> RemoteResult:
        return RemoteResult(
            success=True,
            items=[Sale.from_api(s) for s in body.get("sales", [])],
            message=body.get("message"),
        )

    async def fetch_all(self) -> RemoteResult:
        return await self.client.fetch("/sales", self._parse_list)

    async def fetch_by_outlet(self, outlet_id: str) -> RemoteResult:
        return await self.client.fetch("/sales", self._parse_list, params={"outletId": outlet_id})

    async def fetch_by_id(self, sale_id: str) -> RemoteResult:
        def parse(body: Dict[str, Any]) -> RemoteResult:
            data = body.get("sale")
            if not data:
                return RemoteResult.failure(body.get("message") or f"Sale with ID {sale_id} not found")
            return RemoteResult(success=True, item=Sale.from_api(data), message=body.get("message"))

        return await self.client.fetch(f"/sales/{sale_id}", parse)


class DashboardApi:
    """Aggregated regional statistics, cached as a single snapshot record."""

    def __init__(self, client: RemoteApiClient, clock: Callable[[], float] = time.time):
        self.client = client
        self._clock = clock

    async def fetch_all(self) -> RemoteResult:
        return await self.client.fetch("/dashboard/stats", lambda body: RemoteResult(
            success=True,
            items=[DashboardStats.from_api(body, record_id=DASHBOARD_STATS_ID, timestamp=self._clock())],
            message=body.get("message"),
        ))
