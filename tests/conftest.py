"""Shared pytest fixtures."""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from core.cache import RecordCache
from core.config import Settings
from core.database import Database
from core.freshness import FreshnessStore
from models.records import Outlet, Sale
from services.connectivity import ConnectivityProbe
from services.sync import QueuedOperation, RemoteResult

PROBE_URL = "http://api.test/favicon.ico"
API_BASE_URL = "http://api.test/api"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePlatform:
    """Platform link status under test control."""

    def __init__(self, up: bool = True):
        self.up = up

    def is_up(self) -> bool:
        return self.up


class FakeNetwork:
    """Answers probe requests: 200 when online, connection error otherwise."""

    def __init__(self, online: bool = True):
        self.online = online
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.online:
            raise httpx.ConnectError("network unreachable", request=request)
        return httpx.Response(200)


class FakeRemote:
    """Remote collaborator returning canned records."""

    def __init__(self, items: Optional[List[Any]] = None, success: bool = True,
                 message: Optional[str] = None, error: Optional[Exception] = None):
        self.items = list(items or [])
        self.success = success
        self.message = message
        self.error = error
        self.calls: List[Tuple[str, Any]] = []

    def _result(self, items: List[Any], item: Any = None) -> RemoteResult:
        if self.error is not None:
            raise self.error
        if not self.success:
            return RemoteResult.failure(self.message or "remote failure")
        return RemoteResult(success=True, items=items, item=item)

    async def fetch_all(self) -> RemoteResult:
        self.calls.append(("all", None))
        return self._result(list(self.items))

    async def fetch_by_id(self, record_id: str) -> RemoteResult:
        self.calls.append(("id", record_id))
        match = next((i for i in self.items if i.id == record_id), None)
        return self._result([], item=match)

    async def fetch_by_outlet(self, outlet_id: str) -> RemoteResult:
        self.calls.append(("outlet", outlet_id))
        return self._result([i for i in self.items if i.outlet_id == outlet_id])


class FakeExecutor:
    """Executor returning scripted outcomes (default: success)."""

    def __init__(self, outcome: Callable[[QueuedOperation], bool] = lambda op: True):
        self.outcome = outcome
        self.executed: List[QueuedOperation] = []

    async def execute(self, operation: QueuedOperation) -> bool:
        self.executed.append(operation)
        return self.outcome(operation)


class RecordingNotifier:
    """Collects every sync_completed call."""

    def __init__(self):
        self.calls: List[Tuple[int, int]] = []

    def sync_completed(self, succeeded: int, failed: int) -> None:
        self.calls.append((succeeded, failed))


def make_outlet(outlet_id: str, region: str = "Jakarta", is_active: bool = True) -> Outlet:
    return Outlet(id=outlet_id, name=f"Outlet {outlet_id}", region=region,
                  total_order=10, is_active=is_active)


def make_sale(sale_id: str, outlet_id: str, quantity: int = 2, unit_price: float = 50000.0) -> Sale:
    return Sale(
        id=sale_id,
        outlet_id=outlet_id,
        date="2024-01-15",
        product_name="Product A",
        quantity=quantity,
        unit_price=unit_price,
        total_amount=quantity * unit_price,
        customer_name="PT ABC",
        payment_method="Cash",
    )


def sale_payload(sale_id: str, outlet_id: str) -> Dict[str, Any]:
    return make_sale(sale_id, outlet_id).to_api()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'data' / 'test.db'}",
        api_base_url=API_BASE_URL,
        probe_url=PROBE_URL,
        log_format="console",
    )


@pytest.fixture
async def database(settings: Settings):
    db = Database(settings)
    await db.startup()
    yield db
    await db.shutdown()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(database: Database) -> RecordCache:
    return RecordCache(database)


@pytest.fixture
def freshness(database: Database, clock: FakeClock) -> FreshnessStore:
    return FreshnessStore(database, clock=clock)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
async def probe(network: FakeNetwork, platform: FakePlatform):
    client = httpx.AsyncClient(transport=httpx.MockTransport(network.handler))
    probe = ConnectivityProbe(PROBE_URL, platform=platform, client=client)
    yield probe
    await client.aclose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()
