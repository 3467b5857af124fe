"""Record cache tests against a temporary SQLite replica."""

import pytest

from core.cache import RecordCache
from core.exceptions import PersistenceError
from models.records import DashboardStats, Outlet, Sale
from conftest import make_outlet, make_sale


async def test_put_and_get(cache: RecordCache):
    await cache.put(Outlet, make_outlet("1"))

    outlet = await cache.get(Outlet, "1")
    assert outlet is not None
    assert outlet.name == "Outlet 1"
    assert await cache.get(Outlet, "missing") is None


async def test_bulk_put_upserts_and_keeps_other_rows(cache: RecordCache):
    await cache.bulk_put(Sale, [make_sale("s1", "1"), make_sale("s2", "1")])
    await cache.bulk_put(Sale, [make_sale("s2", "1", quantity=9), make_sale("s5", "2")])

    sales = {s.id: s for s in await cache.get_all(Sale)}
    assert set(sales) == {"s1", "s2", "s5"}
    assert sales["s2"].quantity == 9


async def test_bulk_put_empty_is_noop(cache: RecordCache):
    await cache.bulk_put(Sale, [])
    assert await cache.count(Sale) == 0


async def test_replace_all_drops_missing_rows(cache: RecordCache):
    await cache.bulk_put(Outlet, [make_outlet("1"), make_outlet("2")])
    await cache.replace_all(Outlet, [make_outlet("3")])

    assert [o.id for o in await cache.get_all(Outlet)] == ["3"]


async def test_get_by_index(cache: RecordCache):
    await cache.bulk_put(Sale, [make_sale("s1", "1"), make_sale("s2", "1"), make_sale("s5", "2")])

    by_outlet = await cache.get_by_index(Sale, "outlet_id", "1")
    assert sorted(s.id for s in by_outlet) == ["s1", "s2"]
    assert await cache.get_by_index(Sale, "outlet_id", "9") == []


async def test_get_by_index_requires_declared_index(cache: RecordCache):
    with pytest.raises(ValueError):
        await cache.get_by_index(Sale, "customer_name", "PT ABC")


async def test_json_columns_round_trip(cache: RecordCache):
    stats = DashboardStats.from_api({
        "stats": [{"region": "Bali", "totalSales": 5700000, "outletCount": 1, "averageSales": 5700000}],
    }, record_id="current", timestamp=1.0)
    await cache.put(DashboardStats, stats)

    stored = await cache.get(DashboardStats, "current")
    assert stored.total_sales == 5700000
    assert stored.total_outlets == 1
    assert stored.to_api()["stats"][0]["region"] == "Bali"


async def test_clear_all(cache: RecordCache):
    await cache.put(Outlet, make_outlet("1"))
    await cache.put(Sale, make_sale("s1", "1"))

    cleared = await cache.clear_all()

    assert set(cleared) == {"outlets", "sales", "dashboard_stats"}
    assert await cache.count(Outlet) == 0
    assert await cache.count(Sale) == 0


async def test_storage_failure_raises_persistence_error(cache: RecordCache, database):
    await database.shutdown()
    with pytest.raises(PersistenceError):
        await cache.get_all(Outlet)
