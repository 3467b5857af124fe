"""Cache-first fetch protocol tests."""

import pytest

from core.cache import RecordCache
from core.exceptions import NoCachedData, PersistenceError, RemoteFetchError
from models.records import Outlet, Sale
from services.sync import EntitySpec, FetchOrigin, OFFLINE_MESSAGE, Scope, SyncOrchestrator
from conftest import FakeRemote, make_outlet, make_sale


OUTLETS = Scope.whole("outlet")


def outlet_spec(remote: FakeRemote, ttl: float = 3600) -> EntitySpec:
    return EntitySpec(
        name="outlet",
        model=Outlet,
        cache_key="outlets",
        fetch_all=remote.fetch_all,
        fetch_by_id=remote.fetch_by_id,
        ttl=ttl,
    )


def sale_spec(remote: FakeRemote, ttl: float = 3600) -> EntitySpec:
    return EntitySpec(
        name="sale",
        model=Sale,
        cache_key="sales",
        fetch_all=remote.fetch_all,
        fetch_partition=remote.fetch_by_outlet,
        partition_field="outlet_id",
        ttl=ttl,
    )


@pytest.fixture
def outlets_remote():
    return FakeRemote([make_outlet("1"), make_outlet("2", region="Bali")])


@pytest.fixture
def sales_remote():
    return FakeRemote([make_sale("s1", "1"), make_sale("s2", "1"), make_sale("s5", "2")])


@pytest.fixture
def orchestrator(cache, freshness, probe, outlets_remote, sales_remote):
    return SyncOrchestrator(cache, freshness, probe, [outlet_spec(outlets_remote), sale_spec(sales_remote)])


class FailingCache(RecordCache):
    """Record cache whose storage is gone."""

    async def get(self, table, record_id):
        raise PersistenceError("get_record", "disk I/O error")

    async def get_all(self, table):
        raise PersistenceError("get_records", "disk I/O error")

    async def get_by_index(self, table, field, value):
        raise PersistenceError("get_records_by", "disk I/O error")

    async def bulk_put(self, table, records):
        raise PersistenceError("upsert_records", "disk I/O error")

    async def replace_all(self, table, records):
        raise PersistenceError("replace_records", "disk I/O error")


# ============================================================================
# Online
# ============================================================================

async def test_first_fetch_goes_remote_and_populates_cache(orchestrator, outlets_remote, cache):
    result = await orchestrator.fetch(OUTLETS)

    assert result.origin == FetchOrigin.FRESH
    assert result.is_fresh
    assert sorted(o.id for o in result.payload) == ["1", "2"]
    assert outlets_remote.calls == [("all", None)]
    assert await cache.count(Outlet) == 2


async def test_repeated_fetch_is_idempotent(orchestrator, outlets_remote):
    first = await orchestrator.fetch(OUTLETS)
    second = await orchestrator.fetch(OUTLETS)

    assert second.origin == first.origin == FetchOrigin.FRESH
    assert [o.id for o in second.payload] == [o.id for o in first.payload]
    assert len(outlets_remote.calls) == 1


async def test_cached_records_served_without_network(orchestrator, outlets_remote, cache, network):
    await cache.bulk_put(Outlet, [make_outlet("7")])

    result = await orchestrator.fetch(OUTLETS)

    assert result.origin == FetchOrigin.CACHED
    assert [o.id for o in result.payload] == ["7"]
    assert outlets_remote.calls == []
    assert network.requests == []


async def test_expired_cache_is_refreshed(orchestrator, outlets_remote, clock):
    await orchestrator.fetch(OUTLETS)
    clock.advance(3601)

    result = await orchestrator.fetch(OUTLETS)

    assert result.origin == FetchOrigin.FRESH
    assert len(outlets_remote.calls) == 2


async def test_force_refresh_bypasses_freshness(orchestrator, outlets_remote):
    await orchestrator.fetch(OUTLETS)
    result = await orchestrator.fetch(OUTLETS, force_refresh=True)

    assert result.origin == FetchOrigin.FRESH
    assert len(outlets_remote.calls) == 2


async def test_whole_fetch_replaces_stale_rows(orchestrator, outlets_remote, cache):
    await orchestrator.fetch(OUTLETS)
    outlets_remote.items = [make_outlet("2", region="Bali")]

    result = await orchestrator.fetch(OUTLETS, force_refresh=True)

    assert [o.id for o in result.payload] == ["2"]
    assert [o.id for o in await cache.get_all(Outlet)] == ["2"]


async def test_record_scope_uses_fetch_by_id(orchestrator, outlets_remote):
    result = await orchestrator.fetch(Scope.record("outlet", "2"))

    assert result.origin == FetchOrigin.FRESH
    assert result.payload.id == "2"
    assert outlets_remote.calls == [("id", "2")]


async def test_unknown_record_raises(orchestrator):
    with pytest.raises(RemoteFetchError):
        await orchestrator.fetch(Scope.record("outlet", "404"))


async def test_unknown_entity_rejected(orchestrator):
    with pytest.raises(ValueError):
        await orchestrator.fetch(Scope.whole("customer"))


# ============================================================================
# Partitions
# ============================================================================

async def test_partition_fetch_keeps_other_partitions(orchestrator, sales_remote, cache):
    await cache.bulk_put(Sale, [make_sale("s1", "1"), make_sale("s2", "1")])

    second = await orchestrator.fetch(Scope.partition("sale", "outlet_id", "2"))
    assert second.origin == FetchOrigin.FRESH
    assert [s.id for s in second.payload] == ["s5"]
    assert sales_remote.calls == [("outlet", "2")]

    first = await orchestrator.fetch(Scope.partition("sale", "outlet_id", "1"))
    assert sorted(s.id for s in first.payload) == ["s1", "s2"]
    assert await cache.count(Sale) == 3


async def test_partition_results_merge_into_whole_working_set(orchestrator, sales_remote):
    sales_remote.items = [make_sale("s1", "1")]
    await orchestrator.fetch(Scope.whole("sale"))

    sales_remote.items = [make_sale("s1", "1"), make_sale("s5", "2")]
    await orchestrator.fetch(Scope.partition("sale", "outlet_id", "2"))

    result = await orchestrator.fetch(Scope.whole("sale"))
    assert sorted(s.id for s in result.payload) == ["s1", "s5"]


# ============================================================================
# Failures
# ============================================================================

async def test_remote_failure_falls_back_to_cache(orchestrator, outlets_remote, cache, clock):
    await orchestrator.fetch(OUTLETS)
    clock.advance(3601)
    outlets_remote.success = False
    outlets_remote.message = "Service unavailable"

    result = await orchestrator.fetch(OUTLETS)

    assert result.origin == FetchOrigin.CACHED
    assert sorted(o.id for o in result.payload) == ["1", "2"]
    assert "Showing cached data" in result.message


async def test_remote_failure_without_cache_raises(orchestrator, outlets_remote):
    outlets_remote.success = False

    with pytest.raises(RemoteFetchError):
        await orchestrator.fetch(OUTLETS)


async def test_raised_collaborator_error_is_wrapped(orchestrator, outlets_remote):
    outlets_remote.error = ConnectionResetError("reset by peer")

    with pytest.raises(RemoteFetchError) as exc_info:
        await orchestrator.fetch(OUTLETS)

    assert isinstance(exc_info.value.__cause__, ConnectionResetError)


async def test_persistence_failure_does_not_abort_fetch(freshness, probe, outlets_remote, database):
    orchestrator = SyncOrchestrator(FailingCache(database), freshness, probe, [outlet_spec(outlets_remote)])

    result = await orchestrator.fetch(OUTLETS)

    assert result.origin == FetchOrigin.FRESH
    assert sorted(o.id for o in result.payload) == ["1", "2"]


# ============================================================================
# Offline
# ============================================================================

async def test_offline_with_empty_cache_raises(orchestrator, network, outlets_remote):
    network.online = False

    with pytest.raises(NoCachedData):
        await orchestrator.fetch(OUTLETS)
    assert outlets_remote.calls == []


async def test_offline_serves_cache_with_offline_tag(orchestrator, network, clock, outlets_remote):
    await orchestrator.fetch(OUTLETS)
    clock.advance(3601)
    network.online = False

    result = await orchestrator.fetch(OUTLETS)

    assert result.origin == FetchOrigin.OFFLINE_CACHED
    assert result.message == OFFLINE_MESSAGE
    assert sorted(o.id for o in result.payload) == ["1", "2"]
    assert len(outlets_remote.calls) == 1


async def test_offline_force_refresh_serves_cache(orchestrator, network):
    await orchestrator.fetch(OUTLETS)
    network.online = False

    result = await orchestrator.fetch(OUTLETS, force_refresh=True)

    assert result.origin == FetchOrigin.OFFLINE_CACHED


async def test_offline_tag_not_replayed_after_reconnect(orchestrator, network, outlets_remote):
    await orchestrator.fetch(OUTLETS)
    network.online = False
    await orchestrator.fetch(OUTLETS, force_refresh=True)
    network.online = True
    probes = len(network.requests)

    result = await orchestrator.fetch(OUTLETS)

    assert result.origin == FetchOrigin.CACHED
    assert result.message is None
    assert sorted(o.id for o in result.payload) == ["1", "2"]
    assert len(network.requests) == probes
    assert len(outlets_remote.calls) == 1


# ============================================================================
# Local writes and maintenance
# ============================================================================

async def test_upsert_local_visible_in_held_scopes(orchestrator, cache):
    await orchestrator.fetch(Scope.partition("sale", "outlet_id", "1"))

    assert await orchestrator.upsert_local("sale", make_sale("s99", "1")) is True

    result = await orchestrator.fetch(Scope.partition("sale", "outlet_id", "1"))
    assert "s99" in {s.id for s in result.payload}
    assert await cache.get(Sale, "s99") is not None


async def test_preload_hydrates_from_cache(orchestrator, cache, outlets_remote):
    await cache.bulk_put(Outlet, [make_outlet("1")])

    loaded = await orchestrator.preload()

    assert loaded == {"outlet": 1, "sale": 0}
    assert outlets_remote.calls == []


async def test_clear_cache_erases_everything(orchestrator, cache, network):
    await orchestrator.fetch(OUTLETS)
    await orchestrator.clear_cache()
    network.online = False

    assert await cache.count(Outlet) == 0
    with pytest.raises(NoCachedData):
        await orchestrator.fetch(OUTLETS)


async def test_cache_stats(orchestrator, clock):
    await orchestrator.fetch(OUTLETS)

    stats = await orchestrator.cache_stats()

    assert stats["counts"] == {"outlet": 2, "sale": 0}
    assert stats["last_updated"] == {"outlets": clock.now, "sales": None}
