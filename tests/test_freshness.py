"""Freshness store tests."""

from core.freshness import FreshnessStore


async def test_missing_key_is_not_expired(freshness: FreshnessStore):
    assert await freshness.is_expired("outlets") is False


async def test_expiry_follows_ttl(freshness: FreshnessStore, clock):
    await freshness.mark_fresh("sales", ttl=3600)
    assert await freshness.is_expired("sales") is False

    clock.advance(3599)
    assert await freshness.is_expired("sales") is False

    clock.advance(2)
    assert await freshness.is_expired("sales") is True


async def test_mark_fresh_without_ttl_never_expires(freshness: FreshnessStore, clock):
    await freshness.mark_fresh("outlets")
    clock.advance(10 * 365 * 24 * 3600)
    assert await freshness.is_expired("outlets") is False


async def test_mark_fresh_overwrites_previous_expiry(freshness: FreshnessStore, clock):
    await freshness.mark_fresh("dashboardStats", ttl=60)
    clock.advance(120)
    assert await freshness.is_expired("dashboardStats") is True

    await freshness.mark_fresh("dashboardStats", ttl=60)
    assert await freshness.is_expired("dashboardStats") is False


async def test_age_and_last_updated(freshness: FreshnessStore, clock):
    assert await freshness.get_age("outlets") is None

    written_at = clock.now
    await freshness.mark_fresh("outlets", ttl=60)
    clock.advance(15)

    assert await freshness.get_age("outlets") == 15
    assert await freshness.last_updated(["outlets", "sales"]) == {
        "outlets": written_at,
        "sales": None,
    }


async def test_clear_removes_entries(freshness: FreshnessStore, clock):
    await freshness.mark_fresh("sales", ttl=1)
    clock.advance(5)
    assert await freshness.is_expired("sales") is True

    await freshness.clear()
    assert await freshness.is_expired("sales") is False


async def test_storage_failure_reads_as_expired(freshness: FreshnessStore, database):
    await database.shutdown()
    assert await freshness.is_expired("outlets") is True
