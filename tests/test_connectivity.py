"""Connectivity probe tests (probe traffic served by httpx.MockTransport)."""

import httpx
import pytest

from services.connectivity import ConnectivityProbe
from conftest import PROBE_URL, FakePlatform


def make_probe(handler, platform=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ConnectivityProbe(PROBE_URL, platform=platform or FakePlatform(), client=client), client


async def test_online_when_probe_succeeds(probe, network):
    assert await probe.check_now() is True
    assert probe.is_online_cached() is True

    request = network.requests[-1]
    assert request.method == "HEAD"
    assert str(request.url) == PROBE_URL
    assert request.headers["Cache-Control"] == "no-cache"


async def test_offline_on_transport_error(probe, network):
    network.online = False
    assert await probe.check_now() is False
    assert probe.is_online_cached() is False


async def test_platform_offline_skips_probe(probe, network, platform):
    platform.up = False
    assert await probe.check_now() is False
    assert network.requests == []


@pytest.mark.parametrize("status_code,expected", [(200, True), (204, True), (404, False), (503, False)])
async def test_status_code_decides(status_code, expected):
    probe, client = make_probe(lambda request: httpx.Response(status_code))
    try:
        assert await probe.check_now() is expected
    finally:
        await client.aclose()


async def test_timeout_reads_as_offline():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    probe, client = make_probe(handler)
    try:
        assert await probe.check_now() is False
    finally:
        await client.aclose()


async def test_subscribe_delivers_current_then_every_write(probe, network):
    seen = []
    unsubscribe = probe.subscribe(seen.append)
    assert seen == [False]

    await probe.check_now()
    network.online = False
    await probe.check_now()
    assert seen == [False, True, False]

    unsubscribe()
    await probe.check_now()
    assert seen == [False, True, False]


async def test_reconnect_listeners_fire_only_when_confirmed(probe, network):
    fired = []

    async def listener():
        fired.append(True)

    probe.on_reconnect(listener)

    network.online = False
    assert await probe.handle_platform_online() is False
    assert fired == []

    network.online = True
    assert await probe.handle_platform_online() is True
    assert fired == [True]


async def test_failing_reconnect_listener_does_not_block_others(probe):
    fired = []

    async def broken():
        raise RuntimeError("boom")

    async def healthy():
        fired.append(True)

    probe.on_reconnect(broken)
    probe.on_reconnect(healthy)

    assert await probe.handle_platform_online() is True
    assert fired == [True]


async def test_reconnect_unsubscribe(probe):
    fired = []

    async def listener():
        fired.append(True)

    unsubscribe = probe.on_reconnect(listener)
    unsubscribe()
    await probe.handle_platform_online()
    assert fired == []


async def test_platform_offline_event_needs_no_probe(probe, network):
    await probe.check_now()
    requests_before = len(network.requests)

    await probe.dispatch_platform_event(False)

    assert probe.is_online_cached() is False
    assert len(network.requests) == requests_before


async def test_startup_takes_initial_reading(probe):
    assert await probe.startup() is True
    assert probe.is_online_cached() is True
