"""Connectivity probe: authoritative online/offline determination.

The platform's own link status is only trusted when it says "offline". When it
says "online" a HEAD request to an always-served static resource confirms that
a gateway is actually reachable.

Usage:
    probe = ConnectivityProbe(settings.resolved_probe_url)
    await probe.startup()
    probe.on_reconnect(queue.process_queue)

    # Platform transition events are fed in by the host
    await probe.handle_platform_online()
    probe.handle_platform_offline()
"""

from typing import Awaitable, Callable, List, Optional, Protocol

import httpx
import psutil

from constants import DEFAULT_PROBE_TIMEOUT
from core.logging import get_logger
from services.state import ObservableValue

logger = get_logger(__name__)

ReconnectListener = Callable[[], Awaitable[object]]


class PlatformStatus(Protocol):
    """Platform self-reported link status."""

    def is_up(self) -> bool:
        """False only when the platform is certain there is no link."""
        ...


class InterfaceStatus:
    """Platform status from network interfaces via psutil.

    Reports "up" when any non-loopback interface is up.
    """

    def is_up(self) -> bool:
        try:
            stats = psutil.net_if_stats()
        except OSError as e:
            # Unknown: let the real probe decide
            logger.debug("Interface status unavailable", error=str(e))
            return True
        for name, st in stats.items():
            lowered = name.lower()
            if lowered.startswith("lo") or "loopback" in lowered:
                continue
            if st.isup:
                return True
        return False


class ConnectivityProbe:
    """Sole writer of the shared connectivity state."""

    def __init__(
        self,
        probe_url: str,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        platform: Optional[PlatformStatus] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.probe_url = probe_url
        self.timeout = timeout
        self.platform = platform or InterfaceStatus()
        self._client = client
        self._owns_client = client is None
        self._state: ObservableValue[bool] = ObservableValue(False, name="connectivity")
        self._reconnect_listeners: List[ReconnectListener] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def startup(self) -> bool:
        """Open the HTTP client and take an initial reading."""
        self._get_client()
        online = await self.check_now()
        logger.info("Connectivity probe started", probe_url=self.probe_url, online=online)
        return online

    async def shutdown(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Connectivity probe stopped")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self._client

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_online_cached(self) -> bool:
        """Last known state, without probing."""
        return self._state.value

    async def check_now(self) -> bool:
        """Authoritative check. Updates the shared state."""
        if not self.platform.is_up():
            self._set_online(False)
            return False

        try:
            response = await self._get_client().head(
                self.probe_url,
                timeout=self.timeout,
                headers={"Cache-Control": "no-cache", "Pragma": "no-cache"},
            )
            online = response.is_success
            if not online:
                logger.debug("Probe rejected", status_code=response.status_code)
        except httpx.HTTPError as e:
            logger.debug("Probe failed", error=type(e).__name__)
            online = False

        self._set_online(online)
        return online

    # ------------------------------------------------------------------
    # Platform events
    # ------------------------------------------------------------------

    async def handle_platform_online(self) -> bool:
        """Platform reports a link: confirm, then signal reconnect listeners."""
        online = await self.check_now()
        if not online:
            logger.info("Platform reported online but probe failed")
            return False

        logger.info("Network status: online", listeners=len(self._reconnect_listeners))
        for listener in list(self._reconnect_listeners):
            try:
                await listener()
            except Exception as e:
                logger.warning("Reconnect listener failed", error=str(e))
        return True

    def handle_platform_offline(self) -> None:
        """Disconnection is self-evident: no probe."""
        self._set_online(False)
        logger.info("Network status: offline, using cached data")

    async def dispatch_platform_event(self, online: bool) -> bool:
        """Route a raw platform transition to the matching handler."""
        if online:
            return await self.handle_platform_online()
        self.handle_platform_offline()
        return False

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_reconnect(self, listener: ReconnectListener) -> Callable[[], None]:
        """Register an async callback fired after a confirmed reconnect."""
        self._reconnect_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._reconnect_listeners:
                self._reconnect_listeners.remove(listener)

        return unsubscribe

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Observe every connectivity state write (current value delivered first)."""
        return self._state.subscribe(listener, immediate=True)

    def _set_online(self, online: bool) -> None:
        if online != self._state.value:
            logger.info("Connectivity changed", online=online)
        self._state.set(online)
