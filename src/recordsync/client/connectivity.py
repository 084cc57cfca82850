"""Connectivity monitoring.

This module provides:
- ConnectivityMonitor: Protocol for on-demand reachability checks
- probe_connectivity: Fail-safe wrapper (any failure means offline)
- HTTPConnectivityMonitor: Probes the server health endpoint
- StaticConnectivityMonitor: Reports a value set by the host application

A reading is taken at the start of every sync operation and never reused,
because reachability can change between calls.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

if TYPE_CHECKING:
    from recordsync.core.config import ServerConfig

logger = logging.getLogger(__name__)


class ConnectivityMonitor(Protocol):
    """Reports current network reachability."""

    async def currently_connected(self) -> bool:
        """Return True if the remote side is reachable right now."""
        ...


async def probe_connectivity(monitor: ConnectivityMonitor) -> bool:
    """Sample a monitor, treating any failure as disconnected.

    Args:
        monitor: The monitor to sample.

    Returns:
        The monitor's reading, or False if the monitor itself failed.
    """
    try:
        return bool(await monitor.currently_connected())
    except Exception as e:
        logger.debug("Connectivity probe failed, assuming offline: %s", e)
        return False


class HTTPConnectivityMonitor:
    """Treats the service as reachable when GET /health answers 200."""

    def __init__(
        self,
        config: ServerConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            config: Server configuration (URL and probe timeout).
            client: Optional shared AsyncClient; one is created otherwise.
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=config.probe_timeout,
            verify=config.verify_ssl,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this monitor created it."""
        if self._owns_client:
            await self._client.aclose()

    async def currently_connected(self) -> bool:
        """Probe the health endpoint."""
        try:
            response = await self._client.get(
                self._config.health_url,
                timeout=self._config.probe_timeout,
            )
        except httpx.HTTPError as e:
            logger.debug("Health probe failed: %s", e)
            return False
        return response.status_code == 200


class StaticConnectivityMonitor:
    """Monitor whose reading is set explicitly.

    Useful when the host platform pushes reachability changes, and in tests.
    """

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.probes = 0

    def set_connected(self, connected: bool) -> None:
        """Update the reported reachability."""
        if connected != self.connected:
            logger.info("Connectivity changed: %s", "online" if connected else "offline")
        self.connected = connected

    async def currently_connected(self) -> bool:
        self.probes += 1
        return self.connected
