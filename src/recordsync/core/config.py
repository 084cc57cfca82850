"""Shared configuration classes for recordsync.

This module defines configuration classes used by both client and server components.
"""

from __future__ import annotations

from dataclasses import dataclass

# Cached list results are served offline for at most this long
DEFAULT_CACHE_TTL = 5 * 60.0  # seconds


@dataclass
class ServerConfig:
    """Configuration for connecting to a recordsync server.

    Used by the HTTP client (HTTPClient) and the connectivity probe to
    ensure consistent connection settings.

    Attributes:
        server_url: Base URL of the server (e.g., "https://records.example.com").
        token: Optional bearer token.
        timeout: Request timeout in seconds.
        probe_timeout: Timeout of the connectivity probe in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str | None = None
    timeout: float = 30.0
    probe_timeout: float = 3.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def health_url(self) -> str:
        """URL probed to decide whether the service is reachable."""
        return f"{self.server_url}/health"


@dataclass
class SyncSettings:
    """Behavior of the sync layer.

    Attributes:
        cache_ttl: Seconds a cached list stays fresh for offline reads.
        blob_prefix: Prefix of uploaded attachment blob names.
        dedupe_inflight: Share one remote call among concurrent fetches
            of the same filter (off by default).
    """

    cache_ttl: float = DEFAULT_CACHE_TTL
    blob_prefix: str = "records"
    dedupe_inflight: bool = False

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.cache_ttl <= 0:
            raise ValueError("cache_ttl must be positive")
