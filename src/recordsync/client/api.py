"""HTTP adapters for the recordsync server API.

This module provides:
- HTTPClient: Async HTTP client for communicating with the server
- HTTPRecordSource: RemoteDataSource over /api/records
- HTTPBlobStore: BlobStore over /api/blobs
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from recordsync.client.sync.types import RecordNotFoundError
from recordsync.core.records import Record

if TYPE_CHECKING:
    from recordsync.core.config import ServerConfig
    from recordsync.core.records import FilterSpec

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class NotFoundError(APIError):
    """Resource not found."""


def _detail(response: httpx.Response, default: str) -> str:
    try:
        return str(response.json().get("detail", default))
    except (ValueError, AttributeError):
        return response.text or default


class HTTPClient:
    """Async HTTP client for the recordsync server API."""

    def __init__(
        self,
        config: ServerConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Server configuration.
            transport: Optional transport (e.g. httpx.ASGITransport in tests).
        """
        self._config = config
        headers = {}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self._client = httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            headers=headers,
            verify=config.verify_ssl,
            transport=transport,
        )

    @property
    def config(self) -> ServerConfig:
        """Server configuration this client talks to."""
        return self._config

    @property
    def http(self) -> httpx.AsyncClient:
        """Underlying httpx client (shared with the connectivity probe)."""
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> HTTPClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid or missing token", 401)
        if response.status_code == 404:
            raise NotFoundError(_detail(response, "Resource not found"), 404)
        if response.status_code >= 400:
            raise APIError(
                _detail(response, "Unknown error"), response.status_code
            )
        return response

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request and map error statuses to APIError subclasses."""
        response = await self._client.request(method, url, **kwargs)
        return self._handle_response(response)


class HTTPRecordSource:
    """Record operations against /api/records."""

    def __init__(self, client: HTTPClient) -> None:
        self._client = client

    async def list(self, filters: FilterSpec) -> list[Record]:
        response = await self._client.request(
            "GET", "/api/records", params=filters.to_query_params()
        )
        return [Record.from_dict(r) for r in response.json()]

    async def get(self, record_id: str) -> Record | None:
        try:
            response = await self._client.request(
                "GET", f"/api/records/{quote(record_id, safe='')}"
            )
        except NotFoundError:
            return None
        return Record.from_dict(response.json())

    async def create(self, payload: dict[str, Any]) -> Record:
        response = await self._client.request("POST", "/api/records", json=payload)
        return Record.from_dict(response.json())

    async def update(self, record_id: str, changes: dict[str, Any]) -> Record:
        try:
            response = await self._client.request(
                "PATCH", f"/api/records/{quote(record_id, safe='')}", json=changes
            )
        except NotFoundError as e:
            raise RecordNotFoundError(record_id) from e
        return Record.from_dict(response.json())

    async def delete(self, record_id: str) -> None:
        try:
            await self._client.request(
                "DELETE", f"/api/records/{quote(record_id, safe='')}"
            )
        except NotFoundError as e:
            raise RecordNotFoundError(record_id) from e


class HTTPBlobStore:
    """Attachment blobs stored through /api/blobs."""

    def __init__(self, client: HTTPClient) -> None:
        self._client = client

    async def upload(self, content: bytes, name: str) -> str:
        response = await self._client.request(
            "PUT",
            f"/api/blobs/{quote(name, safe='/')}",
            content=content,
            headers={"Content-Type": "application/octet-stream"},
        )
        url: str = response.json()["url"]
        logger.debug("Uploaded blob %s (%d bytes)", name, len(content))
        return url

    def _blob_path(self, url: str) -> str | None:
        """Server-relative path of a blob URL under this server's /api/blobs/.

        Returns None for any other URL.
        """
        base = self._client.config.server_url
        if not url.startswith(f"{base}/api/blobs/"):
            return None
        return url[len(base):]

    async def delete(self, url: str) -> None:
        """Delete a blob. A blob that is already gone counts as deleted.

        URLs outside this server's blob API are skipped without a request.
        """
        path = self._blob_path(url)
        if path is None:
            logger.warning(
                "Not deleting blob outside %s: %s", self._client.config.server_url, url
            )
            return
        try:
            await self._client.request("DELETE", path)
        except NotFoundError:
            logger.debug("Blob already deleted: %s", url)
