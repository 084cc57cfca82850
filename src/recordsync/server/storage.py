"""Blob storage for record attachments.

This module provides:
- Abstract interface for blob storage
- LocalFSStorage for development/testing and single-host deployments
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath


class BlobNotFoundError(Exception):
    """Raised when a blob is not found in storage."""


class InvalidBlobKeyError(ValueError):
    """Raised when a blob key would escape the storage root."""


def validate_key(key: str) -> str:
    """Check that a blob key is a relative path without parent references.

    Returns:
        The key unchanged.

    Raises:
        InvalidBlobKeyError: If the key is empty, absolute or uses "..".
    """
    path = PurePosixPath(key)
    if not key or path.is_absolute() or ".." in path.parts or "\\" in key:
        raise InvalidBlobKeyError(f"Invalid blob key: {key!r}")
    return key


class BlobStorage(ABC):
    """Abstract interface for attachment blob storage."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of where blobs are stored."""

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """Store a blob, replacing any previous content under key."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Retrieve a blob.

        Raises:
            BlobNotFoundError: If the blob doesn't exist.
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if a blob exists in storage."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a blob.

        Returns:
            True if the blob was deleted, False if it didn't exist.
        """


class LocalFSStorage(BlobStorage):
    """Local filesystem storage.

    Blob keys map to relative paths below the base directory, so a key like
    "records/1700000000000-ab12cd34-xray.png" lands in a "records" folder.
    """

    def __init__(self, base_path: Path | str) -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory for blob storage.
        """
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local filesystem: {self._base_path}"

    def _blob_path(self, key: str) -> Path:
        return self._base_path / validate_key(key)

    def put(self, key: str, data: bytes) -> None:
        """Store a blob."""
        path = self._blob_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def get(self, key: str) -> bytes:
        """Retrieve a blob."""
        path = self._blob_path(key)
        if not path.is_file():
            raise BlobNotFoundError(f"Blob not found: {key}")
        return path.read_bytes()

    def exists(self, key: str) -> bool:
        """Check if a blob exists."""
        return self._blob_path(key).is_file()

    def delete(self, key: str) -> bool:
        """Delete a blob."""
        path = self._blob_path(key)
        if path.is_file():
            path.unlink()
            return True
        return False
