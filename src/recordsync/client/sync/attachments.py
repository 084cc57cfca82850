"""Attachment upload and blob cleanup.

Uploads fan out concurrently and fan back in before the caller proceeds.
The batch is all-or-nothing: if any upload fails, the blobs that did upload
are deleted (best effort) and RemoteError is raised, so no blob from a
failed batch ends up linked to a record.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import TYPE_CHECKING

from recordsync.client.sync.types import RemoteError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recordsync.client.sync.types import BlobStore
    from recordsync.core.records import NewAttachment

logger = logging.getLogger(__name__)


def blob_name(prefix: str, filename: str) -> str:
    """Build a unique blob name: <prefix>/<millis>-<random>-<filename>."""
    millis = int(time.time() * 1000)
    safe = filename.replace("/", "_").replace("\\", "_") or "attachment"
    return f"{prefix}/{millis}-{uuid.uuid4().hex[:8]}-{safe}"


async def upload_attachments(
    blobs: BlobStore,
    attachments: Sequence[NewAttachment],
    prefix: str,
) -> list[str]:
    """Upload attachments concurrently.

    Args:
        blobs: Blob store to upload to.
        attachments: Files to upload.
        prefix: Blob name prefix.

    Returns:
        Blob URLs in the same order as attachments.

    Raises:
        RemoteError: If any upload failed.
    """
    if not attachments:
        return []

    results = await asyncio.gather(
        *(blobs.upload(a.content, blob_name(prefix, a.name)) for a in attachments),
        return_exceptions=True,
    )

    failures = [
        (a.name, r) for a, r in zip(attachments, results, strict=True)
        if isinstance(r, BaseException)
    ]
    if not failures:
        return [str(r) for r in results]

    uploaded = [r for r in results if isinstance(r, str)]
    for name, error in failures:
        logger.error("Attachment upload failed for %s: %s", name, error)
    if uploaded:
        await delete_blobs(blobs, uploaded)

    name, error = failures[0]
    raise RemoteError(
        f"Failed to upload {len(failures)} of {len(attachments)} attachments "
        f"(first: {name})"
    ) from error


async def delete_blobs(blobs: BlobStore, urls: Sequence[str]) -> list[str]:
    """Delete blobs concurrently, logging failures instead of raising.

    Only called once nothing references the blobs any more.

    Returns:
        URLs that could not be deleted.
    """
    if not urls:
        return []

    results = await asyncio.gather(
        *(blobs.delete(url) for url in urls),
        return_exceptions=True,
    )
    failed = []
    for url, result in zip(urls, results, strict=True):
        if isinstance(result, BaseException):
            logger.warning("Failed to delete blob %s: %s", url, result)
            failed.append(url)
    return failed
