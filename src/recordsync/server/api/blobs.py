"""Attachment blob API routes."""

from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from recordsync.server.api.deps import get_storage, require_token
from recordsync.server.schemas import BlobResponse
from recordsync.server.storage import (
    BlobNotFoundError,
    BlobStorage,
    InvalidBlobKeyError,
    validate_key,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/blobs",
    tags=["blobs"],
    dependencies=[Depends(require_token)],
)


def _checked_key(key: str) -> str:
    try:
        return validate_key(key)
    except InvalidBlobKeyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e


def blob_url(request: Request, key: str) -> str:
    """Absolute URL under which a blob is served."""
    base = str(request.base_url).rstrip("/")
    return f"{base}/api/blobs/{quote(key, safe='/')}"


@router.put(
    "/{key:path}",
    response_model=BlobResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_blob(
    key: str,
    request: Request,
    storage: BlobStorage = Depends(get_storage),
) -> BlobResponse:
    """Store an attachment blob."""
    key = _checked_key(key)
    data = await request.body()
    storage.put(key, data)
    logger.info("Stored blob %s (%d bytes)", key, len(data))
    return BlobResponse(key=key, url=blob_url(request, key), size=len(data))


@router.get("/{key:path}")
def download_blob(
    key: str,
    storage: BlobStorage = Depends(get_storage),
) -> Response:
    """Download an attachment blob."""
    key = _checked_key(key)
    try:
        data = storage.get(key)
    except BlobNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Blob not found: {key}",
        ) from e
    return Response(content=data, media_type="application/octet-stream")


@router.delete("/{key:path}", status_code=status.HTTP_204_NO_CONTENT)
def delete_blob(
    key: str,
    storage: BlobStorage = Depends(get_storage),
) -> Response:
    """Delete an attachment blob."""
    key = _checked_key(key)
    if not storage.delete(key):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Blob not found: {key}",
        )
    logger.info("Deleted blob %s", key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
