"""Record API routes."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from recordsync.core.records import FilterSpec
from recordsync.server.api.deps import get_db, require_token
from recordsync.server.database import Database
from recordsync.server.schemas import (
    RecordCreateRequest,
    RecordResponse,
    RecordUpdateRequest,
    record_to_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/records",
    tags=["records"],
    dependencies=[Depends(require_token)],
)


def _not_found(record_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Record not found: {record_id}",
    )


@router.get("", response_model=list[RecordResponse])
def list_records(
    db: Database = Depends(get_db),
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    category: list[str] | None = Query(default=None),
    severity: list[str] | None = Query(default=None),
    resolved: bool | None = None,
    q: str | None = None,
) -> list[RecordResponse]:
    """List records matching the query, most recent date first."""
    filters = FilterSpec(
        start_date=start_date,
        end_date=end_date,
        categories=frozenset(category or ()),
        severities=frozenset(severity or ()),
        resolved=resolved,
        query=q,
    )
    return [record_to_response(r) for r in db.list_records(filters)]


@router.post(
    "",
    response_model=RecordResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_record(
    request: RecordCreateRequest,
    db: Database = Depends(get_db),
) -> RecordResponse:
    """Create a record."""
    row = db.create_record(
        date=request.date,
        category=request.category,
        severity=request.severity,
        resolved=request.resolved,
        resolved_at=request.resolved_at,
        attachments=request.attachments,
        fields=request.fields,
    )
    logger.info("Created record %s (%s)", row.id, row.category)
    return record_to_response(row)


@router.get("/{record_id}", response_model=RecordResponse)
def get_record(record_id: str, db: Database = Depends(get_db)) -> RecordResponse:
    """Get a record."""
    row = db.get_record(record_id)
    if row is None:
        raise _not_found(record_id)
    return record_to_response(row)


@router.patch("/{record_id}", response_model=RecordResponse)
def update_record(
    record_id: str,
    request: RecordUpdateRequest,
    db: Database = Depends(get_db),
) -> RecordResponse:
    """Apply a partial update to a record."""
    row = db.update_record(record_id, request.model_dump(exclude_unset=True))
    if row is None:
        raise _not_found(record_id)
    logger.info("Updated record %s", record_id)
    return record_to_response(row)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_record(record_id: str, db: Database = Depends(get_db)) -> Response:
    """Delete a record. Attachment blobs are left to the client."""
    if not db.delete_record(record_id):
        raise _not_found(record_id)
    logger.info("Deleted record %s", record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
