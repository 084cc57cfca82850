"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from recordsync.core.records import to_utc
from recordsync.server.models import RecordRow

# === Record schemas ===


class RecordCreateRequest(BaseModel):
    """Request body for record creation."""

    date: datetime
    category: str = Field(min_length=1)
    severity: str | None = None
    resolved: bool = False
    resolved_at: datetime | None = None
    attachments: list[str] = Field(default_factory=list)
    fields: dict[str, Any] = Field(default_factory=dict)


class RecordUpdateRequest(BaseModel):
    """Request body for a partial record update.

    Only fields present in the request body are applied.
    """

    date: datetime | None = None
    category: str | None = Field(default=None, min_length=1)
    severity: str | None = None
    resolved: bool | None = None
    resolved_at: datetime | None = None
    attachments: list[str] | None = None
    fields: dict[str, Any] | None = None


class RecordResponse(BaseModel):
    """Record data in responses."""

    id: str
    date: str
    category: str
    severity: str | None
    resolved: bool
    resolved_at: str | None
    attachments: list[str]
    fields: dict[str, Any]
    created_at: str
    updated_at: str


# === Blob schemas ===


class BlobResponse(BaseModel):
    """Response for a stored blob."""

    key: str
    url: str
    size: int


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Converters ===


def _iso(value: datetime | None) -> str | None:
    return to_utc(value).isoformat() if value is not None else None


def record_to_response(record: RecordRow) -> RecordResponse:
    """Convert RecordRow to response model."""
    return RecordResponse(
        id=record.id,
        date=to_utc(record.date).isoformat(),
        category=record.category,
        severity=record.severity,
        resolved=record.resolved,
        resolved_at=_iso(record.resolved_at),
        attachments=list(record.attachments or []),
        fields=dict(record.fields or {}),
        created_at=to_utc(record.created_at).isoformat(),
        updated_at=to_utc(record.updated_at).isoformat(),
    )
