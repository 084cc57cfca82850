"""Record, filter and mutation payload types.

This module provides:
- Record: Immutable, timestamped record as returned by the remote store
- FilterSpec: Immutable query restriction, also used as the cache key
- NewAttachment, RecordInput, RecordUpdate: Mutation payloads

All instants are timezone-aware UTC datetimes. Naive datetimes coming from
the wire or from SQLite are interpreted as UTC.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to timezone-aware UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 string (or pass a datetime through) as UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(datetime.fromisoformat(value))


def _iso(value: datetime | None) -> str | None:
    return to_utc(value).isoformat() if value is not None else None


@dataclass(frozen=True)
class Record:
    """A synchronized record.

    Attributes:
        id: Opaque identifier assigned by the remote store.
        date: When the recorded event happened (used for date filters).
        category: Record category (e.g. "vaccination", "treatment").
        created_at: When the remote store created the record.
        updated_at: When the remote store last updated the record.
        severity: Optional severity level.
        resolved: Whether the record is resolved.
        resolved_at: When the record was resolved, if it was.
        attachments: Blob URLs linked to the record.
        fields: Free-form domain fields (description, subject_id, notes...).
    """

    id: str
    date: datetime
    category: str
    created_at: datetime
    updated_at: datetime
    severity: str | None = None
    resolved: bool = False
    resolved_at: datetime | None = None
    attachments: tuple[str, ...] = ()
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def description(self) -> str:
        """Human-readable description, empty if the record has none."""
        return str(self.fields.get("description", ""))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary (wire and cache format)."""
        return {
            "id": self.id,
            "date": _iso(self.date),
            "category": self.category,
            "severity": self.severity,
            "resolved": self.resolved,
            "resolved_at": _iso(self.resolved_at),
            "attachments": list(self.attachments),
            "fields": dict(self.fields),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        """Create from an API response or cache dictionary."""
        return cls(
            id=str(data["id"]),
            date=to_utc(datetime.fromisoformat(data["date"])),
            category=data["category"],
            severity=data.get("severity"),
            resolved=bool(data.get("resolved", False)),
            resolved_at=parse_datetime(data.get("resolved_at")),
            attachments=tuple(data.get("attachments") or ()),
            fields=dict(data.get("fields") or {}),
            created_at=to_utc(datetime.fromisoformat(data["created_at"])),
            updated_at=to_utc(datetime.fromisoformat(data["updated_at"])),
        )


@dataclass(frozen=True)
class FilterSpec:
    """Immutable query restriction.

    An empty FilterSpec matches every record. Set-valued restrictions are
    frozensets so that two specs built from the same values in a different
    order are equal and produce the same cache key.
    """

    start_date: datetime | None = None
    end_date: datetime | None = None
    categories: frozenset[str] = frozenset()
    severities: frozenset[str] = frozenset()
    resolved: bool | None = None
    query: str | None = None

    def __post_init__(self) -> None:
        """Normalize dates to UTC and collections to frozensets."""
        if self.start_date is not None:
            object.__setattr__(self, "start_date", to_utc(self.start_date))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", to_utc(self.end_date))
        object.__setattr__(self, "categories", frozenset(self.categories))
        object.__setattr__(self, "severities", frozenset(self.severities))
        if self.query is not None:
            query = self.query.strip()
            object.__setattr__(self, "query", query or None)

    @property
    def is_empty(self) -> bool:
        """Check if this filter restricts nothing."""
        return self == FilterSpec()

    def merge(self, **partial: Any) -> FilterSpec:
        """Return a copy with the given fields replaced.

        Raises:
            TypeError: If a field name is unknown.
        """
        known = {f.name for f in fields(self)}
        unknown = set(partial) - known
        if unknown:
            raise TypeError(f"Unknown filter fields: {', '.join(sorted(unknown))}")
        return replace(self, **partial)

    def to_dict(self) -> dict[str, Any]:
        """Canonical dictionary form (sorted collections, ISO dates)."""
        return {
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "categories": sorted(self.categories),
            "severities": sorted(self.severities),
            "resolved": self.resolved,
            "query": self.query,
        }

    def cache_key(self) -> str:
        """Deterministic key derived from the field values."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def to_query_params(self) -> list[tuple[str, str]]:
        """Encode as HTTP query parameters (repeated keys for sets)."""
        params: list[tuple[str, str]] = []
        if self.start_date is not None:
            params.append(("start_date", self.start_date.isoformat()))
        if self.end_date is not None:
            params.append(("end_date", self.end_date.isoformat()))
        params.extend(("category", c) for c in sorted(self.categories))
        params.extend(("severity", s) for s in sorted(self.severities))
        if self.resolved is not None:
            params.append(("resolved", "true" if self.resolved else "false"))
        if self.query:
            params.append(("q", self.query))
        return params

    def matches(self, record: Record) -> bool:
        """Evaluate this filter against a record locally."""
        date = to_utc(record.date)
        if self.start_date is not None and date < self.start_date:
            return False
        if self.end_date is not None and date > self.end_date:
            return False
        if self.categories and record.category not in self.categories:
            return False
        if self.severities and record.severity not in self.severities:
            return False
        if self.resolved is not None and record.resolved != self.resolved:
            return False
        return self.matches_text(record)

    def matches_text(self, record: Record) -> bool:
        """Case-insensitive free-text match over category and string fields."""
        if not self.query:
            return True
        needle = self.query.lower()
        haystack = [record.category, record.severity or ""]
        haystack.extend(str(v) for v in record.fields.values() if isinstance(v, str))
        return any(needle in text.lower() for text in haystack)


@dataclass(frozen=True)
class NewAttachment:
    """A file to upload and link to a record."""

    name: str
    content: bytes

    @classmethod
    def from_path(cls, path: Path | str) -> NewAttachment:
        """Read an attachment from disk."""
        path = Path(path)
        return cls(name=path.name, content=path.read_bytes())


@dataclass(frozen=True)
class RecordInput:
    """Payload for creating a record."""

    date: datetime
    category: str
    severity: str | None = None
    resolved: bool = False
    resolved_at: datetime | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    attachments: tuple[NewAttachment, ...] = ()

    def to_payload(self, attachment_urls: list[str]) -> dict[str, Any]:
        """Build the remote create payload with uploaded attachment URLs."""
        return {
            "date": _iso(self.date),
            "category": self.category,
            "severity": self.severity,
            "resolved": self.resolved,
            "resolved_at": _iso(self.resolved_at),
            "attachments": list(attachment_urls),
            "fields": dict(self.fields),
        }


# Fields of RecordUpdate that map directly onto record columns
_UPDATABLE = ("date", "category", "severity", "resolved", "resolved_at", "fields")


@dataclass(frozen=True)
class RecordUpdate:
    """Partial update for a record.

    Only fields that are not None are sent, except that reopening a record
    (``resolved=False``) also clears ``resolved_at``. ``attachments`` are
    uploaded and appended; ``removed_attachments`` are unlinked from the record and their
    blobs deleted once the update succeeds.
    """

    date: datetime | None = None
    category: str | None = None
    severity: str | None = None
    resolved: bool | None = None
    resolved_at: datetime | None = None
    fields: dict[str, Any] | None = None
    attachments: tuple[NewAttachment, ...] = ()
    removed_attachments: tuple[str, ...] = ()

    def changes(self) -> dict[str, Any]:
        """Column changes carried by this update (attachments excluded)."""
        result: dict[str, Any] = {}
        for name in _UPDATABLE:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, datetime):
                value = _iso(value)
            elif name == "fields":
                value = dict(value)
            result[name] = value
        if self.resolved is False:
            result["resolved_at"] = None
        return result

    def to_payload(
        self,
        current_attachments: tuple[str, ...],
        new_urls: list[str],
    ) -> dict[str, Any]:
        """Build the remote update payload.

        Args:
            current_attachments: Attachment URLs currently on the record.
            new_urls: URLs of attachments uploaded for this update.
        """
        payload = self.changes()
        if self.attachments or self.removed_attachments:
            removed = set(self.removed_attachments)
            kept = [url for url in current_attachments if url not in removed]
            payload["attachments"] = kept + list(new_urls)
        return payload
