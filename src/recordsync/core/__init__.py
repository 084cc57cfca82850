"""Core module - Shared record types and configuration."""

from recordsync.core.config import DEFAULT_CACHE_TTL, ServerConfig, SyncSettings
from recordsync.core.records import (
    FilterSpec,
    NewAttachment,
    Record,
    RecordInput,
    RecordUpdate,
    parse_datetime,
    to_utc,
)
from recordsync.core.types import LoadStatus, RecordCategory, Severity

__all__ = [
    # Config
    "DEFAULT_CACHE_TTL",
    "ServerConfig",
    "SyncSettings",
    # Records
    "FilterSpec",
    "NewAttachment",
    "Record",
    "RecordInput",
    "RecordUpdate",
    "parse_datetime",
    "to_utc",
    # Types
    "LoadStatus",
    "RecordCategory",
    "Severity",
]
