"""Shared types for recordsync.

This module defines enums used by both client and server.
"""

from __future__ import annotations

from enum import Enum


class LoadStatus(str, Enum):
    """Load status of the record view.

    IDLE until the first fetch, then LOADING while a fetch is in flight
    and LOADED or FAILED once it resolves.
    """

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class RecordCategory(str, Enum):
    """Categories of health events observed in practice.

    Records accept any category string; these are the well-known ones.
    """

    VACCINATION = "vaccination"
    TREATMENT = "treatment"
    ILLNESS = "illness"
    INJURY = "injury"
    CHECKUP = "checkup"
    OTHER = "other"


class Severity(str, Enum):
    """Well-known severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
