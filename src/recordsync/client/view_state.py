"""Observable view state for the record list.

This module provides:
- ViewState: Immutable snapshot of records, selection, load status and filters
- ViewStateStore: State machine applying transitions and notifying listeners

States:
    IDLE -> LOADING -> LOADED
                    -> FAILED
    LOADED / FAILED -> LOADING (next fetch)

There is no terminal state; reset() returns to IDLE. Overlapping fetches
complete in any order and the last completion wins, so a completion is
accepted in any state except IDLE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from recordsync.core.records import FilterSpec, Record
from recordsync.core.types import LoadStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when attempting invalid state transition."""


@dataclass(frozen=True)
class ViewState:
    """Snapshot of the record view.

    Attributes:
        records: Loaded records, most recent first.
        selected: Currently selected record, if any.
        status: Load status.
        error: Message of the last failure, if any.
        is_offline: Whether the last reading said the device is offline.
        last_sync: When records were last loaded from the remote store.
        filters: Active filters.
    """

    records: tuple[Record, ...] = ()
    selected: Record | None = None
    status: LoadStatus = LoadStatus.IDLE
    error: str | None = None
    is_offline: bool = False
    last_sync: datetime | None = None
    filters: FilterSpec = FilterSpec()


class ViewStateStore:
    """Holds the current ViewState and applies transitions.

    Only RecordActions (for remote outcomes) and presentation code (for the
    purely local edits: select, filters, clear_error) call the transition
    methods. Observers subscribe and read snapshots, never mutate.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize the store in IDLE.

        Args:
            clock: Returns the current time (for last_sync).
        """
        self._state = ViewState()
        self._listeners: list[Callable[[ViewState], None]] = []
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def snapshot(self) -> ViewState:
        """Current state."""
        return self._state

    def subscribe(self, listener: Callable[[ViewState], None]) -> Callable[[], None]:
        """Register a listener called with every new state.

        Returns:
            A function that unregisters the listener (safe to call twice).
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _apply(self, **changes: Any) -> ViewState:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("View state listener failed")
        return self._state

    def _require_started(self, transition: str) -> None:
        if self._state.status == LoadStatus.IDLE:
            raise InvalidTransitionError(
                f"Cannot apply {transition} from {self._state.status.name}"
            )

    # === Fetch lifecycle ===

    def begin_fetch(self) -> ViewState:
        """Any state -> LOADING; clears the error."""
        return self._apply(status=LoadStatus.LOADING, error=None)

    def fetch_succeeded(self, records: Iterable[Record], is_offline: bool) -> ViewState:
        """LOADING -> LOADED; replaces records wholesale.

        last_sync only moves when the records came from the remote store.
        """
        self._require_started("fetch_succeeded")
        if self._state.status != LoadStatus.LOADING:
            logger.debug("Fetch completed after another fetch already resolved")
        changes: dict[str, Any] = {
            "records": tuple(records),
            "status": LoadStatus.LOADED,
            "error": None,
            "is_offline": is_offline,
        }
        if not is_offline:
            changes["last_sync"] = self._clock()
        return self._apply(**changes)

    def fetch_failed(self, message: str) -> ViewState:
        """LOADING -> FAILED; records are left untouched."""
        self._require_started("fetch_failed")
        return self._apply(status=LoadStatus.FAILED, error=message)

    # === Mutation outcomes ===

    def record_created(self, record: Record) -> ViewState:
        """Prepend a confirmed new record (dropping any stale copy of its id)."""
        others = tuple(r for r in self._state.records if r.id != record.id)
        return self._apply(records=(record, *others))

    def record_updated(self, record: Record) -> ViewState:
        """Replace the record with the same id in place."""
        records = tuple(record if r.id == record.id else r for r in self._state.records)
        selected = self._state.selected
        if selected is not None and selected.id == record.id:
            selected = record
        return self._apply(records=records, selected=selected)

    def record_deleted(self, record_id: str) -> ViewState:
        """Remove the record; clears the selection if it matched."""
        records = tuple(r for r in self._state.records if r.id != record_id)
        selected = self._state.selected
        if selected is not None and selected.id == record_id:
            selected = None
        return self._apply(records=records, selected=selected)

    def mutation_failed(self, message: str) -> ViewState:
        """Record a failed mutation; only the error message changes."""
        return self._apply(error=message)

    def set_offline(self, is_offline: bool) -> ViewState:
        """Record the latest connectivity reading."""
        return self._apply(is_offline=is_offline)

    # === Local edits ===

    def select(self, record: Record | None) -> ViewState:
        """Select a record, or clear the selection."""
        return self._apply(selected=record)

    def set_filters(self, **partial: Any) -> ViewState:
        """Merge partial filter values into the active filters."""
        return self._apply(filters=self._state.filters.merge(**partial))

    def clear_filters(self) -> ViewState:
        """Reset filters to match everything."""
        return self._apply(filters=FilterSpec())

    def clear_error(self) -> ViewState:
        """Clear the error message."""
        return self._apply(error=None)

    def reset(self) -> ViewState:
        """Return to the initial IDLE state (listeners stay registered)."""
        return self._apply(
            records=(),
            selected=None,
            status=LoadStatus.IDLE,
            error=None,
            is_offline=False,
            last_sync=None,
            filters=FilterSpec(),
        )
