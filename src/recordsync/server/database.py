"""Server database using SQLAlchemy with SQLite.

This module provides:
- Record storage and filtered listing
- Conversion of stored rows to core Record values
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from recordsync.core.records import FilterSpec, Record, to_utc
from recordsync.server.models import Base, RecordRow

if TYPE_CHECKING:
    from sqlalchemy import Engine

# Columns a client may change through a partial update
UPDATABLE_COLUMNS = frozenset(
    {"date", "category", "severity", "resolved", "resolved_at", "attachments", "fields"}
)

# Updatable columns that accept null
NULLABLE_COLUMNS = frozenset({"severity", "resolved_at"})


def naive_utc(value: datetime | None) -> datetime | None:
    """Convert to the naive UTC form stored in SQLite."""
    if value is None:
        return None
    return to_utc(value).replace(tzinfo=None)


def row_to_record(row: RecordRow) -> Record:
    """Convert a stored row to a core Record."""
    return Record(
        id=row.id,
        date=to_utc(row.date),
        category=row.category,
        severity=row.severity,
        resolved=row.resolved,
        resolved_at=to_utc(row.resolved_at) if row.resolved_at else None,
        attachments=tuple(row.attachments or ()),
        fields=dict(row.fields or {}),
        created_at=to_utc(row.created_at),
        updated_at=to_utc(row.updated_at),
    )


class Database:
    """SQLAlchemy database for records.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with check_same_thread=False for multi-threaded access
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        # Enable WAL mode
        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        """Path of the database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === Record operations ===

    def create_record(
        self,
        date: datetime,
        category: str,
        severity: str | None = None,
        resolved: bool = False,
        resolved_at: datetime | None = None,
        attachments: list[str] | None = None,
        fields: dict[str, Any] | None = None,
    ) -> RecordRow:
        """Create a record.

        Returns:
            Created RecordRow with id and timestamps assigned.
        """
        now = naive_utc(datetime.now(UTC))
        with self._session() as session:
            row = RecordRow(
                date=naive_utc(date),
                category=category,
                severity=severity,
                resolved=resolved,
                resolved_at=naive_utc(resolved_at),
                attachments=list(attachments or []),
                fields=dict(fields or {}),
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row

    def get_record(self, record_id: str) -> RecordRow | None:
        """Get a record by id.

        Returns:
            RecordRow if found, None otherwise.
        """
        with self._session() as session:
            row = session.get(RecordRow, record_id)
            if row:
                session.expunge(row)
            return row

    def update_record(self, record_id: str, changes: dict[str, Any]) -> RecordRow | None:
        """Apply a partial update.

        Args:
            record_id: Record id.
            changes: Column name -> new value. Unknown columns are ignored,
                and so is None for columns that do not accept null.

        Returns:
            Updated RecordRow, or None if the record doesn't exist.
        """
        with self._session() as session:
            row = session.get(RecordRow, record_id)
            if row is None:
                return None

            for name, value in changes.items():
                if name not in UPDATABLE_COLUMNS:
                    continue
                if value is None and name not in NULLABLE_COLUMNS:
                    continue
                if isinstance(value, datetime):
                    value = naive_utc(value)
                elif name == "attachments":
                    value = list(value)
                elif name == "fields":
                    value = dict(value)
                setattr(row, name, value)
            row.updated_at = naive_utc(datetime.now(UTC))

            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row

    def delete_record(self, record_id: str) -> bool:
        """Delete a record.

        Returns:
            True if the record was deleted, False if it didn't exist.
        """
        with self._session() as session:
            row = session.get(RecordRow, record_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def list_records(self, filters: FilterSpec | None = None) -> list[RecordRow]:
        """List records matching filters, most recent date first.

        Structured restrictions run in SQL; the free-text query is matched
        on the loaded rows.
        """
        filters = filters or FilterSpec()
        with self._session() as session:
            stmt = select(RecordRow)
            if filters.start_date is not None:
                stmt = stmt.where(RecordRow.date >= naive_utc(filters.start_date))
            if filters.end_date is not None:
                stmt = stmt.where(RecordRow.date <= naive_utc(filters.end_date))
            if filters.categories:
                stmt = stmt.where(RecordRow.category.in_(sorted(filters.categories)))
            if filters.severities:
                stmt = stmt.where(RecordRow.severity.in_(sorted(filters.severities)))
            if filters.resolved is not None:
                stmt = stmt.where(RecordRow.resolved == filters.resolved)
            stmt = stmt.order_by(RecordRow.date.desc(), RecordRow.created_at.desc())
            rows = list(session.execute(stmt).scalars().all())
            for row in rows:
                session.expunge(row)

        if filters.query:
            rows = [r for r in rows if filters.matches_text(row_to_record(r))]
        return rows
