"""Reservation and table stores consumed by the engine."""

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any, Protocol

from pydantic import TypeAdapter

from tablekeeper.models import (
    NewReservation,
    Reservation,
    ReservationStatus,
    RestaurantTable,
)

logger = logging.getLogger(__name__)

# Fields an update may touch; id, tenant and creation time are immutable
UPDATABLE_FIELDS = frozenset(
    {"name", "phone", "date", "time", "party_size", "notes", "table_id", "status"}
)


def generate_reservation_id() -> str:
    """Generate a short unique reservation identifier."""
    return uuid.uuid4().hex[:10]


class ReservationRepository(Protocol):
    """Storage for reservations, always scoped by tenant."""

    def list_active_by_date(self, tenant: str, day: date) -> list[Reservation]: ...

    def list_by_date(self, tenant: str, day: date) -> list[Reservation]: ...

    def list_active_by_phone(self, tenant: str, phone: str) -> list[Reservation]: ...

    def get_by_id(self, tenant: str, reservation_id: str) -> Reservation | None: ...

    def create(self, tenant: str, data: NewReservation) -> Reservation: ...

    def update(
        self, tenant: str, reservation_id: str, patch: dict[str, Any]
    ) -> Reservation | None: ...

    def cancel(self, tenant: str, reservation_id: str) -> bool: ...


class TableRepository(Protocol):
    """Read-only listing of tables; the admin surface owns them."""

    def list_tables(self, tenant: str) -> list[RestaurantTable]: ...


def _clean_patch(patch: dict[str, Any]) -> dict[str, Any]:
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    return dict(patch)


class InMemoryReservationRepository:
    """Reservation store kept in a dict, for tests and single-process demos."""

    def __init__(self, reservations: Iterable[Reservation] = ()) -> None:
        self._records: dict[str, Reservation] = {r.id: r for r in reservations}

    def _for_tenant(self, tenant: str) -> list[Reservation]:
        return [r for r in self._records.values() if r.tenant_id == tenant]

    def list_active_by_date(self, tenant: str, day: date) -> list[Reservation]:
        return [r for r in self._for_tenant(tenant) if r.date == day and r.is_active]

    def list_by_date(self, tenant: str, day: date) -> list[Reservation]:
        return [r for r in self._for_tenant(tenant) if r.date == day]

    def list_active_by_phone(self, tenant: str, phone: str) -> list[Reservation]:
        return [r for r in self._for_tenant(tenant) if r.phone == phone and r.is_active]

    def get_by_id(self, tenant: str, reservation_id: str) -> Reservation | None:
        record = self._records.get(reservation_id)
        if record is None or record.tenant_id != tenant:
            return None
        return record

    def create(self, tenant: str, data: NewReservation) -> Reservation:
        record = Reservation(
            id=generate_reservation_id(),
            tenant_id=tenant,
            status=ReservationStatus.ACTIVE,
            created_at=datetime.now(),
            **data.model_dump(),
        )
        self._records[record.id] = record
        logger.debug(f"Stored reservation {record.id} for tenant {tenant}")
        return record

    def update(
        self, tenant: str, reservation_id: str, patch: dict[str, Any]
    ) -> Reservation | None:
        current = self.get_by_id(tenant, reservation_id)
        if current is None:
            return None
        updated = Reservation.model_validate(
            {**current.model_dump(), **_clean_patch(patch)}
        )
        self._records[reservation_id] = updated
        return updated

    def cancel(self, tenant: str, reservation_id: str) -> bool:
        return self.update(tenant, reservation_id, {"status": ReservationStatus.CANCELLED}) is not None


class SQLiteReservationRepository:
    """Reservation store persisted in SQLite.

    A single connection is kept for the lifetime of the repository so that
    ``:memory:`` databases survive between calls. sqlite3 errors propagate.
    """

    def __init__(self, db_path: str = "reservations.db") -> None:
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        """Create the reservations table if needed."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS reservations (
                    id TEXT PRIMARY KEY,
                    tenant_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    date TEXT NOT NULL,
                    time TEXT NOT NULL,
                    party_size INTEGER NOT NULL,
                    notes TEXT,
                    table_id TEXT,
                    status TEXT NOT NULL DEFAULT 'active',
                    created_at TEXT NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_reservations_tenant_date
                ON reservations (tenant_id, date)
            """)
        logger.info(f"Reservation database initialized at {self.db_path}")

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _to_model(row: sqlite3.Row) -> Reservation:
        return Reservation.model_validate(dict(row))

    def _query(self, sql: str, params: tuple) -> list[Reservation]:
        cursor = self._conn.execute(sql, params)
        return [self._to_model(row) for row in cursor.fetchall()]

    def list_active_by_date(self, tenant: str, day: date) -> list[Reservation]:
        return self._query(
            """
            SELECT * FROM reservations
            WHERE tenant_id = ? AND date = ? AND status = ?
            ORDER BY time
            """,
            (tenant, day.isoformat(), ReservationStatus.ACTIVE.value),
        )

    def list_by_date(self, tenant: str, day: date) -> list[Reservation]:
        return self._query(
            "SELECT * FROM reservations WHERE tenant_id = ? AND date = ? ORDER BY time",
            (tenant, day.isoformat()),
        )

    def list_active_by_phone(self, tenant: str, phone: str) -> list[Reservation]:
        return self._query(
            """
            SELECT * FROM reservations
            WHERE tenant_id = ? AND phone = ? AND status = ?
            """,
            (tenant, phone, ReservationStatus.ACTIVE.value),
        )

    def get_by_id(self, tenant: str, reservation_id: str) -> Reservation | None:
        rows = self._query(
            "SELECT * FROM reservations WHERE tenant_id = ? AND id = ?",
            (tenant, reservation_id),
        )
        return rows[0] if rows else None

    def create(self, tenant: str, data: NewReservation) -> Reservation:
        record = Reservation(
            id=generate_reservation_id(),
            tenant_id=tenant,
            status=ReservationStatus.ACTIVE,
            created_at=datetime.now(),
            **data.model_dump(),
        )
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO reservations
                    (id, tenant_id, name, phone, date, time, party_size,
                     notes, table_id, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.tenant_id,
                    record.name,
                    record.phone,
                    record.date.isoformat(),
                    record.time,
                    record.party_size,
                    record.notes,
                    record.table_id,
                    record.status.value,
                    record.created_at.isoformat(),
                ),
            )
        logger.debug(f"Stored reservation {record.id} for tenant {tenant}")
        return record

    def update(
        self, tenant: str, reservation_id: str, patch: dict[str, Any]
    ) -> Reservation | None:
        current = self.get_by_id(tenant, reservation_id)
        if current is None:
            return None
        if not patch:
            return current

        updated = Reservation.model_validate(
            {**current.model_dump(), **_clean_patch(patch)}
        )
        columns = sorted(patch)
        row = updated.model_dump(mode="json")
        assignments = ", ".join(f"{column} = ?" for column in columns)
        with self._conn:
            self._conn.execute(
                f"UPDATE reservations SET {assignments} WHERE tenant_id = ? AND id = ?",
                (*(row[column] for column in columns), tenant, reservation_id),
            )
        return updated

    def cancel(self, tenant: str, reservation_id: str) -> bool:
        return self.update(tenant, reservation_id, {"status": ReservationStatus.CANCELLED}) is not None


class InMemoryTableRepository:
    """Table listing held in memory."""

    def __init__(self, tables: Iterable[RestaurantTable] = ()) -> None:
        self._tables = list(tables)

    def list_tables(self, tenant: str) -> list[RestaurantTable]:
        return [t for t in self._tables if t.tenant_id == tenant]


def load_tables_file(path: str | Path) -> InMemoryTableRepository:
    """Load a JSON list of tables (any tenant) into an in-memory repository.

    Raises:
        FileNotFoundError: If the file does not exist
        pydantic.ValidationError: If an entry is not a valid table
    """
    tables = TypeAdapter(list[RestaurantTable]).validate_json(Path(path).read_text(encoding="utf-8"))
    logger.info(f"Loaded {len(tables)} table(s) from {path}")
    return InMemoryTableRepository(tables)


class SQLiteConfigStore:
    """Raw per-tenant capacity overrides stored as JSON in SQLite.

    Values are kept exactly as saved; sanitizing them is the loader's job.
    """

    def __init__(self, db_path: str = "reservations.db") -> None:
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS capacity_config (
                    tenant_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def close(self) -> None:
        self._conn.close()

    def get_raw(self, tenant: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT data FROM capacity_config WHERE tenant_id = ?", (tenant,)
        ).fetchone()
        if row is None:
            return None
        try:
            data = json.loads(row["data"])
        except json.JSONDecodeError:
            logger.warning(f"Tenant {tenant}: stored capacity config is not valid JSON, using defaults")
            return None
        return data if isinstance(data, dict) else None

    def save_raw(self, tenant: str, data: dict[str, Any]) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO capacity_config (tenant_id, data, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(tenant_id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
                """,
                (tenant, json.dumps(data, default=str), datetime.now().isoformat()),
            )
        logger.debug(f"Saved capacity config for tenant {tenant}")
