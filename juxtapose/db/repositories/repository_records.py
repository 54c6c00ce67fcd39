from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from juxtapose.core.errors import DatabaseOperationError

_SQLSTATE_CODES: dict[str, tuple[str, bool]] = {
    "23505": ("unique_violation", False),
    "23514": ("check_violation", False),
    "40001": ("serialization_failure", True),
    "40P01": ("deadlock_detected", True),
    "55P03": ("lock_not_available", True),
    "57014": ("query_canceled", True),
}

_COLUMNS = "full_name, status, last_sync_at, error_message, created_at, updated_at"


@dataclass
class RepositoryRecord:
    full_name: str
    status: str
    last_sync_at: int
    error_message: str | None
    created_at: int
    updated_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "fullName": self.full_name,
            "status": self.status,
            "lastSyncAt": self.last_sync_at,
            "errorMessage": self.error_message,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def _map_error(exc: SQLAlchemyError) -> DatabaseOperationError:
    sqlstate = getattr(getattr(exc, "orig", None), "sqlstate", None)
    if sqlstate in _SQLSTATE_CODES:
        error_code, retryable = _SQLSTATE_CODES[sqlstate]
    elif sqlstate and sqlstate.startswith("08"):
        error_code, retryable = "connection_exception", True
    elif isinstance(exc, OperationalError):
        error_code, retryable = "operational_error", True
    else:
        error_code, retryable = "database_error", False
    return DatabaseOperationError(error_code=error_code, sqlstate=sqlstate, retryable=retryable)


def _commit_or_raise(db: Any) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise _map_error(exc) from exc


class RepositoryRecordStore:
    """Durable repository records; every write is committed before returning."""

    def __init__(self, db: Any):
        self.db = db

    def _execute(self, statement: str, params: dict[str, Any] | None = None) -> Any:
        try:
            return self.db.execute(text(statement), params or {})
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise _map_error(exc) from exc

    def _write(self, statement: str, params: dict[str, Any]) -> int:
        result = self._execute(statement, params)
        _commit_or_raise(self.db)
        return int(result.rowcount or 0)

    def get(self, full_name: str) -> RepositoryRecord | None:
        result = self._execute(
            f"SELECT {_COLUMNS} FROM repositories WHERE full_name = :full_name",
            {"full_name": full_name},
        )
        row = result.mappings().first()
        if not row:
            return None
        return RepositoryRecord(**row)

    def list_all(self) -> list[RepositoryRecord]:
        result = self._execute(f"SELECT {_COLUMNS} FROM repositories ORDER BY full_name")
        return [RepositoryRecord(**row) for row in result.mappings().all()]

    def list_due(self, *, synced_before: int, stale_before: int) -> list[RepositoryRecord]:
        result = self._execute(
            f"""
            SELECT {_COLUMNS}
            FROM repositories
            WHERE (status IN ('pending', 'active', 'error') AND last_sync_at <= :synced_before)
               OR (status IN ('backfilling', 'syncing') AND updated_at < :stale_before)
            ORDER BY last_sync_at, full_name
            """,
            {"synced_before": synced_before, "stale_before": stale_before},
        )
        return [RepositoryRecord(**row) for row in result.mappings().all()]

    def create(self, full_name: str, *, now: int) -> RepositoryRecord:
        self._write(
            """
            INSERT INTO repositories (full_name, status, last_sync_at, error_message, created_at, updated_at)
            VALUES (:full_name, 'pending', 0, NULL, :now, :now)
            ON CONFLICT (full_name) DO NOTHING
            """,
            {"full_name": full_name, "now": now},
        )
        record = self.get(full_name)
        if record is None:
            raise DatabaseOperationError(error_code="record_missing_after_insert", sqlstate=None, retryable=True)
        return record

    def delete(self, full_name: str) -> bool:
        return self._write("DELETE FROM repositories WHERE full_name = :full_name", {"full_name": full_name}) == 1

    def try_begin(self, record: RepositoryRecord, *, target_status: str, now: int) -> bool:
        """Compare-and-swap the status to an in-flight value.

        Matches on the status and ``updated_at`` observed in ``record``; a
        concurrent writer changes at least one of them, so only one caller wins.
        """
        affected = self._write(
            """
            UPDATE repositories
            SET status = :target_status, updated_at = :now
            WHERE full_name = :full_name
              AND status = :expected_status
              AND updated_at = :expected_updated_at
            """,
            {
                "target_status": target_status,
                "now": now,
                "full_name": record.full_name,
                "expected_status": record.status,
                "expected_updated_at": record.updated_at,
            },
        )
        return affected == 1

    def heartbeat(self, full_name: str, *, in_flight_status: str, claimed_at: int, now: int) -> bool:
        """Renew a claim; on success ``now`` becomes the claim token for later writes."""
        affected = self._write(
            """
            UPDATE repositories
            SET updated_at = :now
            WHERE full_name = :full_name AND status = :in_flight_status AND updated_at = :claimed_at
            """,
            {"full_name": full_name, "in_flight_status": in_flight_status, "claimed_at": claimed_at, "now": now},
        )
        return affected == 1

    def mark_active(self, full_name: str, *, in_flight_status: str, claimed_at: int, last_sync_at: int, now: int) -> bool:
        affected = self._write(
            """
            UPDATE repositories
            SET status = 'active',
                last_sync_at = CASE WHEN last_sync_at > :last_sync_at THEN last_sync_at ELSE :last_sync_at END,
                error_message = NULL,
                updated_at = :now
            WHERE full_name = :full_name AND status = :in_flight_status AND updated_at = :claimed_at
            """,
            {
                "full_name": full_name,
                "in_flight_status": in_flight_status,
                "claimed_at": claimed_at,
                "last_sync_at": last_sync_at,
                "now": now,
            },
        )
        return affected == 1

    def mark_error(self, full_name: str, *, in_flight_status: str, claimed_at: int, error_message: str, now: int) -> bool:
        affected = self._write(
            """
            UPDATE repositories
            SET status = 'error', error_message = :error_message, updated_at = :now
            WHERE full_name = :full_name AND status = :in_flight_status AND updated_at = :claimed_at
            """,
            {
                "full_name": full_name,
                "in_flight_status": in_flight_status,
                "claimed_at": claimed_at,
                "error_message": (error_message or "")[:512] or None,
                "now": now,
            },
        )
        return affected == 1
