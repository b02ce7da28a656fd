"""Database service for ledger sync run lifecycle persistence and per-position locking."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Final
from uuid import UUID

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from clmm_ledger.domain import SyncRunAlreadyActiveError

from .interfaces import SyncRunOutcome, SyncRunRecord, SyncRunRepositoryPort, SyncRunState

_SYNC_RUN_COLUMNS: Final[str] = (
    "sync_run_id, position_id, run_type, status, started_at_utc, ended_at_utc, duration_ms, "
    "error_code, error_message, diagnostics, from_block, finalized_block, events_added"
)
_RUN_TYPES: Final[frozenset[str]] = frozenset({"incremental", "full_resync", "refresh", "import"})


class SQLAlchemySyncRunService(SyncRunRepositoryPort):
    """SQLAlchemy-backed sync run service.

    Different positions sync concurrently; a transaction-scoped advisory lock
    keyed by position id plus the `started` status check admit one active run
    per position.
    """

    def __init__(self, engine: Engine):
        """Initialize sync run persistence service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Returns:
            None: This initializer does not return a value.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_sync_run_create_started(self, position_id: UUID, run_type: str) -> SyncRunRecord:
        """Create a started run while enforcing a single active run per position.

        Args:
            position_id: Position identifier.
            run_type: Trigger source (`incremental`, `full_resync`, `refresh`, `import`).

        Returns:
            SyncRunRecord: Newly created started run.

        Raises:
            SyncRunAlreadyActiveError: Raised when lock cannot be obtained or an active run exists.
            ValueError: Raised when run_type is unsupported.
            RuntimeError: Raised when persistence fails.
        """

        normalized_run_type = run_type.strip()
        if normalized_run_type not in _RUN_TYPES:
            raise ValueError(f"run_type must be one of: {', '.join(sorted(_RUN_TYPES))}")

        advisory_key_1, advisory_key_2 = self._build_advisory_lock_keys(position_id)

        try:
            with self._engine.begin() as connection:
                lock_row = connection.execute(
                    text("SELECT pg_try_advisory_xact_lock(:key_1, :key_2) AS lock_acquired"),
                    {"key_1": advisory_key_1, "key_2": advisory_key_2},
                ).mappings().one()
                if not bool(lock_row["lock_acquired"]):
                    raise SyncRunAlreadyActiveError(f"sync already active for position_id={position_id}")

                active_row = connection.execute(
                    text(
                        "SELECT sync_run_id "
                        "FROM ledger_sync_run "
                        "WHERE position_id = :position_id AND status = 'started' "
                        "LIMIT 1"
                    ),
                    {"position_id": position_id},
                ).first()
                if active_row is not None:
                    raise SyncRunAlreadyActiveError(f"sync already active for position_id={position_id}")

                created_row = connection.execute(
                    text(
                        "INSERT INTO ledger_sync_run (position_id, run_type, status, started_at_utc) "
                        "VALUES (:position_id, :run_type, 'started', now()) "
                        f"RETURNING {_SYNC_RUN_COLUMNS}"
                    ),
                    {"position_id": position_id, "run_type": normalized_run_type},
                ).mappings().one()
                return self._map_sync_run_record(created_row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to create started sync run") from error

    def db_sync_run_finalize(self, sync_run_id: UUID, outcome: SyncRunOutcome) -> SyncRunRecord:
        """Finalize one run with end timestamp, duration, and window values.

        Args:
            sync_run_id: Run identifier.
            outcome: Final status, error, timeline, and window values.

        Returns:
            SyncRunRecord: Finalized run row.

        Raises:
            LookupError: Raised when run is not found.
            ValueError: Raised when final status is invalid.
            RuntimeError: Raised when persistence fails.
        """

        if outcome.status not in {"success", "failed"}:
            raise ValueError("status must be one of: success, failed")

        diagnostics_payload = None
        if outcome.diagnostics is not None:
            diagnostics_payload = json.dumps(outcome.diagnostics)

        try:
            with self._engine.begin() as connection:
                updated_row = connection.execute(
                    text(
                        "UPDATE ledger_sync_run SET "
                        "status = :status, "
                        "ended_at_utc = now(), "
                        "duration_ms = GREATEST(0, CAST(EXTRACT(EPOCH FROM (now() - started_at_utc)) * 1000 AS BIGINT)), "
                        "error_code = :error_code, "
                        "error_message = :error_message, "
                        "diagnostics = CAST(:diagnostics AS jsonb), "
                        "from_block = :from_block, "
                        "finalized_block = :finalized_block, "
                        "events_added = :events_added "
                        "WHERE sync_run_id = :sync_run_id "
                        f"RETURNING {_SYNC_RUN_COLUMNS}"
                    ),
                    {
                        "status": outcome.status,
                        "error_code": outcome.error_code,
                        "error_message": outcome.error_message,
                        "diagnostics": diagnostics_payload,
                        "from_block": outcome.from_block,
                        "finalized_block": outcome.finalized_block,
                        "events_added": outcome.events_added,
                        "sync_run_id": sync_run_id,
                    },
                ).mappings().first()
                if updated_row is None:
                    raise LookupError("sync run not found")
                return self._map_sync_run_record(updated_row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to finalize sync run") from error

    def db_sync_run_list(self, position_id: UUID, limit: int, offset: int) -> list[SyncRunRecord]:
        """List runs of one position with deterministic ordering.

        Args:
            position_id: Position identifier.
            limit: Maximum number of rows.
            offset: Number of rows to skip.

        Returns:
            list[SyncRunRecord]: Runs newest first.

        Raises:
            ValueError: Raised when limit or offset are invalid.
            RuntimeError: Raised when database read fails.
        """

        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        f"SELECT {_SYNC_RUN_COLUMNS} "
                        "FROM ledger_sync_run "
                        "WHERE position_id = :position_id "
                        "ORDER BY started_at_utc DESC, sync_run_id DESC "
                        "LIMIT :limit OFFSET :offset"
                    ),
                    {"position_id": position_id, "limit": limit, "offset": offset},
                ).mappings().all()
                return [self._map_sync_run_record(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list sync runs") from error

    def _map_sync_run_record(self, row: Any) -> SyncRunRecord:
        """Map SQLAlchemy row mapping to a typed sync run record.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            SyncRunRecord: Typed run record.

        Raises:
            TypeError: Raised when diagnostics are not a JSON array.
        """

        diagnostics_value = row["diagnostics"]
        if diagnostics_value is not None and not isinstance(diagnostics_value, list):
            raise TypeError("ledger_sync_run.diagnostics must be a JSON array when present")

        return SyncRunRecord(
            sync_run_id=row["sync_run_id"],
            position_id=row["position_id"],
            run_type=row["run_type"],
            state=SyncRunState(
                status=row["status"],
                started_at_utc=row["started_at_utc"],
                ended_at_utc=row["ended_at_utc"],
                duration_ms=row["duration_ms"],
                error_code=row["error_code"],
                error_message=row["error_message"],
                diagnostics=diagnostics_value,
            ),
            from_block=None if row["from_block"] is None else int(row["from_block"]),
            finalized_block=None if row["finalized_block"] is None else int(row["finalized_block"]),
            events_added=row["events_added"],
        )

    def _build_advisory_lock_keys(self, position_id: UUID) -> tuple[int, int]:
        """Create deterministic advisory lock keys for a position-scoped run lock.

        Args:
            position_id: Position identifier.

        Returns:
            tuple[int, int]: Two signed int32 lock keys for PostgreSQL advisory lock.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        digest = hashlib.sha256(f"ledger-sync:{position_id}".encode("utf-8")).digest()
        key_1 = int.from_bytes(digest[0:4], byteorder="big", signed=True)
        key_2 = int.from_bytes(digest[4:8], byteorder="big", signed=True)
        return key_1, key_2
