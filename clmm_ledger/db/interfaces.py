"""Typed interfaces for database-layer services.

All SQL access remains in the db package and its submodules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from clmm_ledger.domain import (
    HealthStatus,
    HistoricPoolPrice,
    LedgerEventInput,
    LedgerEventRecord,
    PoolMetadata,
    PoolReference,
    PositionOnChainState,
    PositionRecord,
    PositionRollups,
)


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """


@dataclass(frozen=True)
class LedgerEventInsertResult:
    """Outcome of one idempotent ledger insert.

    Attributes:
        record: Stored row, either newly inserted or pre-existing.
        deduplicated: True when the idempotency key already existed.
    """

    record: LedgerEventRecord
    deduplicated: bool


class LedgerEventRepositoryPort(Protocol):
    """Port for append-only ledger event persistence."""

    def db_ledger_event_insert(self, event_input: LedgerEventInput) -> LedgerEventInsertResult:
        """Insert one event; a duplicate `(position_id, input_hash)` returns the existing row.

        Raises:
            OrderingViolationError: Raised when the event precedes the last stored event.
            RuntimeError: Raised when persistence fails.
        """

    def db_ledger_event_delete_from_block(self, position_id: UUID, from_block: int) -> int:
        """Delete events at or after a block and return the deleted count.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

    def db_ledger_event_get_last(self, position_id: UUID) -> LedgerEventRecord | None:
        """Return the latest event by coordinates, if any.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_ledger_event_list(self, position_id: UUID) -> list[LedgerEventRecord]:
        """Return all events newest first by coordinates.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_ledger_event_list_range(
        self,
        position_id: UUID,
        from_block: int,
        to_block: int | None = None,
    ) -> list[LedgerEventRecord]:
        """Return events in an inclusive block range, oldest first.

        Raises:
            RuntimeError: Raised when database read fails.
        """


@dataclass(frozen=True)
class SyncStateRecord:
    """Persisted sync-state row.

    Attributes:
        position_id: Owning position identifier.
        state: JSON state payload (`{"missingEvents": [...]}`).
        last_sync_at: Timestamp of the last save.
        last_sync_by: Label of the trigger behind the last save.
    """

    position_id: UUID
    state: dict[str, Any]
    last_sync_at: datetime | None
    last_sync_by: str | None


class SyncStateRepositoryPort(Protocol):
    """Port for per-position sync-state persistence."""

    def db_sync_state_load(self, position_id: UUID) -> SyncStateRecord | None:
        """Return the stored state, or None when the position has none.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_sync_state_save(self, position_id: UUID, state: dict[str, Any], sync_by: str) -> SyncStateRecord:
        """Insert or replace the stored state.

        Raises:
            RuntimeError: Raised when persistence fails.
        """


@dataclass(frozen=True)
class SyncRunState:
    """Lifecycle and outcome of one sync run.

    Attributes:
        status: Run status (`started`, `success`, `failed`).
        started_at_utc: Run start timestamp in UTC.
        ended_at_utc: Optional run end timestamp in UTC.
        duration_ms: Optional run duration in milliseconds.
        error_code: Optional deterministic error code.
        error_message: Optional human-readable error message.
        diagnostics: Optional stage timeline.
    """

    status: str
    started_at_utc: datetime
    ended_at_utc: datetime | None
    duration_ms: int | None
    error_code: str | None
    error_message: str | None
    diagnostics: list[dict[str, Any]] | None


@dataclass(frozen=True)
class SyncRunRecord:
    """Persistence model for one ledger sync run row.

    Attributes:
        sync_run_id: Unique run identifier.
        position_id: Synced position identifier.
        run_type: Trigger source (`incremental`, `full_resync`, `refresh`, `import`).
        state: Lifecycle and outcome values.
        from_block: Replay window start, once determined.
        finalized_block: Finality horizon observed, once determined.
        events_added: Number of newly inserted events, once finished.
    """

    sync_run_id: UUID
    position_id: UUID
    run_type: str
    state: SyncRunState
    from_block: int | None = None
    finalized_block: int | None = None
    events_added: int | None = None


@dataclass(frozen=True)
class SyncRunOutcome:
    """Final values written when a sync run finishes.

    Attributes:
        status: Final status (`success` or `failed`).
        error_code: Optional deterministic error code.
        error_message: Optional human-readable message.
        diagnostics: Optional stage timeline.
        from_block: Replay window start.
        finalized_block: Finality horizon observed.
        events_added: Number of newly inserted events.
    """

    status: str
    error_code: str | None = None
    error_message: str | None = None
    diagnostics: list[dict[str, Any]] | None = None
    from_block: int | None = None
    finalized_block: int | None = None
    events_added: int | None = None


class SyncRunRepositoryPort(Protocol):
    """Port for ledger sync run lifecycle persistence."""

    def db_sync_run_create_started(self, position_id: UUID, run_type: str) -> SyncRunRecord:
        """Create a started run while enforcing a single active run per position.

        Raises:
            SyncRunAlreadyActiveError: Raised when another run for the position is active.
            RuntimeError: Raised when persistence fails.
        """

    def db_sync_run_finalize(self, sync_run_id: UUID, outcome: SyncRunOutcome) -> SyncRunRecord:
        """Finalize one run.

        Raises:
            LookupError: Raised when the run is not found.
            ValueError: Raised when status is invalid.
            RuntimeError: Raised when persistence fails.
        """

    def db_sync_run_list(self, position_id: UUID, limit: int, offset: int) -> list[SyncRunRecord]:
        """List runs of one position newest first.

        Raises:
            ValueError: Raised when limit or offset are invalid.
            RuntimeError: Raised when database read fails.
        """


class PositionRepositoryPort(Protocol):
    """Port for position aggregate reads and reconciliation writes."""

    def db_position_get(self, position_id: UUID) -> PositionRecord | None:
        """Return one position, or None when missing.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_position_get_pool_metadata(self, position_id: UUID) -> PoolMetadata | None:
        """Return valuation metadata of the position's pool, or None when missing.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_position_update_state(self, position_id: UUID, state: PositionOnChainState) -> None:
        """Replace stored on-chain state.

        Raises:
            LookupError: Raised when the position is not found.
            RuntimeError: Raised when persistence fails.
        """

    def db_position_update_rollups(self, position_id: UUID, rollups: PositionRollups) -> None:
        """Replace stored financial rollups.

        Raises:
            LookupError: Raised when the position is not found.
            RuntimeError: Raised when persistence fails.
        """

    def db_position_delete(self, position_id: UUID) -> bool:
        """Delete one position with its ledger and sync state; return whether it existed.

        Raises:
            RuntimeError: Raised when persistence fails.
        """


class PoolPriceRepositoryPort(Protocol):
    """Port for pool lookup and the `(pool_id, block_number)` price cache."""

    def db_pool_get_reference(self, pool_id: UUID) -> PoolReference | None:
        """Return the on-chain location of a pool, or None when missing.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_pool_price_get(self, pool_id: UUID, block_number: int) -> HistoricPoolPrice | None:
        """Return a cached exact price snapshot, if any.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_pool_price_save(self, price: HistoricPoolPrice) -> HistoricPoolPrice:
        """Cache one exact price snapshot; an existing entry wins.

        Raises:
            RuntimeError: Raised when persistence fails.
        """
