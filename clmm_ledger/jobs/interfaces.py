"""Typed interfaces for job-layer orchestration responsibilities."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from uuid import UUID


class SyncStage(str, Enum):
    """Ledger sync state machine stages recorded in the run timeline."""

    IDLE = "idle"
    DETERMINING_WINDOW = "determining_window"
    DELETING = "deleting"
    FETCHING = "fetching"
    MERGING = "merging"
    REPLAYING = "replaying"
    RECONCILING_MISSING = "reconciling_missing"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class LedgerSyncResult:
    """Result contract for one ledger sync run.

    Attributes:
        position_id: Synced position identifier.
        events_added: Number of ledger events newly inserted.
        from_block: Replay window start.
        finalized_block: Finality horizon observed during the run.
        missing_events_confirmed: Pending events matched by the indexer.
        missing_events_abandoned: Pending events dropped past the finality horizon.
        sync_run_id: Run row identifier when run tracking is configured.
    """

    position_id: UUID
    events_added: int
    from_block: int
    finalized_block: int
    missing_events_confirmed: int = 0
    missing_events_abandoned: int = 0
    sync_run_id: UUID | None = None


@dataclass(frozen=True)
class PositionRefreshResult:
    """Result contract for one position refresh.

    Attributes:
        position_id: Refreshed position identifier.
        liquidity: Ledger-derived liquidity written to position state.
        on_chain_liquidity: Liquidity read from chain, or None when the read was skipped.
        resynced: Whether a liquidity mismatch forced an incremental sync.
        is_active: Whether the position remains open.
        current_value: Current position value in quote units.
        unclaimed_fees: Value of fees owed but not collected.
    """

    position_id: UUID
    liquidity: int
    on_chain_liquidity: int | None
    resynced: bool
    is_active: bool
    current_value: int
    unclaimed_fees: int


class LedgerSyncPort(Protocol):
    """Port for running one position's ledger sync."""

    def job_sync_position(
        self,
        position_id: UUID,
        force_full_resync: bool = False,
        run_type: str | None = None,
    ) -> LedgerSyncResult:
        """Sync one position's ledger with the event-history provider.

        Args:
            position_id: Position identifier.
            force_full_resync: Whether to replay from the deployment block.
            run_type: Optional run label override.

        Returns:
            LedgerSyncResult: Window and count summary.

        Raises:
            LedgerError: Raised when any stage fails; the error propagates unchanged.
        """
