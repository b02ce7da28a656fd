"""Job-layer position reconciliation against on-chain state and ledger rollups."""

from __future__ import annotations

import logging
from dataclasses import replace
from uuid import UUID

from clmm_ledger.db import LedgerEventRepositoryPort, PositionRepositoryPort
from clmm_ledger.domain import (
    NotFoundError,
    PoolMetadata,
    PositionOnChainState,
    PositionRecord,
    PositionRollups,
    domain_require_supported_chain,
)
from clmm_ledger.ledger import (
    LedgerSummary,
    PoolStateReaderPort,
    PositionChainReaderPort,
    ledger_calculate_accrued_fees,
    ledger_calculate_position_value,
    ledger_calculate_unclaimed_fees,
    ledger_is_position_closed,
    ledger_summarize_events,
)

from .interfaces import LedgerSyncPort, PositionRefreshResult

logger = logging.getLogger(__name__)


class PositionReconciler:
    """Refresh stored position state and rollups from the ledger and chain reads."""

    def __init__(
        self,
        position_repository: PositionRepositoryPort,
        ledger_repository: LedgerEventRepositoryPort,
        position_reader: PositionChainReaderPort,
        pool_state_reader: PoolStateReaderPort,
        ledger_sync: LedgerSyncPort,
    ):
        """Initialize reconciler dependencies.

        Args:
            position_repository: Position reads and state/rollup writes.
            ledger_repository: Ledger event reads.
            position_reader: On-chain position state reader.
            pool_state_reader: Current pool slot0 reader.
            ledger_sync: Sync runner used when ledger and chain liquidity disagree.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when a dependency is missing.
        """

        if position_repository is None:
            raise ValueError("position_repository must not be None")
        if ledger_repository is None:
            raise ValueError("ledger_repository must not be None")
        if position_reader is None:
            raise ValueError("position_reader must not be None")
        if pool_state_reader is None:
            raise ValueError("pool_state_reader must not be None")
        if ledger_sync is None:
            raise ValueError("ledger_sync must not be None")

        self._position_repository = position_repository
        self._ledger_repository = ledger_repository
        self._position_reader = position_reader
        self._pool_state_reader = pool_state_reader
        self._ledger_sync = ledger_sync

    def job_refresh_position(self, position_id: UUID) -> PositionRefreshResult:
        """Reconcile one position and store its state and rollups.

        On-chain reads are skipped when ledger liquidity is zero, since the NFT
        may already be burned. A liquidity mismatch forces an incremental sync
        and the ledger is summarized again afterwards.

        Args:
            position_id: Position identifier.

        Returns:
            PositionRefreshResult: Stored liquidity, activity, and valuation outputs.

        Raises:
            NotFoundError: Raised when the position or its pool metadata is missing.
            UnsupportedChainError: Raised when the position chain is not supported.
            TransientProviderError: Raised when chain reads fail.
            LedgerError: Raised when a forced sync fails; the position keeps its last-good state.
        """

        position = self._job_require_position(position_id)
        chain_id = int(domain_require_supported_chain(position.config.chain_id))
        pool_metadata = self._position_repository.db_position_get_pool_metadata(position_id)
        if pool_metadata is None:
            raise NotFoundError(f"pool metadata not found: position_id={position_id}")

        summary = self._job_summarize(position_id)
        on_chain_state: PositionOnChainState | None = None
        resynced = False
        if summary.liquidity != 0:
            on_chain_state = self._position_reader.adapter_read_position_state(chain_id, position.config.nft_id)
            if on_chain_state.liquidity != summary.liquidity:
                logger.info(
                    "liquidity mismatch position_id=%s ledger=%s on_chain=%s; running incremental sync",
                    position_id,
                    summary.liquidity,
                    on_chain_state.liquidity,
                )
                self._ledger_sync.job_sync_position(position_id, force_full_resync=False, run_type="refresh")
                summary = self._job_summarize(position_id)
                resynced = True

        stored_state = replace(on_chain_state or position.state, liquidity=summary.liquidity)
        self._position_repository.db_position_update_state(position_id, stored_state)

        rollups = self._job_build_rollups(
            position=position,
            pool_metadata=pool_metadata,
            summary=summary,
            on_chain_state=on_chain_state,
        )
        self._position_repository.db_position_update_rollups(position_id, rollups)

        return PositionRefreshResult(
            position_id=position_id,
            liquidity=summary.liquidity,
            on_chain_liquidity=on_chain_state.liquidity if on_chain_state is not None else None,
            resynced=resynced,
            is_active=rollups.is_active,
            current_value=rollups.current_value,
            unclaimed_fees=rollups.unclaimed_fees,
        )

    def job_import_position(self, position_id: UUID) -> PositionRefreshResult:
        """Build the ledger of a newly created position, then refresh it.

        When the initial sync fails the position row is deleted so no orphaned
        record is left behind. Refresh failures after a successful sync keep the row.

        Args:
            position_id: Newly created position identifier.

        Returns:
            PositionRefreshResult: Refresh outputs after the initial sync.

        Raises:
            LedgerError: Raised when the initial sync or the refresh fails.
        """

        try:
            self._ledger_sync.job_sync_position(position_id, force_full_resync=True, run_type="import")
        except Exception:
            deleted = self._position_repository.db_position_delete(position_id)
            logger.warning("initial ledger sync failed position_id=%s position_deleted=%s", position_id, deleted)
            raise
        return self.job_refresh_position(position_id)

    def _job_build_rollups(
        self,
        position: PositionRecord,
        pool_metadata: PoolMetadata,
        summary: LedgerSummary,
        on_chain_state: PositionOnChainState | None,
    ) -> PositionRollups:
        """Compute valuation rollups at the current pool price.

        The slot0 read is skipped when there is neither liquidity to value nor
        owed tokens to price. Fee growth is read at the block slot0 was served at.
        """

        current_value = 0
        unclaimed_fees = 0
        if summary.liquidity != 0 or on_chain_state is not None:
            slot0 = self._pool_state_reader.adapter_read_pool_slot0(
                position.config.chain_id,
                position.config.pool_address,
            )
            if summary.liquidity != 0:
                current_value = ledger_calculate_position_value(
                    liquidity=summary.liquidity,
                    sqrt_price_x96=slot0.sqrt_price_x96,
                    tick_lower=position.config.tick_lower,
                    tick_upper=position.config.tick_upper,
                    token0_is_quote=pool_metadata.token0_is_quote,
                    token0_decimals=pool_metadata.token0_decimals,
                    token1_decimals=pool_metadata.token1_decimals,
                )
            if on_chain_state is not None:
                fee_growth = self._pool_state_reader.adapter_read_pool_fee_growth(
                    position.config.chain_id,
                    position.config.pool_address,
                    tick_lower=position.config.tick_lower,
                    tick_upper=position.config.tick_upper,
                    block_number=slot0.block_number,
                )
                accrued_fees = ledger_calculate_accrued_fees(
                    on_chain_state=on_chain_state,
                    fee_growth=fee_growth,
                    current_tick=slot0.tick,
                    tick_lower=position.config.tick_lower,
                    tick_upper=position.config.tick_upper,
                )
                unclaimed_fees = ledger_calculate_unclaimed_fees(
                    on_chain_state=on_chain_state,
                    summary=summary,
                    sqrt_price_x96=slot0.sqrt_price_x96,
                    pool_metadata=pool_metadata,
                    accrued_fees=accrued_fees,
                )

        closed = ledger_is_position_closed(summary)
        return PositionRollups(
            current_value=current_value,
            cost_basis=summary.cost_basis,
            realized_pnl=summary.realized_pnl,
            unrealized_pnl=current_value - summary.cost_basis,
            collected_fees=summary.collected_fees,
            unclaimed_fees=unclaimed_fees,
            last_fees_collected_at=summary.last_fees_collected_at,
            position_opened_at=summary.first_event_at,
            is_active=not closed,
            position_closed_at=summary.latest_event_at if closed else None,
        )

    def _job_summarize(self, position_id: UUID) -> LedgerSummary:
        return ledger_summarize_events(self._ledger_repository.db_ledger_event_list(position_id))

    def _job_require_position(self, position_id: UUID) -> PositionRecord:
        position = self._position_repository.db_position_get(position_id)
        if position is None:
            raise NotFoundError(f"position not found: position_id={position_id}")
        return position
