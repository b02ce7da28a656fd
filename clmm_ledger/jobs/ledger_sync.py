"""Job-layer ledger sync orchestrator with stage timeline persistence."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Sequence
from uuid import UUID

from clmm_ledger.db import (
    LedgerEventRepositoryPort,
    PositionRepositoryPort,
    SyncRunOutcome,
    SyncRunRecord,
    SyncRunRepositoryPort,
    SyncStateRepositoryPort,
)
from clmm_ledger.domain import (
    BlockchainEventType,
    InvalidStateError,
    MissingEvent,
    NotFoundError,
    PoolMetadata,
    PositionRecord,
    RawPositionEvent,
    TransientProviderError,
    domain_build_failure_details,
    domain_build_stage_event,
    domain_deployment_block,
    domain_require_supported_chain,
)
from clmm_ledger.ledger import (
    DEFAULT_SYNC_BY,
    AprPeriodPort,
    EventHistoryPort,
    FinalityPort,
    PoolPricePort,
    PositionSyncState,
    ledger_build_event_input,
    ledger_build_initial_state,
    ledger_convert_missing_event_to_raw,
    ledger_merge_event_sources,
    ledger_state_from_event,
)

from .interfaces import LedgerSyncPort, LedgerSyncResult, SyncStage

logger = logging.getLogger(__name__)

MISSING_EVENT_SYNC_BY = "missing-event-report"


class LedgerSyncOrchestrator(LedgerSyncPort):
    """Rebuild the tail of a position ledger from indexer and client-reported events."""

    def __init__(
        self,
        ledger_repository: LedgerEventRepositoryPort,
        sync_state_repository: SyncStateRepositoryPort,
        position_repository: PositionRepositoryPort,
        event_history: EventHistoryPort,
        finality: FinalityPort,
        pool_price: PoolPricePort,
        apr_port: AprPeriodPort,
        sync_run_repository: SyncRunRepositoryPort | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize orchestrator dependencies.

        Args:
            ledger_repository: Ledger event persistence.
            sync_state_repository: Pending missing-event persistence.
            position_repository: Position and pool metadata reads.
            event_history: Indexer collaborator.
            finality: Finalized block collaborator.
            pool_price: Historic pool price collaborator.
            apr_port: Downstream aggregate recompute trigger.
            sync_run_repository: Optional run lifecycle persistence.
            clock: Optional UTC clock override for timeline timestamps.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when a required dependency is missing.
        """

        if ledger_repository is None:
            raise ValueError("ledger_repository must not be None")
        if sync_state_repository is None:
            raise ValueError("sync_state_repository must not be None")
        if position_repository is None:
            raise ValueError("position_repository must not be None")
        if event_history is None:
            raise ValueError("event_history must not be None")
        if finality is None:
            raise ValueError("finality must not be None")
        if pool_price is None:
            raise ValueError("pool_price must not be None")
        if apr_port is None:
            raise ValueError("apr_port must not be None")

        self._ledger_repository = ledger_repository
        self._sync_state_repository = sync_state_repository
        self._position_repository = position_repository
        self._event_history = event_history
        self._finality = finality
        self._pool_price = pool_price
        self._apr_port = apr_port
        self._sync_run_repository = sync_run_repository
        self._clock = clock

    def job_sync_position(
        self,
        position_id: UUID,
        force_full_resync: bool = False,
        run_type: str | None = None,
        sync_by: str = DEFAULT_SYNC_BY,
    ) -> LedgerSyncResult:
        """Run the sync state machine for one position.

        Stages run in order: determining window, deleting, fetching, merging,
        replaying, reconciling missing events, persisting. A failure in any stage
        finalizes the run as failed and re-raises the original error.

        Args:
            position_id: Position identifier.
            force_full_resync: Whether to replay from the deployment block.
            run_type: Optional run label; defaults to `full_resync` or `incremental`.
            sync_by: Label stored with the saved sync state.

        Returns:
            LedgerSyncResult: Window and count summary.

        Raises:
            NotFoundError: Raised when the position or its pool metadata is missing.
            UnsupportedChainError: Raised when the position chain is not supported.
            SyncRunAlreadyActiveError: Raised when another run for the position is active.
            TransientProviderError: Raised when a provider stays unavailable.
            OrderingViolationError: Raised when replay would append out of order.
            StateInvariantError: Raised when replay violates accounting invariants.
        """

        position = self._job_require_position(position_id)
        chain_id = int(domain_require_supported_chain(position.config.chain_id))
        pool_metadata = self._job_require_pool_metadata(position_id)
        resolved_run_type = run_type or ("full_resync" if force_full_resync else "incremental")

        run_record = None
        if self._sync_run_repository is not None:
            run_record = self._sync_run_repository.db_sync_run_create_started(
                position_id=position_id,
                run_type=resolved_run_type,
            )

        timeline: list[dict[str, object]] = [
            self._job_stage_event("run", "started", {"run_type": resolved_run_type, "chain_id": chain_id})
        ]
        stage = SyncStage.IDLE
        from_block: int | None = None
        finalized_block: int | None = None
        events_added = 0

        try:
            stage = SyncStage.DETERMINING_WINDOW
            finalized_block = self._job_require_finalized_block(chain_id)
            sync_state = self._job_load_sync_state(position_id)
            from_block = self._job_determine_from_block(
                position_id=position_id,
                chain_id=chain_id,
                finalized_block=finalized_block,
                force_full_resync=force_full_resync,
                sync_state=sync_state,
            )
            timeline.append(
                self._job_stage_event(
                    stage.value,
                    "completed",
                    {"from_block": from_block, "finalized_block": finalized_block},
                )
            )

            stage = SyncStage.DELETING
            deleted_count = self._ledger_repository.db_ledger_event_delete_from_block(
                position_id=position_id,
                from_block=from_block,
            )
            timeline.append(self._job_stage_event(stage.value, "completed", {"deleted_count": deleted_count}))

            stage = SyncStage.FETCHING
            indexer_events = self._event_history.adapter_fetch_position_events(
                chain_id=chain_id,
                nft_id=position.config.nft_id,
                from_block=from_block,
                to_block=None,
            )
            indexer_keys = {(event.transaction_hash.lower(), event.log_index) for event in indexer_events}
            # Finalized pending events the indexer lacks are abandoned below and never replayed.
            pending_events = [
                ledger_convert_missing_event_to_raw(event, chain_id=chain_id, nft_id=position.config.nft_id)
                for event in sync_state.missing_events_sorted()
                if event.block_number >= from_block
                and (
                    event.block_number > finalized_block
                    or (event.transaction_hash.lower(), event.log_index) in indexer_keys
                )
            ]
            timeline.append(
                self._job_stage_event(
                    stage.value,
                    "completed",
                    {"indexer_event_count": len(indexer_events), "pending_event_count": len(pending_events)},
                )
            )

            stage = SyncStage.MERGING
            merged_events = ledger_merge_event_sources(indexer_events, pending_events)
            timeline.append(self._job_stage_event(stage.value, "completed", {"merged_event_count": len(merged_events)}))

            stage = SyncStage.REPLAYING
            events_added, approximate_count = self._job_replay_events(
                position_id=position_id,
                pool_metadata=pool_metadata,
                raw_events=merged_events,
            )
            replay_details: dict[str, object] = {"events_added": events_added}
            if approximate_count:
                replay_details["approximate_price_count"] = approximate_count
            timeline.append(self._job_stage_event(stage.value, "completed", replay_details))

            stage = SyncStage.RECONCILING_MISSING
            reconcile_result = sync_state.reconcile(indexer_events, finalized_block=finalized_block)
            timeline.append(
                self._job_stage_event(
                    stage.value,
                    "completed",
                    {
                        "confirmed_count": len(reconcile_result.confirmed),
                        "abandoned_count": len(reconcile_result.abandoned),
                        "pending_count": len(sync_state.missing_events),
                    },
                )
            )

            stage = SyncStage.PERSISTING
            self._sync_state_repository.db_sync_state_save(
                position_id=position_id,
                state=sync_state.to_json(),
                sync_by=sync_by,
            )
            self._apr_port.recompute_periods(position_id)
            timeline.append(self._job_stage_event(stage.value, "completed"))

            stage = SyncStage.DONE
            timeline.append(self._job_stage_event("run", "success"))
            self._job_finalize_run(
                run_record,
                SyncRunOutcome(
                    status="success",
                    diagnostics=timeline,
                    from_block=from_block,
                    finalized_block=finalized_block,
                    events_added=events_added,
                ),
            )
        except Exception as error:
            timeline.append(self._job_stage_event(stage.value, "failed", domain_build_failure_details(error)))
            timeline.append(self._job_stage_event("run", SyncStage.FAILED.value))
            self._job_finalize_run(
                run_record,
                SyncRunOutcome(
                    status="failed",
                    error_code=str(getattr(error, "error_code", "UNEXPECTED_ERROR")),
                    error_message=str(error),
                    diagnostics=timeline,
                    from_block=from_block,
                    finalized_block=finalized_block,
                    events_added=events_added,
                ),
            )
            logger.warning(
                "ledger sync failed position_id=%s stage=%s error=%s",
                position_id,
                stage.value,
                type(error).__name__,
            )
            raise

        logger.info(
            "ledger sync completed position_id=%s from_block=%s finalized_block=%s events_added=%s",
            position_id,
            from_block,
            finalized_block,
            events_added,
        )
        return LedgerSyncResult(
            position_id=position_id,
            events_added=events_added,
            from_block=from_block,
            finalized_block=finalized_block,
            missing_events_confirmed=len(reconcile_result.confirmed),
            missing_events_abandoned=len(reconcile_result.abandoned),
            sync_run_id=run_record.sync_run_id if run_record is not None else None,
        )

    def job_add_missing_events(
        self,
        position_id: UUID,
        events: Sequence[MissingEvent],
        sync_by: str = MISSING_EVENT_SYNC_BY,
    ) -> int:
        """Record client-reported events the indexer has not returned yet.

        Entries with an already-pending `(tx_hash, log_index)` replace the older copy.

        Args:
            position_id: Position identifier.
            events: Client-reported events.
            sync_by: Label stored with the saved sync state.

        Returns:
            int: Number of pending events after the update.

        Raises:
            NotFoundError: Raised when the position is missing.
            UnsupportedChainError: Raised when the position chain is not supported.
            InvalidStateError: Raised when an event carries invalid amounts.
        """

        position = self._job_require_position(position_id)
        domain_require_supported_chain(position.config.chain_id)
        for event in events:
            _job_validate_missing_event(event)

        sync_state = self._job_load_sync_state(position_id)
        sync_state.add_missing_events(events)
        self._sync_state_repository.db_sync_state_save(
            position_id=position_id,
            state=sync_state.to_json(),
            sync_by=sync_by,
        )
        return len(sync_state.missing_events)

    def _job_replay_events(
        self,
        position_id: UUID,
        pool_metadata: PoolMetadata,
        raw_events: Iterable[RawPositionEvent],
    ) -> tuple[int, int]:
        """Fold merged events into the ledger strictly in order.

        Args:
            position_id: Position identifier.
            pool_metadata: Pool valuation metadata.
            raw_events: Deduplicated events sorted by coordinates.

        Returns:
            tuple[int, int]: Newly inserted count and count built on approximate prices.

        Raises:
            OrderingViolationError: Raised when an event precedes the persisted tail.
            StateInvariantError: Raised when processing violates accounting invariants.
            TransientProviderError: Raised when a historic price is unavailable.
        """

        previous_state, previous_event_id = ledger_build_initial_state(
            self._ledger_repository.db_ledger_event_get_last(position_id)
        )
        events_added = 0
        approximate_count = 0
        for raw_event in raw_events:
            price = self._pool_price.price_at(pool_metadata.pool_id, raw_event.block_number)
            event_input = ledger_build_event_input(
                raw_event=raw_event,
                previous_state=previous_state,
                pool_metadata=pool_metadata,
                sqrt_price_x96=price.sqrt_price_x96,
                previous_event_id=previous_event_id,
                position_id=position_id,
                price_approximate=price.approximate,
            )
            insert_result = self._ledger_repository.db_ledger_event_insert(event_input)
            if not insert_result.deduplicated:
                events_added += 1
            if price.approximate:
                approximate_count += 1
            previous_state = ledger_state_from_event(insert_result.record.event)
            previous_event_id = insert_result.record.ledger_event_id
        return events_added, approximate_count

    def _job_determine_from_block(
        self,
        position_id: UUID,
        chain_id: int,
        finalized_block: int,
        force_full_resync: bool,
        sync_state: PositionSyncState,
    ) -> int:
        """Resolve the first block to delete and replay.

        Pending events below the incremental window pull the window down so
        they replay in coordinate order instead of trailing the persisted tail.
        """

        deployment_block = domain_deployment_block(chain_id)
        if force_full_resync:
            return deployment_block

        last_record = self._ledger_repository.db_ledger_event_get_last(position_id)
        last_event_block = last_record.event.block_number if last_record is not None else deployment_block
        from_block = min(last_event_block, finalized_block)

        pending_blocks = [
            event.block_number
            for event in sync_state.missing_events
            if deployment_block <= event.block_number < from_block
        ]
        if pending_blocks:
            from_block = min(pending_blocks)
        return from_block

    def _job_require_finalized_block(self, chain_id: int) -> int:
        finalized_block = self._finality.adapter_last_finalized_block(chain_id)
        if finalized_block is None:
            raise TransientProviderError(f"finalized block unavailable for chain_id={chain_id}")
        return finalized_block

    def _job_require_position(self, position_id: UUID) -> PositionRecord:
        position = self._position_repository.db_position_get(position_id)
        if position is None:
            raise NotFoundError(f"position not found: position_id={position_id}")
        return position

    def _job_require_pool_metadata(self, position_id: UUID) -> PoolMetadata:
        pool_metadata = self._position_repository.db_position_get_pool_metadata(position_id)
        if pool_metadata is None:
            raise NotFoundError(f"pool metadata not found: position_id={position_id}")
        return pool_metadata

    def _job_load_sync_state(self, position_id: UUID) -> PositionSyncState:
        record = self._sync_state_repository.db_sync_state_load(position_id)
        if record is None:
            return PositionSyncState(position_id=position_id)
        return PositionSyncState.from_json(
            position_id=position_id,
            payload=record.state,
            last_sync_at=record.last_sync_at,
            last_sync_by=record.last_sync_by,
        )

    def _job_finalize_run(self, run_record: SyncRunRecord | None, outcome: SyncRunOutcome) -> None:
        if run_record is None:
            return
        self._sync_run_repository.db_sync_run_finalize(sync_run_id=run_record.sync_run_id, outcome=outcome)

    def _job_stage_event(
        self,
        stage: str,
        status: str,
        details: dict[str, object] | None = None,
    ) -> dict[str, object]:
        return domain_build_stage_event(stage=stage, status=status, details=details, clock=self._clock)


def _job_validate_missing_event(event: MissingEvent) -> None:
    """Reject client-reported events that cannot be replayed.

    Raises:
        ValueError: Raised when coordinates or hash are invalid.
        InvalidStateError: Raised when amounts or liquidity are invalid.
    """

    if not event.transaction_hash.strip():
        raise ValueError("transaction_hash must not be blank")
    if event.block_number < 0 or event.transaction_index < 0 or event.log_index < 0:
        raise ValueError("event coordinates must be >= 0")
    if event.amount0 < 0 or event.amount1 < 0:
        raise InvalidStateError("event amounts must be >= 0")
    if event.event_type in (BlockchainEventType.INCREASE_LIQUIDITY, BlockchainEventType.DECREASE_LIQUIDITY):
        if event.liquidity is None or event.liquidity < 0:
            raise InvalidStateError(f"{event.event_type.value} requires a non-negative liquidity")
