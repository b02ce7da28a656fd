"""Ledger-derived position summaries, closure detection, and fee valuation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from clmm_ledger.domain import (
    LedgerEventRecord,
    LedgerEventType,
    PoolFeeGrowthSnapshot,
    PoolMetadata,
    PositionOnChainState,
)

from .calculations import (
    ledger_calculate_fee_growth_inside,
    ledger_calculate_fees_since_checkpoint,
    ledger_calculate_token_value_in_quote,
)


@dataclass(frozen=True)
class LedgerSummary:
    """Aggregates derived from the full ledger of one position.

    Attributes:
        event_count: Number of ledger events.
        liquidity: Liquidity after the latest event.
        cost_basis: Cost basis after the latest event.
        realized_pnl: Realized PnL after the latest event.
        collected_fees: Sum of reward values across collect events.
        uncollected_principal0: Token0 principal owed after the latest event.
        uncollected_principal1: Token1 principal owed after the latest event.
        latest_event_type: Type of the latest event, if any.
        first_event_at: Timestamp of the earliest event, if any.
        latest_event_at: Timestamp of the latest event, if any.
        last_fees_collected_at: Timestamp of the latest collect with fees, if any.
    """

    event_count: int = 0
    liquidity: int = 0
    cost_basis: int = 0
    realized_pnl: int = 0
    collected_fees: int = 0
    uncollected_principal0: int = 0
    uncollected_principal1: int = 0
    latest_event_type: LedgerEventType | None = None
    first_event_at: datetime | None = None
    latest_event_at: datetime | None = None
    last_fees_collected_at: datetime | None = None


def ledger_summarize_events(records_newest_first: Sequence[LedgerEventRecord]) -> LedgerSummary:
    """Summarize ledger events returned by the descending read path.

    Args:
        records_newest_first: Ledger rows ordered newest first by coordinates.

    Returns:
        LedgerSummary: Running totals of the latest event plus fee aggregates.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if not records_newest_first:
        return LedgerSummary()

    latest_event = records_newest_first[0].event
    collected_fees = 0
    last_fees_collected_at = None
    for record in records_newest_first:
        event = record.event
        if event.event_type != LedgerEventType.COLLECT or not event.rewards:
            continue
        collected_fees += sum(reward.token_value for reward in event.rewards)
        if last_fees_collected_at is None:
            last_fees_collected_at = event.timestamp

    return LedgerSummary(
        event_count=len(records_newest_first),
        liquidity=latest_event.liquidity_after,
        cost_basis=latest_event.cost_basis_after,
        realized_pnl=latest_event.pnl_after,
        collected_fees=collected_fees,
        uncollected_principal0=latest_event.uncollected_principal0_after,
        uncollected_principal1=latest_event.uncollected_principal1_after,
        latest_event_type=latest_event.event_type,
        first_event_at=records_newest_first[-1].event.timestamp,
        latest_event_at=latest_event.timestamp,
        last_fees_collected_at=last_fees_collected_at,
    )


def ledger_is_position_closed(summary: LedgerSummary) -> bool:
    """Return whether a position is fully closed.

    A decrease to zero liquidity is not closure while principal is still owed;
    closure needs zero liquidity and a final collect that left no principal behind.
    """

    return (
        summary.event_count > 0
        and summary.liquidity == 0
        and summary.latest_event_type == LedgerEventType.COLLECT
        and summary.uncollected_principal0 == 0
        and summary.uncollected_principal1 == 0
    )


def ledger_calculate_accrued_fees(
    on_chain_state: PositionOnChainState,
    fee_growth: PoolFeeGrowthSnapshot,
    current_tick: int,
    tick_lower: int,
    tick_upper: int,
) -> tuple[int, int]:
    """Return fees earned since the position's last checkpoint, per token.

    These fees are not yet part of the owed balance; the contract only moves
    them there on the next liquidity change or collect.

    Args:
        on_chain_state: Latest position manager state with fee checkpoints.
        fee_growth: Pool fee growth accumulators.
        current_tick: Current pool tick.
        tick_lower: Lower range tick.
        tick_upper: Upper range tick.

    Returns:
        tuple[int, int]: Token0 and token1 raw amounts.

    Raises:
        ValueError: Raised when the tick range is empty.
    """

    inside0 = ledger_calculate_fee_growth_inside(
        current_tick=current_tick,
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        fee_growth_global_x128=fee_growth.fee_growth_global0_x128,
        fee_growth_outside_lower_x128=fee_growth.lower_fee_growth_outside0_x128,
        fee_growth_outside_upper_x128=fee_growth.upper_fee_growth_outside0_x128,
    )
    inside1 = ledger_calculate_fee_growth_inside(
        current_tick=current_tick,
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        fee_growth_global_x128=fee_growth.fee_growth_global1_x128,
        fee_growth_outside_lower_x128=fee_growth.lower_fee_growth_outside1_x128,
        fee_growth_outside_upper_x128=fee_growth.upper_fee_growth_outside1_x128,
    )
    return (
        ledger_calculate_fees_since_checkpoint(
            inside0, on_chain_state.fee_growth_inside0_last_x128, on_chain_state.liquidity
        ),
        ledger_calculate_fees_since_checkpoint(
            inside1, on_chain_state.fee_growth_inside1_last_x128, on_chain_state.liquidity
        ),
    )


def ledger_calculate_unclaimed_fees(
    on_chain_state: PositionOnChainState,
    summary: LedgerSummary,
    sqrt_price_x96: int,
    pool_metadata: PoolMetadata,
    accrued_fees: tuple[int, int] = (0, 0),
) -> int:
    """Value fee income the owner could collect right now.

    The contract's owed balance mixes withdrawn principal with checkpointed fees,
    so the ledger's uncollected principal is subtracted per token first. Fees
    accrued since the last checkpoint are added on top.

    Args:
        on_chain_state: Latest position manager state.
        summary: Ledger summary of the position.
        sqrt_price_x96: Current pool sqrt price.
        pool_metadata: Pool valuation metadata.
        accrued_fees: Token0 and token1 fees earned since the last checkpoint.

    Returns:
        int: Unclaimed fee value in quote units.

    Raises:
        DivisionError: Raised when sqrt price is zero.
    """

    accrued0, accrued1 = accrued_fees
    unclaimed0 = max(on_chain_state.tokens_owed0 - summary.uncollected_principal0, 0) + accrued0
    unclaimed1 = max(on_chain_state.tokens_owed1 - summary.uncollected_principal1, 0) + accrued1
    if unclaimed0 == 0 and unclaimed1 == 0:
        return 0
    return ledger_calculate_token_value_in_quote(
        amount0=unclaimed0,
        amount1=unclaimed1,
        sqrt_price_x96=sqrt_price_x96,
        token0_is_quote=pool_metadata.token0_is_quote,
        token0_decimals=pool_metadata.token0_decimals,
        token1_decimals=pool_metadata.token1_decimals,
    )
