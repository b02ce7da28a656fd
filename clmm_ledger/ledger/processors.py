"""Pure per-event processors deriving accounting deltas from raw position events.

Processors perform no I/O and depend only on their inputs, so replaying the
same ordered events always yields the same ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from clmm_ledger.domain import (
    BlockchainEventType,
    InvalidStateError,
    LedgerReward,
    PoolMetadata,
    PreviousEventState,
    RawPositionEvent,
)

from .calculations import (
    ledger_calculate_proportional_cost_basis,
    ledger_calculate_token_value_in_quote,
    ledger_separate_fees_from_principal,
)


@dataclass(frozen=True)
class ProcessedEventResult:
    """Accounting deltas and running totals produced by one processor.

    Attributes:
        token_value: Event amounts valued in quote units.
        delta_l: Liquidity delta carried by the event.
        liquidity_after: Running liquidity after the event.
        delta_cost_basis: Cost basis change.
        cost_basis_after: Running cost basis after the event.
        delta_pnl: Realized PnL change.
        pnl_after: Running realized PnL after the event.
        fees_collected0: Token0 fee portion of a collect.
        fees_collected1: Token1 fee portion of a collect.
        uncollected_principal0_after: Token0 principal still owed.
        uncollected_principal1_after: Token1 principal still owed.
        rewards: Non-zero fee entries for collect events.
    """

    token_value: int
    delta_l: int
    liquidity_after: int
    delta_cost_basis: int
    cost_basis_after: int
    delta_pnl: int
    pnl_after: int
    fees_collected0: int
    fees_collected1: int
    uncollected_principal0_after: int
    uncollected_principal1_after: int
    rewards: tuple[LedgerReward, ...] = field(default_factory=tuple)

    @property
    def next_state(self) -> PreviousEventState:
        """Return running state consumed by the next processor call."""

        return PreviousEventState(
            uncollected_principal0=self.uncollected_principal0_after,
            uncollected_principal1=self.uncollected_principal1_after,
            liquidity=self.liquidity_after,
            cost_basis=self.cost_basis_after,
            pnl=self.pnl_after,
        )


def ledger_process_increase(
    raw_event: RawPositionEvent,
    previous_state: PreviousEventState,
    sqrt_price_x96: int,
    pool_metadata: PoolMetadata,
) -> ProcessedEventResult:
    """Process a liquidity deposit. Deposits add cost basis and never realize PnL.

    Args:
        raw_event: Increase-liquidity event.
        previous_state: Running state before the event.
        sqrt_price_x96: Price basis at the event block.
        pool_metadata: Pool valuation metadata.

    Returns:
        ProcessedEventResult: Deltas and running totals.

    Raises:
        InvalidStateError: Raised when liquidity is missing or amounts are negative.
    """

    delta_l = _require_liquidity(raw_event)
    token_value = _value_amounts(raw_event.amount0, raw_event.amount1, sqrt_price_x96, pool_metadata)
    return ProcessedEventResult(
        token_value=token_value,
        delta_l=delta_l,
        liquidity_after=previous_state.liquidity + delta_l,
        delta_cost_basis=token_value,
        cost_basis_after=previous_state.cost_basis + token_value,
        delta_pnl=0,
        pnl_after=previous_state.pnl,
        fees_collected0=0,
        fees_collected1=0,
        uncollected_principal0_after=previous_state.uncollected_principal0,
        uncollected_principal1_after=previous_state.uncollected_principal1,
    )


def ledger_process_decrease(
    raw_event: RawPositionEvent,
    previous_state: PreviousEventState,
    sqrt_price_x96: int,
    pool_metadata: PoolMetadata,
) -> ProcessedEventResult:
    """Process a liquidity withdrawal and realize PnL against proportional cost basis.

    Withdrawn amounts stay owed by the contract until collected, so they move
    into uncollected principal.

    Args:
        raw_event: Decrease-liquidity event.
        previous_state: Running state before the event.
        sqrt_price_x96: Price basis at the event block.
        pool_metadata: Pool valuation metadata.

    Returns:
        ProcessedEventResult: Deltas and running totals.

    Raises:
        InvalidStateError: Raised when liquidity would become negative.
        DivisionError: Raised when running liquidity is zero.
    """

    delta_l = _require_liquidity(raw_event)
    liquidity_after = previous_state.liquidity - delta_l
    if liquidity_after < 0:
        raise InvalidStateError(
            f"decrease of {delta_l} exceeds liquidity {previous_state.liquidity} "
            f"at block={raw_event.block_number} log_index={raw_event.log_index}"
        )

    proportional_cost_basis = ledger_calculate_proportional_cost_basis(
        cost_basis=previous_state.cost_basis,
        delta_liquidity=delta_l,
        liquidity=previous_state.liquidity,
    )
    token_value = _value_amounts(raw_event.amount0, raw_event.amount1, sqrt_price_x96, pool_metadata)
    delta_pnl = token_value - proportional_cost_basis
    return ProcessedEventResult(
        token_value=token_value,
        delta_l=delta_l,
        liquidity_after=liquidity_after,
        delta_cost_basis=-proportional_cost_basis,
        cost_basis_after=previous_state.cost_basis - proportional_cost_basis,
        delta_pnl=delta_pnl,
        pnl_after=previous_state.pnl + delta_pnl,
        fees_collected0=0,
        fees_collected1=0,
        uncollected_principal0_after=previous_state.uncollected_principal0 + raw_event.amount0,
        uncollected_principal1_after=previous_state.uncollected_principal1 + raw_event.amount1,
    )


def ledger_process_collect(
    raw_event: RawPositionEvent,
    previous_state: PreviousEventState,
    sqrt_price_x96: int,
    pool_metadata: PoolMetadata,
) -> ProcessedEventResult:
    """Process a collect by separating returned principal from fee income.

    Cost basis, realized PnL, and liquidity are unchanged.

    Args:
        raw_event: Collect event.
        previous_state: Running state before the event.
        sqrt_price_x96: Price basis at the event block.
        pool_metadata: Pool valuation metadata.

    Returns:
        ProcessedEventResult: Deltas, running totals, and fee rewards.

    Raises:
        InvalidStateError: Raised when amounts or owed principal are negative.
    """

    _require_non_negative_amounts(raw_event)
    split = ledger_separate_fees_from_principal(
        collected0=raw_event.amount0,
        collected1=raw_event.amount1,
        uncollected_principal0=previous_state.uncollected_principal0,
        uncollected_principal1=previous_state.uncollected_principal1,
    )

    rewards: list[LedgerReward] = []
    if split.fee0 > 0:
        rewards.append(
            LedgerReward(
                token_id=pool_metadata.token0_id,
                token_amount=split.fee0,
                token_value=_value_amounts(split.fee0, 0, sqrt_price_x96, pool_metadata),
            )
        )
    if split.fee1 > 0:
        rewards.append(
            LedgerReward(
                token_id=pool_metadata.token1_id,
                token_amount=split.fee1,
                token_value=_value_amounts(0, split.fee1, sqrt_price_x96, pool_metadata),
            )
        )

    return ProcessedEventResult(
        token_value=_value_amounts(raw_event.amount0, raw_event.amount1, sqrt_price_x96, pool_metadata),
        delta_l=0,
        liquidity_after=previous_state.liquidity,
        delta_cost_basis=0,
        cost_basis_after=previous_state.cost_basis,
        delta_pnl=0,
        pnl_after=previous_state.pnl,
        fees_collected0=split.fee0,
        fees_collected1=split.fee1,
        uncollected_principal0_after=split.uncollected_principal0_after,
        uncollected_principal1_after=split.uncollected_principal1_after,
        rewards=tuple(rewards),
    )


def ledger_process_event(
    raw_event: RawPositionEvent,
    previous_state: PreviousEventState,
    sqrt_price_x96: int,
    pool_metadata: PoolMetadata,
) -> ProcessedEventResult:
    """Dispatch one raw event to its processor.

    Raises:
        ValueError: Raised when the event type has no processor.
    """

    match raw_event.event_type:
        case BlockchainEventType.INCREASE_LIQUIDITY:
            processor = ledger_process_increase
        case BlockchainEventType.DECREASE_LIQUIDITY:
            processor = ledger_process_decrease
        case BlockchainEventType.COLLECT:
            processor = ledger_process_collect
        case _:
            raise ValueError(f"unsupported event_type={raw_event.event_type!r}")

    return processor(raw_event, previous_state, sqrt_price_x96, pool_metadata)


def _require_liquidity(raw_event: RawPositionEvent) -> int:
    _require_non_negative_amounts(raw_event)
    if raw_event.liquidity is None:
        raise InvalidStateError(f"{raw_event.event_type.value} event requires liquidity")
    if raw_event.liquidity < 0:
        raise InvalidStateError("liquidity must be >= 0")
    return raw_event.liquidity


def _require_non_negative_amounts(raw_event: RawPositionEvent) -> None:
    if raw_event.amount0 < 0 or raw_event.amount1 < 0:
        raise InvalidStateError(
            f"event amounts must be >= 0 (amount0={raw_event.amount0}, amount1={raw_event.amount1})"
        )


def _value_amounts(amount0: int, amount1: int, sqrt_price_x96: int, pool_metadata: PoolMetadata) -> int:
    return ledger_calculate_token_value_in_quote(
        amount0=amount0,
        amount1=amount1,
        sqrt_price_x96=sqrt_price_x96,
        token0_is_quote=pool_metadata.token0_is_quote,
        token0_decimals=pool_metadata.token0_decimals,
        token1_decimals=pool_metadata.token1_decimals,
    )
