"""Assembly of persistable ledger events from raw events and processor output."""

from __future__ import annotations

import hashlib
from typing import Final
from uuid import UUID

from clmm_ledger.domain import (
    BlockchainEventType,
    LedgerEventInput,
    LedgerEventType,
    PoolMetadata,
    PreviousEventState,
    RawPositionEvent,
)

from .calculations import ledger_calculate_pool_price_in_quote
from .processors import ledger_process_event

LEDGER_EVENT_TYPE_BY_BLOCKCHAIN_TYPE: Final[dict[BlockchainEventType, LedgerEventType]] = {
    BlockchainEventType.INCREASE_LIQUIDITY: LedgerEventType.INCREASE_POSITION,
    BlockchainEventType.DECREASE_LIQUIDITY: LedgerEventType.DECREASE_POSITION,
    BlockchainEventType.COLLECT: LedgerEventType.COLLECT,
}


def ledger_generate_input_hash(block_number: int, transaction_index: int, log_index: int) -> str:
    """Derive the idempotency key for one event from its coordinates.

    Args:
        block_number: Block containing the log.
        transaction_index: Transaction position inside the block.
        log_index: Log position inside the block.

    Returns:
        str: Lowercase hex MD5 digest of `block-tx-log`.

    Raises:
        ValueError: Raised when any coordinate is negative.
    """

    if block_number < 0 or transaction_index < 0 or log_index < 0:
        raise ValueError("event coordinates must be >= 0")
    coordinate_text = f"{block_number}-{transaction_index}-{log_index}"
    return hashlib.md5(coordinate_text.encode("utf-8")).hexdigest()


def ledger_map_event_type(event_type: BlockchainEventType) -> LedgerEventType:
    """Map a position manager log type to its ledger event type.

    Raises:
        ValueError: Raised when the type has no ledger mapping.
    """

    try:
        return LEDGER_EVENT_TYPE_BY_BLOCKCHAIN_TYPE[event_type]
    except KeyError as error:
        raise ValueError(f"unsupported event_type={event_type!r}") from error


def ledger_build_event_input(
    raw_event: RawPositionEvent,
    previous_state: PreviousEventState,
    pool_metadata: PoolMetadata,
    sqrt_price_x96: int,
    previous_event_id: UUID | None,
    position_id: UUID,
    price_approximate: bool = False,
) -> LedgerEventInput:
    """Build one not-yet-persisted ledger event.

    Args:
        raw_event: Source raw event.
        previous_state: Running state before the event.
        pool_metadata: Pool valuation metadata.
        sqrt_price_x96: Price basis at the event block.
        previous_event_id: Identifier of the preceding persisted event.
        position_id: Owning position identifier.
        price_approximate: Whether the price basis came from a degraded fallback.

    Returns:
        LedgerEventInput: Fully-formed ledger event payload.

    Raises:
        ValueError: Raised when the event type is unsupported.
        StateInvariantError: Raised when processing violates accounting invariants.
    """

    ledger_event_type = ledger_map_event_type(raw_event.event_type)
    processed = ledger_process_event(
        raw_event=raw_event,
        previous_state=previous_state,
        sqrt_price_x96=sqrt_price_x96,
        pool_metadata=pool_metadata,
    )
    pool_price = ledger_calculate_pool_price_in_quote(
        sqrt_price_x96=sqrt_price_x96,
        token0_is_quote=pool_metadata.token0_is_quote,
        token0_decimals=pool_metadata.token0_decimals,
        token1_decimals=pool_metadata.token1_decimals,
    )

    return LedgerEventInput(
        position_id=position_id,
        previous_id=previous_event_id,
        chain_id=raw_event.chain_id,
        nft_id=raw_event.token_id,
        block_number=raw_event.block_number,
        tx_index=raw_event.transaction_index,
        log_index=raw_event.log_index,
        tx_hash=raw_event.transaction_hash,
        timestamp=raw_event.block_timestamp,
        event_type=ledger_event_type,
        token0_amount=raw_event.amount0,
        token1_amount=raw_event.amount1,
        pool_price=pool_price,
        token_value=processed.token_value,
        delta_cost_basis=processed.delta_cost_basis,
        cost_basis_after=processed.cost_basis_after,
        delta_pnl=processed.delta_pnl,
        pnl_after=processed.pnl_after,
        delta_l=processed.delta_l,
        liquidity_after=processed.liquidity_after,
        fees_collected0=processed.fees_collected0,
        fees_collected1=processed.fees_collected1,
        uncollected_principal0_after=processed.uncollected_principal0_after,
        uncollected_principal1_after=processed.uncollected_principal1_after,
        sqrt_price_x96=sqrt_price_x96,
        input_hash=ledger_generate_input_hash(
            raw_event.block_number,
            raw_event.transaction_index,
            raw_event.log_index,
        ),
        rewards=processed.rewards,
        price_approximate=price_approximate,
        recipient=raw_event.recipient,
    )
