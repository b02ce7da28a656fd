"""Position aggregate contracts read and updated by reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class PositionOnChainState:
    """Mutable position state mirrored from the position manager contract.

    Attributes:
        owner_address: Current NFT owner address.
        liquidity: Position liquidity.
        fee_growth_inside0_last_x128: Token0 fee growth checkpoint.
        fee_growth_inside1_last_x128: Token1 fee growth checkpoint.
        tokens_owed0: Token0 amount owed by the contract.
        tokens_owed1: Token1 amount owed by the contract.
    """

    owner_address: str | None
    liquidity: int
    fee_growth_inside0_last_x128: int
    fee_growth_inside1_last_x128: int
    tokens_owed0: int
    tokens_owed1: int


@dataclass(frozen=True)
class PositionConfig:
    """Immutable position identity and range values.

    Attributes:
        chain_id: EVM chain identifier.
        nft_id: Position NFT identifier.
        pool_address: Pool contract address.
        tick_lower: Lower range tick.
        tick_upper: Upper range tick.
    """

    chain_id: int
    nft_id: int
    pool_address: str
    tick_lower: int
    tick_upper: int


@dataclass(frozen=True)
class PositionRecord:
    """Persisted position row with its pool reference.

    Attributes:
        position_id: Internal position identifier.
        pool_id: Internal pool identifier.
        config: Immutable position values.
        state: Last stored on-chain state.
        is_active: Whether the position is still open.
        position_opened_at: First ledger event timestamp, when known.
        position_closed_at: Closure timestamp, when closed.
    """

    position_id: UUID
    pool_id: UUID
    config: PositionConfig
    state: PositionOnChainState
    is_active: bool
    position_opened_at: datetime | None = None
    position_closed_at: datetime | None = None


@dataclass(frozen=True)
class PositionRollups:
    """Computed financial rollups stored on a position row.

    Attributes:
        current_value: Current position value in quote units.
        cost_basis: Running cost basis from the ledger.
        realized_pnl: Realized PnL from the ledger.
        unrealized_pnl: Current value minus cost basis.
        collected_fees: Sum of collected fee values.
        unclaimed_fees: Value of fees owed but not collected.
        last_fees_collected_at: Timestamp of the latest fee collection.
        position_opened_at: Timestamp of the first ledger event.
        is_active: Whether the position remains open.
        position_closed_at: Closure timestamp, when closed.
    """

    current_value: int
    cost_basis: int
    realized_pnl: int
    unrealized_pnl: int
    collected_fees: int
    unclaimed_fees: int
    last_fees_collected_at: datetime | None
    position_opened_at: datetime | None
    is_active: bool
    position_closed_at: datetime | None
