"""Pool price contracts shared by price lookups, caching, and RPC reads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class PoolReference:
    """On-chain location of an internal pool.

    Attributes:
        pool_id: Internal pool identifier.
        chain_id: EVM chain identifier.
        pool_address: Pool contract address.
    """

    pool_id: UUID
    chain_id: int
    pool_address: str


@dataclass(frozen=True)
class PoolSlot0Snapshot:
    """Raw pool slot0 read.

    Attributes:
        sqrt_price_x96: Pool sqrt price as Q64.96.
        tick: Current pool tick.
        block_number: Block the read was served at.
        block_timestamp: Block timestamp in UTC.
    """

    sqrt_price_x96: int
    tick: int
    block_number: int
    block_timestamp: datetime


@dataclass(frozen=True)
class PoolFeeGrowthSnapshot:
    """Pool-wide and range-boundary fee growth accumulators, all Q128.128.

    Attributes:
        fee_growth_global0_x128: Token0 fee growth across the whole pool.
        fee_growth_global1_x128: Token1 fee growth across the whole pool.
        lower_fee_growth_outside0_x128: Token0 fee growth outside of the lower tick.
        lower_fee_growth_outside1_x128: Token1 fee growth outside of the lower tick.
        upper_fee_growth_outside0_x128: Token0 fee growth outside of the upper tick.
        upper_fee_growth_outside1_x128: Token1 fee growth outside of the upper tick.
        block_number: Block the reads were served at.
    """

    fee_growth_global0_x128: int
    fee_growth_global1_x128: int
    lower_fee_growth_outside0_x128: int
    lower_fee_growth_outside1_x128: int
    upper_fee_growth_outside0_x128: int
    upper_fee_growth_outside1_x128: int
    block_number: int


@dataclass(frozen=True)
class HistoricPoolPrice:
    """Pool price snapshot used as valuation basis.

    Attributes:
        pool_id: Internal pool identifier.
        block_number: Block the price was requested for.
        sqrt_price_x96: Pool sqrt price as Q64.96.
        timestamp: Block timestamp in UTC.
        approximate: Whether the price was read at the latest block instead of the requested one.
    """

    pool_id: UUID
    block_number: int
    sqrt_price_x96: int
    timestamp: datetime
    approximate: bool = False
