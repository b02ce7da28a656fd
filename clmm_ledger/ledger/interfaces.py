"""Typed ports for external collaborators of the ledger engine."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from clmm_ledger.domain import (
    HistoricPoolPrice,
    PoolFeeGrowthSnapshot,
    PoolSlot0Snapshot,
    PositionOnChainState,
    RawPositionEvent,
)


class EventHistoryPort(Protocol):
    """Port for fetching position manager logs of one NFT."""

    def adapter_fetch_position_events(
        self,
        chain_id: int,
        nft_id: int,
        from_block: int | None = None,
        to_block: int | None = None,
    ) -> list[RawPositionEvent]:
        """Fetch raw events in an inclusive block range.

        Args:
            chain_id: EVM chain identifier.
            nft_id: Position NFT identifier.
            from_block: Optional first block.
            to_block: Optional last block; None means latest.

        Returns:
            list[RawPositionEvent]: Events in any order.

        Raises:
            TransientProviderError: Raised when the provider is unreachable.
        """


class FinalityPort(Protocol):
    """Port for reading the finality horizon of a chain."""

    def adapter_last_finalized_block(self, chain_id: int) -> int | None:
        """Return the last finalized block number, or None when unavailable.

        Raises:
            TransientProviderError: Raised when the provider is unreachable.
        """


class PoolStateReaderPort(Protocol):
    """Port for reading pool slot0 and fee growth at a block."""

    def adapter_read_pool_slot0(
        self,
        chain_id: int,
        pool_address: str,
        block_number: int | None = None,
    ) -> PoolSlot0Snapshot:
        """Read pool slot0 at a block; None reads the latest block.

        Raises:
            TransientProviderError: Raised when the read fails.
        """

    def adapter_read_pool_fee_growth(
        self,
        chain_id: int,
        pool_address: str,
        tick_lower: int,
        tick_upper: int,
        block_number: int | None = None,
    ) -> PoolFeeGrowthSnapshot:
        """Read global fee growth and the outside values of both range ticks.

        Raises:
            TransientProviderError: Raised when the read fails.
        """


class PositionChainReaderPort(Protocol):
    """Port for reading position manager state of one NFT."""

    def adapter_read_position_state(self, chain_id: int, nft_id: int) -> PositionOnChainState:
        """Read owner, liquidity, fee checkpoints, and owed tokens.

        Raises:
            TransientProviderError: Raised when the read fails.
        """


class PoolPricePort(Protocol):
    """Port for idempotent historic pool price lookups."""

    def price_at(self, pool_id: UUID, block_number: int) -> HistoricPoolPrice:
        """Return the price snapshot of a pool at a block.

        Raises:
            NotFoundError: Raised when the pool is unknown.
            TransientProviderError: Raised when the read fails and fallback is disabled.
        """


class AprPeriodPort(Protocol):
    """Port for triggering downstream APR period aggregation."""

    def recompute_periods(self, position_id: UUID) -> None:
        """Request recomputation of APR periods for one position.

        Raises:
            RuntimeError: Raised when the trigger cannot be recorded.
        """
