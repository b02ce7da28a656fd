"""Regression tests for cached historic pool price lookups."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

import pytest

from clmm_ledger.domain import (
    HistoricPoolPrice,
    NotFoundError,
    PoolReference,
    PoolSlot0Snapshot,
    TransientProviderError,
)
from clmm_ledger.ledger import CachedPoolPriceService

_BLOCK_TIMESTAMP = datetime(2026, 3, 1, tzinfo=timezone.utc)


class _PoolPriceRepositoryStub:
    """In-memory pool lookup and price cache."""

    def __init__(self, pool_reference: PoolReference | None):
        """Initialize repository state.

        Args:
            pool_reference: Pool location returned for any lookup.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: This stub does not raise value errors.
        """

        self._pool_reference = pool_reference
        self.prices: dict[tuple[UUID, int], HistoricPoolPrice] = {}

    def db_pool_get_reference(self, pool_id: UUID) -> PoolReference | None:
        """Return the configured pool reference.

        Args:
            pool_id: Pool identifier.

        Returns:
            PoolReference | None: Configured reference.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        _ = pool_id
        return self._pool_reference

    def db_pool_price_get(self, pool_id: UUID, block_number: int) -> HistoricPoolPrice | None:
        """Return a cached snapshot.

        Args:
            pool_id: Pool identifier.
            block_number: Requested block.

        Returns:
            HistoricPoolPrice | None: Cached snapshot.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        return self.prices.get((pool_id, block_number))

    def db_pool_price_save(self, price: HistoricPoolPrice) -> HistoricPoolPrice:
        """Cache one snapshot with first-writer-wins semantics.

        Args:
            price: Snapshot to cache.

        Returns:
            HistoricPoolPrice: Stored snapshot.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        return self.prices.setdefault((price.pool_id, price.block_number), price)


class _PoolStateReaderStub:
    """Slot0 reader failing historic reads on demand."""

    def __init__(self, fail_historic_reads: bool = False):
        """Initialize reader behavior.

        Args:
            fail_historic_reads: Whether reads with a block number fail.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: This stub does not raise value errors.
        """

        self._fail_historic_reads = fail_historic_reads
        self.requested_blocks: list[int | None] = []

    def adapter_read_pool_slot0(
        self,
        chain_id: int,
        pool_address: str,
        block_number: int | None = None,
    ) -> PoolSlot0Snapshot:
        """Return a deterministic slot0 snapshot.

        Args:
            chain_id: EVM chain identifier.
            pool_address: Pool contract address.
            block_number: Requested block or None for latest.

        Returns:
            PoolSlot0Snapshot: Snapshot whose price encodes the requested block.

        Raises:
            TransientProviderError: Raised for historic reads when failure is configured.
        """

        _ = (chain_id, pool_address)
        self.requested_blocks.append(block_number)
        if block_number is not None and self._fail_historic_reads:
            raise TransientProviderError("archive node unavailable")
        served_block = 999 if block_number is None else block_number
        return PoolSlot0Snapshot(
            sqrt_price_x96=served_block * 2**96,
            tick=0,
            block_number=served_block,
            block_timestamp=_BLOCK_TIMESTAMP,
        )


def _build_pool_reference() -> PoolReference:
    """Build one pool reference.

    Returns:
        PoolReference: Deterministic pool reference.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return PoolReference(pool_id=uuid4(), chain_id=1, pool_address="0x00000000000000000000000000000000000000a1")


def test_ledger_pool_price_reads_once_and_serves_cache_afterwards() -> None:
    """Read slot0 at the requested block once and cache the exact result.

    Returns:
        None: Assertions validate read-through caching.

    Raises:
        AssertionError: Raised when cached reads hit the provider again.
    """

    pool_reference = _build_pool_reference()
    repository = _PoolPriceRepositoryStub(pool_reference)
    reader = _PoolStateReaderStub()
    service = CachedPoolPriceService(repository=repository, pool_state_reader=reader)

    first_price = service.price_at(pool_reference.pool_id, 120)
    second_price = service.price_at(pool_reference.pool_id, 120)

    assert first_price == second_price
    assert first_price.sqrt_price_x96 == 120 * 2**96
    assert first_price.approximate is False
    assert reader.requested_blocks == [120]
    assert (pool_reference.pool_id, 120) in repository.prices


def test_ledger_pool_price_propagates_transient_error_without_fallback() -> None:
    """Propagate historic read failures when the degraded fallback is disabled.

    Returns:
        None: Assertions validate error propagation.

    Raises:
        AssertionError: Raised when a failure is masked.
    """

    pool_reference = _build_pool_reference()
    service = CachedPoolPriceService(
        repository=_PoolPriceRepositoryStub(pool_reference),
        pool_state_reader=_PoolStateReaderStub(fail_historic_reads=True),
    )

    with pytest.raises(TransientProviderError):
        service.price_at(pool_reference.pool_id, 120)


def test_ledger_pool_price_fallback_returns_flagged_latest_price_without_caching() -> None:
    """Return a flagged latest-block price and leave the cache untouched.

    Returns:
        None: Assertions validate degraded fallback behavior.

    Raises:
        AssertionError: Raised when approximate prices are cached or unflagged.
    """

    pool_reference = _build_pool_reference()
    repository = _PoolPriceRepositoryStub(pool_reference)
    reader = _PoolStateReaderStub(fail_historic_reads=True)
    service = CachedPoolPriceService(repository=repository, pool_state_reader=reader, fallback_to_latest=True)

    price = service.price_at(pool_reference.pool_id, 120)

    assert price.approximate is True
    assert price.block_number == 120
    assert price.sqrt_price_x96 == 999 * 2**96
    assert reader.requested_blocks == [120, None]
    assert repository.prices == {}


def test_ledger_pool_price_rejects_unknown_pool_and_negative_block() -> None:
    """Reject unknown pools and negative blocks.

    Returns:
        None: Assertions validate typed error behavior.

    Raises:
        AssertionError: Raised when invalid lookups are accepted.
    """

    service = CachedPoolPriceService(
        repository=_PoolPriceRepositoryStub(None),
        pool_state_reader=_PoolStateReaderStub(),
    )

    with pytest.raises(NotFoundError):
        service.price_at(uuid4(), 1)
    with pytest.raises(ValueError):
        service.price_at(uuid4(), -1)
