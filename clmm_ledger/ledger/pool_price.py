"""Historic pool price lookups cached by immutable `(pool_id, block_number)` keys."""

from __future__ import annotations

import logging
from uuid import UUID

from clmm_ledger.db import PoolPriceRepositoryPort
from clmm_ledger.domain import HistoricPoolPrice, NotFoundError, TransientProviderError

from .interfaces import PoolPricePort, PoolStateReaderPort

_LOGGER = logging.getLogger(__name__)


class CachedPoolPriceService(PoolPricePort):
    """Price lookup reading slot0 at the event block with a persistent cache.

    When the historic read fails and `fallback_to_latest` is enabled, the
    latest-block price is returned with `approximate=True`. Approximate prices
    are never cached.
    """

    def __init__(
        self,
        repository: PoolPriceRepositoryPort,
        pool_state_reader: PoolStateReaderPort,
        fallback_to_latest: bool = False,
    ):
        """Initialize price lookup dependencies.

        Args:
            repository: Pool lookup and price cache repository.
            pool_state_reader: On-chain slot0 reader.
            fallback_to_latest: Enables the degraded latest-block fallback.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies are None.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        if pool_state_reader is None:
            raise ValueError("pool_state_reader must not be None")
        self._repository = repository
        self._pool_state_reader = pool_state_reader
        self._fallback_to_latest = fallback_to_latest

    def price_at(self, pool_id: UUID, block_number: int) -> HistoricPoolPrice:
        """Return the pool price at a block, reading through the cache.

        Args:
            pool_id: Internal pool identifier.
            block_number: Block to price at.

        Returns:
            HistoricPoolPrice: Exact snapshot, or a flagged approximation in degraded mode.

        Raises:
            ValueError: Raised when block_number is negative.
            NotFoundError: Raised when the pool is unknown.
            TransientProviderError: Raised when the read fails and fallback is disabled.
        """

        if block_number < 0:
            raise ValueError("block_number must be >= 0")

        cached_price = self._repository.db_pool_price_get(pool_id=pool_id, block_number=block_number)
        if cached_price is not None:
            return cached_price

        pool_reference = self._repository.db_pool_get_reference(pool_id=pool_id)
        if pool_reference is None:
            raise NotFoundError(f"pool not found: pool_id={pool_id}")

        try:
            snapshot = self._pool_state_reader.adapter_read_pool_slot0(
                chain_id=pool_reference.chain_id,
                pool_address=pool_reference.pool_address,
                block_number=block_number,
            )
        except TransientProviderError as error:
            if not self._fallback_to_latest:
                raise
            _LOGGER.warning(
                "historic slot0 read failed for pool_id=%s block=%s; using latest block price: %s",
                pool_id,
                block_number,
                error,
            )
            latest_snapshot = self._pool_state_reader.adapter_read_pool_slot0(
                chain_id=pool_reference.chain_id,
                pool_address=pool_reference.pool_address,
                block_number=None,
            )
            return HistoricPoolPrice(
                pool_id=pool_id,
                block_number=block_number,
                sqrt_price_x96=latest_snapshot.sqrt_price_x96,
                timestamp=latest_snapshot.block_timestamp,
                approximate=True,
            )

        return self._repository.db_pool_price_save(
            HistoricPoolPrice(
                pool_id=pool_id,
                block_number=block_number,
                sqrt_price_x96=snapshot.sqrt_price_x96,
                timestamp=snapshot.block_timestamp,
            )
        )
