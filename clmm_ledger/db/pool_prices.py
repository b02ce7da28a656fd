"""Database service for pool lookups and the historic pool price cache."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from clmm_ledger.domain import HistoricPoolPrice, PoolReference

from .interfaces import PoolPriceRepositoryPort


class SQLAlchemyPoolPriceService(PoolPriceRepositoryPort):
    """SQLAlchemy-backed price cache keyed by immutable `(pool_id, block_number)`."""

    def __init__(self, engine: Engine):
        """Initialize pool price persistence service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Returns:
            None: This initializer does not return a value.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_pool_get_reference(self, pool_id: UUID) -> PoolReference | None:
        """Fetch the chain and contract address of one pool.

        Args:
            pool_id: Pool identifier.

        Returns:
            PoolReference | None: Pool location or None.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text("SELECT pool_id, chain_id, pool_address FROM pool WHERE pool_id = :pool_id"),
                    {"pool_id": pool_id},
                ).mappings().first()
                if row is None:
                    return None
                return PoolReference(
                    pool_id=row["pool_id"],
                    chain_id=int(row["chain_id"]),
                    pool_address=row["pool_address"],
                )
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch pool reference") from error

    def db_pool_price_get(self, pool_id: UUID, block_number: int) -> HistoricPoolPrice | None:
        """Fetch one cached price snapshot.

        Args:
            pool_id: Pool identifier.
            block_number: Block number.

        Returns:
            HistoricPoolPrice | None: Cached snapshot or None.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(
                        "SELECT pool_id, block_number, sqrt_price_x96, block_timestamp "
                        "FROM pool_price "
                        "WHERE pool_id = :pool_id AND block_number = :block_number"
                    ),
                    {"pool_id": pool_id, "block_number": block_number},
                ).mappings().first()
                if row is None:
                    return None
                return self._map_pool_price(row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch cached pool price") from error

    def db_pool_price_save(self, price: HistoricPoolPrice) -> HistoricPoolPrice:
        """Cache one exact snapshot; a concurrently stored entry is returned unchanged.

        Args:
            price: Exact price snapshot.

        Returns:
            HistoricPoolPrice: Stored snapshot.

        Raises:
            ValueError: Raised when the snapshot is approximate.
            RuntimeError: Raised when persistence fails.
        """

        if price.approximate:
            raise ValueError("approximate prices must not be cached")

        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text(
                        "INSERT INTO pool_price (pool_id, block_number, sqrt_price_x96, block_timestamp) "
                        "VALUES (:pool_id, :block_number, :sqrt_price_x96, :block_timestamp) "
                        "ON CONFLICT (pool_id, block_number) DO NOTHING"
                    ),
                    {
                        "pool_id": price.pool_id,
                        "block_number": price.block_number,
                        "sqrt_price_x96": price.sqrt_price_x96,
                        "block_timestamp": price.timestamp,
                    },
                )
                row = connection.execute(
                    text(
                        "SELECT pool_id, block_number, sqrt_price_x96, block_timestamp "
                        "FROM pool_price "
                        "WHERE pool_id = :pool_id AND block_number = :block_number"
                    ),
                    {"pool_id": price.pool_id, "block_number": price.block_number},
                ).mappings().one()
                return self._map_pool_price(row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to cache pool price") from error

    def _map_pool_price(self, row: Any) -> HistoricPoolPrice:
        """Map SQLAlchemy row mapping to a typed price snapshot.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            HistoricPoolPrice: Exact snapshot.

        Raises:
            TypeError: Raised when row structure is incompatible.
        """

        return HistoricPoolPrice(
            pool_id=row["pool_id"],
            block_number=int(row["block_number"]),
            sqrt_price_x96=int(row["sqrt_price_x96"]),
            timestamp=row["block_timestamp"],
        )
