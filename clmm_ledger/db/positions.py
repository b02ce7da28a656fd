"""Database service for position aggregate reads and reconciliation writes."""

from __future__ import annotations

from typing import Any, Final
from uuid import UUID

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from clmm_ledger.domain import (
    PoolMetadata,
    PositionConfig,
    PositionOnChainState,
    PositionRecord,
    PositionRollups,
)

from .interfaces import PositionRepositoryPort

_POSITION_COLUMNS: Final[str] = (
    "position.position_id, position.pool_id, position.chain_id, position.nft_id, "
    "pool.pool_address, position.tick_lower, position.tick_upper, "
    "position.owner_address, position.liquidity, "
    "position.fee_growth_inside0_last_x128, position.fee_growth_inside1_last_x128, "
    "position.tokens_owed0, position.tokens_owed1, "
    "position.is_active, position.position_opened_at, position.position_closed_at"
)


class SQLAlchemyPositionService(PositionRepositoryPort):
    """SQLAlchemy-backed position store used by reconciliation."""

    def __init__(self, engine: Engine):
        """Initialize position persistence service.

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

    def db_position_get(self, position_id: UUID) -> PositionRecord | None:
        """Fetch one position joined with its pool address.

        Args:
            position_id: Position identifier.

        Returns:
            PositionRecord | None: Matching row or None.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(
                        f"SELECT {_POSITION_COLUMNS} "
                        "FROM position "
                        "JOIN pool ON pool.pool_id = position.pool_id "
                        "WHERE position.position_id = :position_id"
                    ),
                    {"position_id": position_id},
                ).mappings().first()
                if row is None:
                    return None
                return self._map_position_record(row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch position") from error

    def db_position_get_pool_metadata(self, position_id: UUID) -> PoolMetadata | None:
        """Fetch valuation metadata of the position's pool and tokens.

        Args:
            position_id: Position identifier.

        Returns:
            PoolMetadata | None: Pool metadata or None when the position is missing.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(
                        "SELECT "
                        "pool.pool_id, pool.pool_address, pool.chain_id, "
                        "pool.token0_id, pool.token1_id, "
                        "token0.decimals AS token0_decimals, token1.decimals AS token1_decimals, "
                        "position.token0_is_quote "
                        "FROM position "
                        "JOIN pool ON pool.pool_id = position.pool_id "
                        "JOIN token AS token0 ON token0.token_id = pool.token0_id "
                        "JOIN token AS token1 ON token1.token_id = pool.token1_id "
                        "WHERE position.position_id = :position_id"
                    ),
                    {"position_id": position_id},
                ).mappings().first()
                if row is None:
                    return None
                return PoolMetadata(
                    pool_id=row["pool_id"],
                    pool_address=row["pool_address"],
                    chain_id=int(row["chain_id"]),
                    token0_id=row["token0_id"],
                    token1_id=row["token1_id"],
                    token0_decimals=int(row["token0_decimals"]),
                    token1_decimals=int(row["token1_decimals"]),
                    token0_is_quote=bool(row["token0_is_quote"]),
                )
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch position pool metadata") from error

    def db_position_update_state(self, position_id: UUID, state: PositionOnChainState) -> None:
        """Replace the stored on-chain state of one position.

        Args:
            position_id: Position identifier.
            state: New on-chain state; liquidity is the ledger-derived value.

        Returns:
            None: Row is updated as a side effect.

        Raises:
            LookupError: Raised when position is not found.
            RuntimeError: Raised when persistence fails.
        """

        try:
            with self._engine.begin() as connection:
                updated_row = connection.execute(
                    text(
                        "UPDATE position SET "
                        "owner_address = :owner_address, "
                        "liquidity = :liquidity, "
                        "fee_growth_inside0_last_x128 = :fee_growth_inside0_last_x128, "
                        "fee_growth_inside1_last_x128 = :fee_growth_inside1_last_x128, "
                        "tokens_owed0 = :tokens_owed0, "
                        "tokens_owed1 = :tokens_owed1, "
                        "updated_at_utc = now() "
                        "WHERE position_id = :position_id "
                        "RETURNING position_id"
                    ),
                    {
                        "position_id": position_id,
                        "owner_address": state.owner_address,
                        "liquidity": state.liquidity,
                        "fee_growth_inside0_last_x128": state.fee_growth_inside0_last_x128,
                        "fee_growth_inside1_last_x128": state.fee_growth_inside1_last_x128,
                        "tokens_owed0": state.tokens_owed0,
                        "tokens_owed1": state.tokens_owed1,
                    },
                ).mappings().first()
                if updated_row is None:
                    raise LookupError("position not found")
        except SQLAlchemyError as error:
            raise RuntimeError("failed to update position state") from error

    def db_position_update_rollups(self, position_id: UUID, rollups: PositionRollups) -> None:
        """Replace the stored financial rollups of one position.

        Args:
            position_id: Position identifier.
            rollups: Computed rollup values.

        Returns:
            None: Row is updated as a side effect.

        Raises:
            LookupError: Raised when position is not found.
            RuntimeError: Raised when persistence fails.
        """

        try:
            with self._engine.begin() as connection:
                updated_row = connection.execute(
                    text(
                        "UPDATE position SET "
                        "current_value = :current_value, "
                        "cost_basis = :cost_basis, "
                        "realized_pnl = :realized_pnl, "
                        "unrealized_pnl = :unrealized_pnl, "
                        "collected_fees = :collected_fees, "
                        "unclaimed_fees = :unclaimed_fees, "
                        "last_fees_collected_at = :last_fees_collected_at, "
                        "position_opened_at = :position_opened_at, "
                        "is_active = :is_active, "
                        "position_closed_at = :position_closed_at, "
                        "updated_at_utc = now() "
                        "WHERE position_id = :position_id "
                        "RETURNING position_id"
                    ),
                    {
                        "position_id": position_id,
                        "current_value": rollups.current_value,
                        "cost_basis": rollups.cost_basis,
                        "realized_pnl": rollups.realized_pnl,
                        "unrealized_pnl": rollups.unrealized_pnl,
                        "collected_fees": rollups.collected_fees,
                        "unclaimed_fees": rollups.unclaimed_fees,
                        "last_fees_collected_at": rollups.last_fees_collected_at,
                        "position_opened_at": rollups.position_opened_at,
                        "is_active": rollups.is_active,
                        "position_closed_at": rollups.position_closed_at,
                    },
                ).mappings().first()
                if updated_row is None:
                    raise LookupError("position not found")
        except SQLAlchemyError as error:
            raise RuntimeError("failed to update position rollups") from error

    def db_position_delete(self, position_id: UUID) -> bool:
        """Delete one position; ledger events and sync state cascade.

        Args:
            position_id: Position identifier.

        Returns:
            bool: True when a row was deleted.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        try:
            with self._engine.begin() as connection:
                deleted_row = connection.execute(
                    text("DELETE FROM position WHERE position_id = :position_id RETURNING position_id"),
                    {"position_id": position_id},
                ).mappings().first()
                return deleted_row is not None
        except SQLAlchemyError as error:
            raise RuntimeError("failed to delete position") from error

    def _map_position_record(self, row: Any) -> PositionRecord:
        """Map SQLAlchemy row mapping to a typed position record.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            PositionRecord: Typed position.

        Raises:
            TypeError: Raised when row structure is incompatible.
        """

        return PositionRecord(
            position_id=row["position_id"],
            pool_id=row["pool_id"],
            config=PositionConfig(
                chain_id=int(row["chain_id"]),
                nft_id=int(row["nft_id"]),
                pool_address=row["pool_address"],
                tick_lower=int(row["tick_lower"]),
                tick_upper=int(row["tick_upper"]),
            ),
            state=PositionOnChainState(
                owner_address=row["owner_address"],
                liquidity=int(row["liquidity"]),
                fee_growth_inside0_last_x128=int(row["fee_growth_inside0_last_x128"]),
                fee_growth_inside1_last_x128=int(row["fee_growth_inside1_last_x128"]),
                tokens_owed0=int(row["tokens_owed0"]),
                tokens_owed1=int(row["tokens_owed1"]),
            ),
            is_active=bool(row["is_active"]),
            position_opened_at=row["position_opened_at"],
            position_closed_at=row["position_closed_at"],
        )
