"""Database service for append-only ledger event persistence."""

from __future__ import annotations

import json
from typing import Any, Final
from uuid import UUID

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from clmm_ledger.domain import (
    EventCoordinates,
    LedgerEventInput,
    LedgerEventRecord,
    LedgerEventType,
    LedgerReward,
    domain_validate_event_order,
)

from .interfaces import LedgerEventInsertResult, LedgerEventRepositoryPort

_LEDGER_EVENT_COLUMNS: Final[str] = (
    "ledger_event_id, position_id, previous_id, chain_id, nft_id, "
    "block_number, tx_index, log_index, tx_hash, event_timestamp, event_type, "
    "token0_amount, token1_amount, pool_price, token_value, "
    "delta_cost_basis, cost_basis_after, delta_pnl, pnl_after, "
    "delta_l, liquidity_after, fees_collected0, fees_collected1, "
    "uncollected_principal0_after, uncollected_principal1_after, sqrt_price_x96, "
    "rewards, price_approximate, recipient, input_hash, created_at_utc"
)

_ORDER_ASCENDING: Final[str] = "ORDER BY block_number ASC, tx_index ASC, log_index ASC"
_ORDER_DESCENDING: Final[str] = "ORDER BY block_number DESC, tx_index DESC, log_index DESC"


class SQLAlchemyLedgerEventService(LedgerEventRepositoryPort):
    """SQLAlchemy-backed ledger event store.

    Rows are unique per `(position_id, input_hash)` and ordered by blockchain
    coordinates rather than timestamps, which collide within one block.
    """

    def __init__(self, engine: Engine):
        """Initialize ledger event persistence service.

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

    def db_ledger_event_insert(self, event_input: LedgerEventInput) -> LedgerEventInsertResult:
        """Insert one event idempotently after checking coordinate ordering.

        Args:
            event_input: Fully-formed ledger event.

        Returns:
            LedgerEventInsertResult: Stored row and whether it already existed.

        Raises:
            OrderingViolationError: Raised when the event precedes the last stored event.
            RuntimeError: Raised when persistence fails.
        """

        try:
            with self._engine.begin() as connection:
                existing_row = self._db_fetch_by_input_hash(
                    connection=connection,
                    position_id=event_input.position_id,
                    input_hash=event_input.input_hash,
                )
                if existing_row is not None:
                    return LedgerEventInsertResult(record=self._map_ledger_event_record(existing_row), deduplicated=True)

                last_row = connection.execute(
                    text(
                        "SELECT block_number, tx_index, log_index "
                        "FROM position_ledger_event "
                        "WHERE position_id = :position_id "
                        f"{_ORDER_DESCENDING} "
                        "LIMIT 1"
                    ),
                    {"position_id": event_input.position_id},
                ).mappings().first()
                last_coordinates = None
                if last_row is not None:
                    last_coordinates = EventCoordinates(
                        block_number=int(last_row["block_number"]),
                        transaction_index=int(last_row["tx_index"]),
                        log_index=int(last_row["log_index"]),
                    )
                domain_validate_event_order(last_coordinates, event_input.coordinates)

                inserted_row = connection.execute(
                    text(
                        "INSERT INTO position_ledger_event ("
                        "position_id, previous_id, chain_id, nft_id, "
                        "block_number, tx_index, log_index, tx_hash, event_timestamp, event_type, "
                        "token0_amount, token1_amount, pool_price, token_value, "
                        "delta_cost_basis, cost_basis_after, delta_pnl, pnl_after, "
                        "delta_l, liquidity_after, fees_collected0, fees_collected1, "
                        "uncollected_principal0_after, uncollected_principal1_after, sqrt_price_x96, "
                        "rewards, price_approximate, recipient, input_hash"
                        ") VALUES ("
                        ":position_id, :previous_id, :chain_id, :nft_id, "
                        ":block_number, :tx_index, :log_index, :tx_hash, :event_timestamp, :event_type, "
                        ":token0_amount, :token1_amount, :pool_price, :token_value, "
                        ":delta_cost_basis, :cost_basis_after, :delta_pnl, :pnl_after, "
                        ":delta_l, :liquidity_after, :fees_collected0, :fees_collected1, "
                        ":uncollected_principal0_after, :uncollected_principal1_after, :sqrt_price_x96, "
                        "CAST(:rewards AS jsonb), :price_approximate, :recipient, :input_hash"
                        ") "
                        "ON CONFLICT (position_id, input_hash) DO NOTHING "
                        f"RETURNING {_LEDGER_EVENT_COLUMNS}"
                    ),
                    self._build_insert_parameters(event_input),
                ).mappings().first()
                if inserted_row is not None:
                    return LedgerEventInsertResult(record=self._map_ledger_event_record(inserted_row), deduplicated=False)

                concurrent_row = self._db_fetch_by_input_hash(
                    connection=connection,
                    position_id=event_input.position_id,
                    input_hash=event_input.input_hash,
                )
                if concurrent_row is None:
                    raise RuntimeError("ledger event insert conflicted but no existing row was found")
                return LedgerEventInsertResult(record=self._map_ledger_event_record(concurrent_row), deduplicated=True)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to insert ledger event") from error

    def db_ledger_event_delete_from_block(self, position_id: UUID, from_block: int) -> int:
        """Delete events with `block_number >= from_block` for one position.

        Args:
            position_id: Position identifier.
            from_block: First block of the rebuilt window.

        Returns:
            int: Number of deleted rows; zero matches is valid.

        Raises:
            ValueError: Raised when from_block is negative.
            RuntimeError: Raised when persistence fails.
        """

        if from_block < 0:
            raise ValueError("from_block must be >= 0")

        try:
            with self._engine.begin() as connection:
                deleted_rows = connection.execute(
                    text(
                        "DELETE FROM position_ledger_event "
                        "WHERE position_id = :position_id AND block_number >= :from_block "
                        "RETURNING ledger_event_id"
                    ),
                    {"position_id": position_id, "from_block": from_block},
                ).mappings().all()
                return len(deleted_rows)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to delete ledger events from block") from error

    def db_ledger_event_get_last(self, position_id: UUID) -> LedgerEventRecord | None:
        """Return the latest event by coordinates.

        Args:
            position_id: Position identifier.

        Returns:
            LedgerEventRecord | None: Latest row or None when the ledger is empty.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(
                        f"SELECT {_LEDGER_EVENT_COLUMNS} "
                        "FROM position_ledger_event "
                        "WHERE position_id = :position_id "
                        f"{_ORDER_DESCENDING} "
                        "LIMIT 1"
                    ),
                    {"position_id": position_id},
                ).mappings().first()
                if row is None:
                    return None
                return self._map_ledger_event_record(row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch last ledger event") from error

    def db_ledger_event_list(self, position_id: UUID) -> list[LedgerEventRecord]:
        """Return all events of one position newest first.

        Args:
            position_id: Position identifier.

        Returns:
            list[LedgerEventRecord]: Rows ordered by descending coordinates.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        f"SELECT {_LEDGER_EVENT_COLUMNS} "
                        "FROM position_ledger_event "
                        "WHERE position_id = :position_id "
                        f"{_ORDER_DESCENDING}"
                    ),
                    {"position_id": position_id},
                ).mappings().all()
                return [self._map_ledger_event_record(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list ledger events") from error

    def db_ledger_event_list_range(
        self,
        position_id: UUID,
        from_block: int,
        to_block: int | None = None,
    ) -> list[LedgerEventRecord]:
        """Return events in an inclusive block range oldest first.

        Args:
            position_id: Position identifier.
            from_block: First block, inclusive.
            to_block: Optional last block, inclusive.

        Returns:
            list[LedgerEventRecord]: Rows ordered by ascending coordinates.

        Raises:
            ValueError: Raised when the range is invalid.
            RuntimeError: Raised when database read fails.
        """

        if from_block < 0:
            raise ValueError("from_block must be >= 0")
        if to_block is not None and to_block < from_block:
            raise ValueError("to_block must be >= from_block")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        f"SELECT {_LEDGER_EVENT_COLUMNS} "
                        "FROM position_ledger_event "
                        "WHERE position_id = :position_id "
                        "AND block_number >= :from_block "
                        "AND (CAST(:to_block AS BIGINT) IS NULL OR block_number <= CAST(:to_block AS BIGINT)) "
                        f"{_ORDER_ASCENDING}"
                    ),
                    {"position_id": position_id, "from_block": from_block, "to_block": to_block},
                ).mappings().all()
                return [self._map_ledger_event_record(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list ledger events in range") from error

    def _db_fetch_by_input_hash(self, connection, position_id: UUID, input_hash: str) -> Any | None:
        """Fetch one row by idempotency key inside an active transaction.

        Args:
            connection: Active SQLAlchemy connection.
            position_id: Position identifier.
            input_hash: Idempotency key.

        Returns:
            Any | None: Row mapping or None.

        Raises:
            SQLAlchemyError: Raised when the query fails.
        """

        return connection.execute(
            text(
                f"SELECT {_LEDGER_EVENT_COLUMNS} "
                "FROM position_ledger_event "
                "WHERE position_id = :position_id AND input_hash = :input_hash"
            ),
            {"position_id": position_id, "input_hash": input_hash},
        ).mappings().first()

    def _build_insert_parameters(self, event_input: LedgerEventInput) -> dict[str, Any]:
        """Build bound parameters for the insert statement.

        Args:
            event_input: Ledger event payload.

        Returns:
            dict[str, Any]: Parameters keyed by column name.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return {
            "position_id": event_input.position_id,
            "previous_id": event_input.previous_id,
            "chain_id": event_input.chain_id,
            "nft_id": event_input.nft_id,
            "block_number": event_input.block_number,
            "tx_index": event_input.tx_index,
            "log_index": event_input.log_index,
            "tx_hash": event_input.tx_hash,
            "event_timestamp": event_input.timestamp,
            "event_type": event_input.event_type.value,
            "token0_amount": event_input.token0_amount,
            "token1_amount": event_input.token1_amount,
            "pool_price": event_input.pool_price,
            "token_value": event_input.token_value,
            "delta_cost_basis": event_input.delta_cost_basis,
            "cost_basis_after": event_input.cost_basis_after,
            "delta_pnl": event_input.delta_pnl,
            "pnl_after": event_input.pnl_after,
            "delta_l": event_input.delta_l,
            "liquidity_after": event_input.liquidity_after,
            "fees_collected0": event_input.fees_collected0,
            "fees_collected1": event_input.fees_collected1,
            "uncollected_principal0_after": event_input.uncollected_principal0_after,
            "uncollected_principal1_after": event_input.uncollected_principal1_after,
            "sqrt_price_x96": event_input.sqrt_price_x96,
            "rewards": json.dumps([reward.to_json() for reward in event_input.rewards]),
            "price_approximate": event_input.price_approximate,
            "recipient": event_input.recipient,
            "input_hash": event_input.input_hash,
        }

    def _map_ledger_event_record(self, row: Any) -> LedgerEventRecord:
        """Map SQLAlchemy row mapping to a typed ledger event record.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            LedgerEventRecord: Typed row with integer financial fields.

        Raises:
            TypeError: Raised when rewards are not a JSON array.
        """

        rewards_value = row["rewards"] or []
        if isinstance(rewards_value, str):
            rewards_value = json.loads(rewards_value)
        if not isinstance(rewards_value, list):
            raise TypeError("position_ledger_event.rewards must be a JSON array")

        return LedgerEventRecord(
            ledger_event_id=row["ledger_event_id"],
            event=LedgerEventInput(
                position_id=row["position_id"],
                previous_id=row["previous_id"],
                chain_id=int(row["chain_id"]),
                nft_id=int(row["nft_id"]),
                block_number=int(row["block_number"]),
                tx_index=int(row["tx_index"]),
                log_index=int(row["log_index"]),
                tx_hash=row["tx_hash"],
                timestamp=row["event_timestamp"],
                event_type=LedgerEventType(row["event_type"]),
                token0_amount=int(row["token0_amount"]),
                token1_amount=int(row["token1_amount"]),
                pool_price=int(row["pool_price"]),
                token_value=int(row["token_value"]),
                delta_cost_basis=int(row["delta_cost_basis"]),
                cost_basis_after=int(row["cost_basis_after"]),
                delta_pnl=int(row["delta_pnl"]),
                pnl_after=int(row["pnl_after"]),
                delta_l=int(row["delta_l"]),
                liquidity_after=int(row["liquidity_after"]),
                fees_collected0=int(row["fees_collected0"]),
                fees_collected1=int(row["fees_collected1"]),
                uncollected_principal0_after=int(row["uncollected_principal0_after"]),
                uncollected_principal1_after=int(row["uncollected_principal1_after"]),
                sqrt_price_x96=int(row["sqrt_price_x96"]),
                input_hash=row["input_hash"],
                rewards=tuple(LedgerReward.from_json(reward) for reward in rewards_value),
                price_approximate=bool(row["price_approximate"]),
                recipient=row["recipient"],
            ),
            created_at_utc=row["created_at_utc"],
        )
