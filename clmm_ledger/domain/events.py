"""Typed event contracts shared by ledger processing, persistence, and adapters.

All token amounts, liquidity values, prices, and values are exact Python
integers in raw token units.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from .errors import OrderingViolationError


class BlockchainEventType(str, Enum):
    """Position manager log types emitted on chain."""

    INCREASE_LIQUIDITY = "INCREASE_LIQUIDITY"
    DECREASE_LIQUIDITY = "DECREASE_LIQUIDITY"
    COLLECT = "COLLECT"


class LedgerEventType(str, Enum):
    """Ledger event classification persisted per position."""

    INCREASE_POSITION = "INCREASE_POSITION"
    DECREASE_POSITION = "DECREASE_POSITION"
    COLLECT = "COLLECT"


@dataclass(frozen=True)
class EventCoordinates:
    """Blockchain coordinates that totally order events of one chain.

    Attributes:
        block_number: Block containing the log.
        transaction_index: Transaction position inside the block.
        log_index: Log position inside the block.
    """

    block_number: int
    transaction_index: int
    log_index: int

    def as_sort_key(self) -> tuple[int, int, int]:
        """Return the tuple used for ascending chronological comparisons."""

        return (self.block_number, self.transaction_index, self.log_index)


@dataclass(frozen=True)
class RawPositionEvent:
    """One position manager log normalized from an indexer or a client report.

    Attributes:
        event_type: Position manager log type.
        token_id: Position NFT identifier.
        transaction_hash: Transaction hash hex string.
        block_number: Block containing the log.
        transaction_index: Transaction position inside the block.
        log_index: Log position inside the block.
        block_timestamp: Block timestamp in UTC.
        chain_id: EVM chain identifier.
        amount0: Token0 raw amount.
        amount1: Token1 raw amount.
        liquidity: Liquidity delta for increase/decrease logs.
        recipient: Collect recipient address for collect logs.
    """

    event_type: BlockchainEventType
    token_id: int
    transaction_hash: str
    block_number: int
    transaction_index: int
    log_index: int
    block_timestamp: datetime
    chain_id: int
    amount0: int
    amount1: int
    liquidity: int | None = None
    recipient: str | None = None

    @property
    def coordinates(self) -> EventCoordinates:
        """Return blockchain ordering coordinates."""

        return EventCoordinates(self.block_number, self.transaction_index, self.log_index)


@dataclass(frozen=True)
class MissingEvent:
    """Client-reported event not yet visible in indexer results.

    Attributes:
        event_type: Position manager log type.
        timestamp: Block timestamp in UTC.
        block_number: Block containing the log.
        transaction_index: Transaction position inside the block.
        log_index: Log position inside the block.
        transaction_hash: Transaction hash hex string.
        amount0: Token0 raw amount.
        amount1: Token1 raw amount.
        liquidity: Liquidity delta for increase/decrease logs.
        recipient: Collect recipient address for collect logs.
    """

    event_type: BlockchainEventType
    timestamp: datetime
    block_number: int
    transaction_index: int
    log_index: int
    transaction_hash: str
    amount0: int
    amount1: int
    liquidity: int | None = None
    recipient: str | None = None

    @property
    def coordinates(self) -> EventCoordinates:
        """Return blockchain ordering coordinates."""

        return EventCoordinates(self.block_number, self.transaction_index, self.log_index)


@dataclass(frozen=True)
class PreviousEventState:
    """Minimal running state required to process the next event of a position.

    Attributes:
        uncollected_principal0: Withdrawn token0 not yet collected.
        uncollected_principal1: Withdrawn token1 not yet collected.
        liquidity: Running position liquidity.
        cost_basis: Running cost basis in quote units.
        pnl: Running realized PnL in quote units.
    """

    uncollected_principal0: int = 0
    uncollected_principal1: int = 0
    liquidity: int = 0
    cost_basis: int = 0
    pnl: int = 0


@dataclass(frozen=True)
class PoolMetadata:
    """Pool and token facts required for valuation.

    Attributes:
        pool_id: Internal pool identifier.
        pool_address: Pool contract address.
        chain_id: EVM chain identifier of the pool.
        token0_id: Internal token0 identifier.
        token1_id: Internal token1 identifier.
        token0_decimals: Token0 decimals.
        token1_decimals: Token1 decimals.
        token0_is_quote: Whether token0 is the position quote token.
    """

    pool_id: UUID
    pool_address: str
    chain_id: int
    token0_id: UUID
    token1_id: UUID
    token0_decimals: int
    token1_decimals: int
    token0_is_quote: bool


@dataclass(frozen=True)
class LedgerReward:
    """One collected fee entry valued in quote units.

    Attributes:
        token_id: Internal token identifier of the fee token.
        token_amount: Fee raw amount.
        token_value: Fee value in quote units.
    """

    token_id: UUID
    token_amount: int
    token_value: int

    def to_json(self) -> dict[str, str]:
        """Serialize with big integers as decimal strings."""

        return {
            "tokenId": str(self.token_id),
            "tokenAmount": str(self.token_amount),
            "tokenValue": str(self.token_value),
        }

    @classmethod
    def from_json(cls, payload: dict[str, str]) -> LedgerReward:
        """Deserialize one reward from its JSON payload."""

        return cls(
            token_id=UUID(str(payload["tokenId"])),
            token_amount=int(payload["tokenAmount"]),
            token_value=int(payload["tokenValue"]),
        )


@dataclass(frozen=True)
class LedgerEventInput:
    """Fully-formed, not-yet-persisted ledger event.

    Attributes:
        position_id: Owning position identifier.
        previous_id: Identifier of the preceding ledger event, if any.
        chain_id: EVM chain identifier.
        nft_id: Position NFT identifier.
        block_number: Block containing the source log.
        tx_index: Transaction position inside the block.
        log_index: Log position inside the block.
        tx_hash: Transaction hash hex string.
        timestamp: Block timestamp in UTC.
        event_type: Ledger event classification.
        token0_amount: Token0 raw amount of the source log.
        token1_amount: Token1 raw amount of the source log.
        pool_price: Quote raw units per one base unit at the event block.
        token_value: Source amounts valued in quote units.
        delta_cost_basis: Cost basis change caused by the event.
        cost_basis_after: Running cost basis after the event.
        delta_pnl: Realized PnL change caused by the event.
        pnl_after: Running realized PnL after the event.
        delta_l: Liquidity delta carried by the event.
        liquidity_after: Running liquidity after the event.
        fees_collected0: Token0 fee portion of a collect.
        fees_collected1: Token1 fee portion of a collect.
        uncollected_principal0_after: Token0 principal still owed after the event.
        uncollected_principal1_after: Token1 principal still owed after the event.
        sqrt_price_x96: Price basis used for valuation.
        input_hash: Idempotency key derived from coordinates.
        rewards: Non-zero fee entries for collect events.
        price_approximate: Whether a degraded latest-block price was used.
        recipient: Collect recipient address.
    """

    position_id: UUID
    previous_id: UUID | None
    chain_id: int
    nft_id: int
    block_number: int
    tx_index: int
    log_index: int
    tx_hash: str
    timestamp: datetime
    event_type: LedgerEventType
    token0_amount: int
    token1_amount: int
    pool_price: int
    token_value: int
    delta_cost_basis: int
    cost_basis_after: int
    delta_pnl: int
    pnl_after: int
    delta_l: int
    liquidity_after: int
    fees_collected0: int
    fees_collected1: int
    uncollected_principal0_after: int
    uncollected_principal1_after: int
    sqrt_price_x96: int
    input_hash: str
    rewards: tuple[LedgerReward, ...] = field(default_factory=tuple)
    price_approximate: bool = False
    recipient: str | None = None

    @property
    def coordinates(self) -> EventCoordinates:
        """Return blockchain ordering coordinates."""

        return EventCoordinates(self.block_number, self.tx_index, self.log_index)


@dataclass(frozen=True)
class LedgerEventRecord:
    """Persisted ledger event row.

    Attributes:
        ledger_event_id: Identifier assigned on insert.
        event: Immutable event payload.
        created_at_utc: Row creation timestamp in UTC.
    """

    ledger_event_id: UUID
    event: LedgerEventInput
    created_at_utc: datetime | None = None


def domain_validate_event_order(
    last_coordinates: EventCoordinates | None,
    new_coordinates: EventCoordinates,
) -> None:
    """Reject an event that precedes the last persisted event of a position.

    Args:
        last_coordinates: Coordinates of the latest persisted event, if any.
        new_coordinates: Coordinates of the event about to be appended.

    Returns:
        None: Returns when ordering is valid.

    Raises:
        OrderingViolationError: Raised when the new event sorts before the last one.
    """

    if last_coordinates is None:
        return
    if new_coordinates.as_sort_key() < last_coordinates.as_sort_key():
        raise OrderingViolationError(
            f"event {new_coordinates.as_sort_key()} precedes last persisted event {last_coordinates.as_sort_key()}"
        )
