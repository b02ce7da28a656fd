"""Per-position tracking of client-reported events awaiting indexer confirmation.

Each pending entry leaves the state exactly once: when the indexer returns the
same `(tx_hash, log_index)`, or when its block falls at or below the finalized
block without such a match.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable
from uuid import UUID

from clmm_ledger.domain import BlockchainEventType, MissingEvent, RawPositionEvent

DEFAULT_SYNC_BY = "user-refresh"


@dataclass(frozen=True)
class SyncStateReconcileResult:
    """Outcome of reconciling pending events against one sync run.

    Attributes:
        confirmed: Entries matched by indexer results.
        abandoned: Entries dropped after passing the finality horizon unmatched.
    """

    confirmed: tuple[MissingEvent, ...]
    abandoned: tuple[MissingEvent, ...]


def _missing_event_key(transaction_hash: str, log_index: int) -> tuple[str, int]:
    return (transaction_hash.strip().lower(), int(log_index))


class PositionSyncState:
    """Mutable pending-event set for one position."""

    def __init__(
        self,
        position_id: UUID,
        missing_events: Iterable[MissingEvent] = (),
        last_sync_at: datetime | None = None,
        last_sync_by: str | None = None,
    ):
        """Initialize sync state.

        Args:
            position_id: Owning position identifier.
            missing_events: Pending client-reported events.
            last_sync_at: Timestamp of the last persisted save.
            last_sync_by: Label of the trigger behind the last save.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when position_id is None.
        """

        if position_id is None:
            raise ValueError("position_id must not be None")
        self._position_id = position_id
        self._missing_events: dict[tuple[str, int], MissingEvent] = {}
        self.last_sync_at = last_sync_at
        self.last_sync_by = last_sync_by
        self.add_missing_events(missing_events)

    @property
    def position_id(self) -> UUID:
        """Return the owning position identifier."""

        return self._position_id

    @property
    def missing_events(self) -> tuple[MissingEvent, ...]:
        """Return pending entries in insertion order."""

        return tuple(self._missing_events.values())

    def has_missing_events(self) -> bool:
        """Return whether any pending entry exists."""

        return bool(self._missing_events)

    def missing_events_sorted(self) -> list[MissingEvent]:
        """Return pending entries in ascending blockchain order."""

        return sorted(self._missing_events.values(), key=lambda event: event.coordinates.as_sort_key())

    def add_missing_event(self, event: MissingEvent) -> None:
        """Add or replace one pending entry keyed by `(tx_hash, log_index)`.

        Args:
            event: Client-reported event.

        Returns:
            None: Mutates pending state.

        Raises:
            ValueError: Raised when the transaction hash is blank.
        """

        if not event.transaction_hash.strip():
            raise ValueError("transaction_hash must not be blank")
        self._missing_events[_missing_event_key(event.transaction_hash, event.log_index)] = event

    def add_missing_events(self, events: Iterable[MissingEvent]) -> None:
        """Add several pending entries."""

        for event in events:
            self.add_missing_event(event)

    def remove_missing_event(self, transaction_hash: str, log_index: int) -> bool:
        """Remove one entry by exact `(tx_hash, log_index)` match.

        Returns:
            bool: True when an entry was removed.
        """

        return self._missing_events.pop(_missing_event_key(transaction_hash, log_index), None) is not None

    def remove_missing_events_by_tx_hash(self, transaction_hash: str) -> int:
        """Remove every entry belonging to one transaction.

        Returns:
            int: Number of removed entries.
        """

        normalized_hash = transaction_hash.strip().lower()
        matching_keys = [key for key in self._missing_events if key[0] == normalized_hash]
        for key in matching_keys:
            del self._missing_events[key]
        return len(matching_keys)

    def prune_events(self, finalized_block: int) -> list[MissingEvent]:
        """Drop entries whose block is at or below the finalized block.

        Args:
            finalized_block: Current finality horizon.

        Returns:
            list[MissingEvent]: Removed entries.

        Raises:
            ValueError: Raised when finalized_block is negative.
        """

        if finalized_block < 0:
            raise ValueError("finalized_block must be >= 0")
        pruned_keys = [
            key for key, event in self._missing_events.items() if event.block_number <= finalized_block
        ]
        return [self._missing_events.pop(key) for key in pruned_keys]

    def clear(self) -> None:
        """Remove every pending entry."""

        self._missing_events.clear()

    def reconcile(
        self,
        indexer_events: Iterable[RawPositionEvent],
        finalized_block: int,
    ) -> SyncStateReconcileResult:
        """Apply confirmation and abandonment rules after a sync fetch.

        Args:
            indexer_events: Events returned by the event-history provider in this run.
            finalized_block: Finality horizon observed in this run.

        Returns:
            SyncStateReconcileResult: Confirmed and abandoned entries.

        Raises:
            ValueError: Raised when finalized_block is negative.
        """

        confirmed: list[MissingEvent] = []
        for indexer_event in indexer_events:
            matched = self._missing_events.pop(
                _missing_event_key(indexer_event.transaction_hash, indexer_event.log_index),
                None,
            )
            if matched is not None:
                confirmed.append(matched)

        abandoned = self.prune_events(finalized_block)
        return SyncStateReconcileResult(confirmed=tuple(confirmed), abandoned=tuple(abandoned))

    def to_json(self) -> dict[str, Any]:
        """Serialize pending entries with big integers as decimal strings."""

        return {"missingEvents": [ledger_missing_event_to_json(event) for event in self.missing_events]}

    @classmethod
    def from_json(
        cls,
        position_id: UUID,
        payload: dict[str, Any] | None,
        last_sync_at: datetime | None = None,
        last_sync_by: str | None = None,
    ) -> PositionSyncState:
        """Deserialize persisted state; a missing payload yields an empty state.

        Raises:
            ValueError: Raised when an entry is malformed.
        """

        entries = (payload or {}).get("missingEvents", [])
        if not isinstance(entries, list):
            raise ValueError("missingEvents must be a JSON array")
        return cls(
            position_id=position_id,
            missing_events=[ledger_missing_event_from_json(entry) for entry in entries],
            last_sync_at=last_sync_at,
            last_sync_by=last_sync_by,
        )


def ledger_missing_event_to_json(event: MissingEvent) -> dict[str, Any]:
    """Serialize one pending entry."""

    payload: dict[str, Any] = {
        "eventType": event.event_type.value,
        "timestamp": event.timestamp.isoformat(),
        "blockNumber": str(event.block_number),
        "transactionIndex": event.transaction_index,
        "logIndex": event.log_index,
        "transactionHash": event.transaction_hash,
        "amount0": str(event.amount0),
        "amount1": str(event.amount1),
    }
    if event.liquidity is not None:
        payload["liquidity"] = str(event.liquidity)
    if event.recipient is not None:
        payload["recipient"] = event.recipient
    return payload


def ledger_missing_event_from_json(payload: dict[str, Any]) -> MissingEvent:
    """Deserialize one pending entry.

    Raises:
        ValueError: Raised when required keys are missing or values are invalid.
    """

    try:
        liquidity_value = payload.get("liquidity")
        return MissingEvent(
            event_type=BlockchainEventType(payload["eventType"]),
            timestamp=datetime.fromisoformat(str(payload["timestamp"])),
            block_number=int(payload["blockNumber"]),
            transaction_index=int(payload["transactionIndex"]),
            log_index=int(payload["logIndex"]),
            transaction_hash=str(payload["transactionHash"]),
            amount0=int(payload.get("amount0", 0)),
            amount1=int(payload.get("amount1", 0)),
            liquidity=None if liquidity_value is None else int(liquidity_value),
            recipient=payload.get("recipient"),
        )
    except KeyError as error:
        raise ValueError(f"missing event payload lacks key={error.args[0]}") from error


def ledger_convert_missing_event_to_raw(event: MissingEvent, chain_id: int, nft_id: int) -> RawPositionEvent:
    """Convert a pending entry to the raw event shape used for replay."""

    return RawPositionEvent(
        event_type=event.event_type,
        token_id=nft_id,
        transaction_hash=event.transaction_hash,
        block_number=event.block_number,
        transaction_index=event.transaction_index,
        log_index=event.log_index,
        block_timestamp=event.timestamp,
        chain_id=chain_id,
        amount0=event.amount0,
        amount1=event.amount1,
        liquidity=event.liquidity,
        recipient=event.recipient,
    )
