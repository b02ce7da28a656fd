"""Regression tests for pending client-reported event tracking."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from clmm_ledger.domain import BlockchainEventType, MissingEvent, RawPositionEvent
from clmm_ledger.ledger import (
    PositionSyncState,
    ledger_convert_missing_event_to_raw,
    ledger_missing_event_from_json,
    ledger_missing_event_to_json,
)


def _build_missing_event(block_number: int, transaction_hash: str, log_index: int = 0) -> MissingEvent:
    """Build one client-reported increase event.

    Args:
        block_number: Block containing the log.
        transaction_hash: Transaction hash hex string.
        log_index: Log position inside the block.

    Returns:
        MissingEvent: Deterministic pending entry.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return MissingEvent(
        event_type=BlockchainEventType.INCREASE_LIQUIDITY,
        timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        block_number=block_number,
        transaction_index=4,
        log_index=log_index,
        transaction_hash=transaction_hash,
        amount0=2**200,
        amount1=5,
        liquidity=2**130,
    )


def _build_indexer_event(block_number: int, transaction_hash: str, log_index: int = 0) -> RawPositionEvent:
    """Build one indexer event sharing identity fields with pending entries.

    Args:
        block_number: Block containing the log.
        transaction_hash: Transaction hash hex string.
        log_index: Log position inside the block.

    Returns:
        RawPositionEvent: Deterministic raw event.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return RawPositionEvent(
        event_type=BlockchainEventType.INCREASE_LIQUIDITY,
        token_id=7,
        transaction_hash=transaction_hash,
        block_number=block_number,
        transaction_index=4,
        log_index=log_index,
        block_timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        chain_id=1,
        amount0=1,
        amount1=1,
        liquidity=1,
    )


def test_ledger_sync_state_reconcile_confirms_matches_and_abandons_finalized_entries() -> None:
    """Confirm indexer matches and drop unmatched entries at or below finality.

    Returns:
        None: Assertions validate confirmation and abandonment rules.

    Raises:
        AssertionError: Raised when pending entries leave state incorrectly.
    """

    sync_state = PositionSyncState(
        position_id=uuid4(),
        missing_events=[
            _build_missing_event(100, "0xaa"),
            _build_missing_event(150, "0xbb"),
            _build_missing_event(300, "0xcc"),
        ],
    )

    result = sync_state.reconcile(indexer_events=[_build_indexer_event(100, "0xAA")], finalized_block=150)

    assert [event.transaction_hash for event in result.confirmed] == ["0xaa"]
    assert [event.transaction_hash for event in result.abandoned] == ["0xbb"]
    assert [event.transaction_hash for event in sync_state.missing_events] == ["0xcc"]


def test_ledger_sync_state_keys_entries_by_hash_and_log_index() -> None:
    """Replace entries with the same identity and keep separate logs apart.

    Returns:
        None: Assertions validate pending-entry identity.

    Raises:
        AssertionError: Raised when identity handling diverges.
    """

    sync_state = PositionSyncState(position_id=uuid4())
    sync_state.add_missing_event(_build_missing_event(100, "0xaa", log_index=1))
    sync_state.add_missing_event(_build_missing_event(101, "0xAA", log_index=1))
    sync_state.add_missing_event(_build_missing_event(100, "0xaa", log_index=2))

    assert len(sync_state.missing_events) == 2
    assert sync_state.remove_missing_event("0xaa", 2) is True
    assert sync_state.remove_missing_event("0xaa", 2) is False
    assert sync_state.remove_missing_events_by_tx_hash("0xAa") == 1
    assert sync_state.has_missing_events() is False


def test_ledger_sync_state_rejects_blank_hash_and_negative_finality() -> None:
    """Reject blank transaction hashes and negative finality horizons.

    Returns:
        None: Assertions validate input validation.

    Raises:
        AssertionError: Raised when invalid inputs are accepted.
    """

    sync_state = PositionSyncState(position_id=uuid4())

    with pytest.raises(ValueError):
        sync_state.add_missing_event(_build_missing_event(100, "  "))
    with pytest.raises(ValueError):
        sync_state.prune_events(-1)


def test_ledger_sync_state_json_preserves_big_integers_as_strings() -> None:
    """Serialize amounts as decimal strings and restore them exactly.

    Returns:
        None: Assertions validate JSON shape and exact restoration.

    Raises:
        AssertionError: Raised when serialized values lose precision.
    """

    position_id = uuid4()
    pending_event = _build_missing_event(100, "0xaa")
    sync_state = PositionSyncState(position_id=position_id, missing_events=[pending_event])

    payload = sync_state.to_json()
    restored_state = PositionSyncState.from_json(position_id=position_id, payload=payload)

    assert payload["missingEvents"][0]["amount0"] == str(2**200)
    assert payload["missingEvents"][0]["liquidity"] == str(2**130)
    assert restored_state.missing_events == (pending_event,)
    assert PositionSyncState.from_json(position_id=position_id, payload=None).missing_events == ()


def test_ledger_missing_event_json_omits_absent_optional_fields() -> None:
    """Omit liquidity and recipient when they are not set.

    Returns:
        None: Assertions validate optional-field serialization.

    Raises:
        AssertionError: Raised when optional fields are emitted or parsing fails.
    """

    collect_event = MissingEvent(
        event_type=BlockchainEventType.COLLECT,
        timestamp=datetime(2026, 3, 1, tzinfo=timezone.utc),
        block_number=5,
        transaction_index=0,
        log_index=1,
        transaction_hash="0xdd",
        amount0=3,
        amount1=4,
    )

    payload = ledger_missing_event_to_json(collect_event)

    assert "liquidity" not in payload
    assert "recipient" not in payload
    assert ledger_missing_event_from_json(payload) == collect_event
    with pytest.raises(ValueError):
        ledger_missing_event_from_json({"eventType": "COLLECT"})


def test_ledger_convert_missing_event_to_raw_copies_position_identity() -> None:
    """Convert a pending entry into the raw replay shape of one position.

    Returns:
        None: Assertions validate converted fields.

    Raises:
        AssertionError: Raised when conversion diverges.
    """

    raw_event = ledger_convert_missing_event_to_raw(_build_missing_event(100, "0xaa", 3), chain_id=10, nft_id=55)

    assert raw_event.chain_id == 10
    assert raw_event.token_id == 55
    assert raw_event.coordinates.as_sort_key() == (100, 4, 3)
    assert raw_event.liquidity == 2**130
