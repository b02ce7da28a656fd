"""Chronological ordering and cross-source deduplication of raw events."""

from __future__ import annotations

from typing import Iterable

from clmm_ledger.domain import RawPositionEvent


def ledger_event_sort_key(raw_event: RawPositionEvent) -> tuple[int, int, int]:
    """Return the ascending replay key `(block, tx_index, log_index)`."""

    return raw_event.coordinates.as_sort_key()


def ledger_sort_raw_events(raw_events: Iterable[RawPositionEvent]) -> list[RawPositionEvent]:
    """Return events in ascending blockchain order.

    Args:
        raw_events: Events in any order.

    Returns:
        list[RawPositionEvent]: New list sorted for replay.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return sorted(raw_events, key=ledger_event_sort_key)


def ledger_deduplication_key(raw_event: RawPositionEvent) -> tuple[str, int]:
    """Return the cross-source identity `(tx_hash, log_index)`.

    Hashes compare case-insensitively since indexers and wallets differ in hex casing.
    """

    return (raw_event.transaction_hash.lower(), raw_event.log_index)


def ledger_deduplicate_events(
    indexer_events: Iterable[RawPositionEvent],
    missing_events: Iterable[RawPositionEvent],
) -> list[RawPositionEvent]:
    """Union indexer and client-reported events, keeping the indexer copy on conflict.

    Args:
        indexer_events: Events fetched from the event-history provider.
        missing_events: Client-reported events converted to raw shape.

    Returns:
        list[RawPositionEvent]: Unique events in first-seen order.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    unique_events: dict[tuple[str, int], RawPositionEvent] = {}
    for raw_event in (*indexer_events, *missing_events):
        unique_events.setdefault(ledger_deduplication_key(raw_event), raw_event)
    return list(unique_events.values())


def ledger_merge_event_sources(
    indexer_events: Iterable[RawPositionEvent],
    missing_events: Iterable[RawPositionEvent],
) -> list[RawPositionEvent]:
    """Deduplicate both sources and return the replay-ordered result."""

    return ledger_sort_raw_events(ledger_deduplicate_events(indexer_events, missing_events))

