"""Running-state derivation from the latest persisted ledger event."""

from __future__ import annotations

from uuid import UUID

from clmm_ledger.domain import LedgerEventInput, LedgerEventRecord, PreviousEventState

INITIAL_EVENT_STATE = PreviousEventState()


def ledger_state_from_event(event: LedgerEventInput) -> PreviousEventState:
    """Extract running totals stored on one ledger event."""

    return PreviousEventState(
        uncollected_principal0=event.uncollected_principal0_after,
        uncollected_principal1=event.uncollected_principal1_after,
        liquidity=event.liquidity_after,
        cost_basis=event.cost_basis_after,
        pnl=event.pnl_after,
    )


def ledger_build_initial_state(
    last_record: LedgerEventRecord | None,
) -> tuple[PreviousEventState, UUID | None]:
    """Return running state and back-reference for the next event to append.

    The state comes from the last row in coordinate order, never from walking
    `previous_id` links.

    Args:
        last_record: Latest persisted event of the position, if any.

    Returns:
        tuple[PreviousEventState, UUID | None]: Running state and previous event id.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if last_record is None:
        return INITIAL_EVENT_STATE, None
    return ledger_state_from_event(last_record.event), last_record.ledger_event_id
