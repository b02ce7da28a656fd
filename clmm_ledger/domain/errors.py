"""Project-native typed exceptions for ledger processing and reconciliation failures."""

from __future__ import annotations


class LedgerError(Exception):
    """Base exception for ledger-level failures.

    Attributes:
        error_code: Stable machine-readable failure code used in run diagnostics.
    """

    error_code = "LEDGER_ERROR"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code


class NotFoundError(LedgerError, LookupError):
    """Position, pool, or protocol record is missing. Fails fast without retry."""

    error_code = "NOT_FOUND"


class UnsupportedChainError(LedgerError, ValueError):
    """Chain identifier has no configured deployment. Fails fast without retry."""

    error_code = "UNSUPPORTED_CHAIN"

    def __init__(self, chain_id: int, message: str | None = None):
        super().__init__(message or f"chain_id={chain_id} is not supported")
        self.chain_id = chain_id


class OrderingViolationError(LedgerError, ValueError):
    """New ledger event precedes the last persisted event of the same position."""

    error_code = "ORDERING_VIOLATION"


class StateInvariantError(LedgerError, ValueError):
    """Derived accounting state would become inconsistent with upstream data."""

    error_code = "STATE_INVARIANT"


class InvalidStateError(StateInvariantError):
    """Negative liquidity, negative amounts, or over-withdrawal detected."""

    error_code = "INVALID_STATE"


class DivisionError(StateInvariantError, ZeroDivisionError):
    """Proportional or price computation attempted with a zero denominator."""

    error_code = "DIVISION_BY_ZERO"


class TransientProviderError(LedgerError, ConnectionError):
    """RPC or indexer API failure that may succeed when retried."""

    error_code = "TRANSIENT_PROVIDER"


class SyncRunAlreadyActiveError(LedgerError, RuntimeError):
    """Raised when a sync trigger is rejected because a run for the position is active."""

    error_code = "SYNC_ALREADY_ACTIVE"
