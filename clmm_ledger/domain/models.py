"""Typed domain models shared across runtime layers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class HealthStatus:
    """Health payload returned by connectivity checks.

    Attributes:
        status: Overall status text.
        detail: Additional message suitable for operational diagnostics.
    """

    status: str
    detail: str
