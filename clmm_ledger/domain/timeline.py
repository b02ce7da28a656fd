"""Structured stage timeline helpers persisted as run diagnostics."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable


def domain_build_stage_event(
    stage: str,
    status: str,
    details: dict[str, Any] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, object]:
    """Build one structured timeline event payload.

    Args:
        stage: Stage name, for example `fetching` or `replaying`.
        status: Stage status marker (`started`, `completed`, `failed`).
        details: Optional JSON-serializable details object.
        clock: Optional UTC clock override used by deterministic tests.

    Returns:
        dict[str, object]: Structured timeline event.

    Raises:
        ValueError: Raised when stage or status is blank.
    """

    if not stage.strip():
        raise ValueError("stage must not be blank")
    if not status.strip():
        raise ValueError("status must not be blank")

    now_utc = clock() if clock is not None else datetime.now(timezone.utc)
    event_payload: dict[str, object] = {
        "stage": stage,
        "status": status,
        "at_utc": now_utc.isoformat(),
    }
    if details is not None:
        event_payload["details"] = details
    return event_payload


def domain_build_failure_details(error: BaseException) -> dict[str, object]:
    """Build the details object attached to a failed timeline stage.

    Args:
        error: Exception that aborted the stage.

    Returns:
        dict[str, object]: Error type, code, and message.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "error_type": type(error).__name__,
        "error_code": getattr(error, "error_code", "UNEXPECTED_ERROR"),
        "error_message": str(error),
        "failed_at_utc": datetime.now(timezone.utc).isoformat(),
    }
