"""Database-backed trigger queue for downstream APR period recomputation."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError


class SQLAlchemyAprRecomputeQueueService:
    """Record one pending APR recompute request per position.

    Repeated triggers before the aggregator consumes a request only refresh the
    pending row's timestamp.
    """

    def __init__(self, engine: Engine):
        """Initialize APR recompute queue service.

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

    def recompute_periods(self, position_id: UUID) -> None:
        """Enqueue an APR recompute request for one position.

        Args:
            position_id: Position identifier.

        Returns:
            None: Request row is written as a side effect.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text(
                        "INSERT INTO apr_recompute_request (position_id, requested_at_utc) "
                        "VALUES (:position_id, now()) "
                        "ON CONFLICT (position_id) WHERE processed_at_utc IS NULL "
                        "DO UPDATE SET requested_at_utc = EXCLUDED.requested_at_utc"
                    ),
                    {"position_id": position_id},
                )
        except SQLAlchemyError as error:
            raise RuntimeError("failed to enqueue APR recompute request") from error
