"""Database service for per-position sync-state persistence."""

from __future__ import annotations

import json
from typing import Any
from uuid import UUID

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from .interfaces import SyncStateRecord, SyncStateRepositoryPort


class SQLAlchemySyncStateService(SyncStateRepositoryPort):
    """SQLAlchemy-backed sync-state store keyed by position."""

    def __init__(self, engine: Engine):
        """Initialize sync-state persistence service.

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

    def db_sync_state_load(self, position_id: UUID) -> SyncStateRecord | None:
        """Fetch the stored sync state of one position.

        Args:
            position_id: Position identifier.

        Returns:
            SyncStateRecord | None: Stored row or None.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(
                        "SELECT position_id, state, last_sync_at, last_sync_by "
                        "FROM position_sync_state "
                        "WHERE position_id = :position_id"
                    ),
                    {"position_id": position_id},
                ).mappings().first()
                if row is None:
                    return None
                return self._map_sync_state_record(row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to load position sync state") from error

    def db_sync_state_save(self, position_id: UUID, state: dict[str, Any], sync_by: str) -> SyncStateRecord:
        """Insert or replace the sync state of one position.

        Args:
            position_id: Position identifier.
            state: JSON state payload.
            sync_by: Label of the trigger saving the state.

        Returns:
            SyncStateRecord: Stored row.

        Raises:
            ValueError: Raised when sync_by is blank.
            RuntimeError: Raised when persistence fails.
        """

        normalized_sync_by = sync_by.strip()
        if not normalized_sync_by:
            raise ValueError("sync_by must not be blank")

        try:
            with self._engine.begin() as connection:
                row = connection.execute(
                    text(
                        "INSERT INTO position_sync_state (position_id, state, last_sync_at, last_sync_by) "
                        "VALUES (:position_id, CAST(:state AS jsonb), now(), :sync_by) "
                        "ON CONFLICT (position_id) DO UPDATE SET "
                        "state = EXCLUDED.state, "
                        "last_sync_at = EXCLUDED.last_sync_at, "
                        "last_sync_by = EXCLUDED.last_sync_by "
                        "RETURNING position_id, state, last_sync_at, last_sync_by"
                    ),
                    {"position_id": position_id, "state": json.dumps(state), "sync_by": normalized_sync_by},
                ).mappings().one()
                return self._map_sync_state_record(row)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to save position sync state") from error

    def _map_sync_state_record(self, row: Any) -> SyncStateRecord:
        """Map SQLAlchemy row mapping to a typed sync-state record.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            SyncStateRecord: Typed row.

        Raises:
            TypeError: Raised when the state column is not a JSON object.
        """

        state_value = row["state"]
        if isinstance(state_value, str):
            state_value = json.loads(state_value)
        if state_value is None:
            state_value = {}
        if not isinstance(state_value, dict):
            raise TypeError("position_sync_state.state must be a JSON object")

        return SyncStateRecord(
            position_id=row["position_id"],
            state=state_value,
            last_sync_at=row["last_sync_at"],
            last_sync_by=row["last_sync_by"],
        )
