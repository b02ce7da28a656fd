"""Database connectivity check used by the `check-db` command."""

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from clmm_ledger.domain import HealthStatus

from .interfaces import DatabaseHealthPort


class SQLAlchemyDatabaseHealthService(DatabaseHealthPort):
    """Database health service backed by a lightweight ledger table probe."""

    def __init__(self, engine: Engine):
        """Initialize database health service.

        Args:
            engine: SQLAlchemy engine used for connectivity checks.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_connection_label(self) -> str:
        """Return the target database URL with the password hidden."""

        return self._engine.url.render_as_string(hide_password=True)

    def db_check_health(self) -> HealthStatus:
        """Verify connectivity and that the ledger schema is migrated.

        Returns:
            HealthStatus: Health payload with ledger event count detail.

        Raises:
            ConnectionError: Raised when the database or ledger table is unreachable.
        """

        try:
            with self._engine.connect() as connection:
                event_count = connection.execute(text("SELECT count(*) FROM position_ledger_event")).scalar_one()
            return HealthStatus(status="ok", detail=f"ledger reachable with {event_count} events")
        except SQLAlchemyError as error:
            raise ConnectionError("database connectivity check failed") from error
