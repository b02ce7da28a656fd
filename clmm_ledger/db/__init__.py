"""Database layer package for all SQL and persistence boundaries."""

from .apr_recompute import SQLAlchemyAprRecomputeQueueService
from .health import SQLAlchemyDatabaseHealthService
from .interfaces import (
	DatabaseHealthPort,
	LedgerEventInsertResult,
	LedgerEventRepositoryPort,
	PoolPriceRepositoryPort,
	PositionRepositoryPort,
	SyncRunOutcome,
	SyncRunRecord,
	SyncRunRepositoryPort,
	SyncRunState,
	SyncStateRecord,
	SyncStateRepositoryPort,
)
from .ledger_events import SQLAlchemyLedgerEventService
from .pool_prices import SQLAlchemyPoolPriceService
from .positions import SQLAlchemyPositionService
from .session import db_create_engine
from .sync_run import SQLAlchemySyncRunService
from .sync_state import SQLAlchemySyncStateService

__all__ = [
	"DatabaseHealthPort",
	"LedgerEventInsertResult",
	"LedgerEventRepositoryPort",
	"PoolPriceRepositoryPort",
	"PositionRepositoryPort",
	"SyncRunOutcome",
	"SyncRunRecord",
	"SyncRunRepositoryPort",
	"SyncRunState",
	"SyncStateRecord",
	"SyncStateRepositoryPort",
	"SQLAlchemyAprRecomputeQueueService",
	"SQLAlchemyDatabaseHealthService",
	"SQLAlchemyLedgerEventService",
	"SQLAlchemyPoolPriceService",
	"SQLAlchemyPositionService",
	"SQLAlchemySyncRunService",
	"SQLAlchemySyncStateService",
	"db_create_engine",
]
