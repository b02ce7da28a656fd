"""Runtime bootstrap wiring for startup validation and dependency assembly."""

from clmm_ledger.adapters import EtherscanEventHistoryAdapter, EvmRpcAdapter
from clmm_ledger.config import AppSettings, config_load_settings
from clmm_ledger.db import (
    SQLAlchemyAprRecomputeQueueService,
    SQLAlchemyDatabaseHealthService,
    SQLAlchemyLedgerEventService,
    SQLAlchemyPoolPriceService,
    SQLAlchemyPositionService,
    SQLAlchemySyncRunService,
    SQLAlchemySyncStateService,
    db_create_engine,
)
from clmm_ledger.jobs import LedgerSyncOrchestrator, PositionReconciler
from clmm_ledger.ledger import CachedPoolPriceService


def bootstrap_create_ledger_sync_orchestrator(settings: AppSettings | None = None) -> LedgerSyncOrchestrator:
    """Build the ledger sync orchestrator with database and provider adapters.

    Args:
        settings: Optional preloaded settings; loaded from the environment when omitted.

    Returns:
        LedgerSyncOrchestrator: Fully wired orchestrator instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    engine = db_create_engine(database_url=resolved_settings.database_url)
    rpc_adapter = _bootstrap_create_rpc_adapter(resolved_settings)
    return LedgerSyncOrchestrator(
        ledger_repository=SQLAlchemyLedgerEventService(engine=engine),
        sync_state_repository=SQLAlchemySyncStateService(engine=engine),
        position_repository=SQLAlchemyPositionService(engine=engine),
        event_history=EtherscanEventHistoryAdapter(
            api_key=resolved_settings.etherscan_api_key,
            base_url=resolved_settings.etherscan_base_url,
            page_size=resolved_settings.etherscan_page_size,
            retry_attempts=resolved_settings.http_retry_attempts,
            retry_backoff_base_seconds=resolved_settings.http_backoff_base_seconds,
            retry_max_backoff_seconds=resolved_settings.http_backoff_max_seconds,
            request_timeout_seconds=resolved_settings.http_timeout_seconds,
        ),
        finality=rpc_adapter,
        pool_price=CachedPoolPriceService(
            repository=SQLAlchemyPoolPriceService(engine=engine),
            pool_state_reader=rpc_adapter,
            fallback_to_latest=resolved_settings.price_fallback_to_latest,
        ),
        apr_port=SQLAlchemyAprRecomputeQueueService(engine=engine),
        sync_run_repository=SQLAlchemySyncRunService(engine=engine),
    )


def bootstrap_create_position_reconciler(settings: AppSettings | None = None) -> PositionReconciler:
    """Build the position reconciler and the sync orchestrator it delegates to.

    Args:
        settings: Optional preloaded settings; loaded from the environment when omitted.

    Returns:
        PositionReconciler: Fully wired reconciler instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    engine = db_create_engine(database_url=resolved_settings.database_url)
    rpc_adapter = _bootstrap_create_rpc_adapter(resolved_settings)
    return PositionReconciler(
        position_repository=SQLAlchemyPositionService(engine=engine),
        ledger_repository=SQLAlchemyLedgerEventService(engine=engine),
        position_reader=rpc_adapter,
        pool_state_reader=rpc_adapter,
        ledger_sync=bootstrap_create_ledger_sync_orchestrator(settings=resolved_settings),
    )


def bootstrap_create_sync_run_repository(settings: AppSettings | None = None) -> SQLAlchemySyncRunService:
    """Build the sync run repository used by diagnostics commands."""

    resolved_settings = settings or config_load_settings()
    return SQLAlchemySyncRunService(engine=db_create_engine(database_url=resolved_settings.database_url))


def bootstrap_create_database_health_service(settings: AppSettings | None = None) -> SQLAlchemyDatabaseHealthService:
    """Build the database health service used by the `check-db` command."""

    resolved_settings = settings or config_load_settings()
    return SQLAlchemyDatabaseHealthService(engine=db_create_engine(database_url=resolved_settings.database_url))


def _bootstrap_create_rpc_adapter(settings: AppSettings) -> EvmRpcAdapter:
    return EvmRpcAdapter(
        rpc_urls=settings.rpc_urls,
        retry_attempts=settings.http_retry_attempts,
        retry_backoff_base_seconds=settings.http_backoff_base_seconds,
        retry_max_backoff_seconds=settings.http_backoff_max_seconds,
        request_timeout_seconds=settings.http_timeout_seconds,
    )
