"""Job layer package for ledger sync and position reconciliation workflows."""

from .interfaces import LedgerSyncPort, LedgerSyncResult, PositionRefreshResult, SyncStage
from .ledger_sync import MISSING_EVENT_SYNC_BY, LedgerSyncOrchestrator
from .position_refresh import PositionReconciler

__all__ = [
	"LedgerSyncPort",
	"LedgerSyncResult",
	"PositionRefreshResult",
	"SyncStage",
	"MISSING_EVENT_SYNC_BY",
	"LedgerSyncOrchestrator",
	"PositionReconciler",
]
