"""Domain contracts shared across ledger, persistence, and job layers."""

from .chains import (
	NFPM_ADDRESSES,
	NFPM_DEPLOYMENT_BLOCKS,
	SupportedChainId,
	domain_deployment_block,
	domain_position_manager_address,
	domain_require_supported_chain,
)
from .errors import (
	DivisionError,
	InvalidStateError,
	LedgerError,
	NotFoundError,
	OrderingViolationError,
	StateInvariantError,
	SyncRunAlreadyActiveError,
	TransientProviderError,
	UnsupportedChainError,
)
from .events import (
	BlockchainEventType,
	EventCoordinates,
	LedgerEventInput,
	LedgerEventRecord,
	LedgerEventType,
	LedgerReward,
	MissingEvent,
	PoolMetadata,
	PreviousEventState,
	RawPositionEvent,
	domain_validate_event_order,
)
from .models import HealthStatus
from .prices import HistoricPoolPrice, PoolFeeGrowthSnapshot, PoolReference, PoolSlot0Snapshot
from .positions import PositionConfig, PositionOnChainState, PositionRecord, PositionRollups
from .timeline import domain_build_failure_details, domain_build_stage_event

__all__ = [
	"NFPM_ADDRESSES",
	"NFPM_DEPLOYMENT_BLOCKS",
	"SupportedChainId",
	"domain_deployment_block",
	"domain_position_manager_address",
	"domain_require_supported_chain",
	"DivisionError",
	"InvalidStateError",
	"LedgerError",
	"NotFoundError",
	"OrderingViolationError",
	"StateInvariantError",
	"SyncRunAlreadyActiveError",
	"TransientProviderError",
	"UnsupportedChainError",
	"BlockchainEventType",
	"EventCoordinates",
	"LedgerEventInput",
	"LedgerEventRecord",
	"LedgerEventType",
	"LedgerReward",
	"MissingEvent",
	"PoolMetadata",
	"PreviousEventState",
	"RawPositionEvent",
	"domain_validate_event_order",
	"HealthStatus",
	"HistoricPoolPrice",
	"PoolFeeGrowthSnapshot",
	"PoolReference",
	"PoolSlot0Snapshot",
	"PositionConfig",
	"PositionOnChainState",
	"PositionRecord",
	"PositionRollups",
	"domain_build_failure_details",
	"domain_build_stage_event",
]
