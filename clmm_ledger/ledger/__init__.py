"""Ledger layer package for event processing, ordering, and sync-state rules."""

from .calculations import (
	MAX_SQRT_RATIO,
	MAX_TICK,
	MIN_SQRT_RATIO,
	MIN_TICK,
	Q96,
	Q128,
	Q192,
	FeePrincipalSplit,
	ledger_calculate_amounts_for_liquidity,
	ledger_calculate_fee_growth_inside,
	ledger_calculate_fees_since_checkpoint,
	ledger_calculate_pool_price_in_quote,
	ledger_calculate_position_value,
	ledger_calculate_proportional_cost_basis,
	ledger_calculate_token_value_in_quote,
	ledger_get_sqrt_ratio_at_tick,
	ledger_separate_fees_from_principal,
)
from .event_builder import ledger_build_event_input, ledger_generate_input_hash, ledger_map_event_type
from .interfaces import (
	AprPeriodPort,
	EventHistoryPort,
	FinalityPort,
	PoolPricePort,
	PoolStateReaderPort,
	PositionChainReaderPort,
)
from .ordering import (
	ledger_deduplicate_events,
	ledger_deduplication_key,
	ledger_event_sort_key,
	ledger_merge_event_sources,
	ledger_sort_raw_events,
)
from .pool_price import CachedPoolPriceService
from .position_summary import (
	LedgerSummary,
	ledger_calculate_accrued_fees,
	ledger_calculate_unclaimed_fees,
	ledger_is_position_closed,
	ledger_summarize_events,
)
from .processors import (
	ProcessedEventResult,
	ledger_process_collect,
	ledger_process_decrease,
	ledger_process_event,
	ledger_process_increase,
)
from .state import INITIAL_EVENT_STATE, ledger_build_initial_state, ledger_state_from_event
from .sync_state import (
	DEFAULT_SYNC_BY,
	PositionSyncState,
	SyncStateReconcileResult,
	ledger_convert_missing_event_to_raw,
	ledger_missing_event_from_json,
	ledger_missing_event_to_json,
)

__all__ = [
	"MAX_SQRT_RATIO",
	"MAX_TICK",
	"MIN_SQRT_RATIO",
	"MIN_TICK",
	"Q96",
	"Q128",
	"Q192",
	"FeePrincipalSplit",
	"ledger_calculate_amounts_for_liquidity",
	"ledger_calculate_fee_growth_inside",
	"ledger_calculate_fees_since_checkpoint",
	"ledger_calculate_pool_price_in_quote",
	"ledger_calculate_position_value",
	"ledger_calculate_proportional_cost_basis",
	"ledger_calculate_token_value_in_quote",
	"ledger_get_sqrt_ratio_at_tick",
	"ledger_separate_fees_from_principal",
	"ledger_build_event_input",
	"ledger_generate_input_hash",
	"ledger_map_event_type",
	"AprPeriodPort",
	"EventHistoryPort",
	"FinalityPort",
	"PoolPricePort",
	"PoolStateReaderPort",
	"PositionChainReaderPort",
	"ledger_deduplicate_events",
	"ledger_deduplication_key",
	"ledger_event_sort_key",
	"ledger_merge_event_sources",
	"ledger_sort_raw_events",
	"CachedPoolPriceService",
	"LedgerSummary",
	"ledger_calculate_accrued_fees",
	"ledger_calculate_unclaimed_fees",
	"ledger_is_position_closed",
	"ledger_summarize_events",
	"ProcessedEventResult",
	"ledger_process_collect",
	"ledger_process_decrease",
	"ledger_process_event",
	"ledger_process_increase",
	"INITIAL_EVENT_STATE",
	"ledger_build_initial_state",
	"ledger_state_from_event",
	"DEFAULT_SYNC_BY",
	"PositionSyncState",
	"SyncStateReconcileResult",
	"ledger_convert_missing_event_to_raw",
	"ledger_missing_event_from_json",
	"ledger_missing_event_to_json",
]
