"""Adapter layer package for indexer and chain RPC integrations."""

from .errors import (
	ProviderAdapterError,
	ProviderConnectionError,
	ProviderRateLimitError,
	ProviderResponseError,
	ProviderRpcError,
	ProviderTimeoutError,
)
from .etherscan import EVENT_TOPICS, EtherscanEventHistoryAdapter
from .retry import AdapterRetryStrategy
from .rpc import EvmRpcAdapter

__all__ = [
	"ProviderAdapterError",
	"ProviderConnectionError",
	"ProviderRateLimitError",
	"ProviderResponseError",
	"ProviderRpcError",
	"ProviderTimeoutError",
	"EVENT_TOPICS",
	"EtherscanEventHistoryAdapter",
	"AdapterRetryStrategy",
	"EvmRpcAdapter",
]
