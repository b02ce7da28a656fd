"""Project-native typed exceptions for indexer and RPC adapter failures."""

from __future__ import annotations

from clmm_ledger.domain import TransientProviderError


class ProviderAdapterError(Exception):
    """Base exception for adapter-level provider failures.

    Attributes:
        provider_name: Upstream provider label.
        status_code: Optional HTTP status or JSON-RPC error code.
    """

    def __init__(self, message: str, provider_name: str, status_code: int | None = None):
        super().__init__(message)
        self.provider_name = provider_name
        self.status_code = status_code


class ProviderConnectionError(ProviderAdapterError, TransientProviderError):
    """Transport-level failure that may succeed when retried."""

    error_code = "PROVIDER_CONNECTION"


class ProviderTimeoutError(ProviderConnectionError, TimeoutError):
    """Request exceeded the configured timeout."""

    error_code = "PROVIDER_TIMEOUT"


class ProviderRateLimitError(ProviderConnectionError):
    """Provider throttled the request."""

    error_code = "PROVIDER_RATE_LIMIT"


class ProviderRpcError(ProviderConnectionError):
    """JSON-RPC error object returned, for example a pruned historic state read."""

    error_code = "PROVIDER_RPC_ERROR"


class ProviderResponseError(ProviderAdapterError, ValueError):
    """Response violated the expected payload contract. Not retried."""

    error_code = "PROVIDER_RESPONSE"
