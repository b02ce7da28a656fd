"""Etherscan v2 getLogs adapter for position manager event history."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Any, Callable, Final

import eth_abi
import httpx
from eth_abi.exceptions import DecodingError
from eth_utils import event_abi_to_log_topic
from web3 import Web3
from web3._utils.events import get_event_data
from web3.exceptions import MismatchedABI

from clmm_ledger.domain import (
    BlockchainEventType,
    RawPositionEvent,
    domain_deployment_block,
    domain_position_manager_address,
)

from .abi import POSITION_EVENT_ABIS
from .errors import (
    ProviderConnectionError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from .retry import AdapterRetryStrategy

logger = logging.getLogger(__name__)

EVENT_TOPICS: Final[dict[BlockchainEventType, str]] = {
    event_type: Web3.to_hex(event_abi_to_log_topic(event_abi)) for event_type, event_abi in POSITION_EVENT_ABIS.items()
}


class EtherscanEventHistoryAdapter:
    """Fetch IncreaseLiquidity, DecreaseLiquidity, and Collect logs for one position NFT.

    One pooled `httpx.Client` is reused across requests until `adapter_close` is called.
    Etherscan serves at most `_RESULT_WINDOW` logs per query across all pages, so longer
    histories are walked as consecutive block windows.
    """

    _PROVIDER_NAME: Final[str] = "etherscan"
    _USER_AGENT: Final[str] = "clmm-position-ledger/0.1"
    _NO_RECORDS_MESSAGE: Final[str] = "No records found"
    _RATE_LIMIT_MARKERS: Final[tuple[str, ...]] = ("rate limit", "Max calls per sec")
    _RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
    _RESULT_WINDOW: Final[int] = 10_000

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.etherscan.io/v2/api",
        page_size: int = 1000,
        retry_attempts: int = 4,
        retry_backoff_base_seconds: float = 1.0,
        retry_max_backoff_seconds: float = 30.0,
        jitter_min_multiplier: float = 0.5,
        jitter_max_multiplier: float = 1.5,
        random_unit_interval_provider: Callable[[], float] | None = None,
        request_timeout_seconds: float = 30.0,
    ):
        """Initialize the Etherscan adapter.

        Args:
            api_key: Etherscan API key.
            base_url: Etherscan v2 multichain endpoint.
            page_size: Logs per page, capped by the provider at 1000.
            retry_attempts: Attempts per HTTP request.
            retry_backoff_base_seconds: Base retry delay used by exponential backoff.
            retry_max_backoff_seconds: Maximum retry delay cap before applying jitter.
            jitter_min_multiplier: Minimum jitter multiplier for computed retry delay.
            jitter_max_multiplier: Maximum jitter multiplier for computed retry delay.
            random_unit_interval_provider: Optional provider returning random values in [0.0, 1.0].
            request_timeout_seconds: HTTP request timeout in seconds.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when required config values are invalid.
        """

        normalized_api_key = api_key.strip()
        normalized_base_url = base_url.strip()
        if not normalized_api_key:
            raise ValueError("api_key must not be blank")
        if not normalized_base_url:
            raise ValueError("base_url must not be blank")
        if page_size < 1 or page_size > 1000:
            raise ValueError("page_size must be between 1 and 1000")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._api_key = normalized_api_key
        self._base_url = normalized_base_url
        self._page_size = page_size
        self._request_timeout_seconds = request_timeout_seconds
        self._retry_strategy = AdapterRetryStrategy(
            retry_attempts=retry_attempts,
            backoff_base_seconds=retry_backoff_base_seconds,
            max_backoff_seconds=retry_max_backoff_seconds,
            jitter_min_multiplier=jitter_min_multiplier,
            jitter_max_multiplier=jitter_max_multiplier,
            random_unit_interval_provider=random_unit_interval_provider or random.random,
        )
        self._client: httpx.Client | None = None
        self._abi_codec = Web3().codec

    def adapter_source_name(self) -> str:
        """Return stable adapter source label."""

        return "etherscan_v2_logs"

    def adapter_close(self) -> None:
        """Close the pooled HTTP client if one was created."""

        if self._client is not None:
            self._client.close()
            self._client = None

    def adapter_fetch_position_events(
        self,
        chain_id: int,
        nft_id: int,
        from_block: int | None = None,
        to_block: int | None = None,
    ) -> list[RawPositionEvent]:
        """Fetch all position manager logs for one NFT inside a block range.

        Args:
            chain_id: EVM chain identifier.
            nft_id: Position NFT identifier.
            from_block: Inclusive lower bound; defaults to the deployment block.
            to_block: Inclusive upper bound; `None` means latest.

        Returns:
            list[RawPositionEvent]: Decoded events sorted by block coordinates.

        Raises:
            UnsupportedChainError: Raised when the chain has no deployment.
            ProviderConnectionError: Raised when the provider stays unavailable after retries.
            ProviderResponseError: Raised when the provider returns malformed payloads.
        """

        if nft_id < 0:
            raise ValueError("nft_id must be >= 0")
        position_manager_address = domain_position_manager_address(chain_id)
        resolved_from_block = domain_deployment_block(chain_id) if from_block is None else from_block
        if to_block is not None and to_block < resolved_from_block:
            return []

        token_topic = Web3.to_hex(eth_abi.encode(["uint256"], [nft_id]))
        events: list[RawPositionEvent] = []
        for event_type, topic0 in EVENT_TOPICS.items():
            logs = self._adapter_fetch_logs(
                chain_id=chain_id,
                address=position_manager_address,
                topic0=topic0,
                token_topic=token_topic,
                from_block=resolved_from_block,
                to_block=to_block,
            )
            events.extend(
                self._adapter_decode_log(log_entry, event_type=event_type, chain_id=chain_id, nft_id=nft_id)
                for log_entry in logs
            )

        logger.debug(
            "fetched %d position logs chain_id=%s nft_id=%s from_block=%s to_block=%s",
            len(events),
            chain_id,
            nft_id,
            resolved_from_block,
            to_block,
        )
        return sorted(events, key=lambda event: event.coordinates.as_sort_key())

    def _adapter_fetch_logs(
        self,
        chain_id: int,
        address: str,
        topic0: str,
        token_topic: str,
        from_block: int,
        to_block: int | None,
    ) -> list[dict[str, Any]]:
        """Fetch every page of logs for one topic pair.

        When the pages of one query reach the result window, logs of the window's last
        block are dropped and the query restarts at that block, so a block's logs are
        never split across windows.

        Raises:
            ProviderResponseError: Raised when a single block holds more logs than the result window.
        """

        collected_logs: list[dict[str, Any]] = []
        window_from_block = from_block
        page = 1
        while True:
            query_parameters = {
                "chainid": str(chain_id),
                "module": "logs",
                "action": "getLogs",
                "address": address,
                "topic0": topic0,
                "topic1": token_topic,
                "topic0_1_opr": "and",
                "fromBlock": str(window_from_block),
                "toBlock": "latest" if to_block is None else str(to_block),
                "page": str(page),
                "offset": str(self._page_size),
                "apikey": self._api_key,
            }
            page_logs = self._retry_strategy.strategy_execute(
                lambda parameters=query_parameters: self._adapter_request_logs(parameters)
            )
            collected_logs.extend(page_logs)
            if len(page_logs) < self._page_size:
                return collected_logs
            if page * self._page_size < self._RESULT_WINDOW:
                page += 1
                continue

            last_block = self._adapter_parse_quantity(page_logs[-1].get("blockNumber"), "blockNumber")
            if last_block <= window_from_block:
                raise ProviderResponseError(
                    f"block {last_block} holds more than {self._RESULT_WINDOW} logs for topic {topic0}",
                    provider_name=self._PROVIDER_NAME,
                )
            collected_logs = [
                log_entry
                for log_entry in collected_logs
                if self._adapter_parse_quantity(log_entry.get("blockNumber"), "blockNumber") < last_block
            ]
            logger.debug(
                "log result window full topic0=%s from_block=%s restarting at block=%s",
                topic0,
                window_from_block,
                last_block,
            )
            window_from_block = last_block
            page = 1

    def _adapter_request_logs(self, query_parameters: dict[str, str]) -> list[dict[str, Any]]:
        """Execute one getLogs request and validate the Etherscan envelope.

        Args:
            query_parameters: Query string parameters.

        Returns:
            list[dict[str, Any]]: Raw log objects.

        Raises:
            ProviderRateLimitError: Raised when Etherscan throttles the key.
            ProviderResponseError: Raised for rejected requests or malformed payloads.
        """

        payload = self._adapter_http_get(self._base_url, query_parameters)
        if not isinstance(payload, dict):
            raise ProviderResponseError("Etherscan response is not a JSON object", provider_name=self._PROVIDER_NAME)

        status = str(payload.get("status", ""))
        message = str(payload.get("message", ""))
        result = payload.get("result")
        if status == "1" and isinstance(result, list):
            return result
        if status == "0" and message.startswith(self._NO_RECORDS_MESSAGE):
            return []

        detail = result if isinstance(result, str) else message
        if any(marker.lower() in detail.lower() for marker in self._RATE_LIMIT_MARKERS):
            raise ProviderRateLimitError(f"Etherscan rate limited: {detail}", provider_name=self._PROVIDER_NAME)
        raise ProviderResponseError(
            f"Etherscan request rejected: status={status}, message={message}, detail={detail}",
            provider_name=self._PROVIDER_NAME,
        )

    def _adapter_http_get(self, url: str, query_parameters: dict[str, str]) -> Any:
        """Execute one HTTP GET and return the decoded JSON body.

        Args:
            url: Endpoint URL.
            query_parameters: Query string parameters.

        Returns:
            Any: Decoded JSON payload.

        Raises:
            ProviderTimeoutError: Raised when the request times out.
            ProviderConnectionError: Raised for network failures and retryable HTTP status.
            ProviderResponseError: Raised for non-retryable HTTP status or invalid JSON.
        """

        try:
            response = self._adapter_client().get(url, params=query_parameters)
            response.raise_for_status()
        except httpx.TimeoutException as error:
            raise ProviderTimeoutError("Etherscan request timed out", provider_name=self._PROVIDER_NAME) from error
        except httpx.HTTPStatusError as error:
            status_code = error.response.status_code
            if status_code == 429:
                raise ProviderRateLimitError(
                    "Etherscan returned HTTP 429", provider_name=self._PROVIDER_NAME, status_code=status_code
                ) from error
            if status_code in self._RETRYABLE_STATUS_CODES:
                raise ProviderConnectionError(
                    f"Etherscan returned HTTP {status_code}",
                    provider_name=self._PROVIDER_NAME,
                    status_code=status_code,
                ) from error
            raise ProviderResponseError(
                f"Etherscan returned HTTP {status_code}", provider_name=self._PROVIDER_NAME, status_code=status_code
            ) from error
        except httpx.HTTPError as error:
            raise ProviderConnectionError("Etherscan request failed", provider_name=self._PROVIDER_NAME) from error

        try:
            return response.json()
        except ValueError as error:
            raise ProviderResponseError("Etherscan response is not valid JSON", provider_name=self._PROVIDER_NAME) from error

    def _adapter_client(self) -> httpx.Client:
        """Return the pooled HTTP client, creating it on first use."""

        if self._client is None:
            self._client = httpx.Client(
                timeout=self._request_timeout_seconds,
                headers={"User-Agent": self._USER_AGENT},
            )
        return self._client

    def _adapter_decode_log(
        self,
        log_entry: dict[str, Any],
        event_type: BlockchainEventType,
        chain_id: int,
        nft_id: int,
    ) -> RawPositionEvent:
        """Decode one Etherscan log object into a raw position event.

        Args:
            log_entry: Etherscan log object.
            event_type: Event type implied by the requested topic0.
            chain_id: EVM chain identifier.
            nft_id: Position NFT identifier.

        Returns:
            RawPositionEvent: Normalized event.

        Raises:
            ProviderResponseError: Raised when required fields are missing or malformed.
        """

        transaction_hash = log_entry.get("transactionHash")
        if not isinstance(transaction_hash, str) or not transaction_hash.strip():
            raise ProviderResponseError("log is missing transactionHash", provider_name=self._PROVIDER_NAME)

        block_number = self._adapter_parse_quantity(log_entry.get("blockNumber"), "blockNumber")
        transaction_index = self._adapter_parse_quantity(log_entry.get("transactionIndex"), "transactionIndex")
        log_index = self._adapter_parse_quantity(log_entry.get("logIndex"), "logIndex")
        block_timestamp = datetime.fromtimestamp(
            self._adapter_parse_quantity(log_entry.get("timeStamp"), "timeStamp"),
            tz=timezone.utc,
        )
        try:
            event_data = get_event_data(
                self._abi_codec,
                POSITION_EVENT_ABIS[event_type],
                {
                    "address": log_entry.get("address"),
                    "topics": [Web3.to_bytes(hexstr=topic) for topic in log_entry["topics"]],
                    "data": Web3.to_bytes(hexstr=log_entry["data"]),
                    "blockHash": log_entry.get("blockHash"),
                    "blockNumber": block_number,
                    "transactionHash": transaction_hash.strip(),
                    "transactionIndex": transaction_index,
                    "logIndex": log_index,
                },
            )
        except (DecodingError, MismatchedABI, KeyError, TypeError, ValueError) as error:
            raise ProviderResponseError(
                f"log {transaction_hash}:{log_index} is malformed: {error}", provider_name=self._PROVIDER_NAME
            ) from error

        arguments = event_data["args"]
        liquidity: int | None = None
        recipient: str | None = None
        if event_type == BlockchainEventType.COLLECT:
            recipient = str(arguments["recipient"]).lower()
        else:
            liquidity = int(arguments["liquidity"])

        return RawPositionEvent(
            event_type=event_type,
            token_id=nft_id,
            transaction_hash=transaction_hash.strip(),
            block_number=block_number,
            transaction_index=transaction_index,
            log_index=log_index,
            block_timestamp=block_timestamp,
            chain_id=chain_id,
            amount0=int(arguments["amount0"]),
            amount1=int(arguments["amount1"]),
            liquidity=liquidity,
            recipient=recipient,
        )

    def _adapter_parse_quantity(self, value: Any, field_name: str) -> int:
        """Parse an Etherscan hex quantity, where a bare `0x` means zero.

        Raises:
            ProviderResponseError: Raised when the value is not a hex string.
        """

        if not isinstance(value, str) or not value.startswith("0x"):
            raise ProviderResponseError(f"{field_name} is not a hex quantity: {value!r}", provider_name=self._PROVIDER_NAME)
        if value == "0x":
            return 0
        try:
            return int(value, 16)
        except ValueError as error:
            raise ProviderResponseError(
                f"{field_name} is not a hex quantity: {value!r}", provider_name=self._PROVIDER_NAME
            ) from error
