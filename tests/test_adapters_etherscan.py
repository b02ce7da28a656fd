"""Regression tests for Etherscan log fetching, decoding, and error mapping."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import eth_abi
import httpx
import pytest
from web3 import Web3

import clmm_ledger.adapters.retry as retry_module
from clmm_ledger.adapters import (
    EVENT_TOPICS,
    EtherscanEventHistoryAdapter,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
)
import clmm_ledger.adapters.etherscan as etherscan_module
from clmm_ledger.domain import BlockchainEventType, UnsupportedChainError, domain_deployment_block

_NO_RECORDS_PAYLOAD = {"status": "0", "message": "No records found", "result": []}


def _word(value: int) -> str:
    """Encode one ABI word.

    Args:
        value: Unsigned integer.

    Returns:
        str: 64 hex characters.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return format(value, "064x")


def _build_log(
    block_number: int,
    log_index: int,
    first_value: int | str,
    amount0: int,
    amount1: int,
    event_type: BlockchainEventType = BlockchainEventType.INCREASE_LIQUIDITY,
    nft_id: int = 1,
) -> dict[str, Any]:
    """Build one Etherscan log object.

    Args:
        block_number: Block containing the log.
        log_index: Log position inside the block.
        first_value: Liquidity, or recipient address for collect logs.
        amount0: Token0 raw amount.
        amount1: Token1 raw amount.
        event_type: Position event the log encodes.
        nft_id: Position NFT identifier in the indexed topic.

    Returns:
        dict[str, Any]: Etherscan-shaped log.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    first_type = "address" if event_type == BlockchainEventType.COLLECT else "uint128"
    data = eth_abi.encode([first_type, "uint256", "uint256"], [first_value, amount0, amount1])
    return {
        "address": "0xc36442b4a4522e871399cd717abdd847ab11fe88",
        "topics": [EVENT_TOPICS[event_type], "0x" + _word(nft_id)],
        "transactionHash": f"0x{block_number:062x}{log_index:02x}",
        "blockNumber": hex(block_number),
        "blockHash": f"0x{block_number:064x}",
        "transactionIndex": "0x",
        "logIndex": hex(log_index),
        "timeStamp": hex(1_767_225_600),
        "data": Web3.to_hex(data),
    }


def _build_adapter(page_size: int = 1000, retry_attempts: int = 3) -> EtherscanEventHistoryAdapter:
    """Build an adapter with deterministic zero-delay retries.

    Args:
        page_size: Logs per page.
        retry_attempts: Attempts per request.

    Returns:
        EtherscanEventHistoryAdapter: Configured adapter.

    Raises:
        ValueError: Raised when configuration is invalid.
    """

    return EtherscanEventHistoryAdapter(
        api_key="key",
        page_size=page_size,
        retry_attempts=retry_attempts,
        retry_backoff_base_seconds=0,
        retry_max_backoff_seconds=0,
        random_unit_interval_provider=lambda: 0.0,
    )


def test_adapters_etherscan_fetch_decodes_logs_and_sorts_by_coordinates(monkeypatch: pytest.MonkeyPatch) -> None:
    """Decode increase and collect logs and return them in replay order.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate decoding and request parameters.

    Raises:
        AssertionError: Raised when decoding or request shape diverges.
    """

    adapter = _build_adapter()
    recipient = "0x00000000000000000000000000000000000000ab"
    logs_by_topic = {
        EVENT_TOPICS[BlockchainEventType.INCREASE_LIQUIDITY]: [_build_log(200, 1, 2**100, 5, 6, nft_id=42)],
        EVENT_TOPICS[BlockchainEventType.COLLECT]: [
            _build_log(150, 3, recipient, 7, 0, event_type=BlockchainEventType.COLLECT, nft_id=42)
        ],
    }
    captured_parameters: list[dict[str, str]] = []

    def _fake_http_get(url: str, query_parameters: dict[str, str]) -> dict[str, Any]:
        _ = url
        captured_parameters.append(query_parameters)
        logs = logs_by_topic.get(query_parameters["topic0"])
        if not logs:
            return _NO_RECORDS_PAYLOAD
        return {"status": "1", "message": "OK", "result": logs}

    monkeypatch.setattr(adapter, "_adapter_http_get", _fake_http_get)

    events = adapter.adapter_fetch_position_events(chain_id=1, nft_id=42)

    assert [event.event_type for event in events] == [BlockchainEventType.COLLECT, BlockchainEventType.INCREASE_LIQUIDITY]
    collect_event, increase_event = events
    assert collect_event.recipient == "0x00000000000000000000000000000000000000ab"
    assert collect_event.liquidity is None
    assert collect_event.transaction_index == 0
    assert (collect_event.amount0, collect_event.amount1) == (7, 0)
    assert increase_event.liquidity == 2**100
    assert increase_event.block_timestamp == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert increase_event.token_id == 42

    assert len(captured_parameters) == 3
    first_request = captured_parameters[0]
    assert first_request["chainid"] == "1"
    assert first_request["topic1"] == "0x" + _word(42)
    assert first_request["topic0_1_opr"] == "and"
    assert first_request["fromBlock"] == str(domain_deployment_block(1))
    assert first_request["toBlock"] == "latest"


def test_adapters_etherscan_fetch_pages_until_short_page(monkeypatch: pytest.MonkeyPatch) -> None:
    """Request further pages while each page is full.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate pagination.

    Raises:
        AssertionError: Raised when pages are skipped or over-fetched.
    """

    adapter = _build_adapter(page_size=2)
    increase_topic = EVENT_TOPICS[BlockchainEventType.INCREASE_LIQUIDITY]
    pages = {
        "1": [_build_log(10, 0, 1, 1, 1), _build_log(11, 0, 1, 1, 1)],
        "2": [_build_log(12, 0, 1, 1, 1)],
    }
    requested_pages: list[str] = []

    def _fake_http_get(url: str, query_parameters: dict[str, str]) -> dict[str, Any]:
        _ = url
        if query_parameters["topic0"] != increase_topic:
            return _NO_RECORDS_PAYLOAD
        requested_pages.append(query_parameters["page"])
        return {"status": "1", "message": "OK", "result": pages[query_parameters["page"]]}

    monkeypatch.setattr(adapter, "_adapter_http_get", _fake_http_get)

    events = adapter.adapter_fetch_position_events(chain_id=1, nft_id=1, from_block=10, to_block=20)

    assert requested_pages == ["1", "2"]
    assert [event.block_number for event in events] == [10, 11, 12]


def test_adapters_etherscan_fetch_returns_empty_for_inverted_window(monkeypatch: pytest.MonkeyPatch) -> None:
    """Skip requests when the window end precedes its start.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate empty-window handling.

    Raises:
        AssertionError: Raised when requests are sent for an empty window.
    """

    adapter = _build_adapter()

    def _unexpected_http_get(url: str, query_parameters: dict[str, str]) -> dict[str, Any]:
        raise AssertionError(f"unexpected request to {url} with {query_parameters}")

    monkeypatch.setattr(adapter, "_adapter_http_get", _unexpected_http_get)

    assert adapter.adapter_fetch_position_events(chain_id=1, nft_id=1, from_block=20, to_block=10) == []


def test_adapters_etherscan_rejects_unsupported_chain() -> None:
    """Reject chains without a position manager deployment.

    Returns:
        None: Assertions validate chain validation.

    Raises:
        AssertionError: Raised when unsupported chains are queried.
    """

    with pytest.raises(UnsupportedChainError):
        _build_adapter().adapter_fetch_position_events(chain_id=999_999, nft_id=1)


def test_adapters_etherscan_retries_rate_limited_responses(monkeypatch: pytest.MonkeyPatch) -> None:
    """Retry throttled envelopes with the rate-limit delay floor.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate retry and delay behavior.

    Raises:
        AssertionError: Raised when throttling is not retried.
    """

    adapter = _build_adapter()
    payload_sequence = [
        {"status": "0", "message": "NOTOK", "result": "Max calls per sec rate limit reached (5/sec)"},
        _NO_RECORDS_PAYLOAD,
        _NO_RECORDS_PAYLOAD,
        _NO_RECORDS_PAYLOAD,
    ]
    sleep_calls: list[float] = []

    def _fake_http_get(url: str, query_parameters: dict[str, str]) -> dict[str, Any]:
        _ = (url, query_parameters)
        return payload_sequence.pop(0)

    monkeypatch.setattr(adapter, "_adapter_http_get", _fake_http_get)
    monkeypatch.setattr(retry_module.time, "sleep", sleep_calls.append)

    assert adapter.adapter_fetch_position_events(chain_id=1, nft_id=1) == []
    assert sleep_calls == [1.0]
    assert payload_sequence == []


def test_adapters_etherscan_raises_after_rate_limit_retries_are_exhausted(monkeypatch: pytest.MonkeyPatch) -> None:
    """Raise the rate-limit error once every attempt was throttled.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate retry exhaustion.

    Raises:
        AssertionError: Raised when exhaustion is masked.
    """

    adapter = _build_adapter(retry_attempts=2)

    def _fake_http_get(url: str, query_parameters: dict[str, str]) -> dict[str, Any]:
        _ = (url, query_parameters)
        return {"status": "0", "message": "NOTOK", "result": "Max rate limit reached"}

    monkeypatch.setattr(adapter, "_adapter_http_get", _fake_http_get)
    monkeypatch.setattr(retry_module.time, "sleep", lambda seconds: None)

    with pytest.raises(ProviderRateLimitError):
        adapter.adapter_fetch_position_events(chain_id=1, nft_id=1)


def test_adapters_etherscan_rejected_request_is_not_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fail immediately on rejected requests such as an invalid API key.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate non-retryable error mapping.

    Raises:
        AssertionError: Raised when rejected requests are retried.
    """

    adapter = _build_adapter()
    call_count = 0

    def _fake_http_get(url: str, query_parameters: dict[str, str]) -> dict[str, Any]:
        nonlocal call_count
        _ = (url, query_parameters)
        call_count += 1
        return {"status": "0", "message": "NOTOK", "result": "Invalid API Key"}

    monkeypatch.setattr(adapter, "_adapter_http_get", _fake_http_get)

    with pytest.raises(ProviderResponseError, match="Invalid API Key"):
        adapter.adapter_fetch_position_events(chain_id=1, nft_id=1)
    assert call_count == 1


def test_adapters_etherscan_http_timeout_raises_timeout_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """Map transport timeouts to the typed timeout error.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate timeout mapping behavior.

    Raises:
        AssertionError: Raised when timeout mapping is incorrect.
    """

    adapter = _build_adapter(retry_attempts=1)

    def _raise_timeout(_self: object, url: str, params: dict[str, str]) -> httpx.Response:
        _ = (url, params)
        raise httpx.TimeoutException("timed out")

    monkeypatch.setattr(etherscan_module.httpx.Client, "get", _raise_timeout)

    with pytest.raises(ProviderTimeoutError, match="timed out"):
        adapter.adapter_fetch_position_events(chain_id=1, nft_id=1)
    adapter.adapter_close()


def test_adapters_etherscan_malformed_log_data_raises_response_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reject logs whose data payload is shorter than three words.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate decoding errors.

    Raises:
        AssertionError: Raised when malformed logs are accepted.
    """

    adapter = _build_adapter()
    malformed_log = dict(_build_log(10, 0, 1, 1, 1), data="0x" + _word(1))

    def _fake_http_get(url: str, query_parameters: dict[str, str]) -> dict[str, Any]:
        _ = (url, query_parameters)
        return {"status": "1", "message": "OK", "result": [malformed_log]}

    monkeypatch.setattr(adapter, "_adapter_http_get", _fake_http_get)

    with pytest.raises(ProviderResponseError):
        adapter.adapter_fetch_position_events(chain_id=1, nft_id=1)


def test_adapters_etherscan_event_topics_match_position_manager_signatures() -> None:
    """Derive topic0 hashes from the event ABIs.

    Returns:
        None: Assertions validate topic hashes.

    Raises:
        AssertionError: Raised when a topic diverges from the deployed event signature.
    """

    assert EVENT_TOPICS == {
        BlockchainEventType.INCREASE_LIQUIDITY: "0x3067048beee31b25b2f1681f88dac838c8bba36af25bfb2b7cf7473a5847e35f",
        BlockchainEventType.DECREASE_LIQUIDITY: "0x26f6a048ee9138f2c0ce266f322cb99228e8d619ae2bff30c67f8dcf9d2377b4",
        BlockchainEventType.COLLECT: "0x40d0efd1a53d60ecbf40971b9daf7dc90178c3aadc7aab1765632738fa8b8f01",
    }


def test_adapters_etherscan_full_result_window_restarts_at_last_block(monkeypatch: pytest.MonkeyPatch) -> None:
    """Continue past the provider result window without duplicating a block's logs.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate window splitting.

    Raises:
        AssertionError: Raised when logs are lost or duplicated at the window edge.
    """

    adapter = _build_adapter(page_size=2)
    monkeypatch.setattr(EtherscanEventHistoryAdapter, "_RESULT_WINDOW", 4)
    increase_topic = EVENT_TOPICS[BlockchainEventType.INCREASE_LIQUIDITY]
    chain_logs = [
        _build_log(10, 0, 1, 1, 1),
        _build_log(11, 0, 1, 1, 1),
        _build_log(12, 0, 1, 1, 1),
        _build_log(12, 1, 1, 1, 1),
        _build_log(13, 0, 1, 1, 1),
    ]
    requested_windows: list[tuple[str, str]] = []

    def _fake_http_get(url: str, query_parameters: dict[str, str]) -> dict[str, Any]:
        _ = url
        if query_parameters["topic0"] != increase_topic:
            return _NO_RECORDS_PAYLOAD
        requested_windows.append((query_parameters["fromBlock"], query_parameters["page"]))
        matching_logs = [
            log_entry for log_entry in chain_logs if int(log_entry["blockNumber"], 16) >= int(query_parameters["fromBlock"])
        ]
        page = int(query_parameters["page"])
        page_logs = matching_logs[(page - 1) * 2 : page * 2]
        if not page_logs:
            return _NO_RECORDS_PAYLOAD
        return {"status": "1", "message": "OK", "result": page_logs}

    monkeypatch.setattr(adapter, "_adapter_http_get", _fake_http_get)

    events = adapter.adapter_fetch_position_events(chain_id=1, nft_id=1, from_block=10, to_block=20)

    assert requested_windows == [("10", "1"), ("10", "2"), ("12", "1"), ("12", "2")]
    assert [(event.block_number, event.log_index) for event in events] == [(10, 0), (11, 0), (12, 0), (12, 1), (13, 0)]


def test_adapters_etherscan_single_block_over_result_window_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fail when one block alone fills the provider result window.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        None: Assertions validate the unsplittable window error.

    Raises:
        AssertionError: Raised when the adapter loops or truncates silently.
    """

    adapter = _build_adapter(page_size=2)
    monkeypatch.setattr(EtherscanEventHistoryAdapter, "_RESULT_WINDOW", 2)

    def _fake_http_get(url: str, query_parameters: dict[str, str]) -> dict[str, Any]:
        _ = url
        return {"status": "1", "message": "OK", "result": [_build_log(10, 0, 1, 1, 1), _build_log(10, 1, 1, 1, 1)]}

    monkeypatch.setattr(adapter, "_adapter_http_get", _fake_http_get)

    with pytest.raises(ProviderResponseError, match="block 10 holds more than 2 logs"):
        adapter.adapter_fetch_position_events(chain_id=1, nft_id=1, from_block=10, to_block=20)
