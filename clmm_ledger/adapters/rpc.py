"""Web3 adapter for finality, pool state, and position manager view reads."""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Callable, Final, Mapping, TypeVar

import requests
from eth_abi.exceptions import DecodingError
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, BlockNotFound, ContractLogicError, Web3RPCError

from clmm_ledger.domain import (
    PoolFeeGrowthSnapshot,
    PoolSlot0Snapshot,
    PositionOnChainState,
    UnsupportedChainError,
    domain_position_manager_address,
)

from .abi import POOL_ABI, POSITION_MANAGER_ABI
from .errors import (
    ProviderConnectionError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderRpcError,
    ProviderTimeoutError,
)
from .retry import AdapterRetryStrategy

ResultT = TypeVar("ResultT")


class EvmRpcAdapter:
    """Read chain state through one Web3 client per configured chain.

    Implements the finality, pool state, and position state reader ports.
    Transport retries are owned by `AdapterRetryStrategy`, so the HTTP
    provider's own retry layer is disabled.
    """

    _PROVIDER_NAME: Final[str] = "evm_rpc"
    _RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({500, 502, 503, 504})

    def __init__(
        self,
        rpc_urls: Mapping[int, str],
        retry_attempts: int = 3,
        retry_backoff_base_seconds: float = 0.5,
        retry_max_backoff_seconds: float = 10.0,
        jitter_min_multiplier: float = 0.5,
        jitter_max_multiplier: float = 1.5,
        random_unit_interval_provider: Callable[[], float] | None = None,
        request_timeout_seconds: float = 30.0,
    ):
        """Initialize the RPC adapter.

        Args:
            rpc_urls: JSON-RPC endpoint per chain id.
            retry_attempts: Attempts per read.
            retry_backoff_base_seconds: Base retry delay used by exponential backoff.
            retry_max_backoff_seconds: Maximum retry delay cap before applying jitter.
            jitter_min_multiplier: Minimum jitter multiplier for computed retry delay.
            jitter_max_multiplier: Maximum jitter multiplier for computed retry delay.
            random_unit_interval_provider: Optional provider returning random values in [0.0, 1.0].
            request_timeout_seconds: HTTP request timeout in seconds.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when an endpoint URL is blank or timeout is invalid.
        """

        normalized_urls: dict[int, str] = {}
        for chain_id, url in rpc_urls.items():
            if not url or not url.strip():
                raise ValueError(f"rpc url for chain_id={chain_id} must not be blank")
            normalized_urls[int(chain_id)] = url.strip()
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._rpc_urls = normalized_urls
        self._request_timeout_seconds = request_timeout_seconds
        self._retry_strategy = AdapterRetryStrategy(
            retry_attempts=retry_attempts,
            backoff_base_seconds=retry_backoff_base_seconds,
            max_backoff_seconds=retry_max_backoff_seconds,
            jitter_min_multiplier=jitter_min_multiplier,
            jitter_max_multiplier=jitter_max_multiplier,
            random_unit_interval_provider=random_unit_interval_provider or random.random,
        )
        self._web3_clients: dict[int, Web3] = {}

    def adapter_close(self) -> None:
        """Drop cached Web3 clients."""

        self._web3_clients.clear()

    def adapter_last_finalized_block(self, chain_id: int) -> int | None:
        """Return the latest finalized block number.

        Args:
            chain_id: EVM chain identifier.

        Returns:
            int | None: Finalized block number, or `None` when the node reports none.

        Raises:
            UnsupportedChainError: Raised when no endpoint is configured for the chain.
            ProviderConnectionError: Raised when the endpoint stays unavailable.
        """

        web3_client = self._adapter_web3(chain_id)

        def _read_finalized_block() -> int | None:
            try:
                return int(web3_client.eth.get_block("finalized")["number"])
            except BlockNotFound:
                return None

        return self._adapter_execute("finalized block read", _read_finalized_block)

    def adapter_read_pool_slot0(
        self,
        chain_id: int,
        pool_address: str,
        block_number: int | None = None,
    ) -> PoolSlot0Snapshot:
        """Read pool slot0 at a block, or at the latest block when none is given.

        Args:
            chain_id: EVM chain identifier.
            pool_address: Pool contract address.
            block_number: Historic block to read at.

        Returns:
            PoolSlot0Snapshot: Sqrt price, tick, and the block served.

        Raises:
            UnsupportedChainError: Raised when no endpoint is configured for the chain.
            ProviderConnectionError: Raised when the read fails, including pruned historic state.
            ProviderResponseError: Raised when the call reverts or returns malformed data.
        """

        web3_client = self._adapter_web3(chain_id)
        pool_contract = web3_client.eth.contract(address=Web3.to_checksum_address(pool_address), abi=POOL_ABI)

        def _read_slot0() -> PoolSlot0Snapshot:
            block = web3_client.eth.get_block("latest" if block_number is None else block_number)
            served_block_number = int(block["number"])
            slot0 = pool_contract.functions.slot0().call(block_identifier=served_block_number)
            return PoolSlot0Snapshot(
                sqrt_price_x96=int(slot0[0]),
                tick=int(slot0[1]),
                block_number=served_block_number,
                block_timestamp=datetime.fromtimestamp(int(block["timestamp"]), tz=timezone.utc),
            )

        return self._adapter_execute(f"slot0 read pool={pool_address}", _read_slot0)

    def adapter_read_pool_fee_growth(
        self,
        chain_id: int,
        pool_address: str,
        tick_lower: int,
        tick_upper: int,
        block_number: int | None = None,
    ) -> PoolFeeGrowthSnapshot:
        """Read global fee growth and both range ticks' outside values at one block.

        Args:
            chain_id: EVM chain identifier.
            pool_address: Pool contract address.
            tick_lower: Lower range tick.
            tick_upper: Upper range tick.
            block_number: Block to read at; `None` pins the current head.

        Returns:
            PoolFeeGrowthSnapshot: Accumulators read at the same block.

        Raises:
            UnsupportedChainError: Raised when no endpoint is configured for the chain.
            ProviderConnectionError: Raised when the read fails.
            ProviderResponseError: Raised when a call reverts or returns malformed data.
        """

        web3_client = self._adapter_web3(chain_id)
        pool_contract = web3_client.eth.contract(address=Web3.to_checksum_address(pool_address), abi=POOL_ABI)

        def _read_fee_growth() -> PoolFeeGrowthSnapshot:
            served_block_number = web3_client.eth.block_number if block_number is None else block_number
            functions = pool_contract.functions
            lower_tick = functions.ticks(tick_lower).call(block_identifier=served_block_number)
            upper_tick = functions.ticks(tick_upper).call(block_identifier=served_block_number)
            return PoolFeeGrowthSnapshot(
                fee_growth_global0_x128=int(functions.feeGrowthGlobal0X128().call(block_identifier=served_block_number)),
                fee_growth_global1_x128=int(functions.feeGrowthGlobal1X128().call(block_identifier=served_block_number)),
                lower_fee_growth_outside0_x128=int(lower_tick[2]),
                lower_fee_growth_outside1_x128=int(lower_tick[3]),
                upper_fee_growth_outside0_x128=int(upper_tick[2]),
                upper_fee_growth_outside1_x128=int(upper_tick[3]),
                block_number=int(served_block_number),
            )

        return self._adapter_execute(f"fee growth read pool={pool_address}", _read_fee_growth)

    def adapter_read_position_state(self, chain_id: int, nft_id: int) -> PositionOnChainState:
        """Read live position manager state and NFT owner for one position.

        Args:
            chain_id: EVM chain identifier.
            nft_id: Position NFT identifier.

        Returns:
            PositionOnChainState: Liquidity, fee checkpoints, owed tokens, and owner.

        Raises:
            UnsupportedChainError: Raised when the chain is unsupported or has no endpoint.
            ProviderConnectionError: Raised when the read fails.
            ProviderResponseError: Raised when a call reverts or returns malformed data.
        """

        position_manager_address = Web3.to_checksum_address(domain_position_manager_address(chain_id))
        web3_client = self._adapter_web3(chain_id)
        position_manager = web3_client.eth.contract(address=position_manager_address, abi=POSITION_MANAGER_ABI)

        def _read_position() -> PositionOnChainState:
            served_block_number = web3_client.eth.block_number
            position = position_manager.functions.positions(nft_id).call(block_identifier=served_block_number)
            owner_address = position_manager.functions.ownerOf(nft_id).call(block_identifier=served_block_number)
            return PositionOnChainState(
                owner_address=str(owner_address).lower(),
                liquidity=int(position[7]),
                fee_growth_inside0_last_x128=int(position[8]),
                fee_growth_inside1_last_x128=int(position[9]),
                tokens_owed0=int(position[10]),
                tokens_owed1=int(position[11]),
            )

        return self._adapter_execute(f"position read nft_id={nft_id}", _read_position)

    def _adapter_web3(self, chain_id: int) -> Web3:
        """Return the cached Web3 client of a chain, creating it on first use.

        Raises:
            UnsupportedChainError: Raised when no endpoint is configured for the chain.
        """

        normalized_chain_id = int(chain_id)
        web3_client = self._web3_clients.get(normalized_chain_id)
        if web3_client is not None:
            return web3_client

        url = self._rpc_urls.get(normalized_chain_id)
        if url is None:
            raise UnsupportedChainError(chain_id=chain_id, message=f"no rpc url configured for chain_id={chain_id}")
        web3_client = Web3(
            Web3.HTTPProvider(
                url,
                request_kwargs={"timeout": self._request_timeout_seconds},
                exception_retry_configuration=None,
            )
        )
        self._web3_clients[normalized_chain_id] = web3_client
        return web3_client

    def _adapter_execute(self, description: str, operation: Callable[[], ResultT]) -> ResultT:
        """Run one read with retries after translating Web3 and transport errors.

        Raises:
            ProviderConnectionError: Raised when retries are exhausted.
            ProviderResponseError: Raised for non-retryable failures.
        """

        return self._retry_strategy.strategy_execute(lambda: self._adapter_translate_errors(description, operation))

    def _adapter_translate_errors(self, description: str, operation: Callable[[], ResultT]) -> ResultT:
        """Run one read and map library exceptions to provider errors.

        Args:
            description: Read label used in error messages.
            operation: Read to execute.

        Returns:
            ResultT: Read result.

        Raises:
            ProviderTimeoutError: Raised when the request times out.
            ProviderRateLimitError: Raised on HTTP 429.
            ProviderConnectionError: Raised for network failures and retryable HTTP status.
            ProviderRpcError: Raised when the node returns an error object or lacks the block.
            ProviderResponseError: Raised for reverts, non-retryable HTTP status, or malformed data.
        """

        try:
            return operation()
        except requests.exceptions.Timeout as error:
            raise ProviderTimeoutError(f"{description} timed out", provider_name=self._PROVIDER_NAME) from error
        except requests.exceptions.HTTPError as error:
            status_code = error.response.status_code if error.response is not None else None
            if status_code == 429:
                raise ProviderRateLimitError(
                    f"{description} rate limited", provider_name=self._PROVIDER_NAME, status_code=status_code
                ) from error
            if status_code is None or status_code in self._RETRYABLE_STATUS_CODES:
                raise ProviderConnectionError(
                    f"{description} got HTTP {status_code}",
                    provider_name=self._PROVIDER_NAME,
                    status_code=status_code,
                ) from error
            raise ProviderResponseError(
                f"{description} got HTTP {status_code}",
                provider_name=self._PROVIDER_NAME,
                status_code=status_code,
            ) from error
        except requests.exceptions.RequestException as error:
            raise ProviderConnectionError(f"{description} failed", provider_name=self._PROVIDER_NAME) from error
        except BlockNotFound as error:
            raise ProviderRpcError(f"{description} failed: {error}", provider_name=self._PROVIDER_NAME) from error
        except ContractLogicError as error:
            raise ProviderResponseError(f"{description} reverted: {error}", provider_name=self._PROVIDER_NAME) from error
        except Web3RPCError as error:
            rpc_error = (error.rpc_response or {}).get("error")
            error_code = rpc_error.get("code") if isinstance(rpc_error, dict) else None
            raise ProviderRpcError(
                f"{description} failed: {error}",
                provider_name=self._PROVIDER_NAME,
                status_code=error_code if isinstance(error_code, int) else None,
            ) from error
        except (BadFunctionCallOutput, DecodingError) as error:
            raise ProviderResponseError(
                f"{description} returned malformed data: {error}", provider_name=self._PROVIDER_NAME
            ) from error
