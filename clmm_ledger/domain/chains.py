"""Supported EVM chains and NonfungiblePositionManager deployment metadata."""

from __future__ import annotations

from enum import IntEnum
from typing import Final

from .errors import UnsupportedChainError


class SupportedChainId(IntEnum):
    """EVM chain identifiers with a known position manager deployment."""

    ETHEREUM = 1
    OPTIMISM = 10
    BSC = 56
    POLYGON = 137
    BASE = 8453
    ARBITRUM = 42161


# First block containing position manager logs; full resyncs start here.
NFPM_DEPLOYMENT_BLOCKS: Final[dict[SupportedChainId, int]] = {
    SupportedChainId.ETHEREUM: 12369621,
    SupportedChainId.ARBITRUM: 165,
    SupportedChainId.BASE: 1371680,
    SupportedChainId.BSC: 26324014,
    SupportedChainId.POLYGON: 22757547,
    SupportedChainId.OPTIMISM: 4294,
}

NFPM_ADDRESSES: Final[dict[SupportedChainId, str]] = {
    SupportedChainId.ETHEREUM: "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
    SupportedChainId.ARBITRUM: "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
    SupportedChainId.OPTIMISM: "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
    SupportedChainId.POLYGON: "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
    SupportedChainId.BASE: "0x03a520b32C04BF3bEEf7BEb72E919cf822Ed34f1",
    SupportedChainId.BSC: "0x7b8A01B39D58278b5DE7e48c8449c9f4F5170613",
}


def domain_require_supported_chain(chain_id: int) -> SupportedChainId:
    """Resolve a raw chain id into a supported chain enum member.

    Args:
        chain_id: EVM chain identifier.

    Returns:
        SupportedChainId: Matching supported chain.

    Raises:
        UnsupportedChainError: Raised when the chain has no known deployment.
    """

    try:
        return SupportedChainId(int(chain_id))
    except ValueError as error:
        raise UnsupportedChainError(chain_id=chain_id) from error


def domain_deployment_block(chain_id: int) -> int:
    """Return the position manager deployment block used as full-resync start.

    Args:
        chain_id: EVM chain identifier.

    Returns:
        int: Deployment block number.

    Raises:
        UnsupportedChainError: Raised when the chain is not supported.
    """

    return NFPM_DEPLOYMENT_BLOCKS[domain_require_supported_chain(chain_id)]


def domain_position_manager_address(chain_id: int) -> str:
    """Return the position manager contract address for one chain.

    Args:
        chain_id: EVM chain identifier.

    Returns:
        str: Checksummed contract address.

    Raises:
        UnsupportedChainError: Raised when the chain is not supported.
    """

    return NFPM_ADDRESSES[domain_require_supported_chain(chain_id)]
