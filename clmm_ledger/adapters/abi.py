"""Minimal contract ABIs for pool reads, position manager reads, and position logs."""

from __future__ import annotations

from typing import Any, Final

from clmm_ledger.domain import BlockchainEventType


def _uint(name: str, bits: int = 256) -> dict[str, Any]:
    return {"internalType": f"uint{bits}", "name": name, "type": f"uint{bits}"}


def _int(name: str, bits: int) -> dict[str, Any]:
    return {"internalType": f"int{bits}", "name": name, "type": f"int{bits}"}


def _address(name: str) -> dict[str, Any]:
    return {"internalType": "address", "name": name, "type": "address"}


def _view_function(name: str, inputs: list[dict[str, Any]], outputs: list[dict[str, Any]]) -> dict[str, Any]:
    return {"inputs": inputs, "name": name, "outputs": outputs, "stateMutability": "view", "type": "function"}


def _position_event(name: str, first_field: dict[str, Any]) -> dict[str, Any]:
    return {
        "anonymous": False,
        "inputs": [
            dict(_uint("tokenId"), indexed=True),
            dict(first_field, indexed=False),
            dict(_uint("amount0"), indexed=False),
            dict(_uint("amount1"), indexed=False),
        ],
        "name": name,
        "type": "event",
    }


POOL_ABI: Final[list[dict[str, Any]]] = [
    _view_function(
        "slot0",
        [],
        [
            _uint("sqrtPriceX96", 160),
            _int("tick", 24),
            _uint("observationIndex", 16),
            _uint("observationCardinality", 16),
            _uint("observationCardinalityNext", 16),
            _uint("feeProtocol", 8),
            {"internalType": "bool", "name": "unlocked", "type": "bool"},
        ],
    ),
    _view_function("feeGrowthGlobal0X128", [], [_uint("")]),
    _view_function("feeGrowthGlobal1X128", [], [_uint("")]),
    _view_function(
        "ticks",
        [_int("tick", 24)],
        [
            _uint("liquidityGross", 128),
            _int("liquidityNet", 128),
            _uint("feeGrowthOutside0X128"),
            _uint("feeGrowthOutside1X128"),
            _int("tickCumulativeOutside", 56),
            _uint("secondsPerLiquidityOutsideX128", 160),
            _uint("secondsOutside", 32),
            {"internalType": "bool", "name": "initialized", "type": "bool"},
        ],
    ),
]

POSITION_MANAGER_ABI: Final[list[dict[str, Any]]] = [
    _view_function(
        "positions",
        [_uint("tokenId")],
        [
            _uint("nonce", 96),
            _address("operator"),
            _address("token0"),
            _address("token1"),
            _uint("fee", 24),
            _int("tickLower", 24),
            _int("tickUpper", 24),
            _uint("liquidity", 128),
            _uint("feeGrowthInside0LastX128"),
            _uint("feeGrowthInside1LastX128"),
            _uint("tokensOwed0", 128),
            _uint("tokensOwed1", 128),
        ],
    ),
    _view_function("ownerOf", [_uint("tokenId")], [_address("")]),
]

# Position manager logs keyed by the event type they map to.
POSITION_EVENT_ABIS: Final[dict[BlockchainEventType, dict[str, Any]]] = {
    BlockchainEventType.INCREASE_LIQUIDITY: _position_event("IncreaseLiquidity", _uint("liquidity", 128)),
    BlockchainEventType.DECREASE_LIQUIDITY: _position_event("DecreaseLiquidity", _uint("liquidity", 128)),
    BlockchainEventType.COLLECT: _position_event("Collect", _address("recipient")),
}
