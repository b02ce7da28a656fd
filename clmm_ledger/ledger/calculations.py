"""Exact-integer price, valuation, and cost-basis primitives.

Every function operates on Python integers in raw token units. Divisions
floor toward negative infinity, matching the unsigned fixed-point arithmetic
of the on-chain contracts for all non-negative inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from clmm_ledger.domain import DivisionError, InvalidStateError

Q96: Final[int] = 2**96
Q128: Final[int] = 2**128
Q192: Final[int] = 2**192

MIN_TICK: Final[int] = -887272
MAX_TICK: Final[int] = 887272
MIN_SQRT_RATIO: Final[int] = 4295128739
MAX_SQRT_RATIO: Final[int] = 1461446703485210103287273052203988822378723970342

_MAX_UINT256: Final[int] = 2**256 - 1

# Q128.128 ratio multipliers for bits 1..19 of |tick|.
_TICK_BIT_RATIOS: Final[tuple[int, ...]] = (
    0xFFF97272373D413259A46990580E213A,
    0xFFF2E50F5F656932EF12357CF3C7FDCC,
    0xFFE5CACA7E10E4E61C3624EAA0941CD0,
    0xFFCB9843D60F6159C9DB58835C926644,
    0xFF973B41FA98C081472E6896DFB254C0,
    0xFF2EA16466C96A3843EC78B326B52861,
    0xFE5DEE046A99A2A811C461F1969C3053,
    0xFCBE86C7900A88AEDCFFC83B479AA3A4,
    0xF987A7253AC413176F2B074CF7815E54,
    0xF3392B0822B70005940C7A398E4B70F3,
    0xE7159475A2C29B7443B29C7FA6E889D9,
    0xD097F3BDFD2022B8845AD8F792AA5825,
    0xA9F746462D870FDF8A65DC1F90E061E5,
    0x70D869A156D2A1B890BB3DF62BAF32F7,
    0x31BE135F97D08FD981231505542FCFA6,
    0x9AA508B5B7A84E1C677DE54F3E99BC9,
    0x5D6AF8DEDB81196699C329225EE604,
    0x2216E584F5FA1EA926041BEDFE98,
    0x48A170391F7DC42444E8FA2,
)


@dataclass(frozen=True)
class FeePrincipalSplit:
    """Collected amounts separated into principal return and fee income.

    Attributes:
        principal0: Token0 principal returned.
        principal1: Token1 principal returned.
        fee0: Token0 fee income.
        fee1: Token1 fee income.
        uncollected_principal0_after: Token0 principal still owed.
        uncollected_principal1_after: Token1 principal still owed.
    """

    principal0: int
    principal1: int
    fee0: int
    fee1: int
    uncollected_principal0_after: int
    uncollected_principal1_after: int


def ledger_calculate_pool_price_in_quote(
    sqrt_price_x96: int,
    token0_is_quote: bool,
    token0_decimals: int,
    token1_decimals: int,
) -> int:
    """Convert a sqrt price into quote raw units per one whole base token.

    Args:
        sqrt_price_x96: Pool sqrt price as Q64.96.
        token0_is_quote: Whether token0 is the quote token.
        token0_decimals: Token0 decimals.
        token1_decimals: Token1 decimals.

    Returns:
        int: Price in quote raw units for `10**base_decimals` base raw units.

    Raises:
        DivisionError: Raised when sqrt price is zero or negative.
    """

    if sqrt_price_x96 <= 0:
        raise DivisionError("sqrt_price_x96 must be > 0")

    squared_price = sqrt_price_x96 * sqrt_price_x96
    if token0_is_quote:
        return (Q192 * 10**token1_decimals) // squared_price
    return (squared_price * 10**token0_decimals) // Q192


def ledger_calculate_token_value_in_quote(
    amount0: int,
    amount1: int,
    sqrt_price_x96: int,
    token0_is_quote: bool,
    token0_decimals: int,
    token1_decimals: int,
) -> int:
    """Value a token0/token1 pair in quote raw units.

    Args:
        amount0: Token0 raw amount.
        amount1: Token1 raw amount.
        sqrt_price_x96: Pool sqrt price as Q64.96.
        token0_is_quote: Whether token0 is the quote token.
        token0_decimals: Token0 decimals.
        token1_decimals: Token1 decimals.

    Returns:
        int: Quote amount plus base amount converted at the pool price.

    Raises:
        DivisionError: Raised when sqrt price is zero or negative.
    """

    price = ledger_calculate_pool_price_in_quote(
        sqrt_price_x96=sqrt_price_x96,
        token0_is_quote=token0_is_quote,
        token0_decimals=token0_decimals,
        token1_decimals=token1_decimals,
    )
    if token0_is_quote:
        return amount0 + (amount1 * price) // 10**token1_decimals
    return amount1 + (amount0 * price) // 10**token0_decimals


def ledger_calculate_proportional_cost_basis(cost_basis: int, delta_liquidity: int, liquidity: int) -> int:
    """Return the share of cost basis attributable to a liquidity withdrawal.

    Args:
        cost_basis: Running cost basis before the withdrawal.
        delta_liquidity: Liquidity removed.
        liquidity: Running liquidity before the withdrawal.

    Returns:
        int: `floor(cost_basis * delta_liquidity / liquidity)`.

    Raises:
        DivisionError: Raised when running liquidity is zero.
        InvalidStateError: Raised when delta is negative or exceeds running liquidity.
    """

    if liquidity == 0:
        raise DivisionError("cannot compute proportional cost basis with zero liquidity")
    if delta_liquidity < 0:
        raise InvalidStateError("delta_liquidity must be >= 0")
    if delta_liquidity > liquidity:
        raise InvalidStateError(f"delta_liquidity={delta_liquidity} exceeds liquidity={liquidity}")
    if delta_liquidity == 0:
        return 0
    return (cost_basis * delta_liquidity) // liquidity


def ledger_separate_fees_from_principal(
    collected0: int,
    collected1: int,
    uncollected_principal0: int,
    uncollected_principal1: int,
) -> FeePrincipalSplit:
    """Split collected amounts into principal and fee using owed principal as cap.

    Amounts above the owed principal are fee income, never negative principal.

    Args:
        collected0: Token0 collected.
        collected1: Token1 collected.
        uncollected_principal0: Token0 principal owed before the collect.
        uncollected_principal1: Token1 principal owed before the collect.

    Returns:
        FeePrincipalSplit: Principal, fee, and remaining owed principal per token.

    Raises:
        InvalidStateError: Raised when any input is negative.
    """

    for field_name, field_value in (
        ("collected0", collected0),
        ("collected1", collected1),
        ("uncollected_principal0", uncollected_principal0),
        ("uncollected_principal1", uncollected_principal1),
    ):
        if field_value < 0:
            raise InvalidStateError(f"{field_name} must be >= 0")

    principal0 = min(collected0, uncollected_principal0)
    principal1 = min(collected1, uncollected_principal1)
    return FeePrincipalSplit(
        principal0=principal0,
        principal1=principal1,
        fee0=collected0 - principal0,
        fee1=collected1 - principal1,
        uncollected_principal0_after=uncollected_principal0 - principal0,
        uncollected_principal1_after=uncollected_principal1 - principal1,
    )


def ledger_get_sqrt_ratio_at_tick(tick: int) -> int:
    """Return the Q64.96 sqrt price for a tick, bit-exact with TickMath.

    Args:
        tick: Tick index.

    Returns:
        int: Sqrt price as Q64.96.

    Raises:
        ValueError: Raised when tick is outside the supported range.
    """

    absolute_tick = abs(tick)
    if absolute_tick > MAX_TICK:
        raise ValueError(f"tick={tick} is outside [{MIN_TICK}, {MAX_TICK}]")

    ratio = 0xFFFCB933BD6FAD37AA2D162D1A594001 if absolute_tick & 0x1 else 1 << 128
    for bit_offset, bit_ratio in enumerate(_TICK_BIT_RATIOS, start=1):
        if absolute_tick & (1 << bit_offset):
            ratio = (ratio * bit_ratio) >> 128

    if tick > 0:
        ratio = _MAX_UINT256 // ratio

    return (ratio >> 32) + (0 if ratio % (1 << 32) == 0 else 1)


def ledger_calculate_amounts_for_liquidity(
    liquidity: int,
    sqrt_price_x96: int,
    tick_lower: int,
    tick_upper: int,
) -> tuple[int, int]:
    """Return token amounts represented by liquidity at the current price.

    Args:
        liquidity: Position liquidity.
        sqrt_price_x96: Current pool sqrt price as Q64.96.
        tick_lower: Lower range tick.
        tick_upper: Upper range tick.

    Returns:
        tuple[int, int]: Token0 and token1 raw amounts, rounded down.

    Raises:
        ValueError: Raised when the tick range is empty or liquidity is negative.
    """

    if tick_lower >= tick_upper:
        raise ValueError("tick_lower must be < tick_upper")
    if liquidity < 0:
        raise ValueError("liquidity must be >= 0")
    if liquidity == 0:
        return 0, 0

    sqrt_ratio_lower = ledger_get_sqrt_ratio_at_tick(tick_lower)
    sqrt_ratio_upper = ledger_get_sqrt_ratio_at_tick(tick_upper)

    if sqrt_price_x96 <= sqrt_ratio_lower:
        return _amount0_delta(sqrt_ratio_lower, sqrt_ratio_upper, liquidity), 0
    if sqrt_price_x96 < sqrt_ratio_upper:
        return (
            _amount0_delta(sqrt_price_x96, sqrt_ratio_upper, liquidity),
            _amount1_delta(sqrt_ratio_lower, sqrt_price_x96, liquidity),
        )
    return 0, _amount1_delta(sqrt_ratio_lower, sqrt_ratio_upper, liquidity)


def ledger_calculate_position_value(
    liquidity: int,
    sqrt_price_x96: int,
    tick_lower: int,
    tick_upper: int,
    token0_is_quote: bool,
    token0_decimals: int,
    token1_decimals: int,
) -> int:
    """Value a liquidity range at the current price in quote raw units.

    Raises:
        ValueError: Raised when range or liquidity inputs are invalid.
        DivisionError: Raised when sqrt price is zero.
    """

    amount0, amount1 = ledger_calculate_amounts_for_liquidity(
        liquidity=liquidity,
        sqrt_price_x96=sqrt_price_x96,
        tick_lower=tick_lower,
        tick_upper=tick_upper,
    )
    return ledger_calculate_token_value_in_quote(
        amount0=amount0,
        amount1=amount1,
        sqrt_price_x96=sqrt_price_x96,
        token0_is_quote=token0_is_quote,
        token0_decimals=token0_decimals,
        token1_decimals=token1_decimals,
    )


def ledger_calculate_fee_growth_inside(
    current_tick: int,
    tick_lower: int,
    tick_upper: int,
    fee_growth_global_x128: int,
    fee_growth_outside_lower_x128: int,
    fee_growth_outside_upper_x128: int,
) -> int:
    """Return fee growth per unit of liquidity inside a tick range for one token.

    Outside values are measured on the side of each tick away from the current
    price, so they flip to `global - outside` once the current tick crosses them.
    Arithmetic wraps modulo 2**256 like the pool contract's unchecked math.

    Args:
        current_tick: Current pool tick.
        tick_lower: Lower range tick.
        tick_upper: Upper range tick.
        fee_growth_global_x128: Pool-wide fee growth as Q128.128.
        fee_growth_outside_lower_x128: Fee growth outside of the lower tick.
        fee_growth_outside_upper_x128: Fee growth outside of the upper tick.

    Returns:
        int: Fee growth inside the range as Q128.128, wrapped to uint256.

    Raises:
        ValueError: Raised when the tick range is empty.
    """

    if tick_lower >= tick_upper:
        raise ValueError("tick_lower must be < tick_upper")

    if current_tick >= tick_lower:
        fee_growth_below = fee_growth_outside_lower_x128
    else:
        fee_growth_below = fee_growth_global_x128 - fee_growth_outside_lower_x128
    if current_tick < tick_upper:
        fee_growth_above = fee_growth_outside_upper_x128
    else:
        fee_growth_above = fee_growth_global_x128 - fee_growth_outside_upper_x128
    return (fee_growth_global_x128 - fee_growth_below - fee_growth_above) & _MAX_UINT256


def ledger_calculate_fees_since_checkpoint(
    fee_growth_inside_x128: int,
    fee_growth_inside_last_x128: int,
    liquidity: int,
) -> int:
    """Return fees accrued by liquidity since its last fee growth checkpoint.

    Args:
        fee_growth_inside_x128: Current fee growth inside the range as Q128.128.
        fee_growth_inside_last_x128: Checkpoint stored on the position.
        liquidity: Position liquidity.

    Returns:
        int: Raw token amount, rounded down.

    Raises:
        ValueError: Raised when liquidity is negative.
    """

    if liquidity < 0:
        raise ValueError("liquidity must be >= 0")
    growth_delta = (fee_growth_inside_x128 - fee_growth_inside_last_x128) & _MAX_UINT256
    return (growth_delta * liquidity) // Q128


def _amount0_delta(sqrt_ratio_a: int, sqrt_ratio_b: int, liquidity: int) -> int:
    lower, upper = sorted((sqrt_ratio_a, sqrt_ratio_b))
    return ((liquidity << 96) * (upper - lower) // upper) // lower


def _amount1_delta(sqrt_ratio_a: int, sqrt_ratio_b: int, liquidity: int) -> int:
    lower, upper = sorted((sqrt_ratio_a, sqrt_ratio_b))
    return (liquidity * (upper - lower)) // Q96
