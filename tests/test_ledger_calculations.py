"""Regression tests for exact-integer price, valuation, and cost-basis primitives."""

from __future__ import annotations

import pytest

from clmm_ledger.domain import DivisionError, InvalidStateError
from clmm_ledger.ledger import (
    MAX_SQRT_RATIO,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MIN_TICK,
    Q96,
    Q128,
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


def test_ledger_pool_price_at_unit_sqrt_price_is_one_whole_token_for_both_quote_sides() -> None:
    """Price 1:1 pools at one whole quote token per whole base token.

    Returns:
        None: Assertions validate exact price output.

    Raises:
        AssertionError: Raised when price conversion diverges.
    """

    assert ledger_calculate_pool_price_in_quote(Q96, False, 18, 18) == 10**18
    assert ledger_calculate_pool_price_in_quote(Q96, True, 18, 18) == 10**18


def test_ledger_pool_price_inverts_when_token0_is_quote() -> None:
    """Invert the squared price when token0 is the quote token.

    Returns:
        None: Assertions validate exact price output for both orientations.

    Raises:
        AssertionError: Raised when price orientation diverges.
    """

    doubled_sqrt_price = 2 * Q96

    assert ledger_calculate_pool_price_in_quote(doubled_sqrt_price, False, 18, 18) == 4 * 10**18
    assert ledger_calculate_pool_price_in_quote(doubled_sqrt_price, True, 18, 18) == 25 * 10**16


def test_ledger_pool_price_rejects_zero_sqrt_price() -> None:
    """Reject zero sqrt price with a typed division error.

    Returns:
        None: Assertions validate typed error behavior.

    Raises:
        AssertionError: Raised when zero sqrt price is accepted.
    """

    with pytest.raises(DivisionError):
        ledger_calculate_pool_price_in_quote(0, False, 18, 18)


def test_ledger_token_value_converts_base_amount_and_adds_quote_amount() -> None:
    """Value base amount at pool price and add quote amount unchanged.

    Returns:
        None: Assertions validate exact valuation in both orientations.

    Raises:
        AssertionError: Raised when valuation diverges.
    """

    doubled_sqrt_price = 2 * Q96

    token1_quote_value = ledger_calculate_token_value_in_quote(
        amount0=10**18,
        amount1=7,
        sqrt_price_x96=doubled_sqrt_price,
        token0_is_quote=False,
        token0_decimals=18,
        token1_decimals=18,
    )
    token0_quote_value = ledger_calculate_token_value_in_quote(
        amount0=7,
        amount1=10**18,
        sqrt_price_x96=doubled_sqrt_price,
        token0_is_quote=True,
        token0_decimals=18,
        token1_decimals=18,
    )

    assert token1_quote_value == 4 * 10**18 + 7
    assert token0_quote_value == 25 * 10**16 + 7


def test_ledger_token_value_at_unit_price_is_sum_of_amounts() -> None:
    """Sum amounts for equal-decimal tokens at sqrt price `2**96`.

    Returns:
        None: Assertions validate exact valuation.

    Raises:
        AssertionError: Raised when valuation diverges.
    """

    assert ledger_calculate_token_value_in_quote(1000, 250, Q96, False, 18, 18) == 1250
    assert ledger_calculate_token_value_in_quote(1000, 250, Q96, True, 18, 18) == 1250


def test_ledger_proportional_cost_basis_floors_division() -> None:
    """Compute proportional cost basis with floor division.

    Returns:
        None: Assertions validate exact proportional output.

    Raises:
        AssertionError: Raised when proportional output diverges.
    """

    assert ledger_calculate_proportional_cost_basis(cost_basis=1000, delta_liquidity=500, liquidity=1000) == 500
    assert ledger_calculate_proportional_cost_basis(cost_basis=1000, delta_liquidity=1, liquidity=3) == 333
    assert ledger_calculate_proportional_cost_basis(cost_basis=1000, delta_liquidity=3, liquidity=3) == 1000
    assert ledger_calculate_proportional_cost_basis(cost_basis=1000, delta_liquidity=0, liquidity=3) == 0


def test_ledger_proportional_cost_basis_rejects_invalid_inputs() -> None:
    """Reject zero liquidity and out-of-range liquidity deltas.

    Returns:
        None: Assertions validate typed error behavior.

    Raises:
        AssertionError: Raised when invalid inputs are accepted.
    """

    with pytest.raises(DivisionError):
        ledger_calculate_proportional_cost_basis(cost_basis=1000, delta_liquidity=1, liquidity=0)
    with pytest.raises(InvalidStateError):
        ledger_calculate_proportional_cost_basis(cost_basis=1000, delta_liquidity=4, liquidity=3)
    with pytest.raises(InvalidStateError):
        ledger_calculate_proportional_cost_basis(cost_basis=1000, delta_liquidity=-1, liquidity=3)


@pytest.mark.parametrize(
    ("collected", "owed", "expected_principal", "expected_fee", "expected_owed_after"),
    [
        (300, 500, 300, 0, 200),
        (500, 500, 500, 0, 0),
        (520, 500, 500, 20, 0),
        (15, 0, 0, 15, 0),
    ],
)
def test_ledger_fee_split_caps_principal_at_owed_amount(
    collected: int,
    owed: int,
    expected_principal: int,
    expected_fee: int,
    expected_owed_after: int,
) -> None:
    """Treat collected amounts above owed principal as fee income.

    Args:
        collected: Collected amount of token0.
        owed: Owed principal of token0 before the collect.
        expected_principal: Expected principal portion.
        expected_fee: Expected fee portion.
        expected_owed_after: Expected owed principal after the collect.

    Returns:
        None: Assertions validate split output.

    Raises:
        AssertionError: Raised when split output diverges.
    """

    split = ledger_separate_fees_from_principal(
        collected0=collected,
        collected1=0,
        uncollected_principal0=owed,
        uncollected_principal1=0,
    )

    assert split.principal0 == expected_principal
    assert split.fee0 == expected_fee
    assert split.uncollected_principal0_after == expected_owed_after
    assert split.principal0 + split.fee0 == collected
    assert (split.principal1, split.fee1, split.uncollected_principal1_after) == (0, 0, 0)


def test_ledger_fee_split_rejects_negative_inputs() -> None:
    """Reject negative collected or owed amounts.

    Returns:
        None: Assertions validate typed error behavior.

    Raises:
        AssertionError: Raised when negative inputs are accepted.
    """

    with pytest.raises(InvalidStateError):
        ledger_separate_fees_from_principal(-1, 0, 0, 0)
    with pytest.raises(InvalidStateError):
        ledger_separate_fees_from_principal(0, 0, 0, -1)


def test_ledger_sqrt_ratio_at_tick_matches_tick_math_bounds() -> None:
    """Match on-chain TickMath at tick zero and at both range bounds.

    Returns:
        None: Assertions validate bit-exact sqrt ratios.

    Raises:
        AssertionError: Raised when sqrt ratio output diverges.
    """

    assert ledger_get_sqrt_ratio_at_tick(0) == Q96
    assert ledger_get_sqrt_ratio_at_tick(MIN_TICK) == MIN_SQRT_RATIO
    assert ledger_get_sqrt_ratio_at_tick(MAX_TICK) == MAX_SQRT_RATIO
    assert ledger_get_sqrt_ratio_at_tick(-60) < Q96 < ledger_get_sqrt_ratio_at_tick(60)

    with pytest.raises(ValueError):
        ledger_get_sqrt_ratio_at_tick(MAX_TICK + 1)


def test_ledger_amounts_for_liquidity_depend_on_price_position_in_range() -> None:
    """Return single-sided amounts outside the range and both tokens inside.

    Returns:
        None: Assertions validate range-side amount selection.

    Raises:
        AssertionError: Raised when amount selection diverges.
    """

    liquidity = 10**18
    below_range = ledger_calculate_amounts_for_liquidity(liquidity, ledger_get_sqrt_ratio_at_tick(-600), -60, 60)
    inside_range = ledger_calculate_amounts_for_liquidity(liquidity, Q96, -60, 60)
    above_range = ledger_calculate_amounts_for_liquidity(liquidity, ledger_get_sqrt_ratio_at_tick(600), -60, 60)

    assert below_range[0] > 0 and below_range[1] == 0
    assert inside_range[0] > 0 and inside_range[1] > 0
    assert above_range[0] == 0 and above_range[1] > 0
    assert ledger_calculate_amounts_for_liquidity(0, Q96, -60, 60) == (0, 0)


def test_ledger_amounts_for_liquidity_rejects_empty_range() -> None:
    """Reject ranges where the lower tick is not below the upper tick.

    Returns:
        None: Assertions validate range validation.

    Raises:
        AssertionError: Raised when an empty range is accepted.
    """

    with pytest.raises(ValueError):
        ledger_calculate_amounts_for_liquidity(1, Q96, 60, 60)


def test_ledger_position_value_is_zero_without_liquidity() -> None:
    """Value an empty position at zero.

    Returns:
        None: Assertions validate zero valuation.

    Raises:
        AssertionError: Raised when empty positions carry value.
    """

    assert ledger_calculate_position_value(0, Q96, -60, 60, False, 18, 18) == 0
    assert ledger_calculate_position_value(10**18, Q96, -60, 60, False, 18, 18) > 0


@pytest.mark.parametrize(
    ("current_tick", "expected_inside"),
    [
        (-100, 200),
        (0, 600),
        (60, 2**256 - 200),
    ],
)
def test_ledger_fee_growth_inside_flips_outside_values_by_price_side(current_tick: int, expected_inside: int) -> None:
    """Derive inside fee growth below, within, and above the range with uint256 wraparound.

    Args:
        current_tick: Current pool tick.
        expected_inside: Expected inside fee growth.

    Returns:
        None: Assertions validate boundary flipping.

    Raises:
        AssertionError: Raised when inside growth diverges from pool math.
    """

    assert (
        ledger_calculate_fee_growth_inside(
            current_tick=current_tick,
            tick_lower=-60,
            tick_upper=60,
            fee_growth_global_x128=1000,
            fee_growth_outside_lower_x128=300,
            fee_growth_outside_upper_x128=100,
        )
        == expected_inside
    )


def test_ledger_fee_growth_inside_rejects_empty_range() -> None:
    """Reject ranges where the lower tick is not below the upper tick.

    Returns:
        None: Assertions validate range validation.

    Raises:
        AssertionError: Raised when an empty range is accepted.
    """

    with pytest.raises(ValueError):
        ledger_calculate_fee_growth_inside(0, 60, 60, 1, 0, 0)


def test_ledger_fees_since_checkpoint_wraps_and_floors() -> None:
    """Scale growth deltas by liquidity, wrapping past zero and rounding down.

    Returns:
        None: Assertions validate accrued fee amounts.

    Raises:
        AssertionError: Raised when wraparound or flooring diverges.
    """

    assert ledger_calculate_fees_since_checkpoint(Q128, 2**256 - Q128, liquidity=7) == 14
    assert ledger_calculate_fees_since_checkpoint(Q128 // 3, 0, liquidity=10) == 3
    assert ledger_calculate_fees_since_checkpoint(Q128, Q128, liquidity=10**18) == 0
    with pytest.raises(ValueError):
        ledger_calculate_fees_since_checkpoint(Q128, 0, liquidity=-1)
