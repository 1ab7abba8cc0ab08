"""
normalizer.py - Fixed-point precision conversion

Pure integer functions for moving quantities between fixed-point
precisions (10**precision base units per whole unit) and for the
multiply-then-divide step used by every valuation.

Intermediate products are checked against the unsigned 256-bit range so a
result is only ever produced where a 256-bit implementation would produce
the same integer.
"""

from __future__ import annotations

from .core import UINT256_MAX
from .errors import ArithmeticOverflow


def _check_precision(precision: int) -> None:
    if not isinstance(precision, int) or isinstance(precision, bool) or precision < 0:
        raise ValueError(f"precision must be a non-negative int, got {precision!r}")


def checked_mul(a: int, b: int) -> int:
    """Multiply with overflow checking against the unsigned 256-bit range."""
    result = a * b
    if result > UINT256_MAX:
        raise ArithmeticOverflow(f"multiplication overflow: {a} * {b}")
    return result


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    Compute a * b // denominator, multiplying first.

    Truncates toward zero for non-negative inputs.

    Raises:
        ZeroDivisionError: If denominator is zero
        ArithmeticOverflow: If a * b exceeds 2**256 - 1
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    return checked_mul(a, b) // denominator


def rescale(value: int, from_precision: int, to_precision: int) -> int:
    """
    Rescale an integer quantity between two fixed-point precisions.

    Going to a coarser precision divides by 10**(from - to) and drops the
    fractional remainder (truncation toward zero). Going to a finer
    precision multiplies by 10**(to - from). Equal precisions return the
    value unchanged.

    Example:
        rescale(160784000000, 8, 18)  # 1607.84 at 8 dp -> 18 dp
        # 1607840000000000000000
        rescale(1999, 3, 0)
        # 1
    """
    _check_precision(from_precision)
    _check_precision(to_precision)
    if from_precision == to_precision:
        return value
    magnitude = abs(value)
    if from_precision > to_precision:
        magnitude //= 10 ** (from_precision - to_precision)
    else:
        magnitude = checked_mul(magnitude, 10 ** (to_precision - from_precision))
    return magnitude if value >= 0 else -magnitude


def scaled_mul_div(
    value: int,
    numerator: int,
    denominator: int,
    from_precision: int,
    to_precision: int,
) -> int:
    """
    Compute rescale(value * numerator / denominator, from, to) with a single
    truncating division.

    The precision factor is folded into the numerator or the denominator so
    that the result is rounded once, not once per step.
    """
    _check_precision(from_precision)
    _check_precision(to_precision)
    if to_precision >= from_precision:
        scaled = checked_mul(numerator, 10 ** (to_precision - from_precision))
        return mul_div(value, scaled, denominator)
    return mul_div(value, numerator, denominator * 10 ** (from_precision - to_precision))
