"""Fixed point math with directional rounding

All values are non-negative integers bounded by MAX_UINT. Asset-valued
outputs owed to a user round down, share or liability-valued outputs owed by
a user round up.
"""
from enum import Enum

from .constants import (
    MAX_UINT,
    RAY,
    HALF_RAY,
    PERCENTAGE_FACTOR,
    HALF_PERCENTAGE_FACTOR,
)
from .errors import ArithmeticError


class Rounding(str, Enum):
    FLOOR = "floor"
    CEIL = "ceil"


def checked_add(a: int, b: int) -> int:
    """Add with overflow checking"""
    result = a + b
    if result > MAX_UINT:
        raise ArithmeticError("Arithmetic overflow in addition")
    return result


def checked_mul(a: int, b: int) -> int:
    """Multiply with overflow checking"""
    result = a * b
    if result > MAX_UINT:
        raise ArithmeticError("Arithmetic overflow in multiplication")
    return result


def mul_div(x: int, y: int, denominator: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """x * y / denominator without intermediate overflow

    Python integers are arbitrary precision so only the final result is
    range checked.
    """
    if x < 0 or y < 0 or denominator < 0:
        raise ArithmeticError(f"Negative mulDiv operand: {x} * {y} / {denominator}")
    if denominator == 0:
        raise ArithmeticError("Division by zero")

    result, remainder = divmod(x * y, denominator)
    if rounding == Rounding.CEIL and remainder:
        result += 1

    if result > MAX_UINT:
        raise ArithmeticError("Arithmetic overflow in mulDiv")
    return result


def percent_mul(value: int, percentage: int) -> int:
    """Scale value by a basis point rate, rounding half up"""
    if value < 0 or percentage < 0:
        raise ArithmeticError(f"Negative percentMul operand: {value} * {percentage}")
    return checked_add(value * percentage, HALF_PERCENTAGE_FACTOR) // PERCENTAGE_FACTOR


def ray_mul(a: int, b: int) -> int:
    """Multiply by a ray-scaled factor, rounding half up"""
    if a < 0 or b < 0:
        raise ArithmeticError(f"Negative rayMul operand: {a} * {b}")
    return checked_add(a * b, HALF_RAY) // RAY


def abs_diff(a: int, b: int) -> int:
    return a - b if a > b else b - a
