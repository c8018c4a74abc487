"""Math functions: SUM, PRODUCT, ABS, ROUND, MOD, POWER, SQRT, CEILING.MATH, MUNIT."""

from __future__ import annotations

import math
from typing import Any

from gridfn.arguments import FunctionDeclaration, arg
from gridfn.errors import DivisionByZeroError, EvaluationError
from gridfn.functions.helpers import iter_numbers, to_number
from gridfn.values import generate_grid


def _fn_sum(ctx: Any, *values: Any) -> int | float:
    return sum(iter_numbers(*values))


def _fn_product(ctx: Any, *values: Any) -> int | float:
    return math.prod(iter_numbers(*values))


def _fn_abs(ctx: Any, value: Any) -> int | float:
    return abs(to_number(value))


def _round_half_away(value: float, places: int) -> float:
    if places < 0:
        factor = 10 ** -places
        return math.copysign(math.floor(abs(value) / factor + 0.5) * factor, value)
    factor = 10 ** places
    return math.copysign(math.floor(abs(value) * factor + 0.5) / factor, value)


def _fn_round(ctx: Any, value: Any, places: Any = 0) -> int | float:
    """ROUND(value, [places]) -- rounds half away from zero, like spreadsheets."""
    number = to_number(value)
    digits = math.trunc(to_number(places))
    result = _round_half_away(number, digits)
    return int(result) if digits <= 0 else result


def _fn_mod(ctx: Any, dividend: Any, divisor: Any) -> int | float:
    """MOD(dividend, divisor) -- result has the sign of the divisor."""
    d = to_number(divisor)
    if d == 0:
        raise DivisionByZeroError("The divisor must be different from 0.")
    return to_number(dividend) % d


def _fn_power(ctx: Any, base: Any, exponent: Any) -> int | float:
    b = to_number(base)
    e = to_number(exponent)
    if b < 0 and not float(e).is_integer():
        raise EvaluationError("The exponent (%s) must be an integer when the base is negative." % e)
    if b == 0 and e < 0:
        raise DivisionByZeroError("The base must be different from 0 when the exponent is negative.")
    return b ** e


def _fn_sqrt(ctx: Any, value: Any) -> float:
    number = to_number(value)
    if number < 0:
        raise EvaluationError("The value (%s) must be positive or null." % number)
    return math.sqrt(number)


def _fn_ceiling_math(ctx: Any, number: Any, significance: Any = 1, mode: Any = 0) -> int | float:
    """CEILING.MATH(number, [significance], [mode])

    Negative numbers round toward zero unless *mode* is non-zero.
    """
    n = to_number(number)
    s = abs(to_number(significance))
    if s == 0:
        return 0
    if n >= 0 or to_number(mode) == 0:
        return math.ceil(n / s) * s
    return -math.ceil(-n / s) * s


def _fn_munit(ctx: Any, dimension: Any) -> list[list[int]]:
    """MUNIT(dimension) -- identity matrix of size dimension x dimension."""
    size = math.trunc(to_number(dimension))
    if size < 1:
        raise EvaluationError("The argument dimension must be positive")
    return generate_grid(size, size, lambda col, row: 1 if col == row else 0)


MATH_FUNCTIONS: dict[str, FunctionDeclaration] = {
    "SUM": FunctionDeclaration(
        description="Sum of a series of numbers and/or cells.",
        args=[
            arg("value1 (number, range<number>)", "The first number or range to add together."),
            arg("value2 (number, range<number>, repeating)", "Additional numbers or ranges to add to value1."),
        ],
        returns=["NUMBER"],
        compute=_fn_sum,
    ),
    "PRODUCT": FunctionDeclaration(
        description="Result of multiplying a series of numbers together.",
        args=[
            arg("factor1 (number, range<number>)", "The first number or range to calculate for the product."),
            arg("factor2 (number, range<number>, repeating)", "More numbers or ranges to calculate for the product."),
        ],
        returns=["NUMBER"],
        compute=_fn_product,
    ),
    "ABS": FunctionDeclaration(
        description="Absolute value of a number.",
        args=[arg("value (number)", "The number of which to return the absolute value.")],
        returns=["NUMBER"],
        compute=_fn_abs,
    ),
    "ROUND": FunctionDeclaration(
        description="Rounds a number according to standard rules.",
        args=[
            arg("value (number)", "The value to round to places number of places."),
            arg("places (number, default=0)", "The number of decimal places to which to round."),
        ],
        returns=["NUMBER"],
        compute=_fn_round,
    ),
    "MOD": FunctionDeclaration(
        description="Modulo (remainder) operator.",
        args=[
            arg("dividend (number)", "The number to be divided to find the remainder."),
            arg("divisor (number)", "The number to divide by."),
        ],
        returns=["NUMBER"],
        compute=_fn_mod,
    ),
    "POWER": FunctionDeclaration(
        description="A number raised to a power.",
        args=[
            arg("base (number)", "The number to raise to the exponent power."),
            arg("exponent (number)", "The exponent to raise base to."),
        ],
        returns=["NUMBER"],
        compute=_fn_power,
    ),
    "SQRT": FunctionDeclaration(
        description="Positive square root of a positive number.",
        args=[arg("value (number)", "The number for which to calculate the positive square root.")],
        returns=["NUMBER"],
        compute=_fn_sqrt,
    ),
    "CEILING_MATH": FunctionDeclaration(
        description="Rounds number up to nearest multiple of factor.",
        args=[
            arg("number (number)", "The value to round up to the nearest integer multiple of significance."),
            arg("significance (number, default=1)", "The number to whose multiples number will be rounded."),
            arg("mode (number, default=0)", "If number is negative, specifies the rounding direction."),
        ],
        returns=["NUMBER"],
        compute=_fn_ceiling_math,
    ),
    "MUNIT": FunctionDeclaration(
        description="Returns a n x n unit matrix, where n is the input dimension.",
        args=[arg("dimension (number)", "An integer specifying the dimension size of the unit matrix.")],
        returns=["RANGE<NUMBER>"],
        compute=_fn_munit,
    ),
}
