"""Array functions: TRANSPOSE, FLATTEN, FILTER.ROWS."""

from __future__ import annotations

from typing import Any

from gridfn.arguments import FunctionDeclaration, arg
from gridfn.errors import EvaluationError, NotAvailableError
from gridfn.functions.helpers import to_boolean, unwrap
from gridfn.values import Grid, is_grid


def _fn_transpose(ctx: Any, rng: Any) -> Grid:
    if not is_grid(rng):
        return [[rng]]
    n_columns, n_rows = len(rng), len(rng[0])
    return [[rng[col][row] for col in range(n_columns)] for row in range(n_rows)]


def _fn_flatten(ctx: Any, *ranges: Any) -> Grid:
    """FLATTEN(range1, [range2, ...]) -- one column, ranges read row by row."""
    values: list[Any] = []
    for rng in ranges:
        if not is_grid(rng):
            values.append(rng)
            continue
        n_columns, n_rows = len(rng), len(rng[0])
        for row in range(n_rows):
            for col in range(n_columns):
                values.append(rng[col][row])
    return [values]


def _fn_filter_rows(ctx: Any, rng: Grid, include: Grid) -> Grid:
    """FILTER.ROWS(range, include) -- keep the rows whose include flag is TRUE.

    *include* is a single column with one flag per row of *range*.
    """
    n_rows = len(rng[0])
    if len(include) != 1:
        raise EvaluationError("[[FUNCTION_NAME]] expects the include range to be a single column.")
    flags = include[0]
    if len(flags) != n_rows:
        raise EvaluationError(
            f"[[FUNCTION_NAME]] has mismatched range sizes: {n_rows} rows to filter, "
            f"{len(flags)} include flags."
        )
    kept = [row for row in range(n_rows) if to_boolean(unwrap(flags[row]))]
    if not kept:
        raise NotAvailableError("No match found in [[FUNCTION_NAME]] evaluation.")
    return [[column[row] for row in kept] for column in rng]


ARRAY_FUNCTIONS: dict[str, FunctionDeclaration] = {
    "TRANSPOSE": FunctionDeclaration(
        description="Transpose the rows and columns of a range.",
        args=[arg("range (any, range<any>)", "The range to be transposed.")],
        returns=["RANGE<ANY>"],
        compute=_fn_transpose,
    ),
    "FLATTEN": FunctionDeclaration(
        description="Flattens the ranges provided into a single column.",
        args=[
            arg("range (any, range<any>)", "The first range to flatten."),
            arg("range2 (any, range<any>, repeating)", "Additional ranges to flatten."),
        ],
        returns=["RANGE<ANY>"],
        compute=_fn_flatten,
    ),
    "FILTER_ROWS": FunctionDeclaration(
        description="Rows of a range whose include flag is TRUE.",
        args=[
            arg("range (range<any>)", "The data to be filtered."),
            arg("include (range<boolean>)", "A column of TRUE or FALSE values, one per row of range."),
        ],
        returns=["RANGE<ANY>"],
        compute=_fn_filter_rows,
    ),
}
