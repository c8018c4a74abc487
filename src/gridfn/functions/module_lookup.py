"""Lookup functions: VLOOKUP, MATCH, INDEX, INDIRECT.

Ranges are column-major grids: ``rng[col][row]``.
"""

from __future__ import annotations

import math
from typing import Any

from gridfn.arguments import FunctionDeclaration, arg
from gridfn.errors import EvaluationError, InvalidReferenceError, NotAvailableError
from gridfn.functions.helpers import to_boolean, to_number, to_string, unwrap
from gridfn.values import Grid, Payload, is_grid


def _normalize(value: Any) -> Any:
    """Comparable form of a cell: text compares case-insensitively."""
    value = value.value if isinstance(value, Payload) else value
    if isinstance(value, str):
        return value.upper()
    return value


def _same_kind(a: Any, b: Any) -> bool:
    number_types = (int, float)
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool)
    if isinstance(a, number_types) and isinstance(b, number_types):
        return True
    return type(a) is type(b)


def _exact_index(values: list[Any], key: Any) -> int:
    target = _normalize(key)
    for i, cell in enumerate(values):
        if _normalize(cell) == target and _same_kind(_normalize(cell), target):
            return i
    return -1


def _approximate_index(values: list[Any], key: Any, descending: bool = False) -> int:
    """Index of the last value <= key (>= key when *descending*) in a sorted list."""
    target = _normalize(key)
    found = -1
    for i, cell in enumerate(values):
        current = _normalize(cell)
        if current is None or not _same_kind(current, target):
            continue
        if (current >= target) if descending else (current <= target):
            found = i
        else:
            break
    return found


def _fn_vlookup(ctx: Any, search_key: Any, rng: Grid, index: Any, is_sorted: Any = True) -> Any:
    """VLOOKUP(search_key, range, index, [is_sorted])"""
    column = math.trunc(to_number(index))
    if column < 1 or column > len(rng):
        raise EvaluationError("[[FUNCTION_NAME]] evaluates to an out of bounds range.")
    key = unwrap(search_key)
    first_column = rng[0]
    if to_boolean(is_sorted):
        row = _approximate_index(first_column, key)
    else:
        row = _exact_index(first_column, key)
    if row == -1:
        raise NotAvailableError(
            f"Did not find value '{to_string(key)}' in [[FUNCTION_NAME]] evaluation."
        )
    return rng[column - 1][row]


def _fn_match(ctx: Any, search_key: Any, rng: Grid, search_type: Any = 1) -> int:
    """MATCH(search_key, range, [search_type]) -- 1-based position in a single row or column."""
    n_columns, n_rows = len(rng), len(rng[0])
    if n_columns != 1 and n_rows != 1:
        raise EvaluationError("Function [[FUNCTION_NAME]] expects a one-dimensional range.")
    values = rng[0] if n_columns == 1 else [column[0] for column in rng]
    key = unwrap(search_key)
    mode = to_number(search_type)
    if mode == 0:
        position = _exact_index(values, key)
    else:
        position = _approximate_index(values, key, descending=mode < 0)
    if position == -1:
        raise NotAvailableError(
            f"Did not find value '{to_string(key)}' in [[FUNCTION_NAME]] evaluation."
        )
    return position + 1


def _fn_index(ctx: Any, reference: Grid, row: Any = 0, column: Any = 0) -> Any:
    """INDEX(reference, [row], [column]) -- 0 selects a whole column or row."""
    r = math.trunc(to_number(row))
    c = math.trunc(to_number(column))
    n_columns, n_rows = len(reference), len(reference[0])
    # Single row or column ranges accept one index for either axis
    if n_rows == 1 and c == 0 and r > 1:
        r, c = 1, r
    if r < 0 or c < 0 or r > n_rows or c > n_columns:
        raise InvalidReferenceError("Index out of range.")
    if n_columns == 1 and r > 0:
        c = 1
    if n_rows == 1 and c > 0:
        r = 1
    if r == 0 and c == 0:
        return reference
    if r == 0:
        return [reference[c - 1]]
    if c == 0:
        return [[column[r - 1]] for column in reference]
    return reference[c - 1][r - 1]


def _fn_indirect(ctx: Any, reference: Any) -> Grid:
    """INDIRECT(reference) -- resolve a defined name through the evaluation context."""
    name = to_string(reference).strip()
    if not name:
        raise InvalidReferenceError("Invalid reference: empty name.")
    if ctx is None:
        raise InvalidReferenceError(f"Cannot resolve {name!r}: no evaluation context.")
    result = ctx.resolve_range(name)
    return result if is_grid(result) else [[result]]


LOOKUP_FUNCTIONS: dict[str, FunctionDeclaration] = {
    "VLOOKUP": FunctionDeclaration(
        description="Vertical lookup.",
        args=[
            arg("search_key (string, number, boolean)", "The value to search for."),
            arg("range (range)", "The range to consider for the search. The first column in the range is searched for the key."),
            arg("index (number)", "The column index of the value to be returned, where the first column in range is numbered 1."),
            arg("is_sorted (boolean, default=TRUE)", "Indicates whether the column to be searched is sorted."),
        ],
        returns=["ANY"],
        compute=_fn_vlookup,
    ),
    "MATCH": FunctionDeclaration(
        description="Position of item in range that matches value.",
        args=[
            arg("search_key (string, number, boolean)", "The value to search for."),
            arg("range (range)", "The one-dimensional array to be searched."),
            arg("search_type (number, default=1)", "The search method. 1 finds the largest value less than or equal to search_key, 0 finds exact match, -1 finds the smallest value greater than or equal to search_key."),
        ],
        returns=["NUMBER"],
        compute=_fn_match,
    ),
    "INDEX": FunctionDeclaration(
        description="Returns the content of a cell, specified by row and column offset.",
        args=[
            arg("reference (range)", "The range of cells from which the values are returned."),
            arg("row (number, default=0)", "The index of the row to be returned from within the reference range of cells."),
            arg("column (number, default=0)", "The index of the column to be returned from within the reference range of cells."),
        ],
        returns=["ANY"],
        compute=_fn_index,
    ),
    "INDIRECT": FunctionDeclaration(
        description="Returns the content of a range given its name.",
        args=[arg("reference (string)", "The name of the range to resolve.")],
        returns=["RANGE"],
        compute=_fn_indirect,
    ),
}
