"""Database functions: DSUM, DCOUNT.

A database is a range whose first row holds column headers.  Criteria use
the same layout: the first row names database columns, each following row
is one condition set.  Conditions within a row are ANDed, rows are ORed.
Filtering runs on a polars DataFrame built from the range.
"""

from __future__ import annotations

import math
import re
from typing import Any

import polars as pl

from gridfn.arguments import FunctionDeclaration, arg
from gridfn.errors import EvaluationError
from gridfn.functions.helpers import to_number, to_string, unwrap
from gridfn.values import Grid, grid_to_frame

_CRITERION_RE = re.compile(r"^(<=|>=|<>|<|>|=)?(.*)$", re.DOTALL)

_OPS = {
    "=": lambda c, v: c == v,
    "<>": lambda c, v: c != v,
    ">": lambda c, v: c > v,
    "<": lambda c, v: c < v,
    ">=": lambda c, v: c >= v,
    "<=": lambda c, v: c <= v,
}


def _headers(rng: Grid, what: str) -> list[str]:
    headers = [to_string(column[0]).strip().upper() for column in rng]
    if len(set(headers)) != len(headers) or "" in headers:
        raise EvaluationError(
            f"[[FUNCTION_NAME]] {what} must have distinct, non-empty column headers."
        )
    return headers


def _database_frame(database: Grid) -> pl.DataFrame:
    headers = _headers(database, "database")
    columns = [[unwrap(cell) for cell in column[1:]] for column in database]
    return grid_to_frame(columns, headers)


def _parse_number(text: str) -> float | None:
    try:
        return float(text)
    except ValueError:
        return None


def _criterion_expr(column: str, criterion: Any) -> pl.Expr | None:
    """Polars expression for one criteria cell, or None when the cell is empty."""
    criterion = unwrap(criterion)
    if criterion is None or criterion == "":
        return None
    col = pl.col(column)
    if isinstance(criterion, bool):
        return col.cast(pl.Utf8).str.to_uppercase() == ("TRUE" if criterion else "FALSE")
    if isinstance(criterion, (int, float)):
        return col.cast(pl.Float64, strict=False) == float(criterion)

    match = _CRITERION_RE.match(str(criterion))
    op = match.group(1) or "="
    operand = match.group(2)
    number = _parse_number(operand)
    if number is not None:
        return _OPS[op](col.cast(pl.Float64, strict=False), number)
    return _OPS[op](col.cast(pl.Utf8).str.to_uppercase(), operand.upper())


def _filter_database(database: Grid, criteria: Grid) -> pl.DataFrame:
    df = _database_frame(database)
    criteria_headers = _headers(criteria, "criteria")
    for header in criteria_headers:
        if header not in df.columns:
            raise EvaluationError(
                f"[[FUNCTION_NAME]] criteria field {header!r} is not a database column."
            )

    n_condition_rows = len(criteria[0]) - 1
    row_exprs: list[pl.Expr] = []
    for row in range(1, n_condition_rows + 1):
        exprs = []
        for header, column in zip(criteria_headers, criteria):
            expr = _criterion_expr(header, column[row])
            if expr is not None:
                exprs.append(expr)
        row_exprs.append(pl.all_horizontal(exprs) if exprs else pl.lit(True))

    if not row_exprs:
        return df
    return df.filter(pl.any_horizontal(row_exprs).fill_null(False))


def _field_column(df: pl.DataFrame, field: Any) -> str:
    raw = unwrap(field)
    if isinstance(raw, str) and _parse_number(raw) is None:
        name = raw.strip().upper()
        if name not in df.columns:
            raise EvaluationError(f"[[FUNCTION_NAME]] field {raw!r} is not a database column.")
        return name
    index = math.trunc(to_number(raw))
    if index < 1 or index > len(df.columns):
        raise EvaluationError(
            f"[[FUNCTION_NAME]] field index {index} is out of range (1 to {len(df.columns)})."
        )
    return df.columns[index - 1]


def _numeric_values(df: pl.DataFrame, column: str) -> pl.Series:
    series = df[column]
    if series.dtype == pl.Boolean:
        return pl.Series(column, [], dtype=pl.Float64)
    return series.cast(pl.Float64, strict=False).drop_nulls()


def _fn_dsum(ctx: Any, database: Grid, field: Any, criteria: Grid) -> float:
    filtered = _filter_database(database, criteria)
    values = _numeric_values(filtered, _field_column(filtered, field))
    return float(values.sum()) if len(values) else 0.0


def _fn_dcount(ctx: Any, database: Grid, field: Any, criteria: Grid) -> int:
    filtered = _filter_database(database, criteria)
    return len(_numeric_values(filtered, _field_column(filtered, field)))


_DATABASE_ARGS = [
    arg("database (range)", "The array or range containing the data to consider, structured in such a way that the first row contains the labels for each column's values."),
    arg("field (number, string)", "Indicates which column in database contains the values to be extracted and operated on."),
    arg("criteria (range)", "An array or range containing zero or more criteria to filter the database values by before operating."),
]

DATABASE_FUNCTIONS: dict[str, FunctionDeclaration] = {
    "DSUM": FunctionDeclaration(
        description="Sum of values from a table-like range.",
        args=_DATABASE_ARGS,
        returns=["NUMBER"],
        compute=_fn_dsum,
    ),
    "DCOUNT": FunctionDeclaration(
        description="Counts values from a table-like range.",
        args=_DATABASE_ARGS,
        returns=["NUMBER"],
        compute=_fn_dcount,
    ),
}
