"""Payload and grid value model.

Grids are **column-major**: a grid is a list of columns and each column is a
list of row values, so ``grid[col][row]`` addresses a cell,
``len(grid)`` is the column count and ``len(grid[0])`` the row count.  This
is the transpose of how ranges are usually written down (``{1,2;3,4}`` is
``[[1, 3], [2, 4]]``).  Use :func:`grid_from_rows` when building a grid from
row-major data.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, TypeVar, Union

import polars as pl
from pydantic import BaseModel

from gridfn.errors import InvalidReferenceError, is_error_kind

T = TypeVar("T")
U = TypeVar("U")

CellValue = Union[float, int, str, bool, None]
Grid = list  # list[list[T]], columns outer


class Payload(BaseModel):
    """Uniform result of a function call.

    ``value`` holds the computed scalar, or an error kind such as ``"#N/A"``
    for evaluation-error payloads.  ``message`` is mutable: the pipeline fills
    in the ``[[FUNCTION_NAME]]`` placeholder in place.
    """

    value: Any = None
    message: str | None = None
    format: str | None = None

    @property
    def is_error(self) -> bool:
        return is_error_kind(self.value)


def is_grid(value: Any) -> bool:
    """True if *value* is a grid (a non-empty list of lists)."""
    return isinstance(value, list) and len(value) > 0 and isinstance(value[0], list)


def grid_shape(grid: Grid) -> tuple[int, int]:
    """Return ``(n_columns, n_rows)`` of a column-major grid."""
    return len(grid), len(grid[0])


def generate_grid(n_columns: int, n_rows: int, fn: Callable[[int, int], T]) -> Grid:
    """Build a column-major grid by calling ``fn(col, row)`` for every cell."""
    return [[fn(col, row) for row in range(n_rows)] for col in range(n_columns)]


def grid_map(grid: Grid, fn: Callable[[T], U]) -> Grid:
    """Return a new grid of the same shape with ``fn`` applied to each cell."""
    return [[fn(cell) for cell in column] for column in grid]


def grid_for_each(grid: Grid, fn: Callable[[T], Any]) -> None:
    for column in grid:
        for cell in column:
            fn(cell)


def grid_from_rows(rows: list[list[T]]) -> Grid:
    """Convert row-major data (list of rows) into a column-major grid.

    Raises:
        ValueError: If the rows are ragged or empty.
    """
    if not rows or not rows[0]:
        raise ValueError("Cannot build a grid from empty rows")
    width = len(rows[0])
    if any(len(r) != width for r in rows):
        raise ValueError("All rows of a grid must have the same length")
    return [[row[col] for row in rows] for col in range(width)]


def grid_to_rows(grid: Grid) -> list[list[Any]]:
    """Inverse of :func:`grid_from_rows`."""
    n_columns, n_rows = grid_shape(grid)
    return [[grid[col][row] for col in range(n_columns)] for row in range(n_rows)]


def flatten_values(*args: Any) -> list[Any]:
    """Flatten scalar and grid arguments into one list, column by column.

    Payload cells are unwrapped to their values.
    """
    out: list[Any] = []
    for a in args:
        if is_grid(a):
            for column in a:
                out.extend(c.value if isinstance(c, Payload) else c for c in column)
        elif isinstance(a, Payload):
            out.append(a.value)
        else:
            out.append(a)
    return out


# ---------------------------------------------------------------------------
# Polars interop
# ---------------------------------------------------------------------------


def _column_series(name: str, values: list[Any]) -> pl.Series:
    try:
        return pl.Series(name, values)
    except (TypeError, ValueError, pl.exceptions.PolarsError):
        # Mixed-type column: fall back to text
        return pl.Series(
            name, [None if v is None else str(v) for v in values], dtype=pl.Utf8
        )


def grid_to_frame(grid: Grid, columns: list[str] | None = None) -> pl.DataFrame:
    """Convert a grid (of values or payloads) to a DataFrame, one column per grid column.

    Args:
        grid: Column-major grid.
        columns: Optional column names; defaults to ``A``, ``B``, ...
    """
    names = columns or [_column_letter(i) for i in range(len(grid))]
    if len(names) != len(grid):
        raise ValueError(f"Expected {len(grid)} column names, got {len(names)}")
    series = [
        _column_series(name, [c.value if isinstance(c, Payload) else c for c in column])
        for name, column in zip(names, grid)
    ]
    return pl.DataFrame(series)


def grid_from_frame(df: pl.DataFrame, include_header: bool = False) -> Grid:
    """Convert a DataFrame to a column-major grid.

    Args:
        df: Source frame.
        include_header: Prepend each column's name as its first cell.
    """
    grid = []
    for name in df.columns:
        values = df[name].to_list()
        grid.append([name, *values] if include_header else values)
    return grid


def _column_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


# ---------------------------------------------------------------------------
# Evaluation context
# ---------------------------------------------------------------------------


class EvalContext(Protocol):
    """Per-call capability object supplied by the evaluator."""

    locale: str

    def resolve_range(self, name: str) -> Grid:
        """Resolve a range reference or defined name to a grid."""
        ...


class MappingEvalContext:
    """EvalContext backed by a mapping of names to grids."""

    def __init__(self, ranges: dict[str, Grid] | None = None, locale: str = "en_US") -> None:
        self.ranges = {k.upper(): v for k, v in (ranges or {}).items()}
        self.locale = locale

    def resolve_range(self, name: str) -> Grid:
        key = name.upper()
        if key not in self.ranges:
            raise InvalidReferenceError(f"Invalid reference: {name!r}")
        return self.ranges[key]
