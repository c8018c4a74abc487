"""Coercion and iteration helpers shared by the function modules."""

from __future__ import annotations

from typing import Any, Iterator

from gridfn.errors import EvaluationError
from gridfn.values import Payload, is_grid


def unwrap(value: Any) -> Any:
    """Return the raw value of a cell, raising if it holds an error.

    Cells of a range may arrive as payloads; an error payload propagates as
    the corresponding evaluation error.
    """
    if isinstance(value, Payload):
        if value.is_error:
            raise EvaluationError(value.message or "", value.value)
        return value.value
    return value


def to_number(value: Any) -> int | float:
    value = unwrap(value)
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            number = float(text.replace(",", "")) if not text.endswith("%") else float(text[:-1]) / 100
        except ValueError:
            raise EvaluationError(
                f"The function [[FUNCTION_NAME]] expects a number value, but '{value}' "
                "is a string, and cannot be coerced to a number."
            )
        return int(number) if number.is_integer() and "." not in text else number
    raise EvaluationError(
        f"The function [[FUNCTION_NAME]] expects a number value, got {type(value).__name__}."
    )


def to_string(value: Any) -> str:
    value = unwrap(value)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_boolean(value: Any) -> bool:
    value = unwrap(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper == "TRUE":
            return True
        if upper in ("FALSE", ""):
            return False
        raise EvaluationError(
            f"The function [[FUNCTION_NAME]] expects a boolean value, but '{value}' "
            "is a text, and cannot be coerced to a boolean."
        )
    raise EvaluationError(
        f"The function [[FUNCTION_NAME]] expects a boolean value, got {type(value).__name__}."
    )


def iter_numbers(*args: Any) -> Iterator[int | float]:
    """Yield the numbers of scalar and range arguments.

    Scalars are coerced.  Inside ranges, only numeric cells count: text,
    booleans and empty cells are skipped, as spreadsheets do.
    """
    for a in args:
        if is_grid(a):
            for column in a:
                for cell in column:
                    raw = unwrap(cell)
                    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                        yield raw
        else:
            yield to_number(a)


def iter_booleans(*args: Any) -> Iterator[bool]:
    """Yield booleans of scalar and range arguments; empty and text cells in ranges are skipped."""
    for a in args:
        if is_grid(a):
            for column in a:
                for cell in column:
                    raw = unwrap(cell)
                    if raw is None or isinstance(raw, str):
                        continue
                    yield to_boolean(raw)
        else:
            yield to_boolean(a)


def iter_strings(*args: Any) -> Iterator[str]:
    """Yield string values of scalar and range arguments, ranges row by row."""
    for a in args:
        if is_grid(a):
            n_columns, n_rows = len(a), len(a[0])
            for row in range(n_rows):
                for col in range(n_columns):
                    yield to_string(a[col][row])
        else:
            yield to_string(a)


def evaluate_lazy(value: Any) -> Any:
    """Resolve a lazy argument (a zero-argument callable) to its value."""
    return value() if callable(value) else value
