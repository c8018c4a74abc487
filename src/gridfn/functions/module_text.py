"""Text functions: UPPER, LOWER, LEN, TRIM, CONCATENATE, TEXTJOIN."""

from __future__ import annotations

from typing import Any

from gridfn.arguments import FunctionDeclaration, arg
from gridfn.errors import EvaluationError
from gridfn.functions.helpers import iter_strings, to_boolean, to_string

# Spreadsheet cells hold at most this many characters
_MAX_TEXT_LENGTH = 50_000


def _fn_upper(ctx: Any, text: Any) -> str:
    return to_string(text).upper()


def _fn_lower(ctx: Any, text: Any) -> str:
    return to_string(text).lower()


def _fn_len(ctx: Any, text: Any) -> int:
    return len(to_string(text))


def _fn_trim(ctx: Any, text: Any) -> str:
    """TRIM(text) -- strips and collapses inner runs of spaces."""
    return " ".join(part for part in to_string(text).split(" ") if part)


def _check_length(result: str) -> str:
    if len(result) > _MAX_TEXT_LENGTH:
        raise EvaluationError(
            f"[[FUNCTION_NAME]] result exceeds the maximum of {_MAX_TEXT_LENGTH} characters."
        )
    return result


def _fn_concatenate(ctx: Any, *values: Any) -> str:
    return _check_length("".join(iter_strings(*values)))


def _fn_textjoin(ctx: Any, delimiter: Any, ignore_empty: Any, *texts: Any) -> str:
    """TEXTJOIN(delimiter, ignore_empty, text1, [text2, ...])"""
    sep = to_string(delimiter)
    skip_empty = to_boolean(ignore_empty)
    parts = [s for s in iter_strings(*texts) if not (skip_empty and s == "")]
    return _check_length(sep.join(parts))


TEXT_FUNCTIONS: dict[str, FunctionDeclaration] = {
    "UPPER": FunctionDeclaration(
        description="Converts a specified string to uppercase.",
        args=[arg("text (string)", "The string to convert to uppercase.")],
        returns=["STRING"],
        compute=_fn_upper,
    ),
    "LOWER": FunctionDeclaration(
        description="Converts a specified string to lowercase.",
        args=[arg("text (string)", "The string to convert to lowercase.")],
        returns=["STRING"],
        compute=_fn_lower,
    ),
    "LEN": FunctionDeclaration(
        description="Length of a string.",
        args=[arg("text (string)", "The string whose length will be returned.")],
        returns=["NUMBER"],
        compute=_fn_len,
    ),
    "TRIM": FunctionDeclaration(
        description="Removes space characters.",
        args=[arg("text (string)", "The text or reference to a cell containing text to be trimmed.")],
        returns=["STRING"],
        compute=_fn_trim,
    ),
    "CONCATENATE": FunctionDeclaration(
        description="Appends strings to one another.",
        args=[
            arg("string1 (string, range<string>)", "The initial string."),
            arg("string2 (string, range<string>, repeating)", "More strings to append in sequence."),
        ],
        returns=["STRING"],
        compute=_fn_concatenate,
    ),
    "TEXTJOIN": FunctionDeclaration(
        description="Combines text from multiple strings and/or arrays.",
        args=[
            arg("delimiter (string)", "A string, possibly empty, or a reference to a valid string."),
            arg("ignore_empty (boolean)", "A boolean; if TRUE, empty cells selected in the text arguments won't be included in the result."),
            arg("text1 (string, range<string>)", "Any text item. This could be a string, or an array of strings in a range."),
            arg("text2 (string, range<string>, repeating)", "Additional text item(s)."),
        ],
        returns=["STRING"],
        compute=_fn_textjoin,
    ),
}
