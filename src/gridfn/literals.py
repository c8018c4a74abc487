"""Lark-based parser for literal function arguments given on the command line.

Supports:
- Numbers: ``42``, ``-1.5``, ``1e3``
- Strings: ``"text"`` (double quotes, backslash escapes)
- Booleans: ``TRUE`` / ``FALSE`` (any case)
- Array constants: ``{1,2;3,4}`` -- ``,`` separates columns, ``;`` separates
  rows.  Arrays are returned as column-major grids, so ``{1,2;3,4}`` becomes
  ``[[1, 3], [2, 4]]``.

Anything else that is not an array or quoted string is taken verbatim as
text, so ``gridfn call UPPER hello`` works without shell quoting gymnastics.
"""

from __future__ import annotations

from typing import Any

from lark import Lark, Transformer
from lark.exceptions import LarkError

from gridfn.values import grid_from_rows

GRAMMAR = r"""
?start: value

?value: scalar
    | array

array: "{" row (";" row)* "}"
row: scalar ("," scalar)*

?scalar: SIGNED_NUMBER   -> number
    | ESCAPED_STRING     -> string
    | BOOL               -> boolean

BOOL.2: /TRUE|FALSE/i

%import common.SIGNED_NUMBER
%import common.ESCAPED_STRING
%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


class LiteralParseError(ValueError):
    """Malformed array constant or quoted string.

    Attributes:
        position: Column where the error was detected, when known.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Literal parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class _LiteralTransformer(Transformer):
    def number(self, children: list) -> int | float:
        s = str(children[0])
        if "." in s or "e" in s.lower():
            return float(s)
        return int(s)

    def string(self, children: list) -> str:
        raw = str(children[0])
        return raw[1:-1].replace('\\"', '"').replace("\\\\", "\\")

    def boolean(self, children: list) -> bool:
        return str(children[0]).upper() == "TRUE"

    def row(self, children: list) -> list:
        return list(children)

    def array(self, children: list) -> list:
        try:
            return grid_from_rows(list(children))
        except ValueError as exc:
            raise LiteralParseError(str(exc)) from exc


_transformer = _LiteralTransformer()


def parse_literal(text: str) -> Any:
    """Parse one command-line argument into a cell value or a grid.

    Raises:
        LiteralParseError: If *text* looks like an array constant or a quoted
            string but is malformed.
    """
    stripped = text.strip()
    try:
        tree = _parser.parse(stripped)
    except LarkError as exc:
        if stripped.startswith(("{", '"')):
            raise LiteralParseError(str(exc), position=getattr(exc, "column", None)) from exc
        return text
    # Transformer errors surface wrapped in VisitError
    try:
        return _transformer.transform(tree)
    except LarkError as exc:
        cause = getattr(exc, "orig_exc", None)
        if isinstance(cause, LiteralParseError):
            raise cause from None
        raise LiteralParseError(str(exc)) from exc
