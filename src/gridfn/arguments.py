"""Argument metadata for registered functions.

Leaf modules describe each parameter with :func:`arg`::

    arg("value (number, range<number>, repeating)", "The values to add.")

The registry enriches a :class:`FunctionDeclaration` into an immutable
:class:`FunctionDescriptor` (``add_meta_info``) after checking the argument
list (``validate_arguments``).
"""

from __future__ import annotations

import re
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from gridfn.errors import ArgumentDefinitionError

ARG_TYPES: tuple[str, ...] = (
    "ANY",
    "BOOLEAN",
    "NUMBER",
    "STRING",
    "DATE",
    "RANGE",
    "RANGE<BOOLEAN>",
    "RANGE<DATE>",
    "RANGE<NUMBER>",
    "RANGE<STRING>",
    "META",
)

_ARG_RE = re.compile(r"^(.*?)\((.*?)\)(.*)$")


class ArgumentSpec(BaseModel):
    """Declared metadata for one function parameter."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    types: tuple[str, ...] = ()
    optional: bool = False
    repeating: bool = False
    lazy: bool = False
    default: bool = False
    default_value: str | None = None
    accept_errors: bool = False
    accept_matrix: bool = False
    accept_matrix_only: bool = False


def arg(definition: str, description: str = "") -> ArgumentSpec:
    """Parse an argument definition string.

    The definition is ``"<name> (<type or flag>, ...)"``.  Types are listed
    in :data:`ARG_TYPES` (``range<any>`` is accepted as ``RANGE``); flags are
    ``optional``, ``repeating``, ``lazy`` and ``default=<value>``.

    Raises:
        ArgumentDefinitionError: If the definition has no parenthesized part.
    """
    match = _ARG_RE.match(definition.strip())
    if match is None:
        raise ArgumentDefinitionError(f"Invalid argument definition: {definition!r}")
    name = match.group(1).strip()
    types: list[str] = []
    optional = repeating = lazy = False
    default_value: str | None = None
    for param in match.group(2).split(","):
        key = param.strip().upper()
        if key in ARG_TYPES:
            types.append(key)
        elif key == "RANGE<ANY>":
            types.append("RANGE")
        elif key == "OPTIONAL":
            optional = True
        elif key == "REPEATING":
            repeating = True
        elif key == "LAZY":
            lazy = True
        elif key.startswith("DEFAULT="):
            default_value = param.strip()[len("default="):]
        elif key:
            raise ArgumentDefinitionError(
                f"Unknown type or flag {param.strip()!r} in argument definition {definition!r}"
            )
    return ArgumentSpec(
        name=name,
        description=description,
        types=tuple(types),
        optional=optional,
        repeating=repeating,
        lazy=lazy,
        default=default_value is not None,
        default_value=default_value,
        accept_errors="ANY" in types or "RANGE" in types,
        accept_matrix=any(t.startswith("RANGE") for t in types),
        accept_matrix_only=bool(types) and all(t.startswith("RANGE") for t in types),
    )


class FunctionDeclaration(BaseModel):
    """What a leaf function module exports for each function."""

    model_config = ConfigDict(frozen=True)

    compute: Callable[..., Any]
    description: str = ""
    args: tuple[ArgumentSpec, ...] = ()
    returns: tuple[str, ...] = ("ANY",)
    category: str | None = None
    is_exported: bool = False


class FunctionDescriptor(BaseModel):
    """Canonical, immutable description of a registered function."""

    model_config = ConfigDict(frozen=True)

    name: str
    compute: Callable[..., Any]
    description: str = ""
    args: tuple[ArgumentSpec, ...] = ()
    returns: tuple[str, ...] = ("ANY",)
    category: str | None = None
    is_exported: bool = False
    min_arg_required: int = 0
    max_arg_possible: int | None = Field(default=0, description="None when unbounded")
    nbr_arg_repeating: int = 0

    def arg_to_focus(self, position: int) -> int:
        """Map a 1-based call-site argument position to a 1-based declared arg.

        Repeating arguments form a group at the end of the declaration; call
        positions past the fixed arguments cycle through that group.
        """
        count = len(self.args)
        repeating = self.nbr_arg_repeating
        if not repeating:
            return position
        if repeating == 1:
            return min(position, count)
        before_repeat = count - repeating
        if position <= before_repeat:
            return position
        return ((position - before_repeat) % repeating or repeating) + before_repeat

    def spec_for(self, index: int) -> ArgumentSpec | None:
        """Return the spec governing the 0-based call argument *index*."""
        focus = self.arg_to_focus(index + 1)
        if 1 <= focus <= len(self.args):
            return self.args[focus - 1]
        return None


def validate_arguments(name: str, args: tuple[ArgumentSpec, ...] | list[ArgumentSpec]) -> None:
    """Static checks on an argument list.

    Raises:
        ArgumentDefinitionError: If META is combined with other types, a
            non-repeating argument follows a repeating one, or a mandatory
            argument follows an optional one.
    """
    previous_repeating = False
    previous_optional = False
    for current in args:
        if "META" in current.types and len(current.types) > 1:
            raise ArgumentDefinitionError(
                f"Function {name} has an argument that has been declared with more "
                "than one type whose type 'META'. The 'META' type can only be declared alone.",
                func_name=name,
            )
        if previous_repeating and not current.repeating:
            raise ArgumentDefinitionError(
                f"Function {name} has no-repeatable arguments declared after repeatable "
                "ones. All repeatable arguments must be declared last.",
                func_name=name,
            )
        current_mandatory = not (current.optional or current.repeating or current.default)
        if previous_optional and current_mandatory:
            raise ArgumentDefinitionError(
                f"Function {name} has mandatory arguments declared after optional ones. "
                "All optional arguments must be after all mandatory arguments.",
                func_name=name,
            )
        previous_repeating = current.repeating
        previous_optional = previous_optional or current.optional or current.repeating or current.default


def add_meta_info(name: str, declaration: FunctionDeclaration) -> FunctionDescriptor:
    """Build the descriptor for *declaration*, registered under canonical *name*."""
    min_arg = 0
    repeating = 0
    for spec in declaration.args:
        if not spec.optional and not spec.repeating and not spec.default:
            min_arg += 1
        if spec.repeating:
            repeating += 1
    return FunctionDescriptor(
        name=name,
        compute=declaration.compute,
        description=declaration.description,
        args=tuple(declaration.args),
        returns=tuple(declaration.returns),
        category=declaration.category,
        is_exported=declaration.is_exported,
        min_arg_required=min_arg,
        max_arg_possible=None if repeating else len(declaration.args),
        nbr_arg_repeating=repeating,
    )
