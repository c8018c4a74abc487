"""Logical functions: AND, OR, NOT, IF, IFERROR."""

from __future__ import annotations

from typing import Any

from gridfn.arguments import FunctionDeclaration, arg
from gridfn.errors import EvaluationError
from gridfn.functions.helpers import evaluate_lazy, iter_booleans, to_boolean
from gridfn.values import Payload


def _fn_and(ctx: Any, *values: Any) -> bool:
    found = False
    for value in iter_booleans(*values):
        found = True
        if not value:
            return False
    if not found:
        raise EvaluationError("[[FUNCTION_NAME]] has no valid input data.")
    return True


def _fn_or(ctx: Any, *values: Any) -> bool:
    found = False
    for value in iter_booleans(*values):
        found = True
        if value:
            return True
    if not found:
        raise EvaluationError("[[FUNCTION_NAME]] has no valid input data.")
    return False


def _fn_not(ctx: Any, value: Any) -> bool:
    return not to_boolean(value)


def _fn_if(ctx: Any, condition: Any, value_if_true: Any, value_if_false: Any = False) -> Any:
    """IF(condition, value_if_true, [value_if_false]) -- branches are lazy."""
    if to_boolean(evaluate_lazy(condition)):
        return evaluate_lazy(value_if_true)
    return evaluate_lazy(value_if_false)


def _fn_iferror(ctx: Any, value: Any, value_if_error: Any = "") -> Any:
    """IFERROR(value, [value_if_error]) -- both arguments are lazy."""
    try:
        result = evaluate_lazy(value)
    except EvaluationError:
        return evaluate_lazy(value_if_error)
    if isinstance(result, Payload) and result.is_error:
        return evaluate_lazy(value_if_error)
    return result


LOGICAL_FUNCTIONS: dict[str, FunctionDeclaration] = {
    "AND": FunctionDeclaration(
        description="Logical `and` operator.",
        args=[
            arg("logical_expression1 (boolean, range<boolean>)", "An expression or reference to a cell containing an expression that represents some logical value."),
            arg("logical_expression2 (boolean, range<boolean>, repeating)", "More expressions that represent logical values."),
        ],
        returns=["BOOLEAN"],
        compute=_fn_and,
    ),
    "OR": FunctionDeclaration(
        description="Logical `or` operator.",
        args=[
            arg("logical_expression1 (boolean, range<boolean>)", "An expression or reference to a cell containing an expression that represents some logical value."),
            arg("logical_expression2 (boolean, range<boolean>, repeating)", "More expressions that evaluate to logical values."),
        ],
        returns=["BOOLEAN"],
        compute=_fn_or,
    ),
    "NOT": FunctionDeclaration(
        description="Returns opposite of provided logical value.",
        args=[arg("logical_expression (boolean)", "An expression or reference to a cell holding an expression that represents some logical value.")],
        returns=["BOOLEAN"],
        compute=_fn_not,
    ),
    "IF": FunctionDeclaration(
        description="Returns value depending on logical expression.",
        args=[
            arg("logical_expression (boolean)", "An expression or reference to a cell containing an expression that represents some logical value, i.e. TRUE or FALSE."),
            arg("value_if_true (any, lazy)", "The value the function returns if logical_expression is TRUE."),
            arg("value_if_false (any, lazy, default=FALSE)", "The value the function returns if logical_expression is FALSE."),
        ],
        returns=["ANY"],
        compute=_fn_if,
    ),
    "IFERROR": FunctionDeclaration(
        description="Value if it is not an error, otherwise 2nd argument.",
        args=[
            arg("value (any, lazy)", "The value to return if value itself is not an error."),
            arg("value_if_error (any, lazy, default=\"empty\")", "The value the function returns if value is an error."),
        ],
        returns=["ANY"],
        compute=_fn_iferror,
    ),
}
