"""The call pipeline wrapped around every registered compute function.

A registered function is invoked through three nested stages::

    error handling( input handling( result handling( compute ) ) )

- **Result handling** normalizes whatever ``compute`` returns (scalar,
  Payload, grid of scalars, grid of payloads) into a Payload or a grid of
  payloads.
- **Input handling** broadcasts the call over grid arguments given to
  parameters that do not accept ranges ("vectorization").
- **Error handling** is the only place where a raised exception becomes a
  result: evaluation errors are returned as error payloads, anything else
  is logged and replaced by a generic implementation-error payload.

All callables in the pipeline take the evaluation context first:
``fn(ctx, *args)``.
"""

from __future__ import annotations

import logging
import math
import traceback
from typing import Any, Callable, Union

from gridfn.arguments import FunctionDescriptor
from gridfn.errors import (
    BadExpressionError,
    ErrorKind,
    EvaluationError,
    InvalidReferenceError,
    is_error_kind,
)
from gridfn.logging.events import IMPLEMENTATION_ERROR, EventType, emit_error
from gridfn.values import Grid, Payload, generate_grid, grid_for_each, grid_shape, is_grid

logger = logging.getLogger(__name__)

FUNCTION_NAME_PLACEHOLDER = "[[FUNCTION_NAME]]"

IMPLEMENTATION_ERROR_MESSAGE = "An unexpected error occurred. Please contact support."

ComputeFunction = Callable[..., Any]
WrappedFunction = Callable[..., Union[Payload, Grid]]


def replace_function_name_placeholder(target: Payload | EvaluationError, function_name: str) -> None:
    """Fill in ``[[FUNCTION_NAME]]`` in ``target.message``, in place."""
    message = target.message
    if message and FUNCTION_NAME_PLACEHOLDER in message:
        target.message = message.replace(FUNCTION_NAME_PLACEHOLDER, function_name, 1)


def _error_payload(error: EvaluationError, function_name: str) -> Payload:
    replace_function_name_placeholder(error, function_name)
    return Payload(value=error.value, message=error.message)


# ---------------------------------------------------------------------------
# Result handling
# ---------------------------------------------------------------------------


def with_result_handling(compute: ComputeFunction, function_name: str) -> WrappedFunction:
    """Wrap *compute* so it always returns a Payload or a grid of payloads."""

    def normalize_cell(cell: Any) -> Payload:
        if isinstance(cell, Payload):
            replace_function_name_placeholder(cell, function_name)
            return cell
        if isinstance(cell, EvaluationError):
            return _error_payload(cell, function_name)
        return Payload(value=cell)

    def compute_with_result_handling(ctx: Any, *args: Any) -> Payload | Grid:
        result = compute(ctx, *args)

        if not is_grid(result):
            if isinstance(result, Payload):
                replace_function_name_placeholder(result, function_name)
                return result
            if isinstance(result, EvaluationError):
                return _error_payload(result, function_name)
            return Payload(value=result)

        if all(isinstance(cell, Payload) for column in result for cell in column):
            # Payloads may be the caller's own range cells, so the
            # substitution below also rewrites them.
            grid_for_each(result, lambda p: replace_function_name_placeholder(p, function_name))
            return result

        return [[normalize_cell(cell) for cell in column] for column in result]

    return compute_with_result_handling


# ---------------------------------------------------------------------------
# Input handling (vectorization)
# ---------------------------------------------------------------------------

_MATRIX = "matrix"
_HORIZONTAL = "horizontal"
_VERTICAL = "vertical"


def _check_arity(descriptor: FunctionDescriptor, nbr_args: int) -> None:
    if nbr_args < descriptor.min_arg_required:
        raise BadExpressionError(
            f"Invalid number of arguments for the {FUNCTION_NAME_PLACEHOLDER} function. "
            f"Expected {descriptor.min_arg_required} minimum, but got {nbr_args} instead."
        )
    if descriptor.max_arg_possible is not None and nbr_args > descriptor.max_arg_possible:
        raise BadExpressionError(
            f"Invalid number of arguments for the {FUNCTION_NAME_PLACEHOLDER} function. "
            f"Expected {descriptor.max_arg_possible} maximum, but got {nbr_args} instead."
        )


def with_input_handling(descriptor: FunctionDescriptor, compute: WrappedFunction) -> WrappedFunction:
    """Wrap *compute* with argument vectorization.

    A grid larger than 1x1 passed to a parameter without ``accept_matrix``
    broadcasts the call: the result is a grid with one ``compute`` call per
    cell.  A 1x1 grid passed to such a parameter is replaced by its only
    cell.  Grids of different sizes are paired over their common region;
    cells outside it are ``#N/A``.
    """
    function_name = descriptor.name
    different_size_message = f"Array arguments to {function_name} are of different size."

    def compute_with_vectorization(ctx: Any, *call_args: Any) -> Payload | Grid:
        # Own copy: 1x1 grids are unwrapped in place
        args = list(call_args)
        _check_arity(descriptor, len(args))

        count_col = 1
        count_row = 1
        col_limit = math.inf
        row_limit = math.inf
        vector_types: list[str | None] | None = None

        for i, value in enumerate(args):
            spec = descriptor.spec_for(i)
            value_is_grid = is_grid(value)

            if value_is_grid and grid_shape(value)[1] == 0:
                raise InvalidReferenceError(
                    f"Function {FUNCTION_NAME_PLACEHOLDER} received an empty range as parameter '{i + 1}'."
                )

            if value_is_grid and not spec.accept_matrix:
                n_columns, n_rows = grid_shape(value)
                if n_columns != 1 or n_rows != 1:
                    if vector_types is None:
                        vector_types = [None] * len(args)
                    if n_columns != 1 and n_rows != 1:
                        vector_types[i] = _MATRIX
                        count_col = max(count_col, n_columns)
                        count_row = max(count_row, n_rows)
                        col_limit = min(col_limit, n_columns)
                        row_limit = min(row_limit, n_rows)
                    elif n_columns != 1:
                        vector_types[i] = _HORIZONTAL
                        count_col = max(count_col, n_columns)
                        col_limit = min(col_limit, n_columns)
                    else:
                        vector_types[i] = _VERTICAL
                        count_row = max(count_row, n_rows)
                        row_limit = min(row_limit, n_rows)
                else:
                    args[i] = value[0][0]

            if not value_is_grid and spec.accept_matrix_only:
                raise BadExpressionError(
                    f"Function {FUNCTION_NAME_PLACEHOLDER} expects the parameter "
                    f"'{i + 1}' to be reference to a cell or range."
                )

        if count_col == 1 and count_row == 1:
            return compute(ctx, *args)

        def args_vector(col: int, row: int) -> list[Any]:
            vector = []
            for value, vector_type in zip(args, vector_types):
                if vector_type == _MATRIX:
                    vector.append(value[col][row])
                elif vector_type == _HORIZONTAL:
                    vector.append(value[col][0])
                elif vector_type == _VERTICAL:
                    vector.append(value[0][row])
                else:
                    vector.append(value)
            return vector

        def compute_cell(col: int, row: int) -> Payload:
            if col > col_limit - 1 or row > row_limit - 1:
                return Payload(value=ErrorKind.not_available.value, message=different_size_message)
            element = compute(ctx, *args_vector(col, row))
            # A per-cell grid result (e.g. MUNIT over a range) keeps its
            # top-left value only.
            return element[0][0] if is_grid(element) else element

        return generate_grid(count_col, count_row, compute_cell)

    return compute_with_vectorization


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


def _describe(exc: BaseException) -> str:
    """``str(exc)``, or the exception type name when ``__str__`` itself fails."""
    try:
        return str(exc)
    except Exception:
        return type(exc).__name__


def handle_error(
    exc: BaseException,
    function_name: str,
    implementation_error_message: str = IMPLEMENTATION_ERROR_MESSAGE,
) -> Payload:
    """Turn an exception raised during a call into a payload.

    Evaluation errors are user-facing results and are returned as-is (with
    the function name filled in).  Any other exception is an implementation
    fault: it is logged and replaced by a generic ``#ERROR`` payload.
    """
    if isinstance(exc, EvaluationError) and is_error_kind(exc.value):
        return _error_payload(exc, function_name)

    detail = _describe(exc)
    logger.error("Unexpected error in function %s", function_name, exc_info=exc)
    emit_error(
        EventType.implementation_error,
        f"Unexpected error in function {function_name}: {type(exc).__name__}: {detail}",
        {
            "function_name": function_name,
            "exception_type": type(exc).__name__,
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        },
        error_code=IMPLEMENTATION_ERROR,
        function_name=function_name,
    )
    message = implementation_error_message + (" " + detail if detail else "")
    return Payload(value=ErrorKind.generic.value, message=message)


def with_error_handling(
    compute: WrappedFunction,
    function_name: str,
    implementation_error_message: str = IMPLEMENTATION_ERROR_MESSAGE,
) -> WrappedFunction:
    """Wrap *compute* so that it never raises."""

    def compute_with_error_handling(ctx: Any, *args: Any) -> Payload | Grid:
        try:
            return compute(ctx, *args)
        except Exception as exc:
            return handle_error(exc, function_name, implementation_error_message)

    return compute_with_error_handling


def build_wrapped_function(
    descriptor: FunctionDescriptor,
    implementation_error_message: str = IMPLEMENTATION_ERROR_MESSAGE,
) -> WrappedFunction:
    """Compose the full pipeline around ``descriptor.compute``."""
    name = descriptor.name
    return with_error_handling(
        with_input_handling(descriptor, with_result_handling(descriptor.compute, name)),
        name,
        implementation_error_message,
    )
