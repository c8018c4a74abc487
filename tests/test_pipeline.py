"""Tests for the call pipeline: result handling, vectorization, error handling."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from gridfn.arguments import FunctionDeclaration, arg
from gridfn.errors import BadExpressionError, EvaluationError, NotAvailableError
from gridfn.pipeline import (
    IMPLEMENTATION_ERROR_MESSAGE,
    replace_function_name_placeholder,
    with_result_handling,
)
from gridfn.registry import FunctionRegistry
from gridfn.values import Payload, grid_shape


def _register(registry: FunctionRegistry, name: str, compute, args) -> None:
    registry.register(name, FunctionDeclaration(compute=compute, args=args))


@pytest.fixture
def myfunc(registry):
    """MYFUNC(a, b) = a + b over two scalar parameters."""
    _register(registry, "MYFUNC", lambda ctx, a, b: a + b, [arg("a (number)"), arg("b (number)")])
    return registry


# ---------------------------------------------------------------------------
# Result handling
# ---------------------------------------------------------------------------


class TestResultHandling:
    def test_scalar_is_wrapped(self):
        fn = with_result_handling(lambda ctx: 3, "F")
        assert fn(None) == Payload(value=3)

    def test_payload_passes_through(self):
        payload = Payload(value=1, format="0.00")
        fn = with_result_handling(lambda ctx: payload, "F")
        assert fn(None) is payload

    def test_placeholder_in_payload(self):
        fn = with_result_handling(
            lambda ctx: Payload(value="#REF", message="Bad ref in [[FUNCTION_NAME]]"), "VLOOKUP"
        )
        assert fn(None).message == "Bad ref in VLOOKUP"

    def test_message_without_placeholder_unchanged(self):
        fn = with_result_handling(lambda ctx: Payload(value="#REF", message="Bad ref"), "VLOOKUP")
        assert fn(None).message == "Bad ref"

    def test_grid_of_scalars(self):
        fn = with_result_handling(lambda ctx: [[1, 2], [3, 4]], "F")
        assert fn(None) == [
            [Payload(value=1), Payload(value=2)],
            [Payload(value=3), Payload(value=4)],
        ]

    def test_grid_of_payloads(self):
        grid = [[Payload(value="#N/A", message="[[FUNCTION_NAME]] a")], [Payload(value=2)]]
        fn = with_result_handling(lambda ctx: grid, "F")
        result = fn(None)
        assert result is grid
        assert result[0][0].message == "F a"

    def test_mixed_grid_is_normalized_per_cell(self):
        fn = with_result_handling(lambda ctx: [[Payload(value=1), 2]], "F")
        assert fn(None) == [[Payload(value=1), Payload(value=2)]]

    def test_returned_evaluation_error(self):
        fn = with_result_handling(lambda ctx: NotAvailableError("Nothing in [[FUNCTION_NAME]]"), "F")
        assert fn(None) == Payload(value="#N/A", message="Nothing in F")

    def test_payload_grid_is_returned_as_is(self):
        cells = [[Payload(value=1, message="from [[FUNCTION_NAME]]")]]
        fn = with_result_handling(lambda ctx: cells, "PASS")
        assert fn(None) is cells
        assert cells[0][0].message == "from PASS"

    def test_placeholder_replaced_once(self):
        p = Payload(value="#ERROR", message="[[FUNCTION_NAME]] and [[FUNCTION_NAME]]")
        replace_function_name_placeholder(p, "F")
        assert p.message == "F and [[FUNCTION_NAME]]"


# ---------------------------------------------------------------------------
# Vectorization
# ---------------------------------------------------------------------------


class TestVectorization:
    def test_scalar_path(self, myfunc):
        assert myfunc.invoke("MYFUNC", [1, 2]) == Payload(value=3)

    def test_vertical_grids_of_different_size(self, myfunc):
        result = myfunc.invoke("MYFUNC", [[[1, 2, 3]], [[10, 20]]])
        assert grid_shape(result) == (1, 3)
        assert result[0][0] == Payload(value=11)
        assert result[0][1] == Payload(value=22)
        assert result[0][2] == Payload(
            value="#N/A", message="Array arguments to MYFUNC are of different size."
        )

    def test_matrix_with_scalar(self, registry):
        _register(registry, "MUL", lambda ctx, a, b: a * b, [arg("a (number)"), arg("b (number)")])
        result = registry.invoke("MUL", [[[1, 2], [3, 4]], 10])
        assert result == [
            [Payload(value=10), Payload(value=20)],
            [Payload(value=30), Payload(value=40)],
        ]

    def test_horizontal_and_vertical_cross(self, myfunc):
        horizontal = [[1], [2], [3]]  # 3 columns, 1 row
        vertical = [[10, 20]]  # 1 column, 2 rows
        result = myfunc.invoke("MYFUNC", [horizontal, vertical])
        assert grid_shape(result) == (3, 2)
        assert result[0][0] == Payload(value=11)
        assert result[2][1] == Payload(value=23)

    def test_one_by_one_grid_is_unwrapped(self, registry):
        _register(registry, "NEG", lambda ctx, a: -a, [arg("a (number)")])
        assert registry.invoke("NEG", [[[5]]]) == registry.invoke("NEG", [5]) == Payload(value=-5)

    def test_caller_arguments_not_mutated(self, registry):
        _register(registry, "NEG", lambda ctx, a: -a, [arg("a (number)")])
        args = [[[5]]]
        registry.invoke("NEG", args)
        assert args == [[[5]]]

    @pytest.mark.parametrize("spec", ["a (number)", "a (range<number>)"])
    def test_empty_range_is_invalid_reference(self, registry, spec):
        seen = []
        _register(registry, "ID", lambda ctx, a: seen.append(a) or 0, [arg(spec)])
        result = registry.invoke("ID", [[[]]])
        assert result.value == "#REF"
        assert "ID" in result.message
        assert seen == []

    def test_range_parameter_receives_whole_grid(self, registry):
        seen = []
        _register(
            registry,
            "SHAPE",
            lambda ctx, r: seen.append(r) or len(r),
            [arg("r (range)")],
        )
        assert registry.invoke("SHAPE", [[[1, 2], [3, 4], [5, 6]]]) == Payload(value=3)
        assert seen == [[[1, 2], [3, 4], [5, 6]]]

    def test_range_only_parameter_rejects_scalar(self, registry):
        _register(registry, "LOOK", lambda ctx, a, r: 0, [arg("key (any)"), arg("range (range)")])
        result = registry.invoke("LOOK", ["a", 5])
        assert result.value == "#BAD_EXPR"
        assert result.message == "Function LOOK expects the parameter '2' to be reference to a cell or range."

    def test_repeating_arguments_broadcast(self, registry):
        _register(
            registry,
            "ADDALL",
            lambda ctx, *values: sum(values),
            [arg("a (number)"), arg("b (number, repeating)")],
        )
        result = registry.invoke("ADDALL", [1, 2, [[10, 20]]])
        assert result == [[Payload(value=13), Payload(value=23)]]

    def test_nested_grid_result_keeps_top_left(self, registry):
        _register(registry, "BLOCK", lambda ctx, a: [[a, 0], [0, 0]], [arg("a (number)")])
        result = registry.invoke("BLOCK", [[[1, 2]]])
        assert result == [[Payload(value=1), Payload(value=2)]]

    def test_too_few_arguments(self, myfunc):
        result = myfunc.invoke("MYFUNC", [1])
        assert result.value == "#BAD_EXPR"
        assert result.message == (
            "Invalid number of arguments for the MYFUNC function. Expected 2 minimum, but got 1 instead."
        )

    def test_too_many_arguments(self, myfunc):
        result = myfunc.invoke("MYFUNC", [1, 2, 3])
        assert result.value == "#BAD_EXPR"
        assert "Expected 2 maximum, but got 3 instead." in result.message

    def test_cell_errors_are_per_cell(self, registry):
        def inverse(ctx, a):
            if a == 0:
                raise EvaluationError("Division by zero in [[FUNCTION_NAME]].", "#DIV/0!")
            return 1 / a

        _register(registry, "INV", inverse, [arg("a (number)")])
        # Per-cell errors are not contained cell by cell: the first one
        # unwinds the whole call.
        result = registry.invoke("INV", [[[1, 0, 2]]])
        assert result == Payload(value="#DIV/0!", message="Division by zero in INV.")


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


class TestErrorHandling:
    def test_evaluation_error_becomes_payload(self, registry):
        def fail(ctx, a):
            raise NotAvailableError("No match in [[FUNCTION_NAME]].")

        _register(registry, "FIND", fail, [arg("a (any)")])
        assert registry.invoke("FIND", [1]) == Payload(value="#N/A", message="No match in FIND.")

    def test_evaluation_error_is_not_logged(self, registry, caplog):
        def fail(ctx, a):
            raise BadExpressionError("bad")

        _register(registry, "F", fail, [arg("a (any)")])
        with caplog.at_level(logging.ERROR, logger="gridfn.pipeline"):
            registry.invoke("F", [1])
        assert caplog.records == []

    def test_fault_containment(self, registry, caplog):
        def boom(ctx, a):
            raise RuntimeError("boom")

        _register(registry, "BOOM", boom, [arg("a (any)")])
        with caplog.at_level(logging.ERROR, logger="gridfn.pipeline"):
            result = registry.invoke("BOOM", [1])

        assert result.value == "#ERROR"
        assert IMPLEMENTATION_ERROR_MESSAGE in result.message
        assert "boom" in result.message
        assert any("BOOM" in r.getMessage() for r in caplog.records)
        assert caplog.records[0].exc_info is not None

    def test_fault_without_message(self, registry):
        def boom(ctx, a):
            raise KeyError()

        _register(registry, "BOOM", boom, [arg("a (any)")])
        assert registry.invoke("BOOM", [1]).message == IMPLEMENTATION_ERROR_MESSAGE

    def test_fault_with_unprintable_exception(self, registry):
        class UnprintableError(Exception):
            def __str__(self):
                raise RuntimeError("str failed")

        def boom(ctx, a):
            raise UnprintableError()

        _register(registry, "BOOM", boom, [arg("a (any)")])
        result = registry.invoke("BOOM", [1])
        assert result == Payload(
            value="#ERROR", message=f"{IMPLEMENTATION_ERROR_MESSAGE} UnprintableError"
        )

    def test_custom_implementation_message(self):
        reg = FunctionRegistry(implementation_error_message="Oops.")
        reg.register(
            "BOOM",
            FunctionDeclaration(compute=lambda ctx, a: 1 / 0, args=[arg("a (any)")]),
        )
        assert reg.invoke("BOOM", [1]) == Payload(value="#ERROR", message="Oops. division by zero")

    def test_fault_inside_broadcast(self, myfunc):
        # str + int raises TypeError inside one cell
        result = myfunc.invoke("MYFUNC", [[["a", "b"]], 1])
        assert result.value == "#ERROR"

    def test_fault_recorded_as_event(self, registry, tmp_path: Path):
        from gridfn.logging import set_log_dir

        set_log_dir(tmp_path)

        def boom(ctx, a):
            raise RuntimeError("boom")

        _register(registry, "BOOM", boom, [arg("a (any)")])
        registry.invoke("BOOM", [1])

        event = json.loads((tmp_path / "events.ndjson").read_text().splitlines()[-1])
        assert event["event_type"] == "implementation_error"
        assert event["level"] == "error"
        assert event["error_code"] == "implementation_error"
        assert event["context"]["function_name"] == "BOOM"
        assert event["context"]["exception_type"] == "RuntimeError"
        assert "boom" in event["context"]["traceback"]
        assert (tmp_path / "functions" / "BOOM.ndjson").exists()

    def test_context_is_forwarded(self, registry):
        from gridfn.values import MappingEvalContext

        _register(registry, "LOC", lambda ctx, a: ctx.locale, [arg("a (any)")])
        assert registry.invoke("LOC", [1], MappingEvalContext(locale="fr_FR")) == Payload(value="fr_FR")
