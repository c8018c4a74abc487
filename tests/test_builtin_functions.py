"""Tests for the built-in function modules, called through the registry."""

from __future__ import annotations

import pytest

from gridfn.errors import NotAvailableError
from gridfn.values import MappingEvalContext, Payload, grid_from_rows


def _value(registry, name, *args, context=None):
    result = registry.invoke(name, list(args), context)
    assert isinstance(result, Payload), result
    return result.value


def _values(grid):
    return [[cell.value for cell in column] for column in grid]


# ---------------------------------------------------------------------------
# Math
# ---------------------------------------------------------------------------


class TestMath:
    def test_sum(self, builtin_registry):
        assert builtin_registry.invoke("SUM", [2, 3]) == Payload(value=5)

    def test_sum_skips_text_in_ranges(self, builtin_registry):
        assert _value(builtin_registry, "SUM", [[1, "a", 2, None]], 3) == 6

    def test_sum_coerces_scalar_text(self, builtin_registry):
        assert _value(builtin_registry, "SUM", "2", 3) == 5

    def test_sum_rejects_non_numeric_text(self, builtin_registry):
        result = builtin_registry.invoke("SUM", ["abc"])
        assert result.value == "#ERROR"
        assert result.message == (
            "The function SUM expects a number value, but 'abc' is a string, "
            "and cannot be coerced to a number."
        )

    def test_sum_propagates_error_cells(self, builtin_registry):
        cell = Payload(value="#N/A", message="missing")
        assert builtin_registry.invoke("SUM", [[[1, cell]]]) == Payload(value="#N/A", message="missing")

    def test_sum_requires_one_argument(self, builtin_registry):
        result = builtin_registry.invoke("SUM", [])
        assert result.value == "#BAD_EXPR"
        assert "Expected 1 minimum, but got 0 instead." in result.message

    def test_product(self, builtin_registry):
        assert _value(builtin_registry, "PRODUCT", [[2, 3]], 4) == 24

    def test_abs_broadcasts(self, builtin_registry):
        result = builtin_registry.invoke("ABS", [[[-1], [-2]]])
        assert _values(result) == [[1], [2]]

    def test_abs_arity(self, builtin_registry):
        result = builtin_registry.invoke("ABS", [1, 2])
        assert result.message == (
            "Invalid number of arguments for the ABS function. Expected 1 maximum, but got 2 instead."
        )

    @pytest.mark.parametrize(
        "value, places, expected",
        [
            (2.5, 0, 3),
            (-2.5, 0, -3),
            (3.14159, 2, 3.14),
            (1234.5678, -2, 1200),
        ],
    )
    def test_round(self, builtin_registry, value, places, expected):
        assert _value(builtin_registry, "ROUND", value, places) == pytest.approx(expected)

    def test_round_default_places(self, builtin_registry):
        assert _value(builtin_registry, "ROUND", 7.6) == 8

    def test_mod(self, builtin_registry):
        assert _value(builtin_registry, "MOD", 7, 3) == 1
        assert _value(builtin_registry, "MOD", -3, 2) == 1

    def test_mod_by_zero(self, builtin_registry):
        assert builtin_registry.invoke("MOD", [1, 0]) == Payload(
            value="#DIV/0!", message="The divisor must be different from 0."
        )

    def test_power_and_sqrt(self, builtin_registry):
        assert _value(builtin_registry, "POWER", 2, 10) == 1024
        assert _value(builtin_registry, "SQRT", 16) == 4.0
        assert _value(builtin_registry, "SQRT", -1) == "#ERROR"
        assert _value(builtin_registry, "POWER", 0, -1) == "#DIV/0!"

    def test_ceiling_math(self, builtin_registry):
        assert _value(builtin_registry, "CEILING.MATH", 4.2) == 5
        assert _value(builtin_registry, "CEILING.MATH", 22, 5) == 25
        assert _value(builtin_registry, "CEILING.MATH", -4.2) == -4
        assert _value(builtin_registry, "CEILING.MATH", -4.2, 1, 1) == -5

    def test_munit(self, builtin_registry):
        result = builtin_registry.invoke("MUNIT", [2])
        assert _values(result) == [[1, 0], [0, 1]]

    def test_munit_broadcast_keeps_top_left(self, builtin_registry):
        result = builtin_registry.invoke("MUNIT", [[[2, 3]]])
        assert _values(result) == [[1, 1]]


# ---------------------------------------------------------------------------
# Logical
# ---------------------------------------------------------------------------


class TestLogical:
    def test_and_or_not(self, builtin_registry):
        assert _value(builtin_registry, "AND", True, [[True, "x", None]]) is True
        assert _value(builtin_registry, "AND", True, False) is False
        assert _value(builtin_registry, "OR", False, 1) is True
        assert _value(builtin_registry, "NOT", 0) is True

    def test_and_without_valid_input(self, builtin_registry):
        result = builtin_registry.invoke("AND", [[["x", None]]])
        assert result == Payload(value="#ERROR", message="AND has no valid input data.")

    def test_if_is_lazy(self, builtin_registry):
        def explode():
            raise RuntimeError("must not be evaluated")

        assert _value(builtin_registry, "IF", True, lambda: "yes", explode) == "yes"
        assert _value(builtin_registry, "IF", False, explode, lambda: "no") == "no"

    def test_if_default_false(self, builtin_registry):
        assert _value(builtin_registry, "IF", False, "a") is False

    def test_iferror(self, builtin_registry):
        def failing():
            raise NotAvailableError("nothing")

        assert _value(builtin_registry, "IFERROR", failing, "fallback") == "fallback"
        assert _value(builtin_registry, "IFERROR", Payload(value="#REF"), 0) == 0
        assert _value(builtin_registry, "IFERROR", 5, 0) == 5


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


class TestLookup:
    table = [["a", "b", "c"], [1, 2, 3]]  # two columns

    def test_vlookup_exact(self, builtin_registry):
        assert _value(builtin_registry, "VLOOKUP", "B", self.table, 2, False) == 2

    def test_vlookup_sorted(self, builtin_registry):
        table = [[1, 2, 3], ["x", "y", "z"]]
        assert _value(builtin_registry, "VLOOKUP", 2.5, table, 2) == "y"

    def test_vlookup_not_found(self, builtin_registry):
        result = builtin_registry.invoke("VLOOKUP", ["z", self.table, 2, False])
        assert result == Payload(value="#N/A", message="Did not find value 'z' in VLOOKUP evaluation.")

    def test_vlookup_requires_range(self, builtin_registry):
        result = builtin_registry.invoke("VLOOKUP", ["a", 5, 1])
        assert result.value == "#BAD_EXPR"
        assert "parameter '2'" in result.message

    def test_vlookup_broadcasts_keys(self, builtin_registry):
        result = builtin_registry.invoke("VLOOKUP", [[["a", "c"]], self.table, 2, False])
        assert _values(result) == [[1, 3]]

    def test_match(self, builtin_registry):
        assert _value(builtin_registry, "MATCH", "b", [["a", "b", "c"]], 0) == 2
        assert _value(builtin_registry, "MATCH", 25, [[10, 20, 30]]) == 2
        assert _value(builtin_registry, "MATCH", "q", [["a", "b"]], 0) == "#N/A"

    def test_index(self, builtin_registry):
        reference = grid_from_rows([[1, 3], [2, 4]])
        assert _value(builtin_registry, "INDEX", reference, 2, 2) == 4
        assert _value(builtin_registry, "INDEX", reference, 1, 2) == 3
        assert _value(builtin_registry, "INDEX", reference, 5, 1) == "#REF"

    def test_index_whole_column(self, builtin_registry):
        reference = grid_from_rows([[1, 3], [2, 4]])
        result = builtin_registry.invoke("INDEX", [reference, 0, 2])
        assert _values(result) == [[3, 4]]

    def test_indirect(self, builtin_registry):
        ctx = MappingEvalContext({"data": [[1, 2]]})
        result = builtin_registry.invoke("INDIRECT", ["DATA"], ctx)
        assert _values(result) == [[1, 2]]

    def test_indirect_unknown_name(self, builtin_registry):
        result = builtin_registry.invoke("INDIRECT", ["nope"], MappingEvalContext())
        assert result.value == "#REF"


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


class TestText:
    def test_case_and_length(self, builtin_registry):
        assert _value(builtin_registry, "UPPER", "abc") == "ABC"
        assert _value(builtin_registry, "LOWER", "ABC") == "abc"
        assert _value(builtin_registry, "LEN", "hello") == 5
        assert _value(builtin_registry, "LEN", 12.0) == 2

    def test_trim(self, builtin_registry):
        assert _value(builtin_registry, "TRIM", "  a   b ") == "a b"

    def test_upper_broadcasts(self, builtin_registry):
        result = builtin_registry.invoke("UPPER", [[["a", "b"]]])
        assert _values(result) == [["A", "B"]]

    def test_concatenate(self, builtin_registry):
        assert _value(builtin_registry, "CONCATENATE", "a", [["b", "c"]], True) == "abcTRUE"

    def test_textjoin(self, builtin_registry):
        assert _value(builtin_registry, "TEXTJOIN", "-", True, [["a", "", "b"]]) == "a-b"
        assert _value(builtin_registry, "TEXTJOIN", "-", False, [["a", "", "b"]]) == "a--b"


# ---------------------------------------------------------------------------
# Date
# ---------------------------------------------------------------------------


class TestDate:
    def test_date(self, builtin_registry):
        result = builtin_registry.invoke("DATE", [2024, 1, 15])
        assert result == Payload(value=45306, format="m/d/yyyy")

    def test_date_month_overflow(self, builtin_registry):
        from gridfn.functions.module_date import from_serial

        serial = _value(builtin_registry, "DATE", 2024, 14, 1)
        assert from_serial(serial).isoformat() == "2025-02-01"
        serial = _value(builtin_registry, "DATE", 2024, 0, 1)
        assert from_serial(serial).isoformat() == "2023-12-01"

    def test_parts(self, builtin_registry):
        assert _value(builtin_registry, "YEAR", 45306) == 2024
        assert _value(builtin_registry, "MONTH", 45306) == 1
        assert _value(builtin_registry, "DAY", 45306) == 15
        assert _value(builtin_registry, "YEAR", "2021-03-05") == 2021

    def test_eomonth_leap_year(self, builtin_registry):
        result = builtin_registry.invoke("EOMONTH", [45306, 1])
        assert result == Payload(value=45351, format="m/d/yyyy")

    def test_invalid_serial(self, builtin_registry):
        assert _value(builtin_registry, "YEAR", -1) == "#ERROR"


# ---------------------------------------------------------------------------
# Financial
# ---------------------------------------------------------------------------


class TestFinancial:
    def test_npv(self, builtin_registry):
        assert _value(builtin_registry, "NPV", 0.1, 110) == pytest.approx(100.0)
        assert _value(builtin_registry, "NPV", 0.1, [[110, 121]]) == pytest.approx(200.0)

    def test_irr(self, builtin_registry):
        assert _value(builtin_registry, "IRR", [[-100, 110]]) == pytest.approx(0.1)

    def test_irr_requires_sign_change(self, builtin_registry):
        result = builtin_registry.invoke("IRR", [[[100, 110]]])
        assert result.value == "#ERROR"
        assert result.message.startswith("IRR needs")

    def test_irr_requires_range(self, builtin_registry):
        assert _value(builtin_registry, "IRR", 5) == "#BAD_EXPR"


# ---------------------------------------------------------------------------
# Array
# ---------------------------------------------------------------------------


class TestArray:
    def test_transpose(self, builtin_registry):
        result = builtin_registry.invoke("TRANSPOSE", [[[1, 2], [3, 4]]])
        assert _values(result) == [[1, 3], [2, 4]]

    def test_transpose_scalar(self, builtin_registry):
        assert _values(builtin_registry.invoke("TRANSPOSE", [5])) == [[5]]

    def test_flatten_reads_rows(self, builtin_registry):
        grid = grid_from_rows([[1, 2], [3, 4]])
        result = builtin_registry.invoke("FLATTEN", [grid, 5])
        assert _values(result) == [[1, 2, 3, 4, 5]]

    def test_filter_rows(self, builtin_registry):
        data = [[1, 2, 3], ["a", "b", "c"]]
        result = builtin_registry.invoke("FILTER.ROWS", [data, [[True, False, True]]])
        assert _values(result) == [[1, 3], ["a", "c"]]

    def test_filter_rows_no_match(self, builtin_registry):
        result = builtin_registry.invoke("FILTER.ROWS", [[[1, 2]], [[False, False]]])
        assert result == Payload(value="#N/A", message="No match found in FILTER.ROWS evaluation.")

    def test_filter_rows_size_mismatch(self, builtin_registry):
        result = builtin_registry.invoke("FILTER.ROWS", [[[1, 2]], [[True]]])
        assert result.value == "#ERROR"
        assert "mismatched range sizes" in result.message


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class TestDatabase:
    database = grid_from_rows([
        ["Tree", "Height", "Profit"],
        ["Apple", 18, 105],
        ["Pear", 12, 96],
        ["Apple", 13, 75],
        ["Cherry", 9, 45],
    ])

    def test_dsum_equality(self, builtin_registry):
        criteria = grid_from_rows([["Tree"], ["apple"]])
        assert _value(builtin_registry, "DSUM", self.database, "Profit", criteria) == 180.0

    def test_dsum_field_index(self, builtin_registry):
        criteria = grid_from_rows([["Tree"], ["Pear"]])
        assert _value(builtin_registry, "DSUM", self.database, 3, criteria) == 96.0

    def test_comparison_operator(self, builtin_registry):
        criteria = grid_from_rows([["Height"], [">12"]])
        assert _value(builtin_registry, "DCOUNT", self.database, "Profit", criteria) == 2

    def test_rows_are_ored_columns_anded(self, builtin_registry):
        criteria = grid_from_rows([
            ["Tree", "Height"],
            ["Apple", "<15"],
            ["Cherry", None],
        ])
        assert _value(builtin_registry, "DSUM", self.database, "Profit", criteria) == 120.0

    def test_unknown_criteria_field(self, builtin_registry):
        criteria = grid_from_rows([["Color"], ["red"]])
        result = builtin_registry.invoke("DSUM", [self.database, "Profit", criteria])
        assert result.value == "#ERROR"
        assert "DSUM criteria field 'COLOR'" in result.message

    def test_field_index_out_of_range(self, builtin_registry):
        criteria = grid_from_rows([["Tree"], ["Pear"]])
        assert _value(builtin_registry, "DSUM", self.database, 9, criteria) == "#ERROR"
