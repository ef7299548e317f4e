"""Unit tests for formula evaluation.

Formulas are evaluated against plain dict lookups; nothing here touches
templates or config.
"""

import pytest

from payslip.sdk.formula import (
    ERROR_DISPLAY,
    ERROR_SENTINEL,
    evaluate_formula,
    format_currency,
    parse_percentage,
    to_number,
    to_text,
)
from payslip.sdk.formula.values import CoercionError, parse_number


def ev(formula, values=None, sections=None, strict=False):
    values = values or {}
    section_lookup = (sections or {}).get
    return evaluate_formula(formula, values.get, section_lookup, strict=strict)


class TestLiterals:
    """Text without '=' passes through untouched."""

    def test_plain_text(self):
        result = ev("Monthly salary")
        assert result.ok
        assert result.value == "Monthly salary"

    def test_numeric_text_not_evaluated(self):
        assert ev("1+1").value == "1+1"

    def test_non_string_passthrough(self):
        assert ev(1200).value == 1200
        assert ev(None).value is None


class TestArithmetic:
    """Operators and precedence."""

    def test_basic_operators(self):
        assert ev("=1+2*3").value == 7
        assert ev("=(1+2)*3").value == 9
        assert ev("=10/4").value == 2.5
        assert ev("=10-4-3").value == 3

    def test_power(self):
        assert ev("=2^10").value == 1024
        assert ev("=2**3").value == 8

    def test_percent(self):
        assert ev("=200*10%").value == pytest.approx(20)

    def test_unary_minus(self):
        assert ev("=-salary", {"salary": 100}).value == -100

    def test_numeric_text_coerced(self):
        assert ev("=a+1", {"a": "41"}).value == 42

    def test_booleans_as_numbers(self):
        assert ev("=TRUE+1").value == 2

    def test_division_by_zero(self):
        result = ev("=1/0")
        assert not result.ok
        assert result.value == ERROR_SENTINEL
        assert result.error_type == "evaluation"
        assert "#DIV/0!" in result.error

    def test_text_in_arithmetic(self):
        result = ev("=name*2", {"name": "Alice"})
        assert not result.ok
        assert "#VALUE!" in result.error

    def test_negative_fractional_power(self):
        result = ev("=(-8)^0.5")
        assert not result.ok
        assert "#NUM!" in result.error

    def test_huge_integer_power(self):
        """Powers past the float range fail fast instead of building huge ints."""
        for formula in ("=9^9^9", "=10^400", '=10^5000&""'):
            result = ev(formula)
            assert not result.ok, formula
            assert result.value == ERROR_SENTINEL
            assert "#NUM!" in result.error

    def test_large_power_within_range(self):
        assert ev("=10^300").value == 10 ** 300
        assert ev("=(-2)^3").value == -8

    def test_oversized_value_in_concatenation(self):
        """A field too large to render as text is an error result, not an exception."""
        result = ev('=a&""', {"a": 10 ** 5000})
        assert result.ok or "#NUM!" in result.error


class TestReferences:
    """Field ids and cell addresses resolve through the lookup."""

    def test_field_ids(self):
        result = ev("=basic_salary+bonus", {"basic_salary": 4000, "bonus": 250})
        assert result.value == 4250
        assert result.unresolved == []

    def test_absolute_cell_address(self):
        assert ev("=$B$2*2", {"B2": 21}).value == 42

    def test_unresolved_reads_as_zero(self):
        result = ev("=salary+missing", {"salary": 100})
        assert result.ok
        assert result.value == 100
        assert result.unresolved == ["missing"]

    def test_unresolved_listed_once(self):
        assert ev("=x+x+x").unresolved == ["x"]

    def test_strict_mode_fails(self):
        result = ev("=salary+missing", {"salary": 100}, strict=True)
        assert not result.ok
        assert result.error_type == "reference"
        assert result.unresolved == ["missing"]


class TestSum:
    """SUM over ranges, sections, references and expressions."""

    def test_range_with_missing_cells(self):
        result = ev("=SUM(A1:A3)", {"A1": 10, "A2": 20})
        assert result.value == 30
        assert result.unresolved == []

    def test_range_ignores_text(self):
        assert ev("=SUM(A1:A3)", {"A1": 10, "A2": "n/a", "A3": 5}).value == 15

    def test_block_range(self):
        values = {"A1": 1, "B1": 2, "A2": 3, "B2": 4}
        assert ev("=SUM(A1:B2)", values).value == 10

    def test_mixed_arguments(self):
        assert ev("=SUM(a, b, 5, 2*3)", {"a": 1, "b": 2}).value == 14

    def test_section_total(self):
        result = ev("=SUM(earnings)", sections={"earnings": 4500})
        assert result.value == 4500
        assert result.unresolved == []

    def test_section_wins_over_field(self):
        result = ev("=SUM(earnings)", {"earnings": 1}, sections={"earnings": 4500})
        assert result.value == 4500

    def test_text_field_contributes_zero(self):
        assert ev("=SUM(note, a)", {"note": "hello", "a": 3}).value == 3

    def test_empty_sum(self):
        assert ev("=SUM()").value == 0

    def test_range_outside_sum(self):
        result = ev("=A1:A3", {"A1": 1})
        assert not result.ok
        assert "#VALUE!" in result.error


class TestIf:
    """IF evaluates only the selected branch."""

    def test_branches(self):
        assert ev("=IF(a>0, 1, 2)", {"a": 5}).value == 1
        assert ev("=IF(a>0, 1, 2)", {"a": -5}).value == 2

    def test_untaken_branch_not_evaluated(self):
        result = ev("=IF(TRUE, 1, 1/0)")
        assert result.ok
        assert result.value == 1

    def test_missing_false_branch(self):
        assert ev("=IF(0, 1)").value is False

    def test_nested(self):
        formula = '=IF(salary>5000, "high", IF(salary>2000, "mid", "low"))'
        assert ev(formula, {"salary": 3000}).value == "mid"

    def test_text_condition(self):
        result = ev('=IF("yes", 1, 2)')
        assert not result.ok
        assert "#VALUE!" in result.error

    def test_wrong_arg_count(self):
        assert not ev("=IF(1)").ok


class TestComparisonsAndConcat:
    """Comparison operators and '&'."""

    @pytest.mark.parametrize("formula,expected", [
        ("=1<2", True),
        ("=2<=2", True),
        ("=3>4", False),
        ("=3>=4", False),
        ("=1=1", True),
        ("=1<>1", False),
        ('="abc"="ABC"', True),
        ('="10"=10', True),
    ])
    def test_comparisons(self, formula, expected):
        assert ev(formula).value is expected

    def test_numbers_sort_before_text(self):
        assert ev('=5<"a"').value is True

    def test_concat(self):
        result = ev('=name&" earns "&salary', {"name": "Ana", "salary": 3000.0})
        assert result.value == "Ana earns 3000"


class TestFunctions:
    """Function dispatch."""

    def test_unknown_function(self):
        result = ev("=FOO(1)")
        assert not result.ok
        assert "#NAME?" in result.error

    def test_case_insensitive_names(self):
        assert ev("=sum(1, 2)").value == 3

    def test_vlookup_returns_lookup_value(self):
        assert ev('=VLOOKUP("B", A1:B3, 2)').value == "B"
        assert ev("=VLOOKUP(7, A1:B3, 2, FALSE)").value == 7

    def test_vlookup_arg_count(self):
        assert not ev("=VLOOKUP(1)").ok


class TestSyntaxErrorsRecovered:
    """Syntax errors never raise from evaluate_formula."""

    def test_malformed(self):
        result = ev("=1+*2")
        assert not result.ok
        assert result.error_type == "syntax"
        assert result.value == ERROR_SENTINEL
        assert result.display == ERROR_DISPLAY

    def test_to_dict(self):
        data = ev("=1+").to_dict()
        assert data["error_type"] == "syntax"
        assert data["value"] == ERROR_SENTINEL

    def test_deep_nesting(self):
        result = ev("=" + "(" * 5000 + "1" + ")" * 5000)
        assert not result.ok


class TestValues:
    """Coercion and formatting helpers."""

    def test_parse_number(self):
        assert parse_number("1200") == 1200
        assert parse_number(" 1200.50 ") == 1200.5
        assert parse_number("12.5%") == pytest.approx(0.125)
        assert parse_number("1,200") is None
        assert parse_number("nan") is None
        assert parse_number("") is None

    def test_to_number(self):
        assert to_number(None) == 0
        assert to_number(True) == 1
        assert to_number("3") == 3
        with pytest.raises(CoercionError):
            to_number("three")

    def test_to_text(self):
        assert to_text(10.0) == "10"
        assert to_text(10.5) == "10.5"
        assert to_text(False) == "FALSE"
        assert to_text(None) == ""

    def test_parse_percentage(self):
        assert parse_percentage("8%") == pytest.approx(0.08)
        assert parse_percentage(0.14) == 0.14
        assert parse_percentage("n/a") == 0.0

    def test_format_currency(self):
        assert format_currency(1234.5) == "€1,234.50"
        assert format_currency(-10, "$") == "-$10.00"
