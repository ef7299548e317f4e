"""Unit tests for the recalculation coordinator.

Covers dependency classification, single-period tax recalculation, the
twelve-month state helpers, and template-aware recalculation.
"""

import pytest
from pathlib import Path

from payslip.sdk.recalc import (
    TAX_DERIVED_FIELDS,
    CellUpdate,
    PayslipState,
    Recalculator,
    batch_update_cells,
    calculate_period_taxes,
    edit_cell,
    get_dependent_fields,
    is_salary_field,
    is_tax_field,
    recalculate,
    recalculate_totals,
    resolve_gross_salary,
    update_cell,
)
from payslip.sdk.taxes import compute_monthly_tax, load_tax_rules
from payslip.sdk.templates import load_template


FIXTURES = Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def rules():
    return load_tax_rules(2025)


def monthly(gross, tax_class=1, has_children=False):
    return compute_monthly_tax(
        {"monthly_gross_salary": gross, "tax_class": tax_class, "has_children": has_children}
    )


class TestDependentFields:
    """Salary-class rows mark every tax-derived row."""

    def test_salary_field_marks_all_tax_rows(self):
        dependents = get_dependent_fields("Overtime Pay")
        assert dependents[0] == "Overtime Pay"
        assert set(TAX_DERIVED_FIELDS) <= set(dependents)

    def test_other_field_marks_only_itself(self):
        assert get_dependent_fields("Department") == ["Department"]

    def test_no_duplicates(self):
        dependents = get_dependent_fields("Gross Salary")
        assert len(dependents) == len(set(dependents))

    @pytest.mark.parametrize("name", ["Basic Salary", "Housing Allowance", "Overtime Pay", "bonus", "Salary"])
    def test_salary_classification(self, name):
        assert is_salary_field(name)

    @pytest.mark.parametrize("name", ["Department", "Income Tax", "Sickness Insurance", "Meal Vouchers"])
    def test_not_salary(self, name):
        assert not is_salary_field(name)

    def test_tax_classification(self):
        assert is_tax_field("Income Tax")
        assert is_tax_field("Employer Cost")
        assert not is_tax_field("Bonus")


class TestResolveGrossSalary:
    """Explicit gross first, then Basic/Salary, then the component sum."""

    def test_explicit_gross(self):
        assert resolve_gross_salary({"Gross Salary": 6000, "Basic Salary": 4000}) == 6000

    def test_basic_salary(self):
        assert resolve_gross_salary({"Basic Salary": 4000, "Bonus": 500}) == 4000

    def test_salary(self):
        assert resolve_gross_salary({"Salary": 3500}) == 3500

    def test_component_sum(self):
        values = {"Allowances": 200, "Overtime Pay": 300, "Bonus": 500}
        assert resolve_gross_salary(values) == 1000

    def test_zero_gross_falls_through(self):
        assert resolve_gross_salary({"Gross Salary": 0, "Allowances": 100}) == 100

    def test_empty(self):
        assert resolve_gross_salary({}) == 0


class TestCalculatePeriodTaxes:
    """One period's tax-derived rows."""

    def test_rows_filled(self, rules):
        values = {"Basic Salary": 5000, "Other Deductions": 50}
        updated = calculate_period_taxes(values, 1, False, rules)
        expected = monthly(5000)

        assert updated["Gross Salary"] == 5000
        assert updated["Income Tax"] == pytest.approx(expected.income_tax)
        assert updated["Social Security Total"] == pytest.approx(610)
        assert updated["Sickness Insurance"] == pytest.approx(140)
        assert updated["Pension Contribution"] == pytest.approx(400)
        assert updated["Dependency Insurance"] == pytest.approx(70)
        assert updated["Total Deductions"] == pytest.approx(expected.income_tax + 610 + 50)
        assert updated["Net Salary"] == pytest.approx(expected.net_salary)
        assert updated["Employer Cost"] == pytest.approx(expected.total_cost_to_employer)

    def test_input_not_modified(self, rules):
        values = {"Basic Salary": 5000}
        calculate_period_taxes(values, 1, False, rules)
        assert values == {"Basic Salary": 5000}

    def test_manual_gross_kept(self, rules):
        updated = calculate_period_taxes({"Gross Salary": 6000, "Basic Salary": 4000}, 1, False, rules)
        assert updated["Gross Salary"] == 6000
        assert updated["Net Salary"] == pytest.approx(monthly(6000).net_salary)

    def test_non_positive_gross_unchanged(self, rules):
        values = {"Department": "Finance", "Bonus": 0}
        assert calculate_period_taxes(values, 1, False, rules) == values

    def test_tax_class_applied(self, rules):
        updated = calculate_period_taxes({"Gross Salary": 15000}, 2, False, rules)
        assert updated["Income Tax"] == pytest.approx(monthly(15000, tax_class=2).income_tax)


class TestRecalculate:
    """Flat field-map recalculation."""

    def test_salary_edit_returns_tax_rows(self, rules):
        result = recalculate("Overtime Pay", {"Overtime Pay": 300, "Allowances": 200}, rules=rules)

        assert result.ok
        assert result.values["Gross Salary"] == 500
        assert result.values["Net Salary"] == pytest.approx(monthly(500).net_salary)
        assert set(result.values) <= set(result.dependents)

    def test_non_salary_edit(self, rules):
        result = recalculate("Department", {"Department": "Finance", "Basic Salary": 4000}, rules=rules)
        assert result.dependents == ["Department"]
        assert result.values == {"Department": "Finance"}

    def test_invalid_tax_class_captured(self, rules):
        result = recalculate("Basic Salary", {"Basic Salary": 4000}, tax_class=3, rules=rules)
        assert not result.ok
        assert "Basic Salary" in result.errors
        assert "Income Tax" not in result.values

    def test_current_state_not_modified(self, rules):
        state = {"Basic Salary": 4000}
        recalculate("Basic Salary", state, rules=rules)
        assert state == {"Basic Salary": 4000}

    def test_with_template(self, rules):
        template = load_template(FIXTURES / "basic_template.yaml")
        state = {"basic_salary": 4000, "bonus": 500, "pension": 100}

        result = recalculate("bonus", state, template=template, rules=rules)

        assert result.dependents[:1] == ["bonus"]
        assert result.values["gross_pay"] == 4500
        assert result.values["net_pay"] == 4400
        assert "total_deductions" not in result.values

    def test_repeatable(self, rules):
        """Same edit on the same state recomputes identical values."""
        template = load_template(FIXTURES / "basic_template.yaml")
        state = {"Basic Salary": 4200, "bonus": 300, "pension": 80}

        first = recalculate("bonus", state, template=template, rules=rules)
        second = recalculate("bonus", state, template=template, rules=rules)
        assert first.to_dict() == second.to_dict()

        again = recalculate("bonus", {**state, **first.values}, template=template, rules=rules)
        assert again.values == first.values

    def test_to_dict(self, rules):
        data = recalculate("Department", {"Department": "IT"}, rules=rules).to_dict()
        assert data == {"values": {"Department": "IT"}, "dependents": ["Department"], "errors": {}}


class TestPayslipState:
    """Twelve-month state model."""

    def test_camel_case_input(self):
        state = PayslipState.model_validate({
            "personName": "Ana",
            "taxClass": 2,
            "months": {"0": {"Basic Salary": 4000}},
        })
        assert state.person_name == "Ana"
        assert state.tax_class == 2
        assert state.months[0] == {"Basic Salary": 4000}

    def test_month_out_of_range(self):
        with pytest.raises(ValueError):
            PayslipState(months={12: {}})

    def test_update_cell_copy_on_write(self):
        state = PayslipState(months={0: {"Bonus": 100}, 1: {"Bonus": 200}})
        new_state = update_cell(state, 0, "Bonus", 150)

        assert new_state.months[0]["Bonus"] == 150
        assert state.months[0]["Bonus"] == 100
        assert new_state.months[1] is state.months[1]

    def test_update_cell_bad_month(self):
        with pytest.raises(ValueError):
            update_cell(PayslipState(), 12, "Bonus", 1)

    def test_totals_only_for_given_rows(self):
        state = PayslipState(
            months={0: {"Bonus": 100, "Meal": 5}, 3: {"Bonus": 50, "Meal": 5}},
            totals={"Meal": 999},
        )
        new_state = recalculate_totals(state, ["Bonus"])
        assert new_state.totals == {"Bonus": 150, "Meal": 999}


class TestEditCell:
    """Single-cell edits."""

    def test_salary_edit_recalculates_month(self, rules):
        state = edit_cell(PayslipState(), 0, "Basic Salary", 5000, rules)

        assert state.months[0]["Net Salary"] == pytest.approx(monthly(5000).net_salary)
        assert state.totals["Basic Salary"] == 5000
        assert state.totals["Social Security Total"] == pytest.approx(610)

    def test_other_months_untouched(self, rules):
        state = PayslipState(months={1: {"Basic Salary": 3000}})
        new_state = edit_cell(state, 0, "Basic Salary", 5000, rules)
        assert new_state.months[1] == {"Basic Salary": 3000}

    def test_non_salary_edit(self, rules):
        state = edit_cell(PayslipState(), 2, "Meal Vouchers", 120, rules)
        assert state.months[2] == {"Meal Vouchers": 120}
        assert state.totals == {"Meal Vouchers": 120}

    def test_text_cell(self, rules):
        """Text rows are stored as entered and total to 0."""
        state = edit_cell(PayslipState(), 0, "Department", "Sales", rules)
        assert state.months[0] == {"Department": "Sales"}
        assert state.totals == {"Department": 0}

    def test_text_cell_beside_salary(self, rules):
        state = edit_cell(PayslipState(), 0, "Basic Salary", 5000, rules)
        state = edit_cell(state, 0, "Position", "Analyst", rules)
        state = edit_cell(state, 1, "Basic Salary", "4000", rules)

        assert state.months[0]["Position"] == "Analyst"
        assert state.months[1]["Net Salary"] == pytest.approx(monthly(4000).net_salary)
        assert state.totals["Basic Salary"] == 9000

    def test_uses_state_tax_situation(self, rules):
        state = PayslipState(tax_class=1, has_children=True)
        new_state = edit_cell(state, 0, "Basic Salary", 5000, rules)
        expected = monthly(5000, has_children=True)
        assert new_state.months[0]["Income Tax"] == pytest.approx(expected.income_tax)


class TestBatchUpdate:
    """Many edits applied at once."""

    def test_months_recalculated_independently(self, rules):
        updates = [
            CellUpdate(0, "Basic Salary", 4000),
            (1, "Basic Salary", 6000),
            {"monthIndex": 0, "rowName": "Bonus", "value": 500},
        ]
        state = batch_update_cells(PayslipState(), updates, rules)

        # Basic Salary wins over the component sum
        assert state.months[0]["Gross Salary"] == 4000
        assert state.months[0]["Net Salary"] == pytest.approx(monthly(4000).net_salary)
        assert state.months[1]["Net Salary"] == pytest.approx(monthly(6000).net_salary)
        assert state.totals["Basic Salary"] == 10000
        assert state.totals["Bonus"] == 500
        assert state.totals["Gross Salary"] == 10000

    def test_later_update_wins(self, rules):
        updates = [(0, "Meal", 1), (0, "Meal", 2)]
        state = batch_update_cells(PayslipState(), updates, rules)
        assert state.months[0]["Meal"] == 2

    def test_totals_only_for_dependent_rows(self, rules):
        state = PayslipState(
            months={0: {"Meal": 5}, 1: {"Meal": 5}},
            totals={"Meal": 0},
        )
        new_state = batch_update_cells(state, [(2, "Department Code", 7)], rules)
        assert new_state.totals == {"Meal": 0, "Department Code": 7}

    def test_text_values(self, rules):
        updates = [(0, "Department", "Finance"), (0, "Basic Salary", 3000), (3, "Department", "IT")]
        state = batch_update_cells(PayslipState(), updates, rules)

        assert state.months[0]["Department"] == "Finance"
        assert state.months[0]["Gross Salary"] == 3000
        assert state.totals["Department"] == 0

    def test_empty_batch(self, rules):
        state = PayslipState()
        assert batch_update_cells(state, [], rules) is state

    def test_bad_month_rejected_before_changes(self, rules):
        with pytest.raises(ValueError):
            batch_update_cells(PayslipState(), [(0, "Bonus", 1), (12, "Bonus", 1)], rules)

    def test_matches_sequential_edits(self, rules):
        updates = [(0, "Basic Salary", 4000), (5, "Basic Salary", 3000), (7, "Overtime Pay", 250)]
        batched = batch_update_cells(PayslipState(), updates, rules)

        sequential = PayslipState()
        for month_index, row, value in updates:
            sequential = edit_cell(sequential, month_index, row, value, rules)

        assert batched.months == sequential.months
        for row, total in batched.totals.items():
            assert sequential.totals[row] == pytest.approx(total)


class TestRecalculator:
    """Service object wrapping rules and defaults."""

    def test_recalculate(self, rules):
        calc = Recalculator(rules=rules, tax_class=2)
        result = calc.recalculate("Gross Salary", {"Gross Salary": 15000})
        assert result.values["Income Tax"] == pytest.approx(monthly(15000, tax_class=2).income_tax)

    def test_dependents_include_template_fields(self, rules):
        template = load_template(FIXTURES / "basic_template.yaml")
        calc = Recalculator(rules=rules, template=template)
        assert calc.dependents("pension") == ["pension", "total_deductions", "net_pay"]

    def test_edit_and_batch(self, rules):
        calc = Recalculator(rules=rules)
        state = calc.edit_cell(PayslipState(), 0, "Basic Salary", 5000)
        state = calc.batch_update(state, [(1, "Basic Salary", 5000)])
        assert state.totals["Social Security Total"] == pytest.approx(1220)

    def test_calculate_month(self, rules):
        calc = Recalculator(rules=rules)
        assert calc.calculate_month({"Salary": 5000})["Social Security Total"] == pytest.approx(610)

    def test_from_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PAYSLIP_CONFIG_PATH", str(tmp_path))
        (tmp_path / "profile.yaml").write_text("tax:\n  tax_class: 2\n  has_children: true\n")

        calc = Recalculator.from_config()
        assert calc.tax_params.tax_class == 2
        assert calc.tax_params.has_children is True
        assert calc.rules.year == 2025
