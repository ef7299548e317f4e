"""Recalculation coordinator.

Given one or more edited fields, works out which computed fields depend on
them and refreshes those from a single snapshot of the inputs:

- Salary-class rows (salary, basic, allowance, overtime, bonus) drive every
  tax-derived row (income tax, social security lines, net salary, ...)
- Template formula fields follow their references transitively
- Annual totals are re-summed only for rows marked dependent

Everything here is copy-on-write: inputs are never modified and every
function returns new maps / a new PayslipState.

Usage:
    from payslip.sdk.recalc import PayslipState, Recalculator

    calc = Recalculator()
    state = calc.edit_cell(PayslipState(), 0, "Basic Salary", 4000)
    state.months[0]["Net Salary"]
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import resolve_tax_defaults
from .formula.values import number_or_zero
from .schemas import PayslipTemplate
from .taxes import (
    InvalidTaxInputError,
    TaxRules,
    coerce_params,
    compute_monthly_tax,
    load_tax_rules,
)
from .templates import calculate_formulas, dependent_fields as template_dependent_fields

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12

# Payslip cells hold amounts or free text (Department, Position, ...)
CellValue = Union[float, str]

GROSS_SALARY = "Gross Salary"
INCOME_TAX = "Income Tax"
SOCIAL_SECURITY_TOTAL = "Social Security Total"
SICKNESS_INSURANCE = "Sickness Insurance"
PENSION_CONTRIBUTION = "Pension Contribution"
DEPENDENCY_INSURANCE = "Dependency Insurance"
TOTAL_DEDUCTIONS = "Total Deductions"
NET_SALARY = "Net Salary"
EMPLOYER_COST = "Employer Cost"
OTHER_DEDUCTIONS = "Other Deductions"

# Rows rewritten whenever a salary-class row changes
TAX_DERIVED_FIELDS = (
    GROSS_SALARY,
    INCOME_TAX,
    SOCIAL_SECURITY_TOTAL,
    SICKNESS_INSURANCE,
    PENSION_CONTRIBUTION,
    DEPENDENCY_INSURANCE,
    TOTAL_DEDUCTIONS,
    NET_SALARY,
    EMPLOYER_COST,
)

# Explicit gross rows, in order of preference
GROSS_SALARY_ROWS = (GROSS_SALARY, "Basic Salary", "Salary")
# Components summed when no explicit gross row is set
GROSS_COMPONENT_ROWS = ("Basic Salary", "Allowances", "Overtime Pay", "Bonus")

SALARY_KEYWORDS = ("salary", "basic", "allowance", "overtime", "bonus")
TAX_ROW_KEYWORDS = (
    "income tax",
    "social security",
    "sickness",
    "pension",
    "dependency",
    "net salary",
    "total deductions",
    "employer cost",
)


def is_salary_field(name: str) -> bool:
    """True if editing this row changes the gross salary."""
    lowered = name.lower()
    return any(keyword in lowered for keyword in SALARY_KEYWORDS)


def is_tax_field(name: str) -> bool:
    """True if this row is produced by the tax calculation."""
    lowered = name.lower()
    return any(keyword in lowered for keyword in TAX_ROW_KEYWORDS)


def _unique(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def get_dependent_fields(changed_field_id: str) -> List[str]:
    """Rows that need recalculation when a row changes (no duplicates).

    A salary-class row marks itself plus every tax-derived row; any other
    row marks only itself.

    Example:
        >>> "Net Salary" in get_dependent_fields("Overtime Pay")
        True
        >>> get_dependent_fields("Department")
        ['Department']
    """
    dependents = [changed_field_id]
    if is_salary_field(changed_field_id):
        dependents.extend(TAX_DERIVED_FIELDS)
    return _unique(dependents)


def resolve_gross_salary(values: Mapping[str, Any]) -> float:
    """Effective gross salary for a period.

    Resolution order:
    1. First non-zero of Gross Salary, Basic Salary, Salary
    2. Basic Salary + Allowances + Overtime Pay + Bonus (missing = 0)
    """
    for row in GROSS_SALARY_ROWS:
        amount = number_or_zero(values.get(row))
        if amount:
            return amount
    return sum(number_or_zero(values.get(row)) for row in GROSS_COMPONENT_ROWS)


def calculate_period_taxes(
    values: Mapping[str, Any],
    tax_class: int = 1,
    has_children: bool = False,
    rules: Optional[TaxRules] = None,
) -> Dict[str, Any]:
    """Fill the tax-derived rows of one period.

    If the resolved gross is not positive the values come back unchanged
    (as a copy).

    Args:
        values: Row values for the period
        tax_class: 1 (single) or 2 (married/partnered)
        has_children: Whether the single-parent credit may apply
        rules: Rules to apply (default: current year)

    Returns:
        New dict with the tax-derived rows set

    Raises:
        InvalidTaxInputError: If tax_class is not 1 or 2
    """
    updated = dict(values)
    gross = resolve_gross_salary(values)

    if gross <= 0:
        return updated

    result = compute_monthly_tax(
        {"monthly_gross_salary": gross, "tax_class": tax_class, "has_children": has_children},
        rules,
    )
    ss = result.social_security
    deductions = result.income_tax + ss.total

    # Keep a manually entered gross
    if not number_or_zero(updated.get(GROSS_SALARY)):
        updated[GROSS_SALARY] = gross

    updated[INCOME_TAX] = result.income_tax
    updated[SOCIAL_SECURITY_TOTAL] = ss.total
    updated[SICKNESS_INSURANCE] = ss.sickness
    updated[PENSION_CONTRIBUTION] = ss.pension
    updated[DEPENDENCY_INSURANCE] = ss.dependency
    updated[TOTAL_DEDUCTIONS] = deductions + number_or_zero(updated.get(OTHER_DEDUCTIONS))
    updated[NET_SALARY] = gross - deductions
    updated[EMPLOYER_COST] = result.total_cost_to_employer

    return updated


# =============================================================================
# Twelve-month payslip state
# =============================================================================


class PayslipState(BaseModel):
    """A person's payslip rows for one year, bucketed by month (0-11).

    Frozen; every update returns a new state.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    person_name: str = Field(default="", alias="personName")
    person_id: str = Field(default="", alias="personId")
    department: str = ""
    position: str = ""
    year: int = 2025
    months: Dict[int, Dict[str, CellValue]] = Field(default_factory=dict)
    totals: Dict[str, float] = Field(default_factory=dict)
    tax_class: Literal[1, 2] = Field(default=1, alias="taxClass")
    has_children: bool = Field(default=False, alias="hasChildren")
    custom_rows: List[str] = Field(default_factory=list, alias="customRows")

    @field_validator("months")
    @classmethod
    def months_in_range(cls, v: Dict[int, Dict[str, CellValue]]) -> Dict[int, Dict[str, CellValue]]:
        bad = [m for m in v if not 0 <= m < MONTHS_PER_YEAR]
        if bad:
            raise ValueError(f"month indexes must be 0-11, got {sorted(bad)}")
        return v

    def month(self, month_index: int) -> Dict[str, CellValue]:
        """Copy of one month's rows (empty if the month has no data)."""
        return dict(self.months.get(month_index, {}))


@dataclass(frozen=True)
class CellUpdate:
    """One edited cell: a row value in a month."""
    month_index: int
    row_name: str
    value: CellValue


def _check_month(month_index: int) -> None:
    if not 0 <= month_index < MONTHS_PER_YEAR:
        raise ValueError(f"month_index must be 0-11, got {month_index}")


def _coerce_update(update: Union[CellUpdate, Mapping[str, Any], tuple]) -> CellUpdate:
    """Accept CellUpdate, (month, row, value) tuples, or dicts (snake or camelCase)."""
    if isinstance(update, CellUpdate):
        return update
    if isinstance(update, tuple):
        return CellUpdate(*update)
    return CellUpdate(
        month_index=update.get("month_index", update.get("monthIndex")),
        row_name=update.get("row_name", update.get("rowName")),
        value=update["value"],
    )


def update_cell(state: PayslipState, month_index: int, row_name: str, value: CellValue) -> PayslipState:
    """Set one cell, copying only the changed month."""
    _check_month(month_index)
    months = dict(state.months)
    months[month_index] = {**state.months.get(month_index, {}), row_name: value}
    return state.model_copy(update={"months": months})


def recalculate_totals(state: PayslipState, changed_rows: Iterable[str]) -> PayslipState:
    """Re-sum annual totals for the given rows only; text cells count as 0."""
    totals = dict(state.totals)
    for row in _unique(changed_rows):
        totals[row] = sum(
            number_or_zero(state.months.get(month, {}).get(row))
            for month in range(MONTHS_PER_YEAR)
        )
    return state.model_copy(update={"totals": totals})


def recalculate_month(
    state: PayslipState,
    month_index: int,
    rules: Optional[TaxRules] = None,
) -> PayslipState:
    """Refresh the tax-derived rows of one month from that month's data."""
    _check_month(month_index)
    current = state.months.get(month_index, {})
    updated = calculate_period_taxes(current, state.tax_class, state.has_children, rules)
    if updated == current:
        return state

    months = dict(state.months)
    months[month_index] = updated
    return state.model_copy(update={"months": months})


def edit_cell(
    state: PayslipState,
    month_index: int,
    row_name: str,
    value: CellValue,
    rules: Optional[TaxRules] = None,
) -> PayslipState:
    """Apply one edit: update the cell, refresh that month's taxes if needed, re-sum dependents."""
    new_state = update_cell(state, month_index, row_name, value)
    if is_salary_field(row_name):
        new_state = recalculate_month(new_state, month_index, rules)
    return recalculate_totals(new_state, get_dependent_fields(row_name))


def batch_update_cells(
    state: PayslipState,
    updates: Iterable[Union[CellUpdate, Mapping[str, Any], tuple]],
    rules: Optional[TaxRules] = None,
) -> PayslipState:
    """Apply many edits at once.

    Updates are grouped by month before anything changes (a later update to
    the same cell wins). Each month touched by a salary-class edit has its
    taxes recalculated independently of every other month. Totals are then
    re-summed for the union of dependent rows.
    """
    by_month: Dict[int, Dict[str, CellValue]] = {}
    changed_rows: List[str] = []

    for raw in updates:
        update = _coerce_update(raw)
        _check_month(update.month_index)
        by_month.setdefault(update.month_index, {})[update.row_name] = update.value
        changed_rows.append(update.row_name)

    if not by_month:
        return state

    months = dict(state.months)
    for month_index, rows in by_month.items():
        months[month_index] = {**state.months.get(month_index, {}), **rows}
    new_state = state.model_copy(update={"months": months})

    for month_index in sorted(by_month):
        if any(is_salary_field(row) for row in by_month[month_index]):
            new_state = recalculate_month(new_state, month_index, rules)

    dependents = _unique(
        dependent
        for row in changed_rows
        for dependent in get_dependent_fields(row)
    )
    return recalculate_totals(new_state, dependents)


# =============================================================================
# Flat field-map recalculation
# =============================================================================


@dataclass
class RecalcResult:
    """Refreshed values for the fields that depend on an edit.

    values holds only the dependent subset; errors is keyed by field id.
    """
    values: Dict[str, Any]
    dependents: List[str]
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "values": dict(self.values),
            "dependents": list(self.dependents),
            "errors": dict(self.errors),
        }


def recalculate(
    changed_field_id: str,
    current_state: Mapping[str, Any],
    tax_class: int = 1,
    has_children: bool = False,
    template: Optional[PayslipTemplate] = None,
    rules: Optional[TaxRules] = None,
) -> RecalcResult:
    """Recompute every field that depends on changed_field_id.

    Tax-derived rows are refreshed first (when the field is salary-class),
    then template formula fields, so formulas see the new tax values.
    Failures are reported in RecalcResult.errors, never raised.

    Args:
        changed_field_id: The edited field
        current_state: Field value map after the edit (not modified)
        tax_class: 1 or 2
        has_children: Whether the single-parent credit may apply
        template: Template whose formula fields should also be refreshed
        rules: Tax rules (default: current year)

    Returns:
        RecalcResult with the dependent subset of updated values
    """
    dependents = get_dependent_fields(changed_field_id)
    if template is not None:
        for source in list(dependents):
            dependents.extend(template_dependent_fields(template, source))
        dependents = _unique(dependents)

    updated = dict(current_state)
    errors: Dict[str, str] = {}

    if is_salary_field(changed_field_id):
        try:
            updated = calculate_period_taxes(updated, tax_class, has_children, rules)
        except InvalidTaxInputError as e:
            logger.warning(f"Skipping tax recalculation for '{changed_field_id}': {e}")
            errors[changed_field_id] = str(e)

    if template is not None:
        calculation = calculate_formulas(template, updated)
        updated.update(calculation.values)
        errors.update({k: v for k, v in calculation.errors.items() if k in dependents})

    values = {f: updated[f] for f in dependents if f in updated}
    return RecalcResult(values=values, dependents=dependents, errors=errors)


class Recalculator:
    """Recalculation service bound to one set of tax rules and defaults.

    Construct one per context (request, CLI invocation, test) and pass it
    to whatever needs it; there is no shared global instance.
    """

    def __init__(
        self,
        rules: Optional[TaxRules] = None,
        template: Optional[PayslipTemplate] = None,
        tax_class: int = 1,
        has_children: bool = False,
    ):
        self.rules = rules if rules is not None else load_tax_rules()
        self.template = template
        self.tax_params = coerce_params(
            {"monthly_gross_salary": 0, "tax_class": tax_class, "has_children": has_children}
        )

    @classmethod
    def from_config(cls, template: Optional[PayslipTemplate] = None) -> "Recalculator":
        """Build from settings.json / profile.yaml defaults (tax year, class, children)."""
        defaults = resolve_tax_defaults()
        return cls(
            rules=load_tax_rules(defaults["tax_year"]),
            template=template,
            tax_class=defaults["tax_class"],
            has_children=defaults["has_children"],
        )

    def dependents(self, field_id: str) -> List[str]:
        """Fields refreshed when field_id changes (tax rows and template formulas)."""
        dependents = get_dependent_fields(field_id)
        if self.template is not None:
            for source in list(dependents):
                dependents.extend(template_dependent_fields(self.template, source))
        return _unique(dependents)

    def recalculate(self, changed_field_id: str, current_state: Mapping[str, Any]) -> RecalcResult:
        return recalculate(
            changed_field_id,
            current_state,
            tax_class=self.tax_params.tax_class,
            has_children=self.tax_params.has_children,
            template=self.template,
            rules=self.rules,
        )

    def calculate_month(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        return calculate_period_taxes(
            values, self.tax_params.tax_class, self.tax_params.has_children, self.rules
        )

    def edit_cell(self, state: PayslipState, month_index: int, row_name: str, value: CellValue) -> PayslipState:
        return edit_cell(state, month_index, row_name, value, self.rules)

    def batch_update(self, state: PayslipState, updates) -> PayslipState:
        return batch_update_cells(state, updates, self.rules)
