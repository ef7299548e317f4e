"""Luxembourg monthly payroll tax and social security calculations.

Income tax:
1. Annualize the monthly gross (x12)
2. Apply the progressive bracket scale from rules/<year>.yaml
3. Add the solidarity surcharge (7%, or 9% above the class threshold)
4. Divide by 12 for the monthly amount
5. Subtract the single-parent credit (tax class 1 with children), floored at 0

Social security and employer contributions are flat rates on the monthly
gross. No rounding is applied; callers round for display.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from ..formula.values import format_currency
from .schemas import (
    EmployerContributions,
    SocialSecurityContributions,
    TaxParameters,
    TaxResult,
    TaxRules,
)

logger = logging.getLogger(__name__)

DEFAULT_TAX_YEAR = 2025
MONTHS_PER_YEAR = 12


class TaxRulesNotFoundError(FileNotFoundError):
    """Raised when no rules file exists for the requested year."""
    pass


class InvalidTaxInputError(ValueError):
    """Raised when tax parameters fail validation (negative gross, bad class)."""

    def __init__(self, errors):
        self.errors = errors
        super().__init__(f"Invalid tax input: {'; '.join(errors)}")


# =============================================================================
# Rules loading
# =============================================================================


def _get_rules_dir() -> Path:
    """Get the tax rules directory shipped with the package."""
    return Path(__file__).parent / "rules"


def get_available_years() -> list:
    """Get sorted list of available tax rule years (descending)."""
    years = [int(p.stem) for p in _get_rules_dir().glob("*.yaml") if p.stem.isdigit()]
    return sorted(years, reverse=True)


@lru_cache(maxsize=None)
def load_tax_rules(year: int = DEFAULT_TAX_YEAR) -> TaxRules:
    """Load and validate payroll rules from rules/<year>.yaml.

    Raises:
        TaxRulesNotFoundError: If no rules file exists for the year
        pydantic.ValidationError: If the rules file is malformed
    """
    rules_file = _get_rules_dir() / f"{int(year)}.yaml"
    if not rules_file.exists():
        available = ", ".join(str(y) for y in get_available_years()) or "none"
        raise TaxRulesNotFoundError(
            f"Tax rules file not found for year {year}: {rules_file} (available: {available})"
        )

    with open(rules_file, "r") as f:
        data = yaml.safe_load(f)

    logger.debug(f"Loaded tax rules from {rules_file}")
    return TaxRules.model_validate(data)


def _rules_or_default(rules: Optional[TaxRules]) -> TaxRules:
    return rules if rules is not None else load_tax_rules(DEFAULT_TAX_YEAR)


def coerce_params(params: Union[TaxParameters, Dict[str, Any]]) -> TaxParameters:
    """Build TaxParameters from a dict, converting validation failures.

    Raises:
        InvalidTaxInputError: If gross is negative or tax class is not 1 or 2
    """
    if isinstance(params, TaxParameters):
        return params
    try:
        return TaxParameters.model_validate(params)
    except ValidationError as e:
        messages = [
            f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidTaxInputError(messages)


# =============================================================================
# Building blocks
# =============================================================================


def calculate_bracket_tax(annual_salary: float, rules: Optional[TaxRules] = None) -> float:
    """Progressive tax on an annual salary, before surcharge."""
    rules = _rules_or_default(rules)

    tax = 0.0
    for bracket in rules.income_tax_brackets:
        if annual_salary <= bracket.min:
            break
        upper = annual_salary if bracket.max is None else min(annual_salary, bracket.max)
        tax += (upper - bracket.min) * bracket.rate

    return tax


def surcharge_rate(annual_salary: float, tax_class: int, rules: Optional[TaxRules] = None) -> float:
    """Solidarity surcharge rate for the salary and tax class."""
    surcharge = _rules_or_default(rules).solidarity_surcharge
    threshold = surcharge.high_rate_thresholds.get(tax_class)
    if threshold is not None and annual_salary > threshold:
        return surcharge.high_rate
    return surcharge.standard_rate


def calculate_income_tax(
    monthly_gross: float,
    tax_class: int = 1,
    rules: Optional[TaxRules] = None,
) -> float:
    """Monthly income tax (bracket tax plus surcharge), before credits.

    Args:
        monthly_gross: Monthly gross salary
        tax_class: 1 (single) or 2 (married/partnered)
        rules: Rules to apply (default: current year)

    Returns:
        Monthly income tax
    """
    rules = _rules_or_default(rules)
    annual_salary = monthly_gross * MONTHS_PER_YEAR

    tax = calculate_bracket_tax(annual_salary, rules)
    tax += tax * surcharge_rate(annual_salary, tax_class, rules)

    return tax / MONTHS_PER_YEAR


def apply_tax_credits(
    monthly_tax: float,
    params: TaxParameters,
    rules: Optional[TaxRules] = None,
) -> float:
    """Subtract the single-parent credit where it applies, floored at 0."""
    rules = _rules_or_default(rules)
    if params.has_children and params.tax_class == 1:
        return max(0.0, monthly_tax - rules.credits.single_parent_monthly)
    return monthly_tax


def calculate_social_security(
    monthly_gross: float,
    rules: Optional[TaxRules] = None,
) -> SocialSecurityContributions:
    """Employee social security on the monthly gross (12.2% in 2025)."""
    rates = _rules_or_default(rules).social_security

    sickness = monthly_gross * rates.sickness
    pension = monthly_gross * rates.pension
    dependency = monthly_gross * rates.dependency

    return SocialSecurityContributions(
        sickness=sickness,
        pension=pension,
        dependency=dependency,
        total=sickness + pension + dependency,
    )


def calculate_employer_contributions(
    monthly_gross: float,
    rules: Optional[TaxRules] = None,
) -> EmployerContributions:
    """Employer contributions on the monthly gross (13.69% in 2025)."""
    rates = _rules_or_default(rules).employer_contributions

    amounts = {
        "sickness_and_cash": monthly_gross * rates.sickness_and_cash,
        "accident": monthly_gross * rates.accident,
        "health": monthly_gross * rates.health,
        "mutuality": monthly_gross * rates.mutuality,
        "pension": monthly_gross * rates.pension,
    }

    return EmployerContributions(total=sum(amounts.values()), **amounts)


# =============================================================================
# Public calculations
# =============================================================================


def compute_monthly_tax(
    params: Union[TaxParameters, Dict[str, Any]],
    rules: Optional[TaxRules] = None,
) -> TaxResult:
    """Compute the monthly tax and contribution breakdown.

    Args:
        params: TaxParameters or equivalent dict
        rules: Rules to apply (default: current year)

    Returns:
        TaxResult for one month

    Raises:
        InvalidTaxInputError: If params fail validation
    """
    params = coerce_params(params)
    rules = _rules_or_default(rules)
    gross = params.monthly_gross_salary

    income_tax = calculate_income_tax(gross, params.tax_class, rules)
    adjusted_tax = apply_tax_credits(income_tax, params, rules)

    social_security = calculate_social_security(gross, rules)
    employer = calculate_employer_contributions(gross, rules)

    return TaxResult(
        gross_salary=gross,
        income_tax=adjusted_tax,
        social_security=social_security,
        employer_contributions=employer,
        net_salary=gross - adjusted_tax - social_security.total,
        total_cost_to_employer=gross + employer.total,
    )


def compute_annual_tax(
    params: Union[TaxParameters, Dict[str, Any]],
    rules: Optional[TaxRules] = None,
) -> TaxResult:
    """Annual view: the monthly result with every amount multiplied by 12.

    The brackets are not re-run on an annual figure; the monthly calculation
    is the source of truth.
    """
    return compute_monthly_tax(params, rules).scaled(MONTHS_PER_YEAR)


def calculate_single(monthly_gross: float, rules: Optional[TaxRules] = None) -> TaxResult:
    """Tax class 1, no children."""
    return compute_monthly_tax(
        TaxParameters(monthly_gross_salary=monthly_gross, tax_class=1, has_children=False), rules
    )


def calculate_married(monthly_gross: float, rules: Optional[TaxRules] = None) -> TaxResult:
    """Tax class 2, no children."""
    return compute_monthly_tax(
        TaxParameters(monthly_gross_salary=monthly_gross, tax_class=2, has_children=False), rules
    )


def calculate_single_parent(monthly_gross: float, rules: Optional[TaxRules] = None) -> TaxResult:
    """Tax class 1 with children (single-parent credit applies)."""
    return compute_monthly_tax(
        TaxParameters(monthly_gross_salary=monthly_gross, tax_class=1, has_children=True), rules
    )


def format_result(result: TaxResult, symbol: str = "€", rules: Optional[TaxRules] = None) -> str:
    """Plain-text payslip breakdown for logs and non-terminal output."""
    rules = _rules_or_default(rules)
    ss_rates = rules.social_security
    er_rates = rules.employer_contributions
    ss = result.social_security
    er = result.employer_contributions

    def money(value: float) -> str:
        return format_currency(value, symbol)

    def pct(rate: float) -> str:
        return f"{rate * 100:g}%"

    lines = [
        "Luxembourg Payslip Calculation:",
        "===============================",
        f"Gross Salary: {money(result.gross_salary)}",
        f"Income Tax: {money(result.income_tax)}",
        "",
        "Employee Social Security Contributions:",
        f"- Sickness Insurance ({pct(ss_rates.sickness)}): {money(ss.sickness)}",
        f"- Pension ({pct(ss_rates.pension)}): {money(ss.pension)}",
        f"- Dependency ({pct(ss_rates.dependency)}): {money(ss.dependency)}",
        f"Total Employee Contributions: {money(ss.total)}",
        "",
        f"NET SALARY: {money(result.net_salary)}",
        "",
        "Employer Contributions:",
        f"- Sickness & Cash ({pct(er_rates.sickness_and_cash)}): {money(er.sickness_and_cash)}",
        f"- Accident ({pct(er_rates.accident)}): {money(er.accident)}",
        f"- Health ({pct(er_rates.health)}): {money(er.health)}",
        f"- Mutuality ({pct(er_rates.mutuality)}): {money(er.mutuality)}",
        f"- Pension ({pct(er_rates.pension)}): {money(er.pension)}",
        f"Total Employer Cost: {money(result.total_cost_to_employer)}",
    ]
    return "\n".join(lines)
