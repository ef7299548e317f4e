"""taxes - Luxembourg payroll tax and contribution calculations.

Scope:
- Progressive income tax with solidarity surcharge (luxembourg.py)
- Single-parent tax credit
- Employee social security and employer contributions
- Monthly and annual (monthly x 12) breakdowns

Constraints:
- Pure calculation - no employee config (that's in config.py)
- Receives numbers, returns TaxResult models
- Year-specific rules loaded from taxes/rules/{year}.yaml

Usage:
    from payslip.sdk.taxes import compute_monthly_tax, TaxParameters

    result = compute_monthly_tax(TaxParameters(monthly_gross_salary=5000, tax_class=1))
    result.social_security.total   # 610.0
"""

from .schemas import (
    TaxBracket,
    TaxRules,
    TaxParameters,
    TaxResult,
    SocialSecurityContributions,
    EmployerContributions,
)

from .luxembourg import (
    DEFAULT_TAX_YEAR,
    InvalidTaxInputError,
    TaxRulesNotFoundError,
    load_tax_rules,
    get_available_years,
    coerce_params,
    calculate_bracket_tax,
    calculate_income_tax,
    apply_tax_credits,
    calculate_social_security,
    calculate_employer_contributions,
    compute_monthly_tax,
    compute_annual_tax,
    calculate_single,
    calculate_married,
    calculate_single_parent,
    format_result,
)

__all__ = [
    # Schemas
    "TaxBracket",
    "TaxRules",
    "TaxParameters",
    "TaxResult",
    "SocialSecurityContributions",
    "EmployerContributions",
    # Rules
    "DEFAULT_TAX_YEAR",
    "TaxRulesNotFoundError",
    "load_tax_rules",
    "get_available_years",
    # Calculations
    "InvalidTaxInputError",
    "coerce_params",
    "calculate_bracket_tax",
    "calculate_income_tax",
    "apply_tax_credits",
    "calculate_social_security",
    "calculate_employer_contributions",
    "compute_monthly_tax",
    "compute_annual_tax",
    "calculate_single",
    "calculate_married",
    "calculate_single_parent",
    "format_result",
]
