"""Payslip SDK - Formula evaluation, Luxembourg payroll tax and recalculation."""

from .config import (
    get_config_dir,
    get_settings_path,
    load_settings,
    save_settings,
    get_setting,
    set_setting,
    unset_setting,
    coerce_setting,
    get_profile_path,
    load_profile,
    save_profile,
    get_profile_value,
    set_profile_value,
    resolve_tax_defaults,
    get_templates_dir,
    DEFAULT_SETTINGS,
    SettingsError,
    ProfileNotFoundError,
)

from .formula import (
    ERROR_DISPLAY,
    ERROR_SENTINEL,
    FormulaError,
    FormulaEvaluationError,
    FormulaResult,
    FormulaSyntaxError,
    UnresolvedReferenceError,
    evaluate_formula,
    format_currency,
    is_expression,
    parse_formula,
)

from .schemas import (
    FieldDefinition,
    SectionDefinition,
    PayslipTemplate,
)

from .templates import (
    TemplateCalculation,
    TemplateNotFoundError,
    TemplateValidationError,
    calculate_formulas,
    dependent_fields,
    find_template,
    load_template,
    section_total,
    template_from_dict,
)

from .taxes import (
    DEFAULT_TAX_YEAR,
    InvalidTaxInputError,
    TaxParameters,
    TaxResult,
    TaxRules,
    TaxRulesNotFoundError,
    compute_annual_tax,
    compute_monthly_tax,
    format_result,
    get_available_years,
    load_tax_rules,
)

from .recalc import (
    TAX_DERIVED_FIELDS,
    CellUpdate,
    PayslipState,
    RecalcResult,
    Recalculator,
    batch_update_cells,
    calculate_period_taxes,
    edit_cell,
    get_dependent_fields,
    is_salary_field,
    recalculate,
    recalculate_totals,
    resolve_gross_salary,
    update_cell,
)

__all__ = [
    # Config
    "get_config_dir",
    "get_settings_path",
    "load_settings",
    "save_settings",
    "get_setting",
    "set_setting",
    "unset_setting",
    "coerce_setting",
    "get_profile_path",
    "load_profile",
    "save_profile",
    "get_profile_value",
    "set_profile_value",
    "resolve_tax_defaults",
    "get_templates_dir",
    "DEFAULT_SETTINGS",
    "SettingsError",
    "ProfileNotFoundError",
    # Formula
    "ERROR_DISPLAY",
    "ERROR_SENTINEL",
    "FormulaError",
    "FormulaEvaluationError",
    "FormulaResult",
    "FormulaSyntaxError",
    "UnresolvedReferenceError",
    "evaluate_formula",
    "format_currency",
    "is_expression",
    "parse_formula",
    # Templates
    "FieldDefinition",
    "SectionDefinition",
    "PayslipTemplate",
    "TemplateCalculation",
    "TemplateNotFoundError",
    "TemplateValidationError",
    "calculate_formulas",
    "dependent_fields",
    "find_template",
    "load_template",
    "section_total",
    "template_from_dict",
    # Taxes
    "DEFAULT_TAX_YEAR",
    "InvalidTaxInputError",
    "TaxParameters",
    "TaxResult",
    "TaxRules",
    "TaxRulesNotFoundError",
    "compute_annual_tax",
    "compute_monthly_tax",
    "format_result",
    "get_available_years",
    "load_tax_rules",
    # Recalculation
    "TAX_DERIVED_FIELDS",
    "CellUpdate",
    "PayslipState",
    "RecalcResult",
    "Recalculator",
    "batch_update_cells",
    "calculate_period_taxes",
    "edit_cell",
    "get_dependent_fields",
    "is_salary_field",
    "recalculate",
    "recalculate_totals",
    "resolve_gross_salary",
    "update_cell",
]
