"""Tax calculation command."""

import json

import click
from rich.console import Console

from payslip.sdk import (
    InvalidTaxInputError,
    SettingsError,
    TaxRulesNotFoundError,
    compute_annual_tax,
    compute_monthly_tax,
    get_setting,
    resolve_tax_defaults,
    load_tax_rules,
)
from .renderers.tax_renderer import render_tax_result


@click.command("tax")
@click.argument("gross", type=float)
@click.option("--tax-class", type=click.Choice(["1", "2"]), default=None,
              help="1 = single, 2 = married/partnered (default: from settings)")
@click.option("--children/--no-children", default=None,
              help="Apply the single-parent credit (tax class 1 only)")
@click.option("--annual", is_flag=True, help="Show the annual view (monthly x 12)")
@click.option("--year", type=int, default=None, help="Tax rules year (default: from settings)")
@click.option("--json", "as_json", is_flag=True, help="Output JSON instead of a table")
def tax(gross, tax_class, children, annual, year, as_json):
    """Calculate Luxembourg income tax and social security for a monthly GROSS.

    Negative amounts must follow '--' (e.g. payslip tax -- -100) and are
    rejected as invalid input.

    Examples:
        payslip tax 5000
        payslip tax 8000 --tax-class 2 --annual
        payslip tax 3500 --children --json
    """
    try:
        defaults = resolve_tax_defaults()
        rules = load_tax_rules(year or defaults["tax_year"])
    except (SettingsError, TaxRulesNotFoundError) as e:
        raise click.ClickException(str(e))

    params = {
        "monthly_gross_salary": gross,
        "tax_class": int(tax_class) if tax_class else defaults["tax_class"],
        "has_children": defaults["has_children"] if children is None else children,
    }

    try:
        if annual:
            result = compute_annual_tax(params, rules)
        else:
            result = compute_monthly_tax(params, rules)
    except InvalidTaxInputError as e:
        raise click.ClickException(str(e))

    output = {
        "period": "annual" if annual else "monthly",
        "tax_year": rules.year,
        "tax_class": params["tax_class"],
        "has_children": params["has_children"],
        "rates": {
            "social_security": rules.social_security.model_dump(),
            "employer_contributions": rules.employer_contributions.model_dump(),
        },
        "result": result.model_dump(),
    }

    if as_json:
        click.echo(json.dumps(output, indent=2))
        return

    render_tax_result(Console(), output, symbol=get_setting("currency_symbol"))
