"""Single-month payslip recalculation command."""

import json

import click
from rich.console import Console

from payslip.sdk import (
    InvalidTaxInputError,
    Recalculator,
    SettingsError,
    TaxRulesNotFoundError,
    get_setting,
    load_tax_rules,
    resolve_tax_defaults,
)
from .formula_commands import parse_assignments
from .renderers.tax_renderer import render_month


@click.command("month")
@click.option("--set", "assignments", multiple=True, metavar="ROW=VALUE",
              help="Payslip row value, e.g. 'Basic Salary=4000' (repeatable)")
@click.option("--tax-class", type=click.Choice(["1", "2"]), default=None,
              help="1 = single, 2 = married/partnered (default: from settings)")
@click.option("--children/--no-children", default=None,
              help="Apply the single-parent credit (tax class 1 only)")
@click.option("--year", type=int, default=None, help="Tax rules year (default: from settings)")
@click.option("--json", "as_json", is_flag=True, help="Output JSON instead of a table")
def month(assignments, tax_class, children, year, as_json):
    """Recalculate one month's payslip rows from the entered values.

    Each row is applied as an edit; salary-class rows (salary, basic,
    allowance, overtime, bonus) refresh the tax-derived rows.

    Examples:
        payslip month --set "Basic Salary=4000" --set "Overtime Pay=300"
        payslip month --set "Gross Salary=6000" --tax-class 2 --json
    """
    values = parse_assignments(assignments)
    if not values:
        raise click.UsageError("Provide at least one --set ROW=VALUE")

    try:
        defaults = resolve_tax_defaults()
        recalculator = Recalculator(
            rules=load_tax_rules(year or defaults["tax_year"]),
            tax_class=int(tax_class) if tax_class else defaults["tax_class"],
            has_children=defaults["has_children"] if children is None else children,
        )
    except (SettingsError, TaxRulesNotFoundError, InvalidTaxInputError) as e:
        raise click.ClickException(str(e))

    current = dict(values)
    errors = {}
    for row in values:
        result = recalculator.recalculate(row, current)
        current.update(result.values)
        errors.update(result.errors)

    output = {
        "tax_year": recalculator.rules.year,
        "tax_class": recalculator.tax_params.tax_class,
        "has_children": recalculator.tax_params.has_children,
        "values": current,
        "errors": errors,
    }

    if as_json:
        click.echo(json.dumps(output, indent=2))
        return

    render_month(Console(), output, symbol=get_setting("currency_symbol"))
