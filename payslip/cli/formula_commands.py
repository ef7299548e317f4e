"""Formula and template commands."""

import json
from typing import Any, Dict, Tuple

import click
from rich.console import Console
from rich.table import Table
from rich import box

from payslip.sdk import (
    ERROR_DISPLAY,
    TemplateNotFoundError,
    TemplateValidationError,
    calculate_formulas,
    dependent_fields,
    evaluate_formula,
    find_template,
    is_expression,
)
from payslip.sdk.formula.values import parse_number, to_text


def parse_assignments(assignments: Tuple[str, ...]) -> Dict[str, Any]:
    """Parse repeated --set ID=VALUE options.

    Numeric text (including "12%") becomes a number; anything else stays text.
    """
    values = {}
    for item in assignments:
        if "=" not in item:
            raise click.BadParameter(f"Expected ID=VALUE, got '{item}'", param_hint="--set")
        key, raw = item.split("=", 1)
        key = key.strip()
        if not key:
            raise click.BadParameter(f"Missing field id in '{item}'", param_hint="--set")
        number = parse_number(raw)
        values[key] = number if number is not None else raw
    return values


@click.command("formula")
@click.argument("expression")
@click.option("--set", "assignments", multiple=True, metavar="ID=VALUE",
              help="Value for a field id or cell address (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output JSON instead of plain text")
def formula(expression, assignments, as_json):
    """Evaluate a single formula EXPRESSION.

    The leading '=' is optional. References with no --set value read as 0
    and are reported.

    Examples:
        payslip formula "=SUM(A1:A3)" --set A1=10 --set A2=20
        payslip formula "IF(bonus>0, salary+bonus, salary)" --set salary=4000
    """
    values = parse_assignments(assignments)
    if not is_expression(expression):
        expression = f"={expression}"

    result = evaluate_formula(expression, values.get)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.ok:
        raise click.ClickException(f"{result.error_type} error: {result.error}")

    for name in result.unresolved:
        click.echo(f"Warning: '{name}' has no value, read as 0", err=True)
    click.echo(to_text(result.value))


@click.group()
def template():
    """Evaluate payslip templates (YAML or JSON)."""
    pass


def _load(path_or_name: str):
    try:
        return find_template(path_or_name)
    except (TemplateNotFoundError, TemplateValidationError) as e:
        raise click.ClickException(str(e))


@template.command("calc")
@click.argument("template_path")
@click.option("--set", "assignments", multiple=True, metavar="ID=VALUE",
              help="Input field value (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output JSON instead of a table")
def template_calc(template_path, assignments, as_json):
    """Calculate every formula field of a template.

    TEMPLATE_PATH is a file path or the name of a template in the
    configured templates_dir.

    Example:
        payslip template calc monthly.yaml --set basic_salary=4000 --set bonus=250
    """
    payslip_template = _load(template_path)
    calculation = calculate_formulas(payslip_template, parse_assignments(assignments))

    if as_json:
        click.echo(json.dumps(calculation.to_dict(), indent=2))
        return

    table = Table(title=f"Template: {payslip_template.name or payslip_template.id}", box=box.ROUNDED)
    table.add_column("Field", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Notes", style="dim")

    for field_id, value in calculation.values.items():
        if field_id in calculation.errors:
            table.add_row(field_id, f"[red]{ERROR_DISPLAY}[/red]", f"[red]{calculation.errors[field_id]}[/red]")
            continue
        missing = calculation.unresolved.get(field_id)
        note = f"no value: {', '.join(missing)}" if missing else ""
        table.add_row(field_id, to_text(value), note)

    Console().print(table)


@template.command("deps")
@click.argument("template_path")
@click.argument("field_id")
def template_deps(template_path, field_id):
    """List the formula fields that depend on FIELD_ID, in evaluation order."""
    payslip_template = _load(template_path)
    dependents = dependent_fields(payslip_template, field_id)[1:]

    if not dependents:
        click.echo(f"No formula fields depend on '{field_id}'.")
        return

    for dependent in dependents:
        click.echo(dependent)
