"""Rich renderer for tax breakdowns and single-month payslips.

Transforms SDK JSON output into formatted Rich tables.
"""

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from payslip.sdk.recalc import TAX_DERIVED_FIELDS


def render_tax_result(console: Console, data: dict, symbol: str = "€") -> None:
    """Render a tax calculation as a Rich table.

    Args:
        console: Rich Console instance
        data: Output of the tax command (parameters, rates, result)
        symbol: Currency symbol
    """
    result = data["result"]
    rates = data.get("rates", {})
    ss = result["social_security"]
    er = result["employer_contributions"]
    ss_rates = rates.get("social_security", {})
    er_rates = rates.get("employer_contributions", {})
    period = data.get("period", "monthly")

    _render_parameters(console, data)

    table = Table(
        title=f"Luxembourg Payslip ({period}, {data.get('tax_year', '?')})",
        box=box.ROUNDED,
    )
    table.add_column("", style="bold", min_width=28)
    table.add_column("Amount", justify="right", min_width=14)

    table.add_row("Gross Salary", _fmt(result["gross_salary"], symbol))
    table.add_row("Income Tax", _fmt(result["income_tax"], symbol))
    table.add_row("", "")

    # Employee contributions
    table.add_row("[bold]SOCIAL SECURITY[/bold]", "")
    table.add_row(f"  Sickness Insurance{_pct(ss_rates.get('sickness'))}", _fmt(ss["sickness"], symbol))
    table.add_row(f"  Pension{_pct(ss_rates.get('pension'))}", _fmt(ss["pension"], symbol))
    table.add_row(f"  Dependency{_pct(ss_rates.get('dependency'))}", _fmt(ss["dependency"], symbol))
    table.add_row("  [dim]Total[/dim]", f"[dim]{_fmt(ss['total'], symbol)}[/dim]")
    table.add_row("", "")

    table.add_row(
        "[bold green]NET SALARY[/bold green]",
        f"[bold green]{_fmt(result['net_salary'], symbol)}[/bold green]",
    )
    table.add_row("", "")

    # Employer side
    table.add_row("[bold]EMPLOYER CONTRIBUTIONS[/bold]", "")
    table.add_row(f"  Sickness & Cash{_pct(er_rates.get('sickness_and_cash'))}", _fmt(er["sickness_and_cash"], symbol))
    table.add_row(f"  Accident{_pct(er_rates.get('accident'))}", _fmt(er["accident"], symbol))
    table.add_row(f"  Health{_pct(er_rates.get('health'))}", _fmt(er["health"], symbol))
    table.add_row(f"  Mutuality{_pct(er_rates.get('mutuality'))}", _fmt(er["mutuality"], symbol))
    table.add_row(f"  Pension{_pct(er_rates.get('pension'))}", _fmt(er["pension"], symbol))
    table.add_row("  [dim]Total[/dim]", f"[dim]{_fmt(er['total'], symbol)}[/dim]")
    table.add_row("", "")

    table.add_row("Total Cost to Employer", _fmt(result["total_cost_to_employer"], symbol))

    console.print(table)


def _render_parameters(console: Console, data: dict) -> None:
    """Render the tax situation panel."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("key", style="dim")
    table.add_column("value")

    tax_class = data.get("tax_class")
    label = {1: "1 (single)", 2: "2 (married/partnered)"}.get(tax_class, str(tax_class))
    table.add_row("Tax Class", label)
    table.add_row("Children", "yes" if data.get("has_children") else "no")
    table.add_row("Tax Year", str(data.get("tax_year", "?")))

    console.print(Panel(table, title="Tax Situation", border_style="dim"))


def render_month(console: Console, data: dict, symbol: str = "€") -> None:
    """Render one recalculated month: entered rows, then tax-derived rows.

    Args:
        console: Rich Console instance
        data: Output of the month command (values, errors, tax situation)
        symbol: Currency symbol
    """
    for field_id, message in data.get("errors", {}).items():
        console.print(Panel(
            f"[red]{message}[/red]",
            title=f"Error: {field_id}",
            border_style="red"
        ))

    values = data.get("values", {})
    table = Table(title="Monthly Payslip", box=box.ROUNDED)
    table.add_column("Row", style="bold", min_width=24)
    table.add_column("Amount", justify="right", min_width=14)

    entered = [row for row in values if row not in TAX_DERIVED_FIELDS]
    for row in entered:
        table.add_row(row, _fmt_value(values[row], symbol))

    derived = [row for row in TAX_DERIVED_FIELDS if row in values]
    if derived:
        table.add_row("", "")
        for row in derived:
            if row == "Net Salary":
                table.add_row(
                    "[bold green]Net Salary[/bold green]",
                    f"[bold green]{_fmt_value(values[row], symbol)}[/bold green]",
                )
            else:
                table.add_row(f"[dim]{row}[/dim]", _fmt_value(values[row], symbol))

    console.print(table)


def _pct(rate: float | None) -> str:
    if rate is None:
        return ""
    return f" ({rate * 100:g}%)"


def _fmt(amount: float | None, symbol: str = "€") -> str:
    """Format currency amount."""
    if amount is None:
        return "-"
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def _fmt_value(value, symbol: str = "€") -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _fmt(value, symbol)
    return str(value)
