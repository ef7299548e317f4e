"""Payslip CLI - Command-line interface for payslip formulas and Luxembourg payroll tax."""

import logging
import os

import click

from payslip import __version__

from .tax_commands import tax as tax_command
from .formula_commands import formula as formula_command
from .formula_commands import template as template_group
from .month_commands import month as month_command
from .settings_commands import settings as settings_group


@click.group()
@click.version_option(version=__version__, prog_name="payslip")
def cli():
    """Payslip Calc - Payslip formulas and Luxembourg payroll tax.

    Commands for calculating income tax and social security, evaluating
    payslip formulas and templates, and recalculating a month's payslip.

    Configuration is loaded from (in order):

    \b
    1. PAYSLIP_CONFIG_PATH environment variable
    2. ~/.config/payslip-calc/ (XDG default)

    Set LOG_LEVEL=DEBUG to see formula and recalculation diagnostics.
    """
    pass


# Add subcommands
cli.add_command(tax_command)
cli.add_command(formula_command)
cli.add_command(template_group)
cli.add_command(month_command)
cli.add_command(settings_group)


def configure_logging() -> None:
    """Configure root logging from LOG_LEVEL (default WARNING)."""
    level_name = os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def main():
    """Entry point for the CLI."""
    configure_logging()
    cli()


if __name__ == "__main__":
    main()
