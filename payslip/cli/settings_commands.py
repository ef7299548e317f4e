"""Settings CLI commands for Payslip Calc.

Manages settings.json - tax defaults, currency symbol, templates directory.
"""

import click

from payslip.sdk import (
    DEFAULT_SETTINGS,
    SettingsError,
    get_profile_path,
    get_settings_path,
    get_templates_dir,
    load_settings,
    resolve_tax_defaults,
    set_setting,
    unset_setting,
)


@click.group()
def settings():
    """Manage settings (settings.json).

    Available settings:
    - tax_year: tax rules year (default 2025)
    - tax_class: 1 (single) or 2 (married/partnered)
    - has_children: true/false
    - currency_symbol: symbol for table output
    - templates_dir: where named templates are looked up
    """
    pass


@settings.command("show")
def settings_show():
    """Show current settings and the effective tax defaults."""
    settings_path = get_settings_path()
    current = load_settings()

    click.echo(f"Settings file: {settings_path}")
    click.echo(f"File exists: {settings_path.exists()}")
    click.echo()

    if not current:
        click.echo("No settings configured (using defaults).")
    else:
        click.echo("Current settings:")
        for key, value in current.items():
            click.echo(f"  {key}: {value}")

    click.echo()
    try:
        defaults = resolve_tax_defaults()
    except SettingsError as e:
        raise click.ClickException(f"Invalid value in {get_profile_path()}: {e}")

    profile_note = " (profile.yaml overrides)" if get_profile_path().exists() else ""
    click.echo(f"Effective tax defaults{profile_note}:")
    for key, value in defaults.items():
        click.echo(f"  {key}: {value}")
    click.echo(f"  templates_dir: {get_templates_dir()}")


@settings.command("set")
@click.argument("key", type=click.Choice(sorted(DEFAULT_SETTINGS)))
@click.argument("value")
def settings_set(key, value):
    """Set a setting value.

    Examples:
        payslip settings set tax_class 2
        payslip settings set has_children true
    """
    try:
        path = set_setting(key, value)
    except SettingsError as e:
        raise click.ClickException(str(e))

    click.echo(f"Set {key}: {load_settings()[key]}")
    click.echo(f"Saved to: {path}")


@settings.command("unset")
@click.argument("key")
def settings_unset(key):
    """Remove a setting, reverting it to the default."""
    if unset_setting(key):
        default = DEFAULT_SETTINGS.get(key)
        click.echo(f"Cleared {key} (default: {default})")
    else:
        click.echo(f"{key} was not set.")
