"""Configuration management for Payslip Calc.

Configuration is split into two files:

1. settings.json - Machine-specific settings and calculation defaults
   - tax_year: which tax-rules/<year>.yaml to load (default 2025)
   - tax_class / has_children: default tax situation for CLI commands
   - currency_symbol: symbol used for text output
   - templates_dir: where payslip templates are looked up by name

2. profile.yaml - Optional employee profile
   - tax.tax_class, tax.has_children: override the settings defaults
   - employee: name, department, position (informational)

Config directory resolution:
1. PAYSLIP_CONFIG_PATH environment variable (if set)
2. $XDG_CONFIG_HOME/payslip-calc/ (default ~/.config/payslip-calc/)
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

import yaml


APP_NAME = "payslip-calc"
SETTINGS_FILENAME = "settings.json"
PROFILE_FILENAME = "profile.yaml"

# Known settings with their defaults. Types are checked on set.
DEFAULT_SETTINGS = {
    "tax_year": 2025,
    "tax_class": 1,
    "has_children": False,
    "currency_symbol": "€",
    "templates_dir": None,
}


class SettingsError(Exception):
    """Raised when a setting key or value is invalid."""
    pass


class ProfileNotFoundError(Exception):
    """Raised when no profile is found."""
    pass


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Resolution order:
    1. PAYSLIP_CONFIG_PATH environment variable
    2. ~/.config/payslip-calc/ (XDG_CONFIG_HOME)

    Returns:
        Path to the configuration directory
    """
    env_path = os.environ.get("PAYSLIP_CONFIG_PATH")
    if env_path:
        return Path(env_path)

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
    return Path(xdg_config_home) / APP_NAME


def get_settings_path() -> Path:
    """Get the path to settings.json (may not exist yet)."""
    return get_config_dir() / SETTINGS_FILENAME


def load_settings() -> dict:
    """Load machine-specific settings from settings.json.

    Returns:
        Settings dictionary (empty dict if file doesn't exist)
    """
    settings_file = get_settings_path()

    if not settings_file.exists():
        return {}

    with open(settings_file, "r") as f:
        return json.load(f)


def save_settings(settings: dict) -> Path:
    """Save machine-specific settings to settings.json.

    Args:
        settings: Settings dictionary to save

    Returns:
        Path to the saved settings file
    """
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    settings_file = config_dir / SETTINGS_FILENAME

    with open(settings_file, "w") as f:
        json.dump(settings, f, indent=2, ensure_ascii=False)

    return settings_file


def get_setting(key: str, default: Any = None) -> Any:
    """Get a setting value from settings.json, falling back to built-in defaults.

    Args:
        key: Setting key (e.g., "tax_year", "currency_symbol")
        default: Value returned when neither settings.json nor the
                 built-in defaults define the key

    Returns:
        Setting value or default
    """
    settings = load_settings()
    if key in settings:
        return settings[key]
    return DEFAULT_SETTINGS.get(key, default)


def coerce_setting(key: str, value: Any) -> Any:
    """Validate and convert a raw (usually string) value for a known setting.

    Raises:
        SettingsError: If the key is unknown or the value has the wrong type
    """
    if key not in DEFAULT_SETTINGS:
        known = ", ".join(sorted(DEFAULT_SETTINGS))
        raise SettingsError(f"Unknown setting '{key}'. Known settings: {known}")

    if key in ("tax_year", "tax_class"):
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise SettingsError(f"Setting '{key}' must be an integer, got {value!r}")
        if key == "tax_class" and value not in (1, 2):
            raise SettingsError(f"tax_class must be 1 (single) or 2 (married), got {value}")
        return value

    if key == "has_children":
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in ("1", "true", "yes", "y"):
            return True
        if lowered in ("0", "false", "no", "n"):
            return False
        raise SettingsError(f"Setting 'has_children' must be true or false, got {value!r}")

    if key == "templates_dir":
        return str(Path(value).expanduser())

    return str(value)


def set_setting(key: str, value: Any) -> Path:
    """Validate and set a setting value in settings.json.

    Returns:
        Path to the saved settings file
    """
    settings = load_settings()
    settings[key] = coerce_setting(key, value)
    return save_settings(settings)


def unset_setting(key: str) -> bool:
    """Remove a setting from settings.json. Returns True if it was set."""
    settings = load_settings()
    if key not in settings:
        return False
    del settings[key]
    save_settings(settings)
    return True


def get_profile_path(require_exists: bool = False) -> Path:
    """Get the path to the profile.yaml file.

    Args:
        require_exists: If True, raises ProfileNotFoundError if not found

    Raises:
        ProfileNotFoundError: If require_exists=True and no profile found
    """
    profile_path = get_config_dir() / PROFILE_FILENAME

    if require_exists and not profile_path.exists():
        raise ProfileNotFoundError(
            f"No profile found at {profile_path}\n\n"
            f"Create one with a 'tax' section, e.g.:\n"
            f"  tax:\n"
            f"    tax_class: 1\n"
            f"    has_children: false"
        )

    return profile_path


def load_profile(require_exists: bool = False) -> dict:
    """Load employee profile from profile.yaml.

    Returns:
        Profile dictionary (empty dict if not required and not found)
    """
    profile_path = get_profile_path(require_exists=require_exists)

    if not profile_path.exists():
        return {}

    with open(profile_path, "r") as f:
        return yaml.safe_load(f) or {}


def save_profile(profile: dict, path: Optional[Path] = None) -> Path:
    """Save employee profile to profile.yaml."""
    if path is None:
        path = get_profile_path(require_exists=False)

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.dump(profile, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    return path


def get_profile_value(key: str, default: Any = None) -> Any:
    """Get a profile value by dot-notation key.

    Args:
        key: Dot-notation key (e.g., "tax.tax_class")
        default: Default value if key not found
    """
    profile = load_profile(require_exists=False)

    parts = key.split(".")
    value = profile

    for part in parts:
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return default

    return value


def set_profile_value(key: str, value: Any) -> Path:
    """Set a profile value by dot-notation key, creating nested sections."""
    profile = load_profile(require_exists=False)

    parts = key.split(".")
    current = profile

    for part in parts[:-1]:
        if part not in current or not isinstance(current[part], dict):
            current[part] = {}
        current = current[part]

    current[parts[-1]] = value

    return save_profile(profile)


def resolve_tax_defaults() -> dict:
    """Resolve the default tax situation used when the caller gives none.

    Resolution order per key:
    1. profile.yaml "tax.<key>"
    2. settings.json "<key>"
    3. built-in default

    Returns:
        Dict with tax_year, tax_class, has_children
    """
    resolved = {}
    for key in ("tax_year", "tax_class", "has_children"):
        profile_value = get_profile_value(f"tax.{key}")
        if profile_value is not None:
            resolved[key] = coerce_setting(key, profile_value)
        else:
            resolved[key] = get_setting(key)
    return resolved


def get_templates_dir() -> Path:
    """Get the directory where named templates are looked up.

    Uses settings.json "templates_dir" when set, else <config dir>/templates.
    """
    custom = get_setting("templates_dir")
    if custom:
        return Path(custom)
    return get_config_dir() / "templates"
