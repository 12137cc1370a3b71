# ============================================================================
# APPARATUS CHECKOUT - Configuration
# ============================================================================
# Environment-backed configuration with type casting and defaults.
# Every key can be overridden with CHECKOUT_<KEY> (upper case); the GitHub
# token also honours the plain GITHUB_TOKEN variable.
# All local dates use Eastern timezone (America/New_York) unless overridden.
# ============================================================================

import os
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

# key: (default, value_type, category)
DEFAULT_CONFIG = {
    # Issue store
    "store_backend": ("github", "string", "store"),
    "github_api_base": ("https://api.github.com", "string", "store"),
    "github_owner": ("pdarleyjr", "string", "store"),
    "github_repo": ("mbfd-checkout-system", "string", "store"),
    "github_token": ("", "string", "store"),
    "request_timeout_seconds": (20, "int", "store"),

    # Admin
    "admin_password": ("", "string", "admin"),

    # Fleet
    "apparatus_roster": (
        [
            "Engine 1", "Engine 2", "Engine 3", "Engine 4",
            "Ladder 1", "Ladder 3",
            "Rescue 1", "Rescue 2", "Rescue 3", "Rescue 4",
            "Rescue 11", "Rescue 22", "Rescue 44",
            "Rope Inventory",
        ],
        "list",
        "fleet",
    ),
    "timezone": ("America/New_York", "string", "general"),

    # Analytics
    "analytics_window_days": (30, "int", "analytics"),
    "low_stock_threshold": (3, "int", "analytics"),

    # Submission retry (caller policy)
    "submit_max_retries": (2, "int", "retry"),

    # Compliance reminder job
    "reminder_enabled": (False, "bool", "scheduler"),
    "reminder_hour": (18, "int", "scheduler"),

    # Logging
    "log_level": ("INFO", "string", "general"),
}

_overrides: Dict[str, Any] = {}


def _env_name(key: str) -> str:
    return f"CHECKOUT_{key.upper()}"


def _cast_value(value: str, value_type: str) -> Any:
    """Cast an environment string to the configured type."""
    if value is None:
        return None
    if value_type == "bool":
        return value.strip().lower() in ("true", "1", "yes", "on")
    if value_type == "int":
        try:
            return int(value)
        except ValueError:
            return 0
    if value_type == "list":
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value (override > environment > default)."""
    if key in _overrides:
        return _overrides[key]

    entry = DEFAULT_CONFIG.get(key)
    value_type = entry[1] if entry else "string"

    raw = os.environ.get(_env_name(key))
    if raw is None and key == "github_token":
        raw = os.environ.get("GITHUB_TOKEN")
    if raw is not None:
        return _cast_value(raw, value_type)

    if entry is None:
        return default
    value = entry[0]
    return list(value) if isinstance(value, list) else value


def set_config(key: str, value: Any) -> None:
    """Override a configuration value for the running process."""
    _overrides[key] = value


def reset_config(key: Optional[str] = None) -> None:
    """Drop process overrides (all of them when key is None)."""
    if key is None:
        _overrides.clear()
    else:
        _overrides.pop(key, None)


def get_all_config(category: str = None) -> Dict[str, Any]:
    """All configuration values, optionally filtered by category. Secrets masked."""
    result = {}
    for key, (_, _, cat) in DEFAULT_CONFIG.items():
        if category is not None and cat != category:
            continue
        value = get_config(key)
        if key in ("github_token", "admin_password"):
            value = "***" if value else ""
        result[key] = value
    return result


def get_roster() -> List[str]:
    return list(get_config("apparatus_roster") or [])


def get_timezone() -> ZoneInfo:
    return ZoneInfo(get_config("timezone") or "America/New_York")