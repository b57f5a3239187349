"""
Default configuration for the django-nested-attributes library.

Every key the library reads from ``settings.NESTED_ATTRIBUTES`` is listed
here so that a project only has to override what it needs.
"""

from __future__ import annotations

from typing import Any, Optional

LIBRARY_DEFAULTS: dict[str, Any] = {
    "destroy_key": "_destroy",
    "pivot_accessor": "pivot",
    "full_clean": True,
    "using": None,
    "raise_on_failure": False,
    "coerce_camel_case": True,
    "validate_on_startup": True,
}

# Startup validation resolves every declaration; production boots skip it.
ENVIRONMENT_DEFAULTS: dict[str, dict[str, Any]] = {
    "development": {"validate_on_startup": True},
    "testing": {"validate_on_startup": True},
    "production": {"validate_on_startup": False},
}


def get_environment_defaults(environment: str) -> dict[str, Any]:
    """Return the overrides for ``environment`` (empty when unknown)."""
    return dict(ENVIRONMENT_DEFAULTS.get(environment, {}))


def merge_settings(*layers: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Merge settings layers left to right; later layers win, None is skipped."""
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged
