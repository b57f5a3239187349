"""
NestedAttributesSettings implementation.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Optional

from django.conf import settings as django_settings

from .defaults import LIBRARY_DEFAULTS, get_environment_defaults, merge_settings


def _get_project_settings() -> dict[str, Any]:
    """Get the ``NESTED_ATTRIBUTES`` block from Django settings."""
    config = getattr(django_settings, "NESTED_ATTRIBUTES", None) or {}
    if not isinstance(config, dict):
        return {}
    return dict(config)


def _get_library_defaults() -> dict[str, Any]:
    env = getattr(django_settings, "ENVIRONMENT", None)
    if not env:
        env = "development" if getattr(django_settings, "DEBUG", False) else "production"
    return merge_settings(LIBRARY_DEFAULTS, get_environment_defaults(env))


@dataclass(frozen=True)
class NestedAttributesSettings:
    """Settings controlling nested attribute persistence."""

    destroy_key: str = "_destroy"
    pivot_accessor: str = "pivot"
    full_clean: bool = True
    using: Optional[str] = None
    raise_on_failure: bool = False
    coerce_camel_case: bool = True
    validate_on_startup: bool = True

    @classmethod
    def from_django(cls, **overrides: Any) -> "NestedAttributesSettings":
        merged = merge_settings(_get_library_defaults(), _get_project_settings(), overrides)
        valid_fields = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in merged.items() if k in valid_fields})

    def with_overrides(self, **overrides: Any) -> "NestedAttributesSettings":
        valid_fields = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in overrides.items() if k in valid_fields})
