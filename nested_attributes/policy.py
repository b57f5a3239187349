"""
Destroy flag handling for nested payloads.
"""

from typing import Any, Mapping

from .utils.coercion import coerce_bool

DEFAULT_DESTROY_KEY = "_destroy"


class DestroyPolicy:
    """Decides whether a nested payload asks for its target row to be deleted."""

    def __init__(self, destroy_key: str = DEFAULT_DESTROY_KEY):
        self.destroy_key = destroy_key

    def should_destroy(self, payload: Mapping[str, Any]) -> bool:
        """True when the destroy key is present and coerces to True."""
        if not isinstance(payload, Mapping) or self.destroy_key not in payload:
            return False
        return coerce_bool(payload[self.destroy_key])

    def strip(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``payload`` without the destroy key."""
        return {key: value for key, value in payload.items() if key != self.destroy_key}
