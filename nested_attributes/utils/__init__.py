"""
Utility helpers for django-nested-attributes.
"""

from .coercion import coerce_bool, coerce_pk, is_blank
from .normalization import normalize_accessor, normalize_key_list

__all__ = [
    "coerce_bool",
    "coerce_pk",
    "is_blank",
    "normalize_accessor",
    "normalize_key_list",
]
