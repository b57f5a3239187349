"""
GraphQL (graphene) surface for nested saves.
"""

from .errors import (
    MutationError,
    build_mutation_error,
    build_nested_errors,
    build_validation_errors,
)
from .mutations import build_nested_save_mutation, get_object_type

__all__ = [
    "MutationError",
    "build_mutation_error",
    "build_nested_errors",
    "build_nested_save_mutation",
    "build_validation_errors",
    "get_object_type",
]
