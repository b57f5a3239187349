"""
Mutation error helpers.
"""

from typing import Any, Optional

import graphene
from django.core.exceptions import ValidationError

from ..exceptions import (
    EntityNotFound,
    InvalidNestedPayload,
    NestedAttributesError,
    NestedConfigurationError,
    PersistenceFailure,
)


class MutationError(graphene.ObjectType):
    """
    Structured error type for nested save mutations.

    Attributes:
        field: Dotted path of the payload field the error relates to (optional)
        message: The error message describing what went wrong
        code: Optional machine-readable error code
    """

    field = graphene.String(description="Path of the field where the error occurred")
    message = graphene.String(description="What went wrong")
    code = graphene.String(description="Optional error code")


def _normalize_field_path(field: Any, prefix: Optional[str] = None) -> Optional[str]:
    """
    Convert backend field identifiers (dotted, double-underscore or list
    index notations) to a dot-separated path.
    """
    if field is None:
        return prefix

    segment = str(field)
    segment = segment.replace("__", ".")
    segment = segment.replace("[", ".").replace("]", "")
    segment = segment.replace("..", ".").strip(".")
    if prefix:
        return f"{prefix}.{segment}".strip(".")
    return segment or None


def _flatten_validation_error(
    detail: Any, path: Optional[str], accumulator: list[MutationError]
) -> None:
    """
    Recursively flatten Django ValidationError payloads into MutationErrors.
    """
    if isinstance(detail, ValidationError):
        if hasattr(detail, "error_dict"):
            for field_name, messages in detail.error_dict.items():
                next_path = path if field_name == "__all__" else _normalize_field_path(field_name, path)
                _flatten_validation_error(messages, next_path, accumulator)
            return
        for item in detail.error_list:
            for message in item.messages:
                accumulator.append(
                    MutationError(field=path, message=str(message), code=getattr(item, "code", None))
                )
        return

    if isinstance(detail, dict):
        for field_name, messages in detail.items():
            _flatten_validation_error(messages, _normalize_field_path(field_name, path), accumulator)
        return

    if isinstance(detail, (list, tuple)):
        for item in detail:
            _flatten_validation_error(item, path, accumulator)
        return

    accumulator.append(MutationError(field=path, message=str(detail)))


def build_validation_errors(
    error: ValidationError, prefix: Optional[str] = None
) -> list[MutationError]:
    """Convert a ValidationError into a flat list of MutationError objects."""
    collected: list[MutationError] = []
    _flatten_validation_error(error, prefix, collected)
    return collected


def build_mutation_error(
    message: str,
    field: Optional[str] = None,
    code: Optional[str] = None,
) -> MutationError:
    """Helper to build a single MutationError with a normalized field path."""
    return MutationError(field=_normalize_field_path(field), message=str(message), code=code)


def _error_code(error: NestedAttributesError) -> str:
    if isinstance(error, EntityNotFound):
        return "not_found"
    if isinstance(error, InvalidNestedPayload):
        return "invalid_payload"
    if isinstance(error, NestedConfigurationError):
        return "configuration"
    if isinstance(error, PersistenceFailure):
        return "persistence"
    return "error"


def build_nested_errors(error: Optional[Exception]) -> list[MutationError]:
    """Convert a nested save failure into MutationError objects."""
    if error is None:
        return []
    if isinstance(error, ValidationError):
        return build_validation_errors(error)
    if not isinstance(error, NestedAttributesError):
        return [build_mutation_error(message=str(error))]

    cause = error.__cause__
    if isinstance(cause, ValidationError):
        errors = build_validation_errors(cause, prefix=error.field_name)
        if errors:
            return errors
    return [
        build_mutation_error(
            message=str(error),
            field=error.field_name,
            code=_error_code(error),
        )
    ]
