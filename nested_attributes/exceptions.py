"""
Custom exceptions for nested attribute persistence.

Configuration errors are raised before any database work happens and are
never turned into a failed result. Persistence errors are raised by the
reconcilers and make the orchestrator roll the whole save back.
"""

from typing import Any, Optional


class NestedAttributesError(Exception):
    """Base exception for nested attribute errors."""

    def __init__(
        self,
        message: str,
        model_name: Optional[str] = None,
        field_name: Optional[str] = None,
    ):
        self.model_name = model_name
        self.field_name = field_name
        super().__init__(message)


class NestedConfigurationError(NestedAttributesError):
    """Raised when nested attributes are declared or shaped incorrectly."""

    pass


class UnknownRelationAccessor(NestedConfigurationError):
    """Raised when a declared nested key has no matching relation on the model."""

    pass


class UnsupportedRelationKind(NestedConfigurationError):
    """Raised when the accessor exists but is not a supported relation."""

    pass


class InvalidNestedPayload(NestedConfigurationError):
    """Raised when a payload does not have the shape its relation kind expects."""

    def __init__(
        self,
        message: str,
        model_name: Optional[str] = None,
        field_name: Optional[str] = None,
        expected: Optional[str] = None,
    ):
        self.expected = expected
        super().__init__(message, model_name, field_name)


class NestedPersistenceError(NestedAttributesError):
    """Base class for storage failures that roll the save back."""

    pass


class EntityNotFound(NestedPersistenceError):
    """Raised when a payload references a related row that does not exist."""

    def __init__(
        self,
        message: str,
        model_name: Optional[str] = None,
        field_name: Optional[str] = None,
        key: Any = None,
    ):
        self.key = key
        super().__init__(message, model_name, field_name)


class PersistenceFailure(NestedPersistenceError):
    """Raised when a create, update or delete fails in the storage backend."""

    def __init__(
        self,
        message: str,
        model_name: Optional[str] = None,
        field_name: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        self.operation = operation
        super().__init__(message, model_name, field_name)
