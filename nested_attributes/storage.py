"""
Storage primitives used by the reconcilers.

Thin layer over the Django ORM giving create / update / delete / find /
upsert operations that either succeed or raise a ``NestedPersistenceError``.
Every call runs against the database alias chosen for the current save.
"""

import logging
from typing import Any, Iterable, Mapping, Optional, Tuple, Type

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError, IntegrityError, models

from .exceptions import EntityNotFound, PersistenceFailure
from .utils.coercion import coerce_pk

logger = logging.getLogger(__name__)


def assignable_field_names(model: Type[models.Model]) -> set[str]:
    """Return the names a payload may assign on ``model`` (name and attname)."""
    names: set[str] = set()
    for field in model._meta.concrete_fields:
        names.add(field.name)
        names.add(field.attname)
    return names


def primary_key_names(model: Type[models.Model]) -> set[str]:
    pk = model._meta.pk
    return {pk.name, pk.attname, "pk"}


def filter_assignable(
    model: Type[models.Model],
    attributes: Mapping[str, Any],
    exclude: Iterable[str] = (),
) -> dict[str, Any]:
    """
    Keep only the payload keys that map to concrete fields of ``model``.

    Unknown keys are dropped, the same way a guarded mass assignment ignores
    attributes it does not accept.
    """
    allowed = assignable_field_names(model)
    excluded = set(exclude)
    return {
        key: value
        for key, value in attributes.items()
        if key in allowed and key not in excluded
    }


class DjangoStorage:
    """Create, update, delete and lookup primitives bound to one database alias."""

    def __init__(self, using: Optional[str] = None, full_clean: bool = True):
        self.using = using
        self.full_clean = full_clean

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def persist(self, instance: models.Model, operation: str = "save") -> models.Model:
        """Validate (when enabled) and save ``instance``."""
        model = type(instance)
        try:
            if self.full_clean:
                instance.full_clean()
            instance.save(using=self.using)
        except ValidationError as exc:
            raise PersistenceFailure(
                f"Failed to {operation} {model.__name__}: {self._describe(exc)}",
                model_name=model.__name__,
                operation=operation,
            ) from exc
        except (IntegrityError, DatabaseError) as exc:
            raise PersistenceFailure(
                f"Failed to {operation} {model.__name__}: {exc}",
                model_name=model.__name__,
                operation=operation,
            ) from exc
        return instance

    def create(self, model: Type[models.Model], attributes: Mapping[str, Any]) -> models.Model:
        instance = model(**filter_assignable(model, attributes, exclude=primary_key_names(model)))
        self.persist(instance, operation="create")
        logger.debug("Created %s(pk=%s)", model.__name__, instance.pk)
        return instance

    def update(self, instance: models.Model, attributes: Mapping[str, Any]) -> models.Model:
        model = type(instance)
        values = filter_assignable(model, attributes, exclude=primary_key_names(model))
        for key, value in values.items():
            setattr(instance, key, value)
        self.persist(instance, operation="update")
        logger.debug("Updated %s(pk=%s)", model.__name__, instance.pk)
        return instance

    def delete(self, instance: models.Model) -> int:
        model = type(instance)
        pk = instance.pk
        try:
            deleted, _ = instance.delete(using=self.using)
        except (IntegrityError, DatabaseError) as exc:
            raise PersistenceFailure(
                f"Failed to delete {model.__name__}(pk={pk}): {exc}",
                model_name=model.__name__,
                operation="delete",
            ) from exc
        if not deleted:
            raise PersistenceFailure(
                f"Failed to delete {model.__name__}(pk={pk}): no row was removed.",
                model_name=model.__name__,
                operation="delete",
            )
        logger.debug("Deleted %s(pk=%s)", model.__name__, pk)
        return deleted

    def delete_queryset(self, queryset: models.QuerySet) -> int:
        model = queryset.model
        try:
            deleted, per_model = queryset.using(self.using).delete()
        except (IntegrityError, DatabaseError) as exc:
            raise PersistenceFailure(
                f"Failed to delete {model.__name__} rows: {exc}",
                model_name=model.__name__,
                operation="delete",
            ) from exc
        return per_model.get(model._meta.label, 0)

    def update_or_create(
        self,
        model: Type[models.Model],
        match: Mapping[str, Any],
        attributes: Mapping[str, Any],
    ) -> Tuple[models.Model, bool]:
        """
        Find the row matching ``match`` and update it, or create it.

        ``match`` is used as-is for the lookup; ``attributes`` are written on
        top of it.
        """
        lookup = filter_assignable(model, match)
        values = filter_assignable(model, attributes, exclude=lookup.keys())
        instance = None
        if lookup:
            try:
                instance = model._default_manager.using(self.using).filter(**lookup).first()
            except (ValueError, TypeError, ValidationError) as exc:
                raise PersistenceFailure(
                    f"Failed to look up {model.__name__} by {sorted(lookup)}: {exc}",
                    model_name=model.__name__,
                    operation="update_or_create",
                ) from exc
        if instance is None:
            instance = model(**{**lookup, **values})
            self.persist(instance, operation="create")
            logger.debug("Upsert created %s(pk=%s)", model.__name__, instance.pk)
            return instance, True
        for key, value in values.items():
            setattr(instance, key, value)
        self.persist(instance, operation="update")
        logger.debug("Upsert updated %s(pk=%s)", model.__name__, instance.pk)
        return instance, False

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def find_or_fail(
        self,
        queryset: models.QuerySet,
        key: Any,
        field_name: Optional[str] = None,
    ) -> models.Model:
        model = queryset.model
        pk = coerce_pk(key)
        try:
            return queryset.using(self.using).get(pk=pk)
        except (ObjectDoesNotExist, ValidationError, ValueError, TypeError) as exc:
            raise EntityNotFound(
                f"{model.__name__} with id '{key}' does not exist.",
                model_name=model.__name__,
                field_name=field_name,
                key=key,
            ) from exc

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _describe(self, error: ValidationError) -> str:
        if hasattr(error, "message_dict"):
            return "; ".join(
                f"{field}: {' '.join(messages)}"
                for field, messages in error.message_dict.items()
            )
        return " ".join(error.messages)
