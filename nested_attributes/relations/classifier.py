"""
Relation classification.

Maps a Django relation field to one of the supported ``RelationKind`` values
by looking at the cardinality flags every relation field exposes
(``many_to_one``, ``one_to_one``, ``one_to_many``, ``many_to_many``) and at
which side of the relation owns the foreign key.
"""

import logging
from typing import Any, Optional, Type

from django.db import models

from ..exceptions import UnknownRelationAccessor, UnsupportedRelationKind
from .kinds import RelationDescriptor, RelationKind

logger = logging.getLogger(__name__)


def get_relation_field(model: Type[models.Model], accessor: str) -> Any:
    """
    Find the forward field or reverse relation exposed as ``accessor``.

    Forward fields match on ``name``; reverse relations match on their
    accessor name (``related_name`` or ``<model>_set``).

    Raises:
        UnknownRelationAccessor: If nothing on the model answers to ``accessor``.
    """
    for field in model._meta.get_fields():
        if getattr(field, "auto_created", False) and not getattr(field, "concrete", False):
            get_accessor_name = getattr(field, "get_accessor_name", None)
            if callable(get_accessor_name) and get_accessor_name() == accessor:
                return field
            continue
        if getattr(field, "name", None) == accessor:
            return field

    raise UnknownRelationAccessor(
        f'The nested attribute relation "{accessor}" does not exist on {model.__name__}.',
        model_name=model.__name__,
        field_name=accessor,
    )


def _is_generic_relation(field: Any) -> bool:
    return hasattr(field, "content_type_field_name") and hasattr(
        field, "object_id_field_name"
    )


def _unsupported(model: Type[models.Model], accessor: str, field: Any) -> UnsupportedRelationKind:
    return UnsupportedRelationKind(
        f'The nested attribute relation is not supported for "{accessor}" '
        f"({type(field).__name__} on {model.__name__}).",
        model_name=model.__name__,
        field_name=accessor,
    )


def classify_field(
    model: Type[models.Model],
    accessor: str,
    field: Any,
    pivot_accessor: Optional[str] = None,
) -> RelationDescriptor:
    """
    Classify an already resolved relation field.

    Raises:
        UnsupportedRelationKind: If the field is not one of the four kinds.
    """
    if not getattr(field, "is_relation", False):
        raise _unsupported(model, accessor, field)

    related_model = getattr(field, "related_model", None)
    if related_model is None or isinstance(related_model, str):
        # Generic foreign keys have no fixed target model.
        raise _unsupported(model, accessor, field)

    target_key_name = related_model._meta.pk.name
    auto_created = getattr(field, "auto_created", False)
    concrete = getattr(field, "concrete", False)

    if (field.many_to_one or field.one_to_one) and concrete and not auto_created:
        return RelationDescriptor(
            kind=RelationKind.BELONGS_TO,
            accessor=accessor,
            related_model=related_model,
            target_key_name=target_key_name,
            remote_field_name=field.name,
        )

    if field.one_to_one and auto_created:
        return RelationDescriptor(
            kind=RelationKind.HAS_ONE,
            accessor=accessor,
            related_model=related_model,
            target_key_name=target_key_name,
            remote_field_name=field.field.name,
        )

    if field.one_to_many and auto_created:
        return RelationDescriptor(
            kind=RelationKind.HAS_MANY,
            accessor=accessor,
            related_model=related_model,
            target_key_name=target_key_name,
            remote_field_name=field.field.name,
        )

    if field.one_to_many and _is_generic_relation(field):
        return RelationDescriptor(
            kind=RelationKind.HAS_MANY,
            accessor=accessor,
            related_model=related_model,
            target_key_name=target_key_name,
            polymorphic=True,
            content_type_field_name=field.content_type_field_name,
            object_id_field_name=field.object_id_field_name,
            for_concrete_model=getattr(field, "for_concrete_model", True),
        )

    if field.many_to_many:
        if auto_created:
            m2m_field = field.field
            through_model = field.through
            source, target = m2m_field.m2m_reverse_field_name(), m2m_field.m2m_field_name()
        else:
            through_model = field.remote_field.through
            source, target = field.m2m_field_name(), field.m2m_reverse_field_name()
        return RelationDescriptor(
            kind=RelationKind.BELONGS_TO_MANY,
            accessor=accessor,
            related_model=related_model,
            target_key_name=target_key_name,
            pivot_accessor=pivot_accessor or "pivot",
            through_model=through_model,
            pivot_source_field=source,
            pivot_target_field=target,
        )

    raise _unsupported(model, accessor, field)


def classify(
    model: Type[models.Model],
    accessor: str,
    pivot_accessor: Optional[str] = None,
) -> RelationDescriptor:
    """
    Resolve and classify the relation ``accessor`` of ``model``.

    Raises:
        UnknownRelationAccessor: If the accessor does not exist.
        UnsupportedRelationKind: If it exists but is not a supported relation.
    """
    field = get_relation_field(model, accessor)
    descriptor = classify_field(model, accessor, field, pivot_accessor=pivot_accessor)
    logger.debug(
        "Classified %s.%s as %s -> %s",
        model.__name__,
        accessor,
        descriptor.kind.value,
        descriptor.related_model_name,
    )
    return descriptor
