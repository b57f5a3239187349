"""
Relation kinds and the descriptor produced by the classifier.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Type

from django.db import models


class RelationKind(str, Enum):
    """Cardinality kinds supported by nested attribute persistence."""

    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    BELONGS_TO_MANY = "belongs_to_many"

    @property
    def is_singular(self) -> bool:
        return self in (RelationKind.BELONGS_TO, RelationKind.HAS_ONE)

    @property
    def is_plural(self) -> bool:
        return not self.is_singular


@dataclass(frozen=True)
class RelationDescriptor:
    """
    Metadata resolved from a relation accessor on the root model.

    Attributes:
        kind: Cardinality kind of the relation.
        accessor: Attribute name of the relation on the root model.
        related_model: Model class on the other side of the relation.
        target_key_name: Primary key attribute name of ``related_model``.
        remote_field_name: For BelongsTo, the FK field on the root model.
            For HasOne/HasMany, the FK field on the related model pointing
            back to the root. ``None`` for generic and many-to-many relations.
        pivot_accessor: Payload key carrying pivot data (many-to-many only).
        through_model: Pivot model (many-to-many only).
        pivot_source_field: Pivot FK pointing at the root model.
        pivot_target_field: Pivot FK pointing at ``related_model``.
        polymorphic: True for generic (content type based) relations.
        content_type_field_name: Generic relation content type FK name.
        object_id_field_name: Generic relation object id field name.
    """

    kind: RelationKind
    accessor: str
    related_model: Type[models.Model]
    target_key_name: str
    remote_field_name: Optional[str] = None
    pivot_accessor: Optional[str] = None
    through_model: Optional[Type[models.Model]] = None
    pivot_source_field: Optional[str] = None
    pivot_target_field: Optional[str] = None
    polymorphic: bool = False
    content_type_field_name: Optional[str] = None
    object_id_field_name: Optional[str] = None
    for_concrete_model: bool = True

    @property
    def is_singular(self) -> bool:
        return self.kind.is_singular

    @property
    def is_plural(self) -> bool:
        return self.kind.is_plural

    @property
    def related_model_name(self) -> str:
        return self.related_model.__name__
