"""
Relation introspection for nested attribute persistence.

- ``RelationKind`` / ``RelationDescriptor``: what a relation is.
- ``classify``: turn a model accessor into a descriptor.
- ``BoundRelation``: a descriptor bound to the root instance being saved.
"""

from .bound import BoundRelation
from .classifier import classify, classify_field, get_relation_field
from .kinds import RelationDescriptor, RelationKind

__all__ = [
    "BoundRelation",
    "RelationDescriptor",
    "RelationKind",
    "classify",
    "classify_field",
    "get_relation_field",
]
