"""
django-nested-attributes

Save a Django model together with the rows of its relations in one
transaction. Nested payloads create, update, delete or associate related
rows depending on the relation kind:

- ForeignKey / OneToOneField (BelongsTo) and reverse one-to-one (HasOne)
- reverse ForeignKey and GenericRelation (HasMany)
- ManyToManyField in either direction (BelongsToMany), with pivot data

Usage:
    from nested_attributes import NestedAttributesMixin

    class Order(NestedAttributesMixin, models.Model):
        nested_attributes = ["line_items", "customer"]

    result = Order().fill(payload).save()
    if not result:
        print(result.error)
"""

from .mixins import NestedAttributesMixin
from .orchestrator import NestedSaveOrchestrator, NestedSaveResult, save_nested
from .policy import DestroyPolicy
from .registry import NestedAttributeRegistry
from .relations import RelationDescriptor, RelationKind, classify
from .settings import NestedAttributesSettings

__version__ = "0.1.0"

__all__ = [
    "DestroyPolicy",
    "NestedAttributeRegistry",
    "NestedAttributesMixin",
    "NestedAttributesSettings",
    "NestedSaveOrchestrator",
    "NestedSaveResult",
    "RelationDescriptor",
    "RelationKind",
    "classify",
    "save_nested",
]
