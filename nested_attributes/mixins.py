"""
Model mixin giving Django models nested attribute support.

Usage:
    class Order(NestedAttributesMixin, models.Model):
        nested_attributes = ["line_items", "customer", "tags"]

    order = Order().fill({"reference": "A-1", "line_items": [{"sku": "A"}]})
    result = order.save()
"""

from typing import Any, Mapping, Optional

from .exceptions import NestedConfigurationError
from .orchestrator import (
    PENDING_ATTRIBUTE,
    NestedSaveOrchestrator,
    NestedSaveResult,
    split_nested_attributes,
)
from .policy import DestroyPolicy
from .registry import NestedAttributeRegistry
from .settings import NestedAttributesSettings
from .storage import filter_assignable, primary_key_names


class NestedAttributesMixin:
    """
    Adds ``fill`` and a nested aware ``save`` to a Django model.

    ``nested_attributes`` lists the accepted keys (or maps keys to relation
    accessors). ``destroy_nested_key`` overrides the configured destroy key
    for this model.
    """

    nested_attributes: Any = ()
    destroy_nested_key: Optional[str] = None

    @classmethod
    def get_nested_registry(cls) -> NestedAttributeRegistry:
        return NestedAttributeRegistry.for_model(cls)

    def get_destroy_nested_key(self) -> str:
        if self.destroy_nested_key:
            return self.destroy_nested_key
        return NestedAttributesSettings.from_django().destroy_key

    def get_accept_nested_attributes_for(self) -> dict[str, Any]:
        """Return the nested attributes captured by the last ``fill``."""
        return dict(self.__dict__.get(PENDING_ATTRIBUTE) or {})

    def allow_destroy_nested_attributes(self, payload: Mapping[str, Any]) -> bool:
        return DestroyPolicy(self.get_destroy_nested_key()).should_destroy(payload)

    def fill(self, attributes: Mapping[str, Any]):
        """
        Assign ``attributes`` to the instance.

        Declared nested keys are captured for the next ``save`` and removed
        from the input; the remaining keys are assigned to concrete fields,
        unknown keys are ignored.
        """
        registry = self.get_nested_registry()
        plain, nested = split_nested_attributes(registry.keys, attributes)
        self.__dict__[PENDING_ATTRIBUTE] = nested
        model = type(self)
        for name, value in filter_assignable(
            model, plain, exclude=primary_key_names(model)
        ).items():
            setattr(self, name, value)
        return self

    def save(self, *args, **kwargs):
        """
        Save the instance.

        Without captured nested attributes this is ``Model.save``. With
        them, the instance and every nested relation are saved in one
        transaction and the ``NestedSaveResult`` is returned.
        """
        pending = self.__dict__.pop(PENDING_ATTRIBUTE, None)
        if not pending:
            return super().save(*args, **kwargs)

        overrides = {"destroy_key": self.get_destroy_nested_key()}
        if kwargs.get("using"):
            overrides["using"] = kwargs["using"]
        try:
            return self.save_nested(pending, **overrides)
        except NestedConfigurationError:
            self.__dict__[PENDING_ATTRIBUTE] = pending
            raise

    def save_nested(self, nested: Mapping[str, Any], **overrides: Any) -> NestedSaveResult:
        orchestrator = NestedSaveOrchestrator.for_model(type(self))
        return orchestrator.save(self, nested=nested, **overrides)
