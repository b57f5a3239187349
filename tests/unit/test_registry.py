"""
Unit tests for nested attribute declarations and payload planning.
"""

import pytest
from django.test import override_settings

from nested_attributes import NestedAttributeRegistry, NestedAttributesSettings, NestedSaveOrchestrator
from nested_attributes.exceptions import (
    InvalidNestedPayload,
    NestedConfigurationError,
    UnknownRelationAccessor,
    UnsupportedRelationKind,
)
from nested_attributes.orchestrator import split_nested_attributes
from nested_attributes.relations import RelationKind
from tests.models import Note, Order, Tag

pytestmark = pytest.mark.unit


def _settings(**overrides):
    return NestedAttributesSettings(**overrides)


class TestNestedAttributeRegistry:
    def test_accept_is_chainable_and_keeps_order(self):
        registry = NestedAttributeRegistry(Order, settings=_settings())
        registry.accept("tags").accept("line_items").accept("customer")
        assert registry.keys == ["tags", "line_items", "customer"]
        assert "line_items" in registry
        assert "notes" not in registry

    def test_resolve_classifies_every_key(self):
        registry = NestedAttributeRegistry.from_declaration(
            Order, ["line_items", "customer", "shipping", "tags", "notes"], settings=_settings()
        )
        kinds = {key: descriptor.kind for key, descriptor in registry.resolve().items()}
        assert kinds == {
            "line_items": RelationKind.HAS_MANY,
            "customer": RelationKind.BELONGS_TO,
            "shipping": RelationKind.HAS_ONE,
            "tags": RelationKind.BELONGS_TO_MANY,
            "notes": RelationKind.HAS_MANY,
        }

    def test_explicit_accessor_and_pivot_accessor(self):
        registry = NestedAttributeRegistry.from_declaration(
            Order,
            {"labels": {"accessor": "tags", "pivot_accessor": "meta"}, "items": "line_items"},
            settings=_settings(),
        )
        assert registry.descriptor("labels").accessor == "tags"
        assert registry.descriptor("labels").pivot_accessor == "meta"
        assert [d.accessor for d in registry.declarations] == ["tags", "line_items"]
        assert registry.descriptor("items").kind is RelationKind.HAS_MANY

    def test_default_pivot_accessor_comes_from_settings(self):
        registry = NestedAttributeRegistry(Order, settings=_settings(pivot_accessor="through"))
        registry.accept("tags")
        assert registry.descriptor("tags").pivot_accessor == "through"

    def test_camel_case_key_resolves_to_snake_case_accessor(self):
        registry = NestedAttributeRegistry(Order, settings=_settings()).accept("lineItems")
        assert registry.resolve_accessor("lineItems") == "line_items"
        assert registry.descriptor("lineItems").related_model.__name__ == "LineItem"

    def test_camel_case_key_rejected_when_coercion_disabled(self):
        registry = NestedAttributeRegistry(Order, settings=_settings(coerce_camel_case=False))
        registry.accept("lineItems")
        with pytest.raises(UnknownRelationAccessor):
            registry.resolve()

    def test_unknown_key(self):
        registry = NestedAttributeRegistry(Order, settings=_settings()).accept("invoices")
        with pytest.raises(UnknownRelationAccessor) as exc_info:
            registry.resolve()
        assert exc_info.value.field_name == "invoices"

    def test_undeclared_key_lookup(self):
        registry = NestedAttributeRegistry(Order, settings=_settings()).accept("line_items")
        with pytest.raises(UnknownRelationAccessor):
            registry.descriptor("tags")

    def test_unsupported_key(self):
        registry = NestedAttributeRegistry(Note, settings=_settings()).accept("content_object")
        with pytest.raises(UnsupportedRelationKind):
            registry.resolve()

    def test_empty_key_rejected(self):
        with pytest.raises(NestedConfigurationError):
            NestedAttributeRegistry(Order, settings=_settings()).accept("  ")

    def test_accept_invalidates_resolution(self):
        registry = NestedAttributeRegistry(Order, settings=_settings()).accept("line_items")
        assert list(registry.resolve()) == ["line_items"]
        registry.accept("tags")
        assert list(registry.resolve()) == ["line_items", "tags"]

    def test_cached_registry_follows_settings_changes(self):
        assert NestedAttributeRegistry.for_model(Order).descriptor("tags").pivot_accessor == "pivot"

        with override_settings(NESTED_ATTRIBUTES={"pivot_accessor": "meta"}):
            assert NestedAttributeRegistry.for_model(Order).descriptor("tags").pivot_accessor == "meta"

        assert NestedAttributeRegistry.for_model(Order).descriptor("tags").pivot_accessor == "pivot"

    def test_for_model_reads_model_declaration_and_caches(self):
        NestedAttributeRegistry.clear_cache()
        registry = NestedAttributeRegistry.for_model(Tag)
        assert registry.keys == ["children"]
        assert NestedAttributeRegistry.for_model(Tag) is registry
        NestedAttributeRegistry.clear_cache()
        assert NestedAttributeRegistry.for_model(Tag) is not registry


class TestPlanning:
    def _orchestrator(self):
        registry = NestedAttributeRegistry.from_declaration(
            Order, ["line_items", "customer", "tags"], settings=_settings()
        )
        return NestedSaveOrchestrator(registry)

    def test_split_keeps_nested_order(self):
        plain, nested = split_nested_attributes(
            ["line_items", "customer"],
            {"customer": {}, "reference": "A-1", "line_items": []},
        )
        assert plain == {"reference": "A-1"}
        assert list(nested) == ["customer", "line_items"]

    def test_plan_follows_payload_order(self):
        steps = self._orchestrator().plan({"tags": [], "customer": {"name": "Ada"}})
        assert [key for key, _, _ in steps] == ["tags", "customer"]

    def test_plan_rejects_list_for_singular_relation(self):
        with pytest.raises(InvalidNestedPayload) as exc_info:
            self._orchestrator().plan({"customer": [{"name": "Ada"}]})
        assert exc_info.value.expected == "mapping"
        assert exc_info.value.field_name == "customer"

    def test_plan_rejects_object_for_plural_relation(self):
        with pytest.raises(InvalidNestedPayload) as exc_info:
            self._orchestrator().plan({"line_items": {"sku": "A"}})
        assert exc_info.value.expected == "sequence"

    def test_plan_rejects_non_mapping_items(self):
        with pytest.raises(InvalidNestedPayload) as exc_info:
            self._orchestrator().plan({"line_items": [{"sku": "A"}, "B"]})
        assert exc_info.value.field_name == "line_items.1"

    def test_plan_rejects_unknown_key(self):
        with pytest.raises(UnknownRelationAccessor):
            self._orchestrator().plan({"shipping": {"address": "x"}})
