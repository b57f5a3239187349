"""
Integration tests for HasMany nested attributes (reverse foreign keys and
generic relations).
"""

import pytest
from django.contrib.contenttypes.models import ContentType

from nested_attributes import NestedSaveOrchestrator
from nested_attributes.exceptions import EntityNotFound
from tests.models import Customer, LineItem, Note, Order

pytestmark = [pytest.mark.integration, pytest.mark.django_db]


def _save(root, attributes, **overrides):
    return NestedSaveOrchestrator.for_model(type(root)).save(root, attributes, **overrides)


@pytest.fixture
def order_with_items():
    order = Order.objects.create(reference="A-1")
    items = [
        LineItem.objects.create(order=order, sku=sku, qty=1)
        for sku in ("A", "B", "C")
    ]
    return order, items


class TestCreate:
    def test_new_root_creates_every_item_and_prunes_nothing(self):
        order = Order()
        result = _save(
            order,
            {"reference": "A-1", "line_items": [{"sku": "A", "qty": 2}, {"sku": "B"}]},
        )

        assert result.ok
        assert sorted(order.line_items.values_list("sku", flat=True)) == ["A", "B"]
        outcome = result.outcome_for("line_items")
        assert outcome.pruned == 0
        assert len(outcome.created) == 2
        assert outcome.deleted == []

    def test_new_root_with_item_key_is_not_found(self):
        order = Order()
        result = _save(order, {"line_items": [{"id": 99, "sku": "A"}]})

        assert not result.ok
        assert isinstance(result.error, EntityNotFound)
        assert result.error.key == 99
        assert result.error.field_name == "line_items"
        assert not Order.objects.exists()
        assert order.pk is None

    def test_unknown_payload_columns_are_ignored(self):
        order = Order()
        result = _save(order, {"line_items": [{"sku": "A", "colour": "red"}]})

        assert result.ok
        assert LineItem.objects.get(order=order).sku == "A"


class TestPrune:
    def test_keeps_only_items_named_by_key(self, order_with_items):
        order, (first, second, third) = order_with_items

        result = _save(order, {"line_items": [{"id": second.pk, "qty": 5}]})

        assert result.ok
        assert list(order.line_items.values_list("pk", "qty")) == [(second.pk, 5)]
        outcome = result.outcome_for("line_items")
        assert outcome.pruned == 2
        assert outcome.updated == [second.pk]

    def test_payload_without_keys_replaces_the_collection(self, order_with_items):
        order, items = order_with_items

        result = _save(order, {"line_items": [{"sku": "A", "qty": 9}]})

        # Pruning runs first, so recreating "A" does not hit the
        # (order, sku) unique constraint.
        assert result.ok
        remaining = list(order.line_items.all())
        assert [(item.sku, item.qty) for item in remaining] == [("A", 9)]
        assert remaining[0].pk not in {item.pk for item in items}
        assert result.outcome_for("line_items").pruned == 3

    def test_empty_payload_removes_every_item(self, order_with_items):
        order, _ = order_with_items

        result = _save(order, {"line_items": []})

        assert result.ok
        assert not order.line_items.exists()

    def test_string_keys_are_coerced(self, order_with_items):
        order, (first, _, _) = order_with_items

        result = _save(order, {"line_items": [{"id": str(first.pk), "qty": 3}]})

        assert result.ok
        assert list(order.line_items.values_list("pk", "qty")) == [(first.pk, 3)]

    def test_prune_is_scoped_to_the_root(self, order_with_items):
        order, _ = order_with_items
        other = Order.objects.create(reference="B-1")
        LineItem.objects.create(order=other, sku="A")

        _save(order, {"line_items": []})

        assert other.line_items.count() == 1


class TestApply:
    def test_update_destroy_and_create_in_one_payload(self, order_with_items):
        order, (first, second, third) = order_with_items

        result = _save(
            order,
            {
                "line_items": [
                    {"id": first.pk, "qty": 4},
                    {"id": second.pk, "_destroy": True},
                    {"sku": "D"},
                ]
            },
        )

        assert result.ok
        assert sorted(order.line_items.values_list("sku", "qty")) == [("A", 4), ("D", 1)]
        outcome = result.outcome_for("line_items")
        assert outcome.pruned == 1
        assert outcome.deleted == [second.pk]
        assert outcome.updated == [first.pk]
        assert len(outcome.created) == 1

    def test_missing_key_rolls_back_the_prune(self, order_with_items):
        order, items = order_with_items

        result = _save(order, {"reference": "changed", "line_items": [{"id": 999, "qty": 1}]})

        assert not result.ok
        assert isinstance(result.error, EntityNotFound)
        assert order.line_items.count() == 3
        assert Order.objects.get(pk=order.pk).reference == "A-1"
        assert order.reference == "A-1"

    def test_item_of_another_root_is_not_found(self, order_with_items):
        order, _ = order_with_items
        other = Order.objects.create(reference="B-1")
        foreign = LineItem.objects.create(order=other, sku="Z")

        result = _save(order, {"line_items": [{"id": foreign.pk, "qty": 2}]})

        assert not result.ok
        assert isinstance(result.error, EntityNotFound)
        foreign.refresh_from_db()
        assert foreign.qty == 1

    def test_malformed_key_is_not_found(self, order_with_items):
        order, _ = order_with_items

        result = _save(order, {"line_items": [{"id": "abc", "qty": 2}]})

        assert not result.ok
        assert isinstance(result.error, EntityNotFound)
        assert result.error.key == "abc"
        assert result.error.field_name == "line_items"
        assert order.line_items.count() == 3

    def test_malformed_key_on_new_root_is_not_found(self):
        order = Order()

        result = _save(order, {"line_items": [{"id": "abc"}]})

        assert not result.ok
        assert isinstance(result.error, EntityNotFound)
        assert not Order.objects.exists()


class TestReverseForeignKeyOnCustomer:
    def test_nullable_reverse_foreign_key(self):
        customer = Customer.objects.create(name="Ada", email="ada@example.com")
        kept = Order.objects.create(reference="keep", customer=customer)
        Order.objects.create(reference="drop", customer=customer)

        result = _save(customer, {"orders": [{"id": kept.pk, "reference": "kept"}]})

        assert result.ok
        assert list(customer.orders.values_list("reference", flat=True)) == ["kept"]
        assert Order.objects.count() == 1


class TestGenericRelation:
    def test_creates_notes_with_content_type(self):
        order = Order()
        result = _save(order, {"notes": [{"body": "fragile"}, {"body": "gift"}]})

        assert result.ok
        content_type = ContentType.objects.get_for_model(Order)
        notes = Note.objects.filter(content_type=content_type, object_id=order.pk)
        assert sorted(notes.values_list("body", flat=True)) == ["fragile", "gift"]

    def test_prunes_only_notes_of_this_root(self):
        order = Order.objects.create(reference="A-1")
        customer = Customer.objects.create(name="Ada", email="ada@example.com")
        kept = Note.objects.create(content_object=order, body="keep")
        Note.objects.create(content_object=order, body="drop")
        unrelated = Note.objects.create(content_object=customer, body="customer note")

        result = _save(order, {"notes": [{"id": kept.pk, "body": "kept"}]})

        assert result.ok
        assert list(order.notes.values_list("body", flat=True)) == ["kept"]
        assert Note.objects.filter(pk=unrelated.pk).exists()


class TestOrderScenarios:
    def test_new_order_with_two_line_items(self):
        order = Order()

        result = _save(order, {"line_items": [{"sku": "A", "qty": 2}, {"sku": "B", "qty": 1}]})

        assert result.ok
        assert Order.objects.filter(pk=order.pk).exists()
        assert sorted(order.line_items.values_list("sku", "qty")) == [("A", 2), ("B", 1)]
        outcome = result.outcome_for("line_items")
        assert outcome.pruned == 0
        assert outcome.deleted == []

    def test_existing_order_update_and_destroy(self):
        order = Order.objects.create(reference="A-1")
        LineItem.objects.create(pk=10, order=order, sku="A", qty=1)
        LineItem.objects.create(pk=11, order=order, sku="B", qty=1)

        result = _save(
            order,
            {"line_items": [{"id": 10, "qty": 5}, {"_destroy": True, "id": 11, "qty": 8}]},
        )

        assert result.ok
        assert list(order.line_items.values_list("pk", "qty")) == [(10, 5)]
        outcome = result.outcome_for("line_items")
        assert outcome.updated == [10]
        assert outcome.deleted == [11]
        assert outcome.pruned == 0
