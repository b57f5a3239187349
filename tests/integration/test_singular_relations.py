"""
Integration tests for BelongsTo and HasOne nested attributes.
"""

import pytest

from nested_attributes import NestedSaveOrchestrator
from tests.models import Customer, Order, Shipping

pytestmark = [pytest.mark.integration, pytest.mark.django_db]


def _save(root, attributes, **overrides):
    return NestedSaveOrchestrator.for_model(type(root)).save(root, attributes, **overrides)


class TestBelongsTo:
    def test_creates_and_associates_target_on_new_root(self):
        order = Order()
        result = _save(order, {"reference": "A-1", "customer": {"name": "Ada", "email": "ada@example.com"}})

        assert result.ok
        customer = Customer.objects.get(email="ada@example.com")
        order.refresh_from_db()
        assert order.customer_id == customer.pk
        assert result.root_persist_count == 2
        outcome = result.outcome_for("customer")
        assert outcome.root_resaved
        assert outcome.created == [customer.pk]

    def test_updates_existing_target(self):
        customer = Customer.objects.create(name="Ada", email="ada@example.com")
        order = Order.objects.create(reference="A-1", customer=customer)

        result = _save(order, {"customer": {"name": "Ada Lovelace"}})

        assert result.ok
        customer.refresh_from_db()
        assert customer.name == "Ada Lovelace"
        assert Customer.objects.count() == 1
        assert result.root_persist_count == 1
        assert result.outcome_for("customer").updated == [customer.pk]

    def test_destroys_existing_target(self):
        customer = Customer.objects.create(name="Ada", email="ada@example.com")
        order = Order.objects.create(reference="A-1", customer=customer)

        result = _save(order, {"customer": {"_destroy": True}})

        assert result.ok
        assert not Customer.objects.exists()
        order.refresh_from_db()
        assert order.customer_id is None

    def test_creates_target_when_existing_root_has_none(self):
        order = Order.objects.create(reference="A-1")

        result = _save(order, {"customer": {"name": "Ada", "email": "ada@example.com"}})

        assert result.ok
        assert Order.objects.get(pk=order.pk).customer.name == "Ada"
        assert result.root_persist_count == 2


class TestHasOne:
    def test_creates_related_row_for_new_root(self):
        order = Order()
        result = _save(order, {"shipping": {"address": "1 Main St"}})

        assert result.ok
        assert Shipping.objects.get(order=order).address == "1 Main St"
        assert result.root_persist_count == 1
        assert not result.outcome_for("shipping").root_resaved

    def test_updates_existing_row(self):
        order = Order.objects.create(reference="A-1")
        shipping = Shipping.objects.create(order=order, address="old")

        result = _save(order, {"shipping": {"address": "new", "_destroy": False}})

        assert result.ok
        shipping.refresh_from_db()
        assert shipping.address == "new"
        assert Shipping.objects.count() == 1

    def test_destroys_existing_row(self):
        order = Order.objects.create(reference="A-1")
        shipping = Shipping.objects.create(order=order, address="old")

        result = _save(order, {"shipping": {"_destroy": "1"}})

        assert result.ok
        assert result.outcome_for("shipping").deleted == [shipping.pk]
        assert not Shipping.objects.exists()

    def test_destroy_flag_without_current_row_falls_back_to_create(self):
        order = Order.objects.create(reference="A-1")

        result = _save(order, {"shipping": {"_destroy": True}})

        # Nothing to destroy, so a row is created from the payload and the
        # blank address fails validation.
        assert not result.ok
        assert not Shipping.objects.exists()

    def test_reverse_one_to_one_on_customer(self):
        customer = Customer()
        result = _save(customer, {"name": "Ada", "email": "ada@example.com", "profile": {"bio": "math"}})

        assert result.ok
        assert customer.profile.bio == "math"
