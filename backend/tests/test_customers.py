# Overview: Pytest coverage for customer CRUD, name resolution and delete cascade.

import pytest

from ledgerly.services import customer_service
from ledgerly.validation import NotFoundError, ValidationError


class TestCustomerCrud:
    def test_create_customer_zeroes_aggregates(self, store, customer_id):
        customer = store.get_customer(customer_id)
        assert customer.name == "Acme Ltd"
        assert customer.status == "active"
        assert customer.outstanding_cents == 0
        assert customer.total_spent_cents == 0
        assert customer.invoice_ids == []
        assert customer.last_transaction_at is None

    def test_aggregates_are_not_writable(self, store, customer_id):
        with pytest.raises(ValidationError):
            store.update_customer(customer_id, {"outstanding_cents": 500})

    def test_update_contact_fields(self, store, customer_id, clock):
        clock.advance(days=1)
        store.update_customer(customer_id, {"phone": "+1 555 0199", "status": "inactive"})
        customer = store.get_customer(customer_id)
        assert customer.phone == "+1 555 0199"
        assert customer.status == "inactive"
        assert customer.updated_at == clock()

    def test_invalid_status(self, store, customer_id):
        with pytest.raises(ValidationError):
            store.update_customer(customer_id, {"status": "vip"})

    def test_get_missing_customer(self, store):
        with pytest.raises(NotFoundError):
            store.get_customer("missing")

    def test_to_dict_serializes_timestamps(self, store, customer_id):
        data = store.get_customer(customer_id).to_dict()
        assert data["created_at"] == "2026-10-17T12:00:00Z"
        assert data["last_transaction_at"] is None


class TestNameResolution:
    def test_oldest_match_wins(self, store, clock):
        first = store.create_customer({"name": "Jordan"})
        clock.advance(minutes=1)
        store.create_customer({"name": "Jordan"})

        assert customer_service.find_customer_by_name("Jordan").id == first

    def test_walk_in_never_resolves(self, store):
        store.create_customer({"name": "Walk-in Customer"})
        assert customer_service.find_customer_by_name("Walk-in Customer") is None

    def test_match_is_exact(self, store, customer_id):
        assert customer_service.find_customer_by_name("acme ltd") is None


class TestCustomerDelete:
    def test_delete_cascades_to_invoices(self, store, customer_id, alerter):
        first = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 100, "status": "pending"})
        second = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 200, "status": "pending"})
        other = store.create_invoice({"customer_name": "Someone Else", "amount_cents": 300})

        assert store.delete_customer(customer_id) is True

        assert "2 invoice(s)" in alerter.prompts[0]
        with pytest.raises(NotFoundError):
            store.get_customer(customer_id)
        for invoice_id in (first, second):
            with pytest.raises(NotFoundError):
                store.get_invoice(invoice_id)
        assert store.get_invoice(other).customer_name == "Someone Else"

    def test_delete_declined(self, store, customer_id, alerter):
        alerter.confirm_answer = False
        invoice_id = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 100})

        assert store.delete_customer(customer_id) is False
        assert store.get_customer(customer_id).invoice_ids == [invoice_id]

    def test_delete_after_invoice_removed(self, store, customer_id):
        invoice_id = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 100})
        store.delete_invoice(invoice_id)

        assert store.delete_customer(customer_id) is True
        assert store.list_customers() == []

    def test_delete_missing_customer(self, store, alerter):
        with pytest.raises(NotFoundError):
            store.delete_customer("missing")
        assert alerter.errors
        assert alerter.prompts == []
