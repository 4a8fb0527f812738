# Overview: Pytest coverage for receipt totals, stock movements and customer spend.

import pytest

from ledgerly.validation import ValidationError


class TestReceiptCreate:
    def test_totals_default_from_items(self, store):
        receipt_id = store.create_receipt({
            "customer_name": "Acme Ltd",
            "tax_cents": 50,
            "discount_cents": 100,
            "items": [{"name": "Widget", "quantity": 2, "price_cents": 250}],
        })
        receipt = store.get_receipt(receipt_id)
        assert receipt.number == "RCP-0001"
        assert receipt.subtotal_cents == 500
        assert receipt.amount_cents == 450
        assert receipt.status == "completed"
        assert receipt.payment_method == "cash"

    def test_create_takes_stock_and_credits_customer(self, store, customer_id, widget_id, clock):
        clock.advance(minutes=10)
        store.create_receipt({
            "customer_name": "Acme Ltd",
            "items": [{"name": "Widget", "quantity": 2, "price_cents": 250}],
        })

        assert store.get_product(widget_id).quantity == 8
        customer = store.get_customer(customer_id)
        assert customer.total_spent_cents == 500
        assert customer.outstanding_cents == 0
        assert customer.last_transaction_at == clock()

    def test_walk_in_receipt(self, store, customer_id):
        receipt_id = store.create_receipt({
            "items": [{"name": "Widget", "quantity": 1, "price_cents": 250}],
        })
        assert store.get_receipt(receipt_id).customer_name == "Walk-in Customer"
        assert store.get_customer(customer_id).total_spent_cents == 0

    def test_stock_floor_without_shortage(self, store, widget_id, alerter):
        store.create_receipt({"items": [{"name": "Widget", "quantity": 25, "price_cents": 250}]})
        assert store.get_product(widget_id).quantity == 0
        assert alerter.errors == []

    def test_payment_method_normalized(self, store):
        receipt_id = store.create_receipt({"payment_method": "Credit Card"})
        assert store.get_receipt(receipt_id).payment_method == "card"

    def test_numbers_are_sequential(self, store):
        first = store.create_receipt({})
        second = store.create_receipt({})
        store.delete_receipt(first)
        third = store.create_receipt({})

        assert store.get_receipt(second).number == "RCP-0002"
        assert store.get_receipt(third).number == "RCP-0003"


class TestReceiptUpdateDelete:
    def test_delete_restores_stock(self, store, widget_id):
        """Deleting a receipt for 2 Widgets while 10 are on hand leaves 12."""
        receipt_id = store.create_receipt({
            "items": [{"name": "Widget", "quantity": 2, "price_cents": 250}],
        })
        store.adjust_stock(widget_id, 10, "set")

        store.delete_receipt(receipt_id)

        widget = store.get_product(widget_id)
        assert widget.quantity == 12
        assert widget.status == "in-stock"

    def test_delete_reverses_customer_spend(self, store, customer_id):
        receipt_id = store.create_receipt({"customer_name": "Acme Ltd", "amount_cents": 900})
        assert store.get_customer(customer_id).total_spent_cents == 900

        store.delete_receipt(receipt_id)
        assert store.get_customer(customer_id).total_spent_cents == 0

    def test_refund_only_changes_status(self, store, widget_id, customer_id):
        receipt_id = store.create_receipt({
            "customer_name": "Acme Ltd",
            "items": [{"name": "Widget", "quantity": 3, "price_cents": 250}],
        })
        store.update_receipt(receipt_id, {"status": "refunded"})

        assert store.get_receipt(receipt_id).status == "refunded"
        assert store.get_product(widget_id).quantity == 7
        assert store.get_customer(customer_id).total_spent_cents == 750

    def test_amounts_are_immutable(self, store):
        receipt_id = store.create_receipt({"amount_cents": 100})
        with pytest.raises(ValidationError):
            store.update_receipt(receipt_id, {"amount_cents": 5})

    def test_list_receipts_by_status(self, store):
        kept = store.create_receipt({})
        refunded = store.create_receipt({})
        store.update_receipt(refunded, {"status": "refunded"})

        assert [r.id for r in store.list_receipts(status="completed")] == [kept]
