# Overview: Pytest coverage for notification generation, read-state merge, pruning and auto-read.

"""
Notification Engine Tests

The feed is regenerated after every committed batch. Ids embed the source
entity's last-modified stamp, so read flags survive regeneration until the
entity itself changes.
"""

from datetime import timedelta

import pytest

from ledgerly.constants import PRIORITY_RANK
from ledgerly.validation import NotFoundError, ValidationError
from conftest import NOW


def _by_tag(store, tag):
    return [n for n in store.notifications() if n.id.startswith(f"{tag}_")]


def _overdue_invoice(store, clock, days=2):
    invoice_id = store.create_invoice({
        "customer_name": "Acme Ltd",
        "amount_cents": 1000,
        "status": "pending",
        "due_date": clock() - timedelta(days=days),
    })
    store.tick()
    return invoice_id


class TestGeneration:
    def test_overdue_invoice(self, store, customer_id, clock):
        invoice_id = _overdue_invoice(store, clock)
        [notification] = _by_tag(store, "overdue")

        invoice = store.get_invoice(invoice_id)
        assert notification.id.startswith(f"overdue_{invoice_id}_")
        assert notification.type == "error"
        assert notification.priority == "high"
        assert notification.read is False
        assert notification.message == f"Invoice #{invoice.number} for Acme Ltd is 2 days overdue"
        assert notification.action_label == "View Invoice"
        assert notification.action_target == f"invoice:{invoice_id}"
        assert notification.data_id == invoice_id

    def test_stock_alerts(self, store, widget_id):
        store.update_product(widget_id, {"quantity": 2})
        [low] = _by_tag(store, "stock")
        assert low.priority == "medium"
        assert low.type == "warning"
        assert low.message == "Widget is running low (2 left)."

        store.adjust_stock(widget_id, 2, "remove")
        [out] = _by_tag(store, "stock")
        assert out.priority == "high"
        assert out.type == "error"
        assert out.message == "Widget is out of stock."

    def test_in_stock_product_has_no_alert(self, store, widget_id):
        assert _by_tag(store, "stock") == []

    def test_recent_customer_is_pre_read(self, store, customer_id):
        [notification] = _by_tag(store, "customer")
        assert notification.read is True
        assert notification.priority == "low"
        assert notification.type == "success"

    def test_customer_notice_expires_after_a_week(self, store, customer_id, clock):
        clock.advance(days=8)
        store.create_product({"name": "Trigger", "quantity": 100})
        assert _by_tag(store, "customer") == []

    def test_draft_invoice_not_announced(self, store):
        store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 100})
        assert _by_tag(store, "invoice") == []

        [invoice_id] = [inv.id for inv in store.list_invoices()]
        store.update_invoice(invoice_id, {"status": "pending"})
        [notification] = _by_tag(store, "invoice")
        assert notification.read is True

    def test_due_soon(self, store, clock):
        store.create_invoice({
            "customer_name": "Acme Ltd",
            "amount_cents": 100,
            "status": "pending",
            "due_date": clock() + timedelta(days=3),
        })
        [notification] = _by_tag(store, "due")
        assert notification.priority == "medium"
        assert notification.read is False
        assert notification.message.endswith("is due in 3 days")

    def test_payment_and_high_value(self, store, app):
        small = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 1000, "status": "pending"})
        large = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 150000, "status": "pending"})
        store.record_payment(small, 1000)
        store.record_payment(large, 150000)

        payments = _by_tag(store, "payment")
        assert {n.data_id for n in payments} == {small, large}
        assert all(n.read for n in payments)
        [high_value] = _by_tag(store, "highvalue")
        assert high_value.data_id == large
        assert high_value.message.endswith("($1,500.00)")

    def test_high_value_threshold_is_configurable(self, store, app):
        app.config["HIGH_VALUE_INVOICE_CENTS"] = 500
        invoice_id = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 1000, "status": "pending"})
        store.record_payment(invoice_id, 1000)
        assert [n.data_id for n in _by_tag(store, "highvalue")] == [invoice_id]

    def test_recent_receipt(self, store, clock):
        store.create_receipt({"amount_cents": 450})
        [notification] = _by_tag(store, "receipt")
        assert notification.read is True

        clock.advance(days=4)
        store.create_product({"name": "Trigger", "quantity": 100})
        assert _by_tag(store, "receipt") == []


class TestMerge:
    def test_read_flag_survives_unrelated_change(self, store, customer_id, clock):
        _overdue_invoice(store, clock)
        [notification] = _by_tag(store, "overdue")
        store.mark_notification_read(notification.id)

        store.create_product({"name": "Unrelated", "quantity": 50})

        [again] = _by_tag(store, "overdue")
        assert again.id == notification.id
        assert again.read is True

    def test_regeneration_is_idempotent(self, store, widget_id):
        store.update_product(widget_id, {"quantity": 1})
        before = {n.id: n.read for n in store.notifications()}

        store.refresh_notifications()
        store.refresh_notifications()

        assert {n.id: n.read for n in store.notifications()} == before

    def test_modified_entity_gets_fresh_notification(self, store, customer_id, clock):
        invoice_id = _overdue_invoice(store, clock)
        [old] = _by_tag(store, "overdue")
        store.mark_notification_read(old.id)

        clock.advance(minutes=1)
        store.update_invoice(invoice_id, {"notes": "Chased by phone"})

        [new] = _by_tag(store, "overdue")
        assert new.id != old.id
        assert new.read is False

    def test_resolved_condition_drops_notification(self, store, customer_id, clock):
        invoice_id = _overdue_invoice(store, clock)
        store.record_payment(invoice_id, 1000)
        assert _by_tag(store, "overdue") == []

    def test_prune_after_sixty_days(self, store, clock):
        clock.set(NOW - timedelta(days=61))
        store.create_product({"name": "Forgotten", "quantity": 0})
        store.add_notification({"type": "error", "title": "Sync", "message": "Sync failed"})
        assert _by_tag(store, "stock")
        assert _by_tag(store, "manual")

        clock.set(NOW)
        store.create_customer({"name": "Beta"})

        assert _by_tag(store, "stock") == []
        assert _by_tag(store, "manual") == []
        assert _by_tag(store, "customer")


class TestOrdering:
    def test_priority_then_newest_first(self, store, clock):
        store.create_customer({"name": "First"})
        clock.advance(hours=1)
        store.create_customer({"name": "Second"})
        store.create_product({"name": "Low", "quantity": 1, "low_stock_threshold": 5})
        store.create_product({"name": "Gone", "quantity": 0})

        feed = store.notifications()
        ranks = [PRIORITY_RANK[n.priority] for n in feed]
        assert ranks == sorted(ranks)
        assert feed[0].message == "Gone is out of stock."

        customers = [n.message for n in feed if n.id.startswith("customer_")]
        assert customers == ["Second was added as a customer.", "First was added as a customer."]


class TestManualNotifications:
    def test_add_and_auto_read_on_tick(self, store):
        notification_id = store.add_notification({
            "type": "info",
            "title": "Backup",
            "message": "Backup finished",
        })
        assert notification_id.startswith("manual_")
        assert store.unread_count() == 1

        store.tick(NOW + timedelta(seconds=3))
        assert store.unread_count() == 1

        result = store.tick(NOW + timedelta(seconds=5))
        assert result.auto_read_count == 1
        assert store.unread_count() == 0

    def test_errors_are_not_auto_read(self, store):
        store.add_notification({"type": "error", "title": "Sync", "message": "Sync failed"})
        store.tick(NOW + timedelta(minutes=5))
        [notification] = store.notifications(unread_only=True)
        assert notification.type == "error"
        assert notification.priority == "medium"

    def test_manual_survives_regeneration(self, store):
        store.add_notification({
            "type": "success",
            "title": "Imported",
            "message": "3 products imported",
            "priority": "low",
            "action": {"label": "Open", "target": "product:list"},
        })
        store.create_customer({"name": "Beta"})

        [manual] = _by_tag(store, "manual")
        assert manual.to_dict(now=NOW)["action"] == {"label": "Open", "target": "product:list"}
        assert manual.to_dict(now=NOW)["time"] == "Just now"

    def test_invalid_type(self, store, alerter):
        with pytest.raises(ValidationError):
            store.add_notification({"type": "shout", "title": "x", "message": "y"})
        assert len(alerter.errors) == 1
        assert alerter.errors[0].startswith("type must be one of")
        assert _by_tag(store, "manual") == []


class TestReadState:
    def test_mark_missing(self, store, alerter):
        with pytest.raises(NotFoundError):
            store.mark_notification_read("nope")
        assert alerter.errors == ["Notification nope not found"]

    def test_mark_all_read(self, store, widget_id):
        store.update_product(widget_id, {"quantity": 0})
        # lets the activity notices reach their auto-read time
        store.tick(NOW + timedelta(seconds=5))
        store.add_notification({"type": "error", "title": "Sync", "message": "Sync failed"})
        assert store.unread_count() == 2

        assert store.mark_all_read() == 2
        assert store.unread_count() == 0

    def test_clear_then_regenerate(self, store, widget_id):
        store.update_product(widget_id, {"quantity": 0})
        store.clear_notifications()
        assert store.notifications() == []

        store.create_customer({"name": "Beta"})
        assert _by_tag(store, "stock")[0].read is False


class TestActivityNotices:
    def _titles(self, store):
        return [n.title for n in _by_tag(store, "activity")]

    def test_invoice_lifecycle(self, store, customer_id, clock):
        invoice_id = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 1000, "status": "pending"})
        number = store.get_invoice(invoice_id).number
        [created] = [n for n in _by_tag(store, "activity") if n.title == "Invoice Created"]
        assert created.message == f"Invoice #{number} for Acme Ltd was created."
        assert created.type == "invoice"
        assert created.data_id == invoice_id
        assert created.action_target == f"invoice:{invoice_id}"

        store.record_payment(invoice_id, 400)
        [payment] = [n for n in _by_tag(store, "activity") if n.title == "Payment Recorded"]
        assert payment.priority == "high"
        assert payment.message == f"$4.00 received for invoice #{number}."

        store.delete_invoice(invoice_id)
        [deleted] = [n for n in _by_tag(store, "activity") if n.title == "Invoice Deleted"]
        assert deleted.message == f"Invoice #{number} was deleted."
        assert deleted.type == "warning"

    def test_draft_is_saved_not_created(self, store):
        store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 100})
        [draft] = _by_tag(store, "activity")
        assert draft.title == "Invoice Draft Saved"
        assert draft.priority == "low"
        assert draft.message.endswith("was saved as draft.")

    def test_status_change_and_detail_edit(self, store):
        invoice_id = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 100})
        store.update_invoice(invoice_id, {"status": "pending"})
        store.update_invoice(invoice_id, {"notes": "Net 30"})

        updates = [n for n in _by_tag(store, "activity") if n.title == "Invoice Updated"]
        assert sorted(n.message.split(" ", 2)[2] for n in updates) == [
            "details were updated.",
            "marked as pending.",
        ]

    def test_send_reports_stock_taken(self, store, widget_id):
        invoice_id = store.create_invoice({
            "customer_name": "Acme Ltd",
            "items": [{"description": "Widget", "quantity": 2, "unit_price_cents": 250}],
        })
        store.update_invoice(invoice_id, {"status": "sent"})
        assert "Inventory Updated" in self._titles(store)
        assert "Stock Update Failed" not in self._titles(store)

    def test_send_shortage_is_a_high_priority_warning(self, store, alerter):
        store.create_product({"name": "Gadget", "quantity": 1})
        invoice_id = store.create_invoice({
            "customer_name": "Acme Ltd",
            "items": [{"description": "Gadget", "quantity": 3, "unit_price_cents": 100}],
            "status": "sent",
        })
        [failed] = [n for n in _by_tag(store, "activity") if n.title == "Stock Update Failed"]
        assert failed.type == "warning"
        assert failed.priority == "high"
        assert failed.data_id == invoice_id
        assert "Inventory Updated" not in self._titles(store)
        assert len(alerter.errors) == 1

    def test_stock_adjustments(self, store, widget_id, clock):
        store.adjust_stock(widget_id, 3, "add")
        clock.advance(seconds=1)
        store.adjust_stock(widget_id, 2, "remove")
        clock.advance(seconds=1)
        store.adjust_stock(widget_id, 7, "set")

        messages = [n.message for n in _by_tag(store, "activity") if n.title == "Stock Adjusted"]
        assert messages == [
            "Stock for Widget set to 7.",
            "2 units removed from Widget.",
            "3 units added to Widget.",
        ]

    def test_customer_product_and_receipt_notices(self, store, customer_id, widget_id):
        store.update_customer(customer_id, {"phone": "+1 555 0199"})
        receipt_id = store.create_receipt({"customer_name": "Acme Ltd", "amount_cents": 450})
        store.delete_receipt(receipt_id)
        store.delete_product(widget_id)
        store.delete_customer(customer_id)

        assert set(self._titles(store)) >= {
            "Customer Added",
            "Customer Updated",
            "Customer Removed",
            "Product Added",
            "Product Removed",
            "Receipt Created",
            "Receipt Deleted",
        }

    def test_rolled_back_change_posts_nothing(self, store):
        with pytest.raises(ValidationError):
            store.create_invoice({"customer_name": "Acme Ltd", "status": "archived"})
        assert _by_tag(store, "activity") == []

    def test_notices_auto_read_on_tick(self, store, customer_id):
        [added] = _by_tag(store, "activity")
        assert added.read is False

        store.tick(NOW + timedelta(seconds=5))
        [added] = _by_tag(store, "activity")
        assert added.read is True

    def test_can_be_disabled(self, store, app):
        app.config["ACTIVITY_NOTIFICATIONS"] = False
        store.create_customer({"name": "Quiet Ltd"})
        assert _by_tag(store, "activity") == []
        assert _by_tag(store, "customer")
