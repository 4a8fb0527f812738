# Overview: BusinessStore facade; owns transactions, batches notification regeneration, caches dashboard stats.

"""
Business Store

WHY: Consumers need one object that applies an entity change together with
all of its cross-entity effects, and then refreshes the derived views. The
services do the work inside the current session; this facade decides when a
unit of work is complete.

TRANSACTIONS:
- Every public mutating call runs inside batch(). Batches nest; only the
  outermost one commits.
- The outermost commit also bumps the persisted store revision, so every
  store instance (the scheduler included) sees that state moved on.
- A failure rolls back everything flushed since the outermost batch began,
  is reported to the alerter, logged, and re-raised.
- After the outermost commit the change counter is bumped and the
  notification feed is regenerated (and committed) once.

ACTIVITY: each mutation posts a short-lived activity notice ("Invoice
Created", "Stock Adjusted", ...) in the same transaction, so a rolled back
change leaves no notice behind. ACTIVITY_NOTIFICATIONS turns this off.

CLOCK: `now` comes from the injected clock so tests can freeze time.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Callable

from flask import current_app

from .alerts import Alerter, LoggingAlerter
from .constants import (
    ADJUST_ADD,
    ADJUST_SET,
    INVOICE_DRAFT,
    INVOICE_PAID,
    NOTIFY_INFO,
    NOTIFY_INVOICE,
    NOTIFY_PAYMENT,
    NOTIFY_SUCCESS,
    NOTIFY_WARNING,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
)
from .extensions import db
from .services import (
    customer_service,
    document_service,
    products_service,
    inventory_service,
    invoice_service,
    receipt_service,
    reporting_service,
    notification_service,
    search_service,
    maintenance_service,
)
from .services.concurrency import commit_with_retry
from .services.inventory_service import StockShortage
from .services.reporting_service import DashboardStats
from .time_utils import utcnow
from .validation import NotFoundError, ValidationError


class BusinessStore:
    def __init__(self, *, clock: Callable[[], datetime] | None = None, alerter: Alerter | None = None):
        self._clock = clock or utcnow
        self.alerter = alerter or LoggingAlerter()
        self.change_counter = 0
        self._depth = 0
        self._stats_cache: tuple[tuple, DashboardStats] | None = None

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    @contextmanager
    def batch(self, *, now: datetime | None = None):
        """
        Group several operations into one transaction and one regeneration.

        now overrides the clock for the regeneration that follows the commit.
        """
        self._depth += 1
        try:
            yield self
        except Exception as exc:
            self._depth -= 1
            if self._depth == 0:
                db.session.rollback()
                self._report_failure(exc)
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                try:
                    document_service.bump_store_revision()
                    commit_with_retry()
                except Exception as exc:
                    db.session.rollback()
                    self._report_failure(exc)
                    raise
                self.change_counter += 1
                self.refresh_notifications(now=now)

    def _report_failure(self, exc: Exception) -> None:
        message = str(exc) or exc.__class__.__name__
        if isinstance(exc, (NotFoundError, ValidationError)):
            current_app.logger.info("Store operation rejected: %s", message)
        else:
            current_app.logger.exception("Store operation failed")
        self.alerter.error(message)

    def _commit_feed_change(self, op):
        """Apply a feed-only write outside batch(); failures reach the alerter."""
        try:
            return commit_with_retry(op)
        except Exception as exc:
            db.session.rollback()
            self._report_failure(exc)
            raise

    def refresh_notifications(self, *, now: datetime | None = None) -> None:
        """Regenerate the feed against current state and commit it."""
        config = current_app.config
        at = now or self.now()
        try:
            commit_with_retry(lambda: notification_service.regenerate_notifications(
                now=at,
                retention_days=config.get(
                    "NOTIFICATION_RETENTION_DAYS", notification_service.DEFAULT_RETENTION_DAYS
                ),
                high_value_cents=config.get(
                    "HIGH_VALUE_INVOICE_CENTS", notification_service.DEFAULT_HIGH_VALUE_CENTS
                ),
            ))
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to regenerate notifications")
            raise

    def _warn_shortages(self, result: invoice_service.InvoiceUpdateResult) -> None:
        if result.has_shortages:
            message = result.warning_message()
            current_app.logger.warning(message)
            self.alerter.error(message)

    def _auto_read_seconds(self) -> int:
        return current_app.config.get(
            "NOTIFICATION_AUTO_READ_SECONDS", notification_service.DEFAULT_AUTO_READ_SECONDS
        )

    def _activity(self, kind: str, title: str, message: str, *, priority: str, data_id: str,
                  action_label: str, action_target: str) -> None:
        if not current_app.config.get("ACTIVITY_NOTIFICATIONS", True):
            return
        notification_service.add_notification(
            {
                "type": kind,
                "title": title,
                "message": message,
                "priority": priority,
                "data_id": data_id,
                "action": {"label": action_label, "target": action_target},
            },
            now=self.now(),
            auto_read_seconds=self._auto_read_seconds(),
            tag="activity",
        )

    def _invoice_stock_activity(self, result: invoice_service.InvoiceUpdateResult, verb: str) -> None:
        invoice = result.invoice
        if result.has_shortages:
            self._activity(
                NOTIFY_WARNING, "Stock Update Failed",
                f"Invoice #{invoice.number} was {verb}, but some lines were short of stock.",
                priority=PRIORITY_HIGH, data_id=invoice.id,
                action_label="Review Stock", action_target="product:list",
            )
        elif result.stock_taken:
            self._activity(
                NOTIFY_INVOICE, "Inventory Updated",
                f"Stock reduced for invoice #{invoice.number}.",
                priority=PRIORITY_MEDIUM, data_id=invoice.id,
                action_label="View Inventory", action_target="product:list",
            )

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    def create_customer(self, data: dict) -> str:
        with self.batch():
            customer = customer_service.create_customer(data, now=self.now())
            self._activity(
                NOTIFY_SUCCESS, "Customer Added", f"{customer.name} was added successfully.",
                priority=PRIORITY_LOW, data_id=customer.id,
                action_label="View Customer", action_target=f"customer:{customer.id}",
            )
            return customer.id

    def update_customer(self, customer_id: str, data: dict) -> None:
        with self.batch():
            customer = customer_service.update_customer(customer_id, data, now=self.now())
            self._activity(
                NOTIFY_INFO, "Customer Updated", f"{customer.name} details were updated.",
                priority=PRIORITY_LOW, data_id=customer.id,
                action_label="View Customer", action_target=f"customer:{customer.id}",
            )

    def delete_customer(self, customer_id: str) -> bool:
        """
        Delete a customer and every invoice it lists, after confirmation.

        Returns False when the alerter declines.
        """
        try:
            customer = customer_service.get_customer(customer_id)
        except NotFoundError as exc:
            self._report_failure(exc)
            raise
        name = customer.name
        count = len(customer.invoice_ids or [])
        prompt = f"Delete {name}?"
        if count:
            prompt = f"Delete {name} and {count} invoice(s)?"
        if not self.alerter.confirm(prompt):
            return False
        with self.batch():
            customer_service.delete_customer(customer_id, now=self.now())
            self._activity(
                NOTIFY_WARNING, "Customer Removed", f"{name} was removed.",
                priority=PRIORITY_MEDIUM, data_id=customer_id,
                action_label="View Customers", action_target="customer:list",
            )
        return True

    def get_customer(self, customer_id: str):
        return customer_service.get_customer(customer_id)

    def list_customers(self, *, status: str | None = None):
        return customer_service.list_customers(status=status)

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    def create_product(self, data: dict) -> str:
        with self.batch():
            product = products_service.create_product(data, now=self.now())
            self._activity(
                NOTIFY_SUCCESS, "Product Added", f"{product.name} was added to inventory.",
                priority=PRIORITY_MEDIUM, data_id=product.id,
                action_label="View Product", action_target=f"product:{product.id}",
            )
            return product.id

    def update_product(self, product_id: str, data: dict) -> None:
        with self.batch():
            product = products_service.update_product(product_id, data, now=self.now())
            self._activity(
                NOTIFY_INFO, "Product Updated", f"{product.name} details were updated.",
                priority=PRIORITY_LOW, data_id=product.id,
                action_label="View Product", action_target=f"product:{product.id}",
            )

    def delete_product(self, product_id: str) -> None:
        with self.batch():
            name = products_service.get_product(product_id).name
            products_service.delete_product(product_id)
            self._activity(
                NOTIFY_WARNING, "Product Removed", f"{name} was removed from inventory.",
                priority=PRIORITY_MEDIUM, data_id=product_id,
                action_label="View Inventory", action_target="product:list",
            )

    def get_product(self, product_id: str):
        return products_service.get_product(product_id)

    def list_products(self, *, status: str | None = None):
        return products_service.list_products(status=status)

    def adjust_stock(self, product_id: str, quantity: int, adjust_type: str, *, reason: str | None = None) -> None:
        with self.batch():
            product = inventory_service.adjust_stock(
                product_id, quantity, adjust_type, reason=reason, now=self.now()
            )
            if adjust_type == ADJUST_SET:
                message = f"Stock for {product.name} set to {quantity}."
            else:
                direction = "added to" if adjust_type == ADJUST_ADD else "removed from"
                message = f"{abs(quantity)} units {direction} {product.name}."
            self._activity(
                NOTIFY_INFO, "Stock Adjusted", message,
                priority=PRIORITY_MEDIUM, data_id=product.id,
                action_label="View Product", action_target=f"product:{product.id}",
            )

    def list_stock_movements(self, product_id: str):
        return inventory_service.list_stock_movements(product_id)

    # =========================================================================
    # INVOICES
    # =========================================================================

    def create_invoice(self, data: dict) -> str:
        """Create an invoice; a shortage on an immediate send is reported to the alerter."""
        with self.batch():
            result = invoice_service.create_invoice(data, now=self.now())
            invoice = result.invoice
            self._invoice_stock_activity(result, "created")
            draft = invoice.status == INVOICE_DRAFT
            self._activity(
                NOTIFY_INVOICE,
                "Invoice Draft Saved" if draft else "Invoice Created",
                f"Invoice #{invoice.number} for {invoice.customer_name} was "
                f"{'saved as draft' if draft else 'created'}.",
                priority=PRIORITY_LOW if draft else PRIORITY_MEDIUM, data_id=invoice.id,
                action_label="View Invoice", action_target=f"invoice:{invoice.id}",
            )
            invoice_id = invoice.id
        self._warn_shortages(result)
        return invoice_id

    def update_invoice(self, invoice_id: str, data: dict) -> list[StockShortage]:
        """
        Update an invoice. Returns the shortages of a first send (usually
        empty); they are also reported to the alerter as one warning.
        """
        with self.batch():
            result = invoice_service.update_invoice(invoice_id, data, now=self.now())
            invoice = result.invoice
            self._invoice_stock_activity(result, "updated")
            status = (data or {}).get("status")
            if status:
                self._activity(
                    NOTIFY_INVOICE, "Invoice Updated", f"Invoice #{invoice.number} marked as {status}.",
                    priority=PRIORITY_HIGH if status == INVOICE_PAID else PRIORITY_MEDIUM,
                    data_id=invoice.id,
                    action_label="View Invoice", action_target=f"invoice:{invoice.id}",
                )
            else:
                self._activity(
                    NOTIFY_INFO, "Invoice Updated", f"Invoice #{invoice.number} details were updated.",
                    priority=PRIORITY_LOW, data_id=invoice.id,
                    action_label="View Invoice", action_target=f"invoice:{invoice.id}",
                )
        self._warn_shortages(result)
        return result.shortages

    def delete_invoice(self, invoice_id: str) -> None:
        with self.batch():
            number = invoice_service.get_invoice(invoice_id).number
            invoice_service.delete_invoice(invoice_id, now=self.now())
            self._activity(
                NOTIFY_WARNING, "Invoice Deleted", f"Invoice #{number} was deleted.",
                priority=PRIORITY_MEDIUM, data_id=invoice_id,
                action_label="View Invoices", action_target="invoice:list",
            )

    def record_payment(self, invoice_id: str, amount_cents: int, *, payment_method: str | None = None) -> None:
        with self.batch():
            invoice = invoice_service.record_payment(
                invoice_id, amount_cents, payment_method=payment_method, now=self.now()
            )
            self._activity(
                NOTIFY_PAYMENT, "Payment Recorded",
                f"{notification_service.format_money(amount_cents)} received for invoice #{invoice.number}.",
                priority=PRIORITY_HIGH, data_id=invoice.id,
                action_label="View Invoice", action_target=f"invoice:{invoice.id}",
            )

    def get_invoice(self, invoice_id: str):
        return invoice_service.get_invoice(invoice_id)

    def list_invoices(self, *, status: str | None = None, customer_name: str | None = None):
        return invoice_service.list_invoices(status=status, customer_name=customer_name)

    # =========================================================================
    # RECEIPTS
    # =========================================================================

    def create_receipt(self, data: dict) -> str:
        with self.batch():
            receipt = receipt_service.create_receipt(data, now=self.now())
            self._activity(
                NOTIFY_SUCCESS, "Receipt Created",
                f"Receipt #{receipt.number} created for {receipt.customer_name}.",
                priority=PRIORITY_MEDIUM, data_id=receipt.id,
                action_label="View Receipt", action_target=f"receipt:{receipt.id}",
            )
            return receipt.id

    def update_receipt(self, receipt_id: str, data: dict) -> None:
        with self.batch():
            receipt = receipt_service.update_receipt(receipt_id, data, now=self.now())
            self._activity(
                NOTIFY_INFO, "Receipt Updated", f"Receipt #{receipt.number} details were updated.",
                priority=PRIORITY_LOW, data_id=receipt.id,
                action_label="View Receipt", action_target=f"receipt:{receipt.id}",
            )

    def delete_receipt(self, receipt_id: str) -> None:
        with self.batch():
            number = receipt_service.get_receipt(receipt_id).number
            receipt_service.delete_receipt(receipt_id, now=self.now())
            self._activity(
                NOTIFY_WARNING, "Receipt Deleted", f"Receipt #{number} was deleted.",
                priority=PRIORITY_MEDIUM, data_id=receipt_id,
                action_label="View Receipts", action_target="receipt:list",
            )

    def get_receipt(self, receipt_id: str):
        return receipt_service.get_receipt(receipt_id)

    def list_receipts(self, *, status: str | None = None):
        return receipt_service.list_receipts(status=status)

    # =========================================================================
    # AGGREGATES AND REPORTS
    # =========================================================================

    def dashboard_stats(self) -> DashboardStats:
        """
        Current aggregates, memoized until any store commits a change.

        The key is the persisted store revision, so commits made through
        another BusinessStore (such as the scheduler's) invalidate it too.
        Every window is aligned to midnight, so the key also carries the
        calendar day.
        """
        now = self.now()
        key = (document_service.current_store_revision(), now.date())
        if self._stats_cache is not None and self._stats_cache[0] == key:
            return self._stats_cache[1]
        stats = reporting_service.compute_dashboard_stats(now=now)
        self._stats_cache = (key, stats)
        return stats

    def period_report(self, time_range: str) -> dict:
        return reporting_service.period_report(time_range, now=self.now())

    def aging_report(self) -> dict:
        return reporting_service.aging_report(now=self.now())

    def search(self, query: str, search_type: str = "all"):
        return search_service.search_data(query, search_type)

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def notifications(self, *, unread_only: bool = False):
        return notification_service.list_notifications(unread_only=unread_only)

    def unread_count(self) -> int:
        return notification_service.unread_count()

    def mark_notification_read(self, notification_id: str) -> None:
        self._commit_feed_change(lambda: notification_service.mark_notification_read(notification_id))

    def mark_all_read(self) -> int:
        return self._commit_feed_change(notification_service.mark_all_read)

    def clear_notifications(self) -> int:
        return self._commit_feed_change(notification_service.clear_notifications)

    def add_notification(self, data: dict) -> str:
        notification = self._commit_feed_change(lambda: notification_service.add_notification(
            data,
            now=self.now(),
            auto_read_seconds=self._auto_read_seconds(),
        ))
        return notification.id

    # =========================================================================
    # SCHEDULER
    # =========================================================================

    def tick(self, now: datetime | None = None) -> maintenance_service.TickResult:
        """
        Run periodic work at `now` (defaults to the store clock).

        Overdue promotion changes entity state, so the tick is a batch and
        triggers a regeneration like any other mutation.
        """
        now = now or self.now()
        with self.batch(now=now):
            return maintenance_service.run_scheduled_tasks(now=now)
