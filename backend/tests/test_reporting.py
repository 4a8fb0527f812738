# Overview: Pytest coverage for dashboard aggregates, period reports and aging buckets.

from datetime import datetime, timedelta

import pytest

from ledgerly.store import BusinessStore
from ledgerly.services.reporting_service import (
    ReportError,
    format_change,
    time_range_start,
)
from conftest import NOW


class TestFormatChange:
    @pytest.mark.parametrize(
        "current,previous,expected",
        [
            (150, 100, "+50.0%"),
            (50, 100, "-50.0%"),
            (100, 100, "0.0%"),
            (5, 0, "+100%"),
            (0, 0, "+100%"),
        ],
    )
    def test_format_change(self, current, previous, expected):
        assert format_change(current, previous) == expected


class TestTimeRanges:
    def test_range_starts(self):
        assert time_range_start("today", NOW) == datetime(2026, 10, 17)
        assert time_range_start("week", NOW) == datetime(2026, 10, 12)
        assert time_range_start("month", NOW) == datetime(2026, 10, 1)
        assert time_range_start("quarter", NOW) == datetime(2026, 10, 1)
        assert time_range_start("year", NOW) == datetime(2026, 1, 1)

    def test_unknown_range(self):
        with pytest.raises(ReportError):
            time_range_start("decade", NOW)


class TestDashboardStats:
    def test_empty_store(self, store):
        """No invoices: collection rate is 100 and every delta is the sentinel."""
        stats = store.dashboard_stats()
        assert stats.payment_collection_rate == 100
        assert stats.revenue_change == "+100%"
        assert stats.invoice_change == "+100%"
        assert stats.customer_change == "+100%"
        assert stats.total_revenue == 0
        assert stats.average_invoice_value == 0

    def test_revenue_and_outstanding(self, store, customer_id):
        paid = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 1000, "status": "pending"})
        store.record_payment(paid, 1000)
        store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 1000, "status": "pending"})
        store.create_receipt({"customer_name": "Acme Ltd", "amount_cents": 450})

        stats = store.dashboard_stats()
        assert stats.total_revenue == 1450
        assert stats.total_paid == 1000
        assert stats.monthly_revenue == 1450
        assert stats.weekly_revenue == 1450
        assert stats.receipts_revenue == 450
        assert stats.today_receipts == 1
        assert stats.total_receipts == 1
        assert stats.outstanding_payments == 1000
        assert stats.total_invoices == 2
        assert stats.average_invoice_value == 1000
        assert stats.payment_collection_rate == 50
        assert stats.revenue_change == "+100%"

    def test_refunded_receipts_are_not_revenue(self, store):
        receipt_id = store.create_receipt({"amount_cents": 450})
        store.update_receipt(receipt_id, {"status": "refunded"})
        assert store.dashboard_stats().total_revenue == 0

    def test_draft_balance_is_not_outstanding(self, store):
        store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 700})
        assert store.dashboard_stats().outstanding_payments == 0

    def test_low_stock_and_customer_counts(self, store, widget_id, customer_id):
        store.create_product({"name": "Empty", "quantity": 0})
        store.create_product({"name": "Low", "quantity": 2, "low_stock_threshold": 5})
        store.update_customer(customer_id, {"status": "inactive"})
        store.create_customer({"name": "Beta"})

        stats = store.dashboard_stats()
        assert stats.low_stock_items == 2
        assert stats.total_customers == 2
        assert stats.active_customers == 1

    def test_customer_change_compares_trailing_windows(self, store, clock):
        clock.set(NOW - timedelta(days=45))
        store.create_customer({"name": "Old One"})
        store.create_customer({"name": "Old Two"})
        clock.set(NOW)
        store.create_customer({"name": "New One"})

        assert store.dashboard_stats().customer_change == "-50.0%"

    def test_overdue_count(self, store, clock):
        store.create_invoice({
            "customer_name": "Acme Ltd",
            "amount_cents": 300,
            "status": "pending",
            "due_date": clock() - timedelta(days=2),
        })
        store.tick()
        stats = store.dashboard_stats()
        assert stats.overdue_invoices == 1
        assert stats.outstanding_payments == 300

    def test_stats_memoized_until_next_change(self, store):
        first = store.dashboard_stats()
        assert store.dashboard_stats() is first

        store.create_customer({"name": "Beta"})
        second = store.dashboard_stats()
        assert second is not first
        assert second.total_customers == 1

    def test_memo_sees_commits_from_another_store(self, store, clock, alerter):
        """The scheduler runs its own store; its commits still invalidate the memo."""
        store.create_invoice({
            "customer_name": "Acme Ltd",
            "amount_cents": 300,
            "status": "pending",
            "due_date": clock() - timedelta(days=2),
        })
        assert store.dashboard_stats().overdue_invoices == 0

        scheduler = BusinessStore(clock=clock, alerter=alerter)
        scheduler.tick()

        assert len(store.list_invoices(status="overdue")) == 1
        assert store.dashboard_stats().overdue_invoices == 1

    def test_to_dict(self, store):
        data = store.dashboard_stats().to_dict()
        assert data["payment_collection_rate"] == 100
        assert set(data) >= {"total_revenue", "outstanding_payments", "low_stock_items"}


class TestPeriodReport:
    def test_month_summary(self, store, clock):
        paid = store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 1000, "status": "pending"})
        store.record_payment(paid, 1000)
        store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 400, "status": "pending"})
        store.create_invoice({
            "customer_name": "Acme Ltd",
            "amount_cents": 999,
            "status": "pending",
            "issue_date": clock() - timedelta(days=60),
        })
        refunded = store.create_receipt({"amount_cents": 200})
        store.update_receipt(refunded, {"status": "refunded"})
        store.create_receipt({"amount_cents": 300})

        report = store.period_report("month")
        assert report["start"] == datetime(2026, 10, 1)
        assert report["invoices"] == {"paid": 1000, "pending": 400, "overdue": 0, "total": 1400}
        assert report["receipts"] == {"completed": 300, "refunded": 200, "total": 500}
        assert report["total_revenue"] == 1300


class TestAgingReport:
    def test_buckets_by_days_past_due(self, store, clock):
        now = clock()
        ids = {}
        for label, days, amount in (("recent", 10, 100), ("month", 45, 200), ("old", 90, 300), ("future", -5, 400)):
            ids[label] = store.create_invoice({
                "customer_name": "Acme Ltd",
                "amount_cents": amount,
                "status": "pending",
                "due_date": now - timedelta(days=days),
            })
        store.create_invoice({"customer_name": "Acme Ltd", "amount_cents": 5000})

        report = store.aging_report()
        buckets = report["buckets"]
        assert buckets["0-30"]["count"] == 2
        assert buckets["0-30"]["balance_cents"] == 500
        assert buckets["31-60"]["invoice_ids"] == [ids["month"]]
        assert buckets["60+"]["balance_cents"] == 300
        assert report["total_cents"] == 1000

    def test_partial_payments_reduce_balance(self, store, clock):
        invoice_id = store.create_invoice({
            "customer_name": "Acme Ltd",
            "amount_cents": 1000,
            "status": "pending",
            "due_date": clock() - timedelta(days=40),
        })
        store.record_payment(invoice_id, 250)

        assert store.aging_report()["buckets"]["31-60"]["balance_cents"] == 750
