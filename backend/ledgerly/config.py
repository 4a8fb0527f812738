# backend/ledgerly/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Volatile in-memory store unless DATABASE_URL points somewhere durable
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///:memory:",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create tables at startup (migrations are optional for the volatile store)
    CREATE_SCHEMA_ON_START = True

    # Paid invoices at or above this amount raise a "high value" notification
    HIGH_VALUE_INVOICE_CENTS = int(os.environ.get("HIGH_VALUE_INVOICE_CENTS", "100000"))

    # Manual notifications (other than errors) flip to read after this delay
    NOTIFICATION_AUTO_READ_SECONDS = int(os.environ.get("NOTIFICATION_AUTO_READ_SECONDS", "5"))

    # Notifications older than this are pruned from the feed
    NOTIFICATION_RETENTION_DAYS = 60

    # Interval used by `flask ledger run-scheduler`
    SCHEDULER_INTERVAL_SECONDS = int(os.environ.get("SCHEDULER_INTERVAL_SECONDS", "60"))

    # Every store mutation also posts an activity notice to the feed
    ACTIVITY_NOTIFICATIONS = os.environ.get("ACTIVITY_NOTIFICATIONS", "1") not in ("0", "false", "False")
