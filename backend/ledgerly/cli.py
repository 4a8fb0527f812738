# Overview: Flask CLI commands for schema bootstrap, the scheduler tick, and read-only inspection.

# backend/ledgerly/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "ledgerly:create_app".
# - Set DATABASE_URL to a durable database; the default in-memory store
#   starts empty on every invocation.
# - Use: python -m flask ledger <command> [options]
#
# - python -m flask ledger init-db [--reset --yes]
#   Create all tables (optionally drop them first).
# - python -m flask ledger tick [--at 2026-10-17T09:00:00Z]
#   Run the overdue sweep and notification auto-read once.
# - python -m flask ledger run-scheduler [--interval 60] [--iterations 0]
#   Run the tick in a loop (0 iterations = until interrupted).
# - python -m flask ledger stats
#   Print dashboard aggregates.
# - python -m flask ledger notifications [--unread]
#   List the notification feed in display order.
# - python -m flask ledger aging
#   Print outstanding balances grouped by days past due.

import time

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .store import BusinessStore
from .time_utils import utcnow, parse_iso_datetime


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('ledger')
def ledger_group():
    """Business store maintenance and inspection commands."""


@ledger_group.command('init-db')
@click.option('--reset', is_flag=True, help='Drop all tables first')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def init_db(reset, yes):
    """Create the schema."""
    if reset:
        if not yes:
            raise click.ClickException("Refusing to drop tables without --yes")
        db.drop_all()
        click.echo("PASS Dropped all tables")
    db.create_all()
    click.echo("PASS Schema ready")


@ledger_group.command('tick')
@click.option('--at', 'at', default=None, help='ISO-8601 instant to run at (default: now)')
@with_appcontext
def tick(at):
    """Run scheduled work once."""
    try:
        now = parse_iso_datetime(at) if at else utcnow()
    except ValueError:
        raise click.BadParameter("--at must be an ISO-8601 datetime")

    result = BusinessStore().tick(now)
    click.echo(f"PASS Promoted {len(result.overdue_invoice_ids)} invoice(s) to overdue")
    click.echo(f"PASS Auto-read {result.auto_read_count} notification(s)")


@ledger_group.command('run-scheduler')
@click.option('--interval', type=int, default=None, help='Seconds between ticks')
@click.option('--iterations', type=int, default=0, show_default=True, help='Stop after N ticks (0 = forever)')
@with_appcontext
def run_scheduler(interval, iterations):
    """Run the tick periodically."""
    interval = interval or current_app.config.get("SCHEDULER_INTERVAL_SECONDS", 60)
    store = BusinessStore()
    current_app.logger.info("Scheduler started (interval=%ss)", interval)

    count = 0
    try:
        while True:
            try:
                result = store.tick()
            except Exception:
                current_app.logger.exception("Scheduled tick failed")
            else:
                if result.overdue_invoice_ids or result.auto_read_count:
                    current_app.logger.info("Tick: %s", result.to_dict())
            count += 1
            if iterations and count >= iterations:
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        click.echo("Scheduler stopped")


@ledger_group.command('stats')
@with_appcontext
def stats():
    """Print dashboard aggregates."""
    data = BusinessStore().dashboard_stats().to_dict()
    for key, value in data.items():
        if isinstance(value, float):
            value = f"{value:.1f}"
        click.echo(f"{key:24} {value}")


@ledger_group.command('notifications')
@click.option('--unread', is_flag=True, help='Only unread notifications')
@with_appcontext
def notifications(unread):
    """List the notification feed."""
    store = BusinessStore()
    now = store.now()
    rows = store.notifications(unread_only=unread)
    if not rows:
        click.echo("No notifications")
        return
    for n in rows:
        data = n.to_dict(now=now)
        marker = " " if data["read"] else "*"
        click.echo(f"{marker} [{data['priority']:6}] {data['title']}: {data['message']} ({data['time']})")


@ledger_group.command('aging')
@with_appcontext
def aging():
    """Print outstanding balances by days past due."""
    report = BusinessStore().aging_report()
    for name, bucket in report["buckets"].items():
        click.echo(f"{name:6} {bucket['count']:4} invoice(s)  {_money(bucket['balance_cents']):>14}")
    click.echo(f"{'total':6} {'':4}              {_money(report['total_cents']):>14}")


def register_commands(app):
    app.cli.add_command(ledger_group)
