# Overview: Flask CLI command groups for bootstrap, calendar, reorders and reports.

# backend/minestock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to minestock (PowerShell: $env:FLASK_APP="minestock").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (no-op for existing ones).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Load sample suppliers, resources and holidays (idempotent, not audited).
#
# Calendar:
# - python -m flask holidays list
# - python -m flask holidays add 2025-12-25 "Christmas Day" --recurring YEARLY
# - python -m flask calendar status [--at 2025-12-06T10:00:00]
#   Show whether resource writes are allowed at the given moment.
#
# Reorders:
# - python -m flask reorders check-all
#   Create reorders for every resource below threshold.
#
# Reports:
# - python -m flask reports low-stock [--pct 80]
# - python -m flask reports stock-check
# - python -m flask reports monthly [--month 12 --year 2025]
# - python -m flask reports audit [--days 30]

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .context import ExecutionContext
from .errors import MineStockError
from .extensions import db
from .models import Holiday, Resource, Supplier
from .services import calendar_service, reorder_service, reporting_service
from .time_utils import parse_iso_date, parse_iso_datetime, utcnow


SEED_SUPPLIERS = [
    ("Atlas Blasting Supply", "R. Okafor", "orders@atlasblasting.example", "+1-555-0101"),
    ("Deepcore Drilling Parts", "M. Lindqvist", "sales@deepcore.example", "+1-555-0102"),
    ("Pitwall Safety Gear", "J. Ramos", "support@pitwall.example", "+1-555-0103"),
]

SEED_RESOURCES = [
    # name, category, unit, stock, threshold, supplier index, unit price cents
    ("ANFO Explosive", "EXPLOSIVES", "kg", "2500", "1000", 0, 180),
    ("Detonator Caps", "EXPLOSIVES", "unit", "800", "300", 0, 450),
    ("Drill Bit 45mm", "DRILLING", "unit", "40", "25", 1, 32000),
    ("Hydraulic Oil", "CONSUMABLES", "litre", "600", "400", 1, 650),
    ("Safety Helmets", "PPE", "unit", "120", "50", 2, 2800),
    ("Respirator Filters", "PPE", "unit", "90", "100", 2, 900),
]

SEED_HOLIDAYS = [
    ("2025-01-01", "New Year's Day", True, "YEARLY"),
    ("2025-05-01", "Labour Day", True, "YEARLY"),
    ("2025-12-25", "Christmas Day", True, "YEARLY"),
]


def _cli_context(action: str) -> ExecutionContext:
    return ExecutionContext.system(actor="CLI", module="cli", action=action)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, audit trail included!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' to load sample data.")


@system_group.command('seed')
@with_appcontext
def seed():
    """
    Load sample data.

    Seed rows are provisioned out-of-band: they bypass the calendar gate and
    are not audited. Existing rows (matched by name/date) are left alone.
    """
    suppliers = []
    for name, contact, email, phone in SEED_SUPPLIERS:
        supplier = db.session.query(Supplier).filter_by(name=name).first()
        if not supplier:
            supplier = Supplier(name=name, contact=contact, email=email, phone=phone)
            db.session.add(supplier)
            db.session.flush()
            click.echo(f"PASS Supplier: {name}")
        suppliers.append(supplier)

    for name, category, unit, stock, threshold, supplier_idx, price in SEED_RESOURCES:
        if db.session.query(Resource).filter_by(name=name).first():
            click.echo(f"WARN  Resource '{name}' already exists, skipping...")
            continue
        db.session.add(
            Resource(
                name=name,
                category=category,
                unit_of_measure=unit,
                stock_level=Decimal(stock),
                threshold=Decimal(threshold),
                supplier_id=suppliers[supplier_idx].id,
                unit_price_cents=price,
                last_updated=utcnow(),
            )
        )
        click.echo(f"PASS Resource: {name}")

    for day, name, recurring, recurrence in SEED_HOLIDAYS:
        holiday_date = parse_iso_date(day)
        if db.session.query(Holiday).filter_by(holiday_date=holiday_date).first():
            continue
        db.session.add(
            Holiday(
                holiday_date=holiday_date,
                name=name,
                is_recurring=recurring,
                recurrence_type=recurrence,
                created_by="SEED",
            )
        )
        click.echo(f"PASS Holiday: {day} {name}")

    db.session.commit()
    click.echo("DONE Seed complete.")


@click.group('holidays')
def holidays_group():
    """Holiday calendar management."""


@holidays_group.command('list')
@with_appcontext
def list_holidays():
    holidays = calendar_service.list_holidays()
    if not holidays:
        click.echo("No holidays configured.")
        return
    for h in holidays:
        recurrence = f" ({h.recurrence_type})" if h.is_recurring else ""
        click.echo(f"{h.holiday_date.isoformat()}  {h.name}{recurrence}")


@holidays_group.command('add')
@click.argument('holiday_date')
@click.argument('name')
@click.option('--recurring', 'recurrence_type', default=None, help='YEARLY, MONTHLY or WEEKLY')
@with_appcontext
def add_holiday(holiday_date, name, recurrence_type):
    try:
        day = parse_iso_date(holiday_date)
    except ValueError:
        raise click.BadParameter("holiday_date must be YYYY-MM-DD")
    try:
        holiday = calendar_service.add_holiday(
            holiday_date=day,
            name=name,
            is_recurring=recurrence_type is not None,
            recurrence_type=recurrence_type,
            created_by="CLI",
        )
    except MineStockError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Added holiday {holiday.holiday_date.isoformat()} {holiday.name}")


@click.group('calendar')
def calendar_group():
    """Calendar gate inspection."""


@calendar_group.command('status')
@click.option('--at', 'at', default=None, help='ISO-8601 moment to evaluate (default: now)')
@with_appcontext
def calendar_status(at):
    try:
        moment = parse_iso_datetime(at) if at else utcnow()
    except ValueError:
        raise click.BadParameter("--at must be an ISO-8601 datetime")
    status = calendar_service.calendar_status(moment)
    click.echo(f"Date: {status['date']} ({status['weekday']})")
    if status["holiday"]:
        click.echo(f"Holiday: {status['holiday']}")
    if status["writes_allowed"]:
        click.echo("Resource writes: ALLOWED")
    else:
        click.echo(f"Resource writes: RESTRICTED ({status['restriction']})")


@click.group('reorders')
def reorders_group():
    """Reorder engine commands."""


@reorders_group.command('check-all')
@with_appcontext
def check_all():
    """Create reorders for all below-threshold resources."""
    result = reorder_service.reorder_all_low_stock(_cli_context("reorders check-all"))
    for reorder in result["created"]:
        click.echo(
            f"PASS Reorder {reorder['id']} for resource {reorder['resource_id']}: quantity {reorder['quantity']}"
        )
    for skipped in result["skipped"]:
        click.echo(f"WARN  Resource {skipped['resource_id']}: {skipped['error']}")
    click.echo(f"DONE {len(result['created'])} created, {len(result['skipped'])} skipped")


@click.group('reports')
def reports_group():
    """Read-only reports."""


@reports_group.command('low-stock')
@click.option('--pct', default=None, type=int, help='Percent of threshold (default LOW_STOCK_REPORT_PCT)')
@with_appcontext
def low_stock(pct):
    report = reporting_service.low_stock_report(threshold_pct=pct)
    click.echo("=" * 43)
    click.echo(f"LOW STOCK REPORT - Generated: {report['generated_at']}")
    click.echo(f"Threshold: Below {report['threshold_pct']}% of stock threshold")
    click.echo("=" * 43)
    for idx, row in enumerate(report["rows"], start=1):
        days = row["days_until_stockout"]
        click.echo(f"{idx}. {row['name']} ({row['category']})")
        click.echo(f"   Current Stock: {row['stock_level']} / Threshold: {row['threshold']}")
        click.echo(f"   Stockout in: {days if days is not None else 'N/A'} days")
        click.echo(f"   Consumption: {row['consumption_trend']['classification']}")
        click.echo(f"   Supplier: {row['supplier_name'] or '-'}")
        if row["urgency"] == "URGENT":
            click.echo("   ACTION REQUIRED: Urgent reorder needed!")
        elif row["urgency"] == "SOON":
            click.echo("   ACTION: Schedule reorder soon")
        click.echo("---")
    if not report["rows"]:
        click.echo(f"No resources below {report['threshold_pct']}% threshold.")
    else:
        click.echo(f"Total items needing attention: {report['count']}")


@reports_group.command('stock-check')
@with_appcontext
def stock_check():
    click.echo("COMPREHENSIVE STOCK LEVEL CHECK")
    for row in reporting_service.stock_level_check()["rows"]:
        flag = "  LOW" if row["below_threshold"] else ""
        click.echo(f"{row['name']}: {row['stock_level']} (Threshold: {row['threshold']}){flag}")


@reports_group.command('monthly')
@click.option('--month', default=None, type=int)
@click.option('--year', default=None, type=int)
@with_appcontext
def monthly(month, year):
    try:
        report = reporting_service.monthly_consumption_report(month=month, year=year)
    except MineStockError as e:
        raise click.ClickException(e.message)
    click.echo(f"MONTHLY REPORT {report['year']}-{report['month']:02d}")
    for row in report["rows"]:
        flag = "  HIGH CONSUMPTION" if row["high_consumption"] else ""
        click.echo(
            f"{row['name']} -> total {row['total_used']}, avg {row['average_usage']}, peak {row['peak_usage']}{flag}"
        )


@reports_group.command('audit')
@click.option('--days', default=30, type=int)
@with_appcontext
def audit(days):
    try:
        report = reporting_service.audit_report(days=days)
    except MineStockError as e:
        raise click.ClickException(e.message)
    click.echo(f"AUDIT REPORT (last {days} days)")
    click.echo(f"Total operations: {report['total']}")
    if report["success_rate"] is not None:
        click.echo(f"Success rate: {report['success_rate']}%")
    for status, count in sorted(report["by_status"].items()):
        click.echo(f"  {status}: {count}")
    for actor in report["top_actors"]:
        click.echo(f"  actor {actor['actor']}: {actor['count']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(holidays_group)
    app.cli.add_command(calendar_group)
    app.cli.add_command(reorders_group)
    app.cli.add_command(reports_group)
