# Overview: Read-only reports composed from analytics, reorder and audit queries.

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import extract, func

from ..errors import ValidationError
from ..extensions import db
from ..models import AuditRecord, Resource, Supplier, UsageEvent
from minestock.time_utils import to_utc_z, utcnow
from .analytics_service import consumption_trend, stockout_days
from .audit_service import AUDIT_DENIED, AUDIT_SUCCESS

URGENCY_URGENT = "URGENT"
URGENCY_SOON = "SOON"


def _num(value) -> float:
    return float(value) if value is not None else 0.0


def _urgency(days: int | None) -> str | None:
    if days is None:
        return None
    if days < 7:
        return URGENCY_URGENT
    if days < 14:
        return URGENCY_SOON
    return None


def low_stock_report(*, threshold_pct: int | None = None, now: datetime | None = None) -> dict:
    """
    Resources whose stock is below threshold_pct% of their threshold,
    most depleted (stock / threshold) first.
    """
    now = now or utcnow()
    pct = threshold_pct if threshold_pct is not None else current_app.config.get("LOW_STOCK_REPORT_PCT", 80)
    if pct <= 0:
        raise ValidationError("threshold_pct must be > 0")
    ratio = Decimal(str(pct)) / 100

    query = (
        db.session.query(Resource, Supplier.name.label("supplier_name"))
        .outerjoin(Supplier, Resource.supplier_id == Supplier.id)
        .filter(Resource.stock_level < Resource.threshold * ratio)
        .order_by((Resource.stock_level * 1.0 / Resource.threshold).asc(), Resource.id.asc())
    )

    rows = []
    for resource, supplier_name in query.all():
        days = stockout_days(resource.id, now=now)
        trend = consumption_trend(resource.id, now=now)
        rows.append(
            {
                "resource_id": resource.id,
                "name": resource.name,
                "category": resource.category,
                "stock_level": _num(resource.stock_level),
                "threshold": _num(resource.threshold),
                "supplier_name": supplier_name,
                "days_until_stockout": days,
                "consumption_trend": trend.to_dict(),
                "urgency": _urgency(days),
            }
        )

    return {
        "generated_at": to_utc_z(now),
        "threshold_pct": pct,
        "count": len(rows),
        "rows": rows,
    }


def stock_level_check() -> dict:
    """All resources ordered by headroom (stock_level - threshold), tightest first."""
    resources = (
        db.session.query(Resource)
        .order_by((Resource.stock_level - Resource.threshold).asc(), Resource.id.asc())
        .all()
    )
    return {
        "rows": [
            {
                "resource_id": r.id,
                "name": r.name,
                "stock_level": _num(r.stock_level),
                "threshold": _num(r.threshold),
                "headroom": _num(r.stock_level) - _num(r.threshold),
                "below_threshold": r.is_below_threshold,
            }
            for r in resources
        ]
    }


def monthly_consumption_report(*, month: int | None = None, year: int | None = None, now: datetime | None = None) -> dict:
    now = now or utcnow()
    month = month or now.month
    year = year or now.year
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")

    high_mark = Decimal(str(current_app.config.get("HIGH_CONSUMPTION_THRESHOLD", 1000)))

    query = (
        db.session.query(
            Resource.id.label("resource_id"),
            Resource.name.label("name"),
            Resource.category.label("category"),
            func.count(UsageEvent.id).label("events"),
            func.coalesce(func.sum(UsageEvent.quantity), 0).label("total_used"),
            func.max(UsageEvent.quantity).label("peak_usage"),
        )
        .select_from(UsageEvent)
        .join(Resource, UsageEvent.resource_id == Resource.id)
        .filter(
            extract("month", UsageEvent.used_at) == month,
            extract("year", UsageEvent.used_at) == year,
        )
        .group_by(Resource.id, Resource.name, Resource.category)
        .order_by(func.sum(UsageEvent.quantity).desc())
    )

    rows = []
    for row in query.all():
        total = Decimal(str(row.total_used))
        events = int(row.events or 0)
        rows.append(
            {
                "resource_id": row.resource_id,
                "name": row.name,
                "category": row.category,
                "events": events,
                "total_used": float(total),
                "average_usage": round(float(total / events), 2) if events else 0.0,
                "peak_usage": _num(row.peak_usage),
                "high_consumption": total > high_mark,
            }
        )

    return {"month": month, "year": year, "rows": rows}


def audit_report(*, days: int = 30, now: datetime | None = None) -> dict:
    """Audit activity summary for the last `days` days."""
    now = now or utcnow()
    if days <= 0:
        raise ValidationError("days must be > 0")
    since = now - timedelta(days=days)

    records = (
        db.session.query(AuditRecord)
        .filter(AuditRecord.occurred_at >= since, AuditRecord.occurred_at <= now)
        .order_by(AuditRecord.occurred_at.desc(), AuditRecord.id.desc())
        .all()
    )

    total = len(records)
    by_status = Counter(r.status for r in records)
    by_entity = Counter(r.entity for r in records)
    by_operation = Counter(r.operation for r in records)
    actors = Counter(r.actor for r in records)
    success_rate = round(by_status.get(AUDIT_SUCCESS, 0) / total * 100, 2) if total else None

    return {
        "since": to_utc_z(since),
        "until": to_utc_z(now),
        "total": total,
        "success_rate": success_rate,
        "by_status": dict(by_status),
        "by_entity": dict(by_entity),
        "by_operation": dict(by_operation),
        "recent_denied": [r.to_dict() for r in records if r.status == AUDIT_DENIED][:10],
        "top_actors": [{"actor": actor, "count": count} for actor, count in actors.most_common(5)],
    }


def usage_window_analytics(resource_id: int | None = None, *, days: int | None = None, now: datetime | None = None) -> dict:
    """
    Per-event running total and 3-row moving average per resource, plus each
    event's rank by quantity within its day.
    """
    now = now or utcnow()
    days = days or current_app.config.get("USAGE_WINDOW_DAYS", 30)
    query = db.session.query(UsageEvent).filter(UsageEvent.used_at >= now - timedelta(days=days))
    if resource_id is not None:
        query = query.filter(UsageEvent.resource_id == resource_id)
    events = query.order_by(UsageEvent.resource_id.asc(), UsageEvent.used_at.asc(), UsageEvent.id.asc()).all()

    # rank within (day) by quantity desc; ties share a rank
    by_day = defaultdict(list)
    for event in events:
        by_day[event.used_at.date()].append(Decimal(str(event.quantity)))
    day_ranks = {}
    for day, quantities in by_day.items():
        ordered = sorted(quantities, reverse=True)
        day_ranks[day] = {q: ordered.index(q) + 1 for q in ordered}

    rows = []
    running: dict[int, Decimal] = defaultdict(Decimal)
    recent: dict[int, list[Decimal]] = defaultdict(list)
    for event in events:
        quantity = Decimal(str(event.quantity))
        running[event.resource_id] += quantity
        window = recent[event.resource_id]
        window.append(quantity)
        del window[:-3]
        rows.append(
            {
                "usage_id": event.id,
                "resource_id": event.resource_id,
                "used_at": to_utc_z(event.used_at),
                "quantity": float(quantity),
                "running_total": float(running[event.resource_id]),
                "moving_average": round(float(sum(window) / len(window)), 2),
                "daily_rank": day_ranks[event.used_at.date()][quantity],
            }
        )

    return {"days": days, "rows": rows}
