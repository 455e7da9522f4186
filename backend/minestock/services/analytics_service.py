# Overview: Consumption analytics over the append-only usage history.

"""
Consumption Analytics

All figures derive from UsageEvent rows only. Averages are the mean quantity
per usage event inside the window (not quantity / calendar days).

Windows (w = window_days, now pinned by the caller):
- average:      [now - w, now]
- trend recent: [now - w/2, now]
- trend prior:  [now - w, now - w/2)

No data means "no forecast", never an error.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Resource, UsageEvent
from minestock.time_utils import utcnow

TREND_INCREASING = "INCREASING"
TREND_DECREASING = "DECREASING"
TREND_STABLE = "STABLE"
TREND_INSUFFICIENT_DATA = "INSUFFICIENT_DATA"

ZERO = Decimal("0")


@dataclass
class ConsumptionTrend:
    classification: str
    percent_change: float | None
    recent_average: Decimal
    prior_average: Decimal

    def to_dict(self) -> dict:
        return {
            "classification": self.classification,
            "percent_change": self.percent_change,
            "recent_average": float(self.recent_average),
            "prior_average": float(self.prior_average),
        }


def _window_days(window_days: int | None) -> int:
    if window_days is None:
        return int(current_app.config.get("USAGE_WINDOW_DAYS", 30))
    return int(window_days)


def _mean_quantity(resource_id: int, start: datetime, end: datetime, *, include_end: bool = True) -> Decimal:
    query = db.session.query(
        func.coalesce(func.sum(UsageEvent.quantity), 0).label("total"),
        func.count(UsageEvent.id).label("events"),
    ).filter(
        UsageEvent.resource_id == resource_id,
        UsageEvent.used_at >= start,
    )
    if include_end:
        query = query.filter(UsageEvent.used_at <= end)
    else:
        query = query.filter(UsageEvent.used_at < end)

    row = query.one()
    events = int(row.events or 0)
    if events == 0:
        return ZERO
    return Decimal(str(row.total)) / events


def average_daily_usage(resource_id: int, window_days: int | None = None, *, now: datetime | None = None) -> Decimal:
    now = now or utcnow()
    days = _window_days(window_days)
    return _mean_quantity(resource_id, now - timedelta(days=days), now)


def stockout_days(resource_id: int, *, now: datetime | None = None) -> int | None:
    """
    Whole days until the resource runs out at its average usage rate.

    None when the resource is unknown or has no usage in the window.
    """
    resource = db.session.get(Resource, resource_id)
    if resource is None:
        return None
    average = average_daily_usage(resource_id, now=now)
    if average <= 0:
        return None
    return math.floor(Decimal(str(resource.stock_level)) / average)


def classify_change(recent: Decimal, prior: Decimal) -> ConsumptionTrend:
    if prior == 0:
        return ConsumptionTrend(TREND_INSUFFICIENT_DATA, None, recent, prior)

    percent = (recent - prior) / prior * 100
    limit = Decimal(str(current_app.config.get("TREND_CHANGE_THRESHOLD_PCT", 10)))
    if percent > limit:
        classification = TREND_INCREASING
    elif percent < -limit:
        classification = TREND_DECREASING
    else:
        classification = TREND_STABLE
    return ConsumptionTrend(classification, round(float(percent), 1), recent, prior)


def consumption_trend(
    resource_id: int,
    window_days: int | None = None,
    *,
    now: datetime | None = None,
) -> ConsumptionTrend:
    now = now or utcnow()
    days = _window_days(window_days)
    midpoint = now - timedelta(days=days) / 2
    window_start = now - timedelta(days=days)

    recent = _mean_quantity(resource_id, midpoint, now)
    prior = _mean_quantity(resource_id, window_start, midpoint, include_end=False)
    return classify_change(recent, prior)
