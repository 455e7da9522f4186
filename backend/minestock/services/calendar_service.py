# Overview: Calendar gate deciding whether Resource mutations are allowed "now".

"""
Restriction Calendar

RULE (evaluated in this order):
1. Date is a holiday          -> HOLIDAY restriction
2. Date is Monday..Friday     -> WEEKDAY restriction
3. Otherwise (non-holiday weekend) -> unrestricted

A holiday falling on a weekday is reported as HOLIDAY, never WEEKDAY.

FAILURE MODES:
- Holiday lookup error  -> treated as "not a holiday"
- Weekday check error   -> treated as "is a weekday" (restricted)
Both are logged.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from ..extensions import db
from ..models import Holiday
from ..errors import ValidationError
from .violation_service import RESTRICTION_HOLIDAY, RESTRICTION_WEEKDAY

RECURRENCE_TYPES = {"YEARLY", "MONTHLY", "WEEKLY"}


def _recurs_on(holiday: Holiday, day: date) -> bool:
    anchor = holiday.holiday_date
    if day < anchor:
        return False
    if holiday.recurrence_type == "YEARLY":
        return (anchor.month, anchor.day) == (day.month, day.day)
    if holiday.recurrence_type == "MONTHLY":
        return anchor.day == day.day
    if holiday.recurrence_type == "WEEKLY":
        return anchor.weekday() == day.weekday()
    return False


def find_holiday(day: date) -> Holiday | None:
    """Holiday covering `day`: an exact date match first, then recurring entries."""
    exact = db.session.query(Holiday).filter(Holiday.holiday_date == day).first()
    if exact is not None:
        return exact
    recurring = (
        db.session.query(Holiday)
        .filter(Holiday.is_recurring.is_(True), Holiday.holiday_date <= day)
        .order_by(Holiday.holiday_date.asc())
        .all()
    )
    for holiday in recurring:
        if _recurs_on(holiday, day):
            return holiday
    return None


def _isolated_lookup(day: date) -> Holiday | None:
    # Savepoint so a failed query cannot poison the caller's transaction
    with db.session.begin_nested():
        return find_holiday(day)


def is_holiday(moment: datetime | date) -> bool:
    day = moment.date() if isinstance(moment, datetime) else moment
    try:
        return _isolated_lookup(day) is not None
    except Exception:  # noqa: BLE001
        current_app.logger.warning("Holiday lookup failed for %s; assuming not a holiday", day, exc_info=True)
        return False


def is_weekday(moment: datetime | date) -> bool:
    try:
        return moment.weekday() < 5
    except Exception:  # noqa: BLE001
        current_app.logger.warning("Weekday check failed for %r; assuming weekday", moment, exc_info=True)
        return True


def is_restricted(moment: datetime) -> str | None:
    """
    Restriction kind for `moment`, or None when writes are allowed.
    """
    if is_holiday(moment):
        return RESTRICTION_HOLIDAY
    if is_weekday(moment):
        return RESTRICTION_WEEKDAY
    return None


def calendar_status(moment: datetime) -> dict:
    day = moment.date()
    holiday = None
    try:
        holiday = _isolated_lookup(day)
    except Exception:  # noqa: BLE001
        current_app.logger.warning("Holiday lookup failed for %s", day, exc_info=True)
    restriction = is_restricted(moment)
    return {
        "date": day.isoformat(),
        "weekday": moment.strftime("%A"),
        "holiday": holiday.name if holiday else None,
        "restriction": restriction,
        "writes_allowed": restriction is None,
    }


def add_holiday(
    *,
    holiday_date: date,
    name: str,
    is_recurring: bool = False,
    recurrence_type: str | None = None,
    created_by: str | None = None,
) -> Holiday:
    """
    Register a holiday. Dates are unique.

    Raises:
        ValidationError: blank name, duplicate date, or bad recurrence settings
    """
    if not name or not name.strip():
        raise ValidationError("Holiday name is required")
    if recurrence_type:
        recurrence_type = recurrence_type.strip().upper()
        if recurrence_type not in RECURRENCE_TYPES:
            raise ValidationError(
                f"recurrence_type must be one of: {', '.join(sorted(RECURRENCE_TYPES))}"
            )
    if is_recurring and not recurrence_type:
        raise ValidationError("recurrence_type is required for recurring holidays")
    if not is_recurring:
        recurrence_type = None

    existing = db.session.query(Holiday).filter(Holiday.holiday_date == holiday_date).first()
    if existing:
        raise ValidationError(f"A holiday already exists on {holiday_date.isoformat()} ({existing.name})")

    holiday = Holiday(
        holiday_date=holiday_date,
        name=name.strip(),
        is_recurring=bool(is_recurring),
        recurrence_type=recurrence_type,
        created_by=created_by,
    )
    db.session.add(holiday)
    db.session.commit()
    return holiday


def list_holidays() -> list[Holiday]:
    return db.session.query(Holiday).order_by(Holiday.holiday_date.asc()).all()
