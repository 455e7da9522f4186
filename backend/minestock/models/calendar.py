from __future__ import annotations

from ..extensions import db
from minestock.time_utils import to_iso_date, to_utc_z


class Holiday(db.Model):
    """
    Calendar entry consulted by the restriction gate.

    Managed out-of-band (seed data or the `holidays` CLI group).
    holiday_date is unique. Recurring holidays repeat from holiday_date on:
    YEARLY (same month/day), MONTHLY (same day of month), WEEKLY (same weekday).
    """
    __tablename__ = "holidays"
    __table_args__ = (
        db.UniqueConstraint("holiday_date", name="uq_holidays_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    holiday_date = db.Column(db.Date, nullable=False)
    name = db.Column(db.String(100), nullable=False)

    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    recurrence_type = db.Column(db.String(20), nullable=True)  # YEARLY, MONTHLY, WEEKLY

    created_by = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Holiday {self.holiday_date} {self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "holiday_date": to_iso_date(self.holiday_date),
            "name": self.name,
            "is_recurring": self.is_recurring,
            "recurrence_type": self.recurrence_type,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
