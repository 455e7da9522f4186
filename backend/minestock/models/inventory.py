from __future__ import annotations

from ..extensions import db
from minestock.time_utils import to_utc_z


def _num(value):
    """Numeric columns come back as Decimal; expose them as JSON-friendly numbers."""
    if value is None:
        return None
    return float(value)


class Supplier(db.Model):
    """
    Supplier master data.

    Resources reference one supplier; reports join through this table for
    contact details on low-stock items.
    """
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_suppliers_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    contact = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.contact,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }


class Resource(db.Model):
    """
    A stocked item in the warehouse.

    STOCK INVARIANT:
    stock_level is only ever changed through logged operations: usage
    deduction (inventory_service.record_usage) or delivery addition
    (reorder_service.transition_status -> DELIVERED, process_bulk_delivery).
    Every change passes through the mutation gateway, which gates and audits it.

    threshold is the reorder trigger point: stock dropping below it starts
    the auto-reorder path.
    """
    __tablename__ = "resources"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_resources_name"),
        db.CheckConstraint("stock_level >= 0", name="ck_resources_stock_nonnegative"),
        db.CheckConstraint("threshold > 0", name="ck_resources_threshold_positive"),
        db.Index("ix_resources_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(50), nullable=False)
    category = db.Column(db.String(30), nullable=True)
    unit_of_measure = db.Column(db.String(20), nullable=True)

    stock_level = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    threshold = db.Column(db.Numeric(14, 2), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    # Authoritative storage in cents
    unit_price_cents = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("resources", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Resource id={self.id} name={self.name!r} stock={self.stock_level} threshold={self.threshold}>"

    @property
    def is_below_threshold(self) -> bool:
        return self.stock_level < self.threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "unit_of_measure": self.unit_of_measure,
            "stock_level": _num(self.stock_level),
            "threshold": _num(self.threshold),
            "supplier_id": self.supplier_id,
            "unit_price_cents": self.unit_price_cents,
            "version_id": self.version_id,
            "last_updated": to_utc_z(self.last_updated),
            "created_at": to_utc_z(self.created_at),
        }


class UsageEvent(db.Model):
    """
    One consumption fact. Append-only: never updated or deleted.

    Consumption analytics (averages, trends, stockout projection) are
    computed from these rows only.
    """
    __tablename__ = "usage_events"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_usage_events_quantity_positive"),
        db.Index("ix_usage_events_resource_used", "resource_id", "used_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 2), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    department = db.Column(db.String(50), nullable=True)
    operator_id = db.Column(db.String(20), nullable=True)
    equipment_used = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    resource = db.relationship("Resource", backref=db.backref("usage_events", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "quantity": _num(self.quantity),
            "used_at": to_utc_z(self.used_at),
            "department": self.department,
            "operator_id": self.operator_id,
            "equipment_used": self.equipment_used,
            "notes": self.notes,
        }


class Reorder(db.Model):
    """
    Procurement request for one resource.

    STATE MACHINE:
        PENDING -> APPROVED -> ORDERED -> DELIVERED
        PENDING / APPROVED / ORDERED -> CANCELLED

    DELIVERED and CANCELLED are terminal. At most one reorder per resource may
    be in an active state (PENDING, APPROVED, ORDERED); reorder_service
    checks this under a row lock before inserting.
    """
    __tablename__ = "reorders"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_reorders_quantity_positive"),
        db.Index("ix_reorders_resource_status", "resource_id", "status"),
        db.Index("ix_reorders_dates", "order_date", "expected_delivery"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False)
    quantity = db.Column(db.Numeric(14, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    expected_delivery = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_delivery = db.Column(db.DateTime(timezone=True), nullable=True)

    approval_date = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by = db.Column(db.String(50), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    resource = db.relationship("Resource", backref=db.backref("reorders", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "order_date": to_utc_z(self.order_date),
            "quantity": _num(self.quantity),
            "status": self.status,
            "expected_delivery": to_utc_z(self.expected_delivery),
            "actual_delivery": to_utc_z(self.actual_delivery),
            "approval_date": to_utc_z(self.approval_date),
            "approved_by": self.approved_by,
        }
