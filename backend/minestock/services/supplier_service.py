# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers are reference data for resources: a resource may name one
supplier, and low-stock reports join through it for contact details.
Supplier names are unique. Supplier writes are not calendar-gated.
"""

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Supplier


def create_supplier(
    *,
    name: str,
    contact: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
) -> Supplier:
    """
    Create a new supplier.

    Raises:
        ValidationError: blank or duplicate name
    """
    if not name or not name.strip():
        raise ValidationError("Supplier name is required")
    name = name.strip()

    existing = db.session.query(Supplier).filter(Supplier.name == name).first()
    if existing:
        raise ValidationError(f"Supplier '{name}' already exists")

    supplier = Supplier(
        name=name,
        contact=contact.strip() if contact else None,
        email=email.strip() if email else None,
        phone=phone.strip() if phone else None,
        address=address.strip() if address else None,
    )
    db.session.add(supplier)
    db.session.commit()
    return supplier


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def list_suppliers(*, search: str | None = None) -> list[Supplier]:
    query = db.session.query(Supplier)
    if search:
        query = query.filter(Supplier.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Supplier.name.asc()).all()
