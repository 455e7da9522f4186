from __future__ import annotations

from ..extensions import db
from minestock.time_utils import to_utc_z


class AuditRecord(db.Model):
    """
    One attempted mutation on a tracked entity.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.

    status:
    - SUCCESS: mutation applied
    - DENIED:  calendar gate rejected the mutation (see ViolationRecord)
    - ERROR:   side-effect or per-item failure that did not abort the caller

    old_values / new_values hold the before/after state as JSON objects.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        db.Index("ix_audit_log_entity_op", "entity", "operation"),
        db.Index("ix_audit_log_occurred", "occurred_at"),
        db.Index("ix_audit_log_actor", "actor"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    entity = db.Column(db.String(50), nullable=False)
    operation = db.Column(db.String(32), nullable=False)
    record_id = db.Column(db.String(100), nullable=True)

    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="SUCCESS", index=True)
    message = db.Column(db.String(4000), nullable=True)

    actor = db.Column(db.String(100), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Client context
    ip_address = db.Column(db.String(50), nullable=True)
    session_id = db.Column(db.String(50), nullable=True)
    machine_name = db.Column(db.String(100), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity": self.entity,
            "operation": self.operation,
            "record_id": self.record_id,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "status": self.status,
            "message": self.message,
            "actor": self.actor,
            "occurred_at": to_utc_z(self.occurred_at),
            "ip_address": self.ip_address,
            "session_id": self.session_id,
            "machine_name": self.machine_name,
        }


class ViolationRecord(db.Model):
    """
    Forensic record of a denied attempt.

    Narrower than AuditRecord: who tried what, on which entity, and which
    restriction stopped it. Append-only.
    """
    __tablename__ = "security_violations"
    __table_args__ = (
        db.Index("ix_security_violations_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    attempted_operation = db.Column(db.String(50), nullable=False)
    attempted_entity = db.Column(db.String(50), nullable=False)
    restriction_type = db.Column(db.String(50), nullable=False, index=True)  # WEEKDAY, HOLIDAY, AUTHORIZATION
    details = db.Column(db.Text, nullable=True)

    actor = db.Column(db.String(100), nullable=False)
    ip_address = db.Column(db.String(50), nullable=True)
    session_info = db.Column(db.String(500), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attempted_operation": self.attempted_operation,
            "attempted_entity": self.attempted_entity,
            "restriction_type": self.restriction_type,
            "details": self.details,
            "actor": self.actor,
            "ip_address": self.ip_address,
            "session_info": self.session_info,
            "occurred_at": to_utc_z(self.occurred_at),
        }
