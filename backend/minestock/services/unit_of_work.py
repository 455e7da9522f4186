# Overview: Transaction scope for one core operation, with a batched audit accumulator.

"""
Unit of Work

One core operation == one UnitOfWork == one database transaction.

Two-phase audit hook:
- Mutations stage their SUCCESS audit entries on the unit of work while they run
  (stage_audit). Nothing is written to audit_log at that point.
- On clean exit the staged entries are flushed in one batch (each in its own
  savepoint through audit_service.record_audit) and the transaction commits.
- On any exception the staged entries are dropped and the transaction rolls back.

DENIED and ERROR audit entries are not staged: they are written immediately by
the code that observes the denial/failure, because the business mutation they
describe is being discarded.

The accumulator lives on the UnitOfWork instance, never at module level.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..context import ExecutionContext
from ..extensions import db
from .audit_service import record_audit, AUDIT_SUCCESS


@dataclass
class PendingAudit:
    entity: str
    operation: str
    record_id: Any
    before: dict | None = None
    after: dict | None = None
    message: str | None = None


class UnitOfWork:
    def __init__(self, context: ExecutionContext):
        self.context = context
        # One clock reading per unit of work: every gate check and timestamp
        # inside the operation agrees on "now".
        self.now: datetime = context.now()
        self.pending_audit: list[PendingAudit] = []
        self.audit_ids: list[int] = []

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.discard()
            db.session.rollback()
            return False
        self.flush_audit()
        db.session.commit()
        return False

    def stage_audit(
        self,
        *,
        entity: str,
        operation: str,
        record_id: Any,
        before: dict | None = None,
        after: dict | None = None,
        message: str | None = None,
    ) -> None:
        self.pending_audit.append(
            PendingAudit(
                entity=entity,
                operation=operation,
                record_id=record_id,
                before=before,
                after=after,
                message=message,
            )
        )

    def checkpoint(self) -> int:
        """Marker for rolling staged entries back together with a savepoint."""
        return len(self.pending_audit)

    def rollback_to(self, marker: int) -> None:
        del self.pending_audit[marker:]

    def discard(self) -> None:
        self.pending_audit.clear()

    def flush_audit(self) -> list[int]:
        db.session.flush()
        staged, self.pending_audit = self.pending_audit, []
        for entry in staged:
            audit_id = record_audit(
                self.context,
                entity=entry.entity,
                operation=entry.operation,
                record_id=entry.record_id,
                before=entry.before,
                after=entry.after,
                outcome=AUDIT_SUCCESS,
                message=entry.message,
                occurred_at=self.now,
            )
            self.audit_ids.append(audit_id)
        return self.audit_ids
