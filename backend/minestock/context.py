# Overview: Explicit caller context (actor, session, origin, clock) passed into every core operation.

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from minestock.time_utils import utcnow


@dataclass(frozen=True)
class ExecutionContext:
    """
    Who is acting, from where, and at what time.

    The caller layer (HTTP route, CLI command, test) builds one of these per
    unit of work. Core services never read session state from anywhere else.

    effective_at pins the clock; when None the context follows the wall clock.
    """
    actor: str
    session_id: str | None = None
    ip_address: str | None = None
    machine_name: str | None = None
    module: str | None = None
    action: str | None = None
    effective_at: datetime | None = None

    def now(self) -> datetime:
        return self.effective_at if self.effective_at is not None else utcnow()

    def session_info(self) -> str:
        return f"SID: {self.session_id or '-'}, Module: {self.module or '-'}, Action: {self.action or '-'}"

    def pinned(self, moment: datetime) -> "ExecutionContext":
        return replace(self, effective_at=moment)

    def acting_as(self, actor: str, *, action: str | None = None) -> "ExecutionContext":
        return replace(self, actor=actor, action=action or self.action)

    @classmethod
    def system(cls, actor: str = "SYSTEM", *, module: str = "cli", action: str | None = None) -> "ExecutionContext":
        return cls(actor=actor, module=module, action=action)
