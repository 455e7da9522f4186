from .inventory import Supplier, Resource, UsageEvent, Reorder
from .audit import AuditRecord, ViolationRecord
from .calendar import Holiday

__all__ = [
    'Supplier', 'Resource', 'UsageEvent', 'Reorder',
    'AuditRecord', 'ViolationRecord',
    'Holiday',
]
