"""Alert storage module for persistent alert tracking.

Provides SQLite-backed storage for managing alert lifecycle:
- Prevent duplicate open alerts via a partial unique index
- Track alert status (open, resolved) and per-recipient delivery
- Change log for compliance
"""

from .models import (
    Alert,
    AlertRecipient,
    AlertStatus,
    ChangeLogEntry,
    ChangeOperation,
    DeliveryStatus,
    RecipientRole,
    Severity,
)
from .store import AlertStore
from .changelog import ChangeLogStore

__all__ = [
    "Alert",
    "AlertRecipient",
    "AlertStatus",
    "AlertStore",
    "ChangeLogEntry",
    "ChangeLogStore",
    "ChangeOperation",
    "DeliveryStatus",
    "RecipientRole",
    "Severity",
]
