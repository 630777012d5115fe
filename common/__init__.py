"""Shared storage for the alert engine."""

from .alert_store import (
    Alert,
    AlertRecipient,
    AlertStatus,
    AlertStore,
    ChangeLogEntry,
    ChangeLogStore,
    ChangeOperation,
    DeliveryStatus,
    RecipientRole,
    Severity,
)

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
