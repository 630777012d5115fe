"""Data models for persistent alert storage."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import total_ordering
from typing import Any
import json


@total_ordering
class Severity(Enum):
    """Alert severity, ordered Low < Medium < High < Critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: "Severity") -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, value: "Severity | str") -> "Severity":
        """Accept an enum member or its (case-insensitive) string value."""
        if isinstance(value, Severity):
            return value
        return cls(str(value).strip().lower())


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class AlertStatus(Enum):
    """Alert lifecycle status. OPEN -> RESOLVED is the only transition."""
    OPEN = "open"
    RESOLVED = "resolved"

    def can_transition_to(self, new_status: "AlertStatus") -> bool:
        return self == AlertStatus.OPEN and new_status == AlertStatus.RESOLVED


class RecipientRole(Enum):
    """Who an alert is addressed to."""
    PATIENT = "patient"
    DOCTOR = "doctor"


class DeliveryStatus(Enum):
    """Hand-off state of an alert to a single recipient."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    RESOLVED = "resolved"


class ChangeOperation(Enum):
    """Operations recorded in the change log."""
    CREATED = "created"
    RESOLVED = "resolved"


def _parse_datetime(val):
    if val is None:
        return None
    if isinstance(val, datetime):
        return val
    return datetime.fromisoformat(val)


def _format_datetime(val: datetime | None) -> str | None:
    return val.isoformat() if val else None


@dataclass
class AlertRecipient:
    """One recipient of an alert, tracked independently of the others."""
    id: str
    alert_id: str
    user_id: str
    role: RecipientRole
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    resolved_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "alert_id": self.alert_id,
            "user_id": self.user_id,
            "role": self.role.value,
            "delivery_status": self.delivery_status.value,
            "resolved_at": _format_datetime(self.resolved_at),
        }

    @classmethod
    def from_row(cls, row: tuple) -> "AlertRecipient":
        """Create from database row tuple."""
        # Row order: id, alert_id, user_id, role, delivery_status, resolved_at
        return cls(
            id=row[0],
            alert_id=row[1],
            user_id=row[2],
            role=RecipientRole(row[3]),
            delivery_status=DeliveryStatus(row[4]),
            resolved_at=_parse_datetime(row[5]),
        )


@dataclass
class Alert:
    """A persistently stored alert with full lifecycle tracking."""
    id: str
    patient_id: str
    alert_type: str
    severity: Severity
    context_key: str
    status: AlertStatus = AlertStatus.OPEN
    rule_id: str | None = None

    # Triggering window
    window_start: datetime | None = None
    window_end: datetime | None = None

    summary: str = ""
    details: dict = field(default_factory=dict)
    note: str | None = None

    created_at: datetime = field(default_factory=datetime.now)
    created_by: str = "system"
    resolved_at: datetime | None = None
    resolved_by: str | None = None

    # Set when the severity called for a doctor but none could be resolved
    recipient_warning: str | None = None

    recipients: list[AlertRecipient] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status == AlertStatus.OPEN

    @property
    def has_recipient_warning(self) -> bool:
        return self.recipient_warning is not None

    def snapshot(self) -> dict[str, Any]:
        """Minimal state captured in change-log before/after entries."""
        return {
            "status": self.status.value,
            "severity": self.severity.value,
            "resolved_by": self.resolved_by,
            "resolved_at": _format_datetime(self.resolved_at),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "alert_type": self.alert_type,
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "context_key": self.context_key,
            "status": self.status.value,
            "window_start": _format_datetime(self.window_start),
            "window_end": _format_datetime(self.window_end),
            "summary": self.summary,
            "details": self.details,
            "note": self.note,
            "created_at": _format_datetime(self.created_at),
            "created_by": self.created_by,
            "resolved_at": _format_datetime(self.resolved_at),
            "resolved_by": self.resolved_by,
            "recipient_warning": self.recipient_warning,
            "recipients": [r.to_dict() for r in self.recipients],
        }

    @classmethod
    def from_row(cls, row: tuple) -> "Alert":
        """Create from database row tuple."""
        # Row order matches ALERT_COLUMNS in store.py
        details_json = row[10]
        return cls(
            id=row[0],
            patient_id=row[1],
            alert_type=row[2],
            rule_id=row[3],
            severity=Severity(row[4]),
            context_key=row[5],
            status=AlertStatus(row[6]),
            window_start=_parse_datetime(row[7]),
            window_end=_parse_datetime(row[8]),
            summary=row[9] or "",
            details=json.loads(details_json) if details_json else {},
            note=row[11],
            created_at=_parse_datetime(row[12]),
            created_by=row[13],
            resolved_at=_parse_datetime(row[14]),
            resolved_by=row[15],
            recipient_warning=row[16],
        )


@dataclass
class ChangeLogEntry:
    """Audit entry emitted for every alert state change."""
    actor: str
    entity_type: str
    entity_id: str
    operation: ChangeOperation
    before: dict | None
    after: dict | None
    timestamp: datetime = field(default_factory=datetime.now)
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "actor": self.actor,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "operation": self.operation.value,
            "before": self.before,
            "after": self.after,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_row(cls, row: tuple) -> "ChangeLogEntry":
        """Create from database row tuple."""
        return cls(
            id=row[0],
            actor=row[1],
            entity_type=row[2],
            entity_id=row[3],
            operation=ChangeOperation(row[4]),
            before=json.loads(row[5]) if row[5] else None,
            after=json.loads(row[6]) if row[6] else None,
            timestamp=_parse_datetime(row[7]),
        )
