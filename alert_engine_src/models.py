"""Data models for the Alert & Monitoring Engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from common.alert_store import RecipientRole, Severity


class DataKind(Enum):
    """Kinds of clinical data a rule may require."""
    MEASUREMENTS = "measurements"
    INTAKES = "intakes"
    SCHEDULES = "schedules"
    SYMPTOMS = "symptoms"


class AlertCategory(Enum):
    """Broad families of alert types."""
    GLYCEMIC_THRESHOLD = "glycemic_threshold"
    MISSED_DOSE = "missed_dose"
    SYMPTOM_ESCALATION = "symptom_escalation"
    MANUAL = "manual"


@dataclass(frozen=True)
class AlertType:
    """Immutable reference data describing a kind of alert."""
    id: str
    category: AlertCategory
    default_severity: Severity
    description: str = ""


@dataclass(frozen=True)
class PatientContext:
    """What the engine knows about a patient before fetching clinical data."""
    patient_id: str
    tags: frozenset[str] = frozenset()

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass
class Measurement:
    """A glycemic reading. value is None when the reading is missing/unusable."""
    id: str
    patient_id: str
    taken_at: datetime
    value: Optional[float]
    unit: str = "mg/dL"


@dataclass
class ScheduledDose:
    """A dose due according to the patient's therapy schedule."""
    id: str
    patient_id: str
    medication: str
    due_at: datetime
    therapy_id: Optional[str] = None


@dataclass
class Intake:
    """A reported medication intake."""
    id: str
    patient_id: str
    medication: str
    taken_at: datetime
    schedule_id: Optional[str] = None


@dataclass
class Symptom:
    """A symptom reported by the patient. intensity is on a 0-10 scale."""
    id: str
    patient_id: str
    name: str
    reported_at: datetime
    intensity: Optional[int] = None
    notes: str = ""


@dataclass
class ClinicalWindow:
    """Pre-fetched clinical data for one patient over [start, end]."""
    patient_id: str
    start: datetime
    end: datetime
    measurements: list[Measurement] = field(default_factory=list)
    intakes: list[Intake] = field(default_factory=list)
    schedules: list[ScheduledDose] = field(default_factory=list)
    symptoms: list[Symptom] = field(default_factory=list)


@dataclass
class RuleOutcome:
    """Result of a rule predicate that fired."""
    context_key: str
    severity: Optional[Severity] = None  # None means the rule's own severity
    summary: str = ""
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class CandidateAlert:
    """An alert the Evaluator proposes; not yet persisted."""
    patient_id: str
    alert_type: str
    severity: Severity
    context_key: str
    detected_at: datetime
    rule_id: Optional[str] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    summary: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.patient_id, self.alert_type, self.context_key)


@dataclass
class RuleDiagnostic:
    """A rule that failed to evaluate. Operational, never a clinical alert."""
    patient_id: str
    rule_id: str
    error: str
    occurred_at: datetime = field(default_factory=datetime.now)


@dataclass
class EvaluationResult:
    """Candidates and diagnostics produced for one patient."""
    patient_id: str
    candidates: list[CandidateAlert] = field(default_factory=list)
    diagnostics: list[RuleDiagnostic] = field(default_factory=list)
    rules_evaluated: int = 0


@dataclass
class Recipient:
    """A resolved recipient identity."""
    user_id: str
    role: RecipientRole


@dataclass
class RecipientResolution:
    """Recipients for an alert plus an optional resolution warning."""
    recipients: list[Recipient] = field(default_factory=list)
    warning: Optional[str] = None


@dataclass
class PatientFailure:
    """A patient whose evaluation failed during a scan cycle."""
    patient_id: str
    error: str
    transient: bool = False


@dataclass
class ScanResult:
    """Summary of one scan cycle."""
    as_of: datetime
    patients_scanned: int = 0
    created: int = 0
    suppressed: int = 0
    failed: int = 0
    rule_failures: int = 0
    recipient_warnings: int = 0
    cancelled: bool = False
    patients_skipped: int = 0
    error: Optional[str] = None
    created_alert_ids: list[str] = field(default_factory=list)
    failures: list[PatientFailure] = field(default_factory=list)
    diagnostics: list[RuleDiagnostic] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "as_of": self.as_of.isoformat(),
            "patients_scanned": self.patients_scanned,
            "created": self.created,
            "suppressed": self.suppressed,
            "failed": self.failed,
            "rule_failures": self.rule_failures,
            "recipient_warnings": self.recipient_warnings,
            "cancelled": self.cancelled,
            "patients_skipped": self.patients_skipped,
            "error": self.error,
            "failures": [
                {"patient_id": f.patient_id, "error": f.error, "transient": f.transient}
                for f in self.failures
            ],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
