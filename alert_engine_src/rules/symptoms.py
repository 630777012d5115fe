"""Symptom escalation rules."""

from collections import defaultdict
from datetime import timedelta

from common.alert_store import Severity

from ..models import ClinicalWindow, DataKind, RuleOutcome, Symptom
from . import criteria
from .base import AlertRule


def _normalize(name: str) -> str:
    return " ".join(name.strip().lower().split())


class SymptomEscalationRule(AlertRule):
    """Fires on a severe symptom report or a recurring symptom.

    A report with intensity at or above ``severe_intensity`` fires at the
    rule's severity. Otherwise the same symptom reported at least
    ``recurrence_count`` times in the window fires at ``recurrence_severity``.
    Both share the ``symptom:<name>`` context so at most one is open.
    """

    def __init__(
        self,
        rule_id: str = "symptom_escalation",
        alert_type: str = "symptom_escalation",
        severity: Severity = Severity.HIGH,
        recurrence_severity: Severity = Severity.MEDIUM,
        severe_intensity: int = criteria.SYMPTOM_SEVERE_INTENSITY,
        recurrence_count: int = criteria.SYMPTOM_RECURRENCE_COUNT,
        window: timedelta = timedelta(days=criteria.WEEKLY_RESUME_DAYS),
        cooldown: timedelta = timedelta(hours=criteria.DEFAULT_COOLDOWN_HOURS),
    ):
        super().__init__(
            rule_id, alert_type, severity, window,
            cooldown=cooldown,
            required_data=[DataKind.SYMPTOMS],
            description="severe or recurring symptom",
        )
        self.recurrence_severity = recurrence_severity
        self.severe_intensity = severe_intensity
        self.recurrence_count = recurrence_count

    def evaluate(self, window: ClinicalWindow) -> RuleOutcome | None:
        severe = [
            s for s in window.symptoms
            if s.intensity is not None and s.intensity >= self.severe_intensity
        ]
        if severe:
            worst = max(severe, key=lambda s: (s.intensity, s.reported_at))
            return RuleOutcome(
                context_key=f"symptom:{_normalize(worst.name)}",
                severity=self.severity,
                summary=f"Severe {worst.name} reported (intensity {worst.intensity}/10)",
                details={
                    "symptom": worst.name,
                    "intensity": worst.intensity,
                    "reported_at": worst.reported_at.isoformat(),
                },
            )

        by_name: dict[str, list[Symptom]] = defaultdict(list)
        for symptom in window.symptoms:
            by_name[_normalize(symptom.name)].append(symptom)

        recurring = {
            name: reports for name, reports in by_name.items()
            if len(reports) >= self.recurrence_count
        }
        if not recurring:
            return None

        name, reports = max(recurring.items(), key=lambda item: (len(item[1]), item[0]))
        return RuleOutcome(
            context_key=f"symptom:{name}",
            severity=self.recurrence_severity,
            summary=f"{reports[0].name} reported {len(reports)} times",
            details={
                "symptom": name,
                "reports": len(reports),
                "symptom_ids": [s.id for s in reports],
            },
        )
