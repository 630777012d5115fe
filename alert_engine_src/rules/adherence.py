"""Therapy adherence rules."""

from datetime import datetime, timedelta

from common.alert_store import Severity

from ..models import ClinicalWindow, DataKind, Intake, PatientContext, RuleOutcome, ScheduledDose
from . import criteria
from .base import AlertRule


class MissedDoseRule(AlertRule):
    """Fires when a scheduled dose is past due (plus grace) with no intake.

    An intake matches a dose when it references the dose's schedule entry,
    or, lacking a reference, when it is for the same medication and taken
    within the grace period either side of the due time.
    """

    def __init__(
        self,
        rule_id: str = "missed_dose",
        alert_type: str = "missed_dose",
        severity: Severity = Severity.MEDIUM,
        grace: timedelta = timedelta(minutes=criteria.MISSED_DOSE_GRACE_MINUTES),
        window: timedelta = timedelta(hours=criteria.DAILY_RESUME_HOURS),
        cooldown: timedelta = timedelta(hours=criteria.DEFAULT_COOLDOWN_HOURS),
        therapy_tag: str = criteria.ACTIVE_THERAPY_TAG,
    ):
        super().__init__(
            rule_id, alert_type, severity, window,
            cooldown=cooldown,
            required_data=[DataKind.SCHEDULES, DataKind.INTAKES],
            description="scheduled dose not taken",
        )
        self.grace = grace
        self.therapy_tag = therapy_tag

    def applies_to(self, patient: PatientContext) -> bool:
        return patient.has_tag(self.therapy_tag)

    def data_bounds(self, kind: DataKind, as_of: datetime) -> tuple[datetime, datetime]:
        start, end = self.window_bounds(as_of)
        if kind == DataKind.INTAKES:
            # An early intake within grace still matches a dose due at window start
            return start - self.grace, end
        return start, end

    def _is_taken(self, dose: ScheduledDose, intakes: list[Intake]) -> bool:
        for intake in intakes:
            if intake.schedule_id is not None:
                if intake.schedule_id == dose.id:
                    return True
                continue
            if (
                intake.medication.strip().lower() == dose.medication.strip().lower()
                and abs(intake.taken_at - dose.due_at) <= self.grace
            ):
                return True
        return False

    def evaluate(self, window: ClinicalWindow) -> RuleOutcome | None:
        overdue = [
            dose for dose in window.schedules
            if dose.due_at + self.grace <= window.end
        ]
        missed = [dose for dose in overdue if not self._is_taken(dose, window.intakes)]
        if not missed:
            return None

        latest = max(missed, key=lambda d: d.due_at)
        return RuleOutcome(
            context_key=f"schedule:{latest.id}",
            summary=(
                f"Missed dose of {latest.medication} due "
                f"{latest.due_at.strftime('%Y-%m-%d %H:%M')}"
            ),
            details={
                "medication": latest.medication,
                "due_at": latest.due_at.isoformat(),
                "missed_schedule_ids": [d.id for d in missed],
                "missed_count": len(missed),
            },
        )
