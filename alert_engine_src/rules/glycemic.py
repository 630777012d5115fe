"""Glycemic threshold rules."""

from datetime import timedelta
from statistics import mean

from common.alert_store import Severity

from ..models import ClinicalWindow, DataKind, Measurement, RuleOutcome
from . import criteria
from .base import AlertRule


def _by_time(measurements: list[Measurement]) -> list[Measurement]:
    return sorted(measurements, key=lambda m: m.taken_at)


class HyperglycemiaStreakRule(AlertRule):
    """Fires on N consecutive readings strictly above a threshold.

    A reading without a value, or a gap between two readings longer than
    ``max_gap``, breaks the streak unless ``tolerate_gaps`` is set. Readings
    are never interpolated. When several qualifying streaks exist in the
    window the most recent one is reported, keyed by its first reading.
    """

    def __init__(
        self,
        rule_id: str = "hyperglycemia_streak",
        alert_type: str = "hyperglycemia",
        severity: Severity = Severity.HIGH,
        threshold: float = criteria.HYPERGLYCEMIA_THRESHOLD_MGDL,
        consecutive: int = criteria.HYPERGLYCEMIA_CONSECUTIVE_READINGS,
        window: timedelta = timedelta(hours=criteria.DAILY_RESUME_HOURS),
        max_gap: timedelta | None = timedelta(hours=criteria.HYPERGLYCEMIA_MAX_GAP_HOURS),
        tolerate_gaps: bool = False,
        cooldown: timedelta = timedelta(hours=criteria.DEFAULT_COOLDOWN_HOURS),
    ):
        super().__init__(
            rule_id, alert_type, severity, window,
            cooldown=cooldown,
            required_data=[DataKind.MEASUREMENTS],
            description=f"{consecutive} consecutive readings > {threshold:g} mg/dL",
        )
        self.threshold = threshold
        self.consecutive = consecutive
        self.max_gap = max_gap
        self.tolerate_gaps = tolerate_gaps

    def validate(self) -> list[str]:
        problems = super().validate()
        if self.consecutive < 1:
            problems.append("consecutive count must be at least 1")
        return problems

    def evaluate(self, window: ClinicalWindow) -> RuleOutcome | None:
        streak: list[Measurement] = []
        qualifying: list[Measurement] | None = None

        for reading in _by_time(window.measurements):
            if reading.value is None:
                if not self.tolerate_gaps:
                    streak = []
                continue

            if (
                streak
                and not self.tolerate_gaps
                and self.max_gap is not None
                and reading.taken_at - streak[-1].taken_at > self.max_gap
            ):
                streak = []

            if reading.value > self.threshold:
                streak.append(reading)
                if len(streak) >= self.consecutive:
                    qualifying = list(streak)
            else:
                streak = []

        if not qualifying:
            return None

        first = qualifying[0]
        return RuleOutcome(
            context_key=f"measurement:{first.id}",
            summary=(
                f"{len(qualifying)} consecutive glycemic readings above "
                f"{self.threshold:g} mg/dL (max {max(m.value for m in qualifying):g})"
            ),
            details={
                "threshold": self.threshold,
                "measurement_ids": [m.id for m in qualifying],
                "values": [m.value for m in qualifying],
                "streak_start": first.taken_at.isoformat(),
                "streak_end": qualifying[-1].taken_at.isoformat(),
            },
        )


class HypoglycemiaRule(AlertRule):
    """Fires on any reading strictly below the low threshold."""

    def __init__(
        self,
        rule_id: str = "hypoglycemia",
        alert_type: str = "hypoglycemia",
        severity: Severity = Severity.CRITICAL,
        threshold: float = criteria.HYPOGLYCEMIA_THRESHOLD_MGDL,
        window: timedelta = timedelta(hours=criteria.DAILY_RESUME_HOURS),
        cooldown: timedelta = timedelta(hours=criteria.DEFAULT_COOLDOWN_HOURS),
    ):
        super().__init__(
            rule_id, alert_type, severity, window,
            cooldown=cooldown,
            required_data=[DataKind.MEASUREMENTS],
            description=f"reading < {threshold:g} mg/dL",
        )
        self.threshold = threshold

    def evaluate(self, window: ClinicalWindow) -> RuleOutcome | None:
        low = [
            m for m in window.measurements
            if m.value is not None and m.value < self.threshold
        ]
        if not low:
            return None

        lowest = min(low, key=lambda m: (m.value, m.taken_at))
        return RuleOutcome(
            context_key=f"measurement:{lowest.id}",
            summary=f"Glycemic reading {lowest.value:g} mg/dL below {self.threshold:g} mg/dL",
            details={
                "threshold": self.threshold,
                "value": lowest.value,
                "taken_at": lowest.taken_at.isoformat(),
                "low_readings": len(low),
            },
        )


class WeeklyAverageRule(AlertRule):
    """Fires when the 7-day mean glycemia is strictly above a threshold."""

    def __init__(
        self,
        rule_id: str = "weekly_glycemic_average",
        alert_type: str = "weekly_glycemic_average",
        severity: Severity = Severity.MEDIUM,
        threshold: float = criteria.WEEKLY_AVERAGE_THRESHOLD_MGDL,
        min_readings: int = criteria.WEEKLY_AVERAGE_MIN_READINGS,
        window: timedelta = timedelta(days=criteria.WEEKLY_RESUME_DAYS),
        cooldown: timedelta = timedelta(days=criteria.WEEKLY_RESUME_DAYS),
    ):
        super().__init__(
            rule_id, alert_type, severity, window,
            cooldown=cooldown,
            required_data=[DataKind.MEASUREMENTS],
            description=f"7-day mean > {threshold:g} mg/dL",
        )
        self.threshold = threshold
        self.min_readings = min_readings

    def evaluate(self, window: ClinicalWindow) -> RuleOutcome | None:
        values = [m.value for m in window.measurements if m.value is not None]
        if len(values) < self.min_readings:
            return None

        average = mean(values)
        if average <= self.threshold:
            return None

        return RuleOutcome(
            context_key="window:7d",
            summary=f"7-day mean glycemia {average:.0f} mg/dL above {self.threshold:g} mg/dL",
            details={
                "threshold": self.threshold,
                "average": round(average, 1),
                "readings": len(values),
            },
        )
