"""Rule catalog: the registry of alert types and alert-producing rules."""

import logging
from datetime import timedelta
from typing import Iterable, Iterator

from common.alert_store import Severity

from ..errors import DataIntegrityError
from ..models import AlertCategory, AlertType, PatientContext
from .adherence import MissedDoseRule
from .base import AlertRule
from .glycemic import HyperglycemiaStreakRule, HypoglycemiaRule, WeeklyAverageRule
from .symptoms import SymptomEscalationRule

logger = logging.getLogger(__name__)


DEFAULT_ALERT_TYPES: list[AlertType] = [
    AlertType(
        id="hyperglycemia",
        category=AlertCategory.GLYCEMIC_THRESHOLD,
        default_severity=Severity.HIGH,
        description="Consecutive glycemic readings above the high threshold",
    ),
    AlertType(
        id="hypoglycemia",
        category=AlertCategory.GLYCEMIC_THRESHOLD,
        default_severity=Severity.CRITICAL,
        description="Glycemic reading below the low threshold",
    ),
    AlertType(
        id="weekly_glycemic_average",
        category=AlertCategory.GLYCEMIC_THRESHOLD,
        default_severity=Severity.MEDIUM,
        description="7-day mean glycemia above target",
    ),
    AlertType(
        id="missed_dose",
        category=AlertCategory.MISSED_DOSE,
        default_severity=Severity.MEDIUM,
        description="Scheduled therapy dose not taken",
    ),
    AlertType(
        id="symptom_escalation",
        category=AlertCategory.SYMPTOM_ESCALATION,
        default_severity=Severity.HIGH,
        description="Severe or recurring reported symptom",
    ),
    AlertType(
        id="clinician_note",
        category=AlertCategory.MANUAL,
        default_severity=Severity.MEDIUM,
        description="Alert entered manually by a clinician",
    ),
]


class RuleCatalog:
    """Registry of alert types and rules.

    The catalog is the only extension point for new alert logic: a new rule
    is a new AlertRule registered here. Malformed definitions are rejected at
    registration with DataIntegrityError so that they stop startup instead of
    failing during a scan.
    """

    def __init__(self, alert_types: Iterable[AlertType] = ()):
        self._alert_types: dict[str, AlertType] = {}
        self._rules: dict[str, AlertRule] = {}
        for alert_type in alert_types:
            self.register_alert_type(alert_type)

    # Alert types

    def register_alert_type(self, alert_type: AlertType) -> None:
        if alert_type.id in self._alert_types:
            raise DataIntegrityError(f"Alert type {alert_type.id!r} already registered")
        if not isinstance(alert_type.default_severity, Severity):
            raise DataIntegrityError(f"Alert type {alert_type.id!r} has no default severity")
        self._alert_types[alert_type.id] = alert_type

    def get_alert_type(self, alert_type_id: str) -> AlertType | None:
        return self._alert_types.get(alert_type_id)

    @property
    def alert_types(self) -> list[AlertType]:
        return list(self._alert_types.values())

    # Rules

    def register(self, rule: AlertRule) -> AlertRule:
        """Register a rule after validating its definition.

        Raises:
            DataIntegrityError: If the rule is malformed, its ID is taken,
                or it references an unknown alert type
        """
        problems = rule.validate()
        if problems:
            raise DataIntegrityError(
                f"Invalid rule {getattr(rule, 'rule_id', None)!r}: {', '.join(problems)}"
            )
        if rule.rule_id in self._rules:
            raise DataIntegrityError(f"Rule {rule.rule_id!r} already registered")
        if rule.alert_type not in self._alert_types:
            raise DataIntegrityError(
                f"Rule {rule.rule_id!r} references unknown alert type {rule.alert_type!r}"
            )

        self._rules[rule.rule_id] = rule
        logger.debug(f"Registered rule {rule.rule_id} ({rule.alert_type}, {rule.severity.value})")
        return rule

    def get_rule(self, rule_id: str) -> AlertRule | None:
        return self._rules.get(rule_id)

    def list_applicable_rules(self, patient: PatientContext) -> list[AlertRule]:
        """Rules that should run for this patient, in registration order."""
        return [rule for rule in self._rules.values() if rule.applies_to(patient)]

    def __iter__(self) -> Iterator[AlertRule]:
        return iter(list(self._rules.values()))

    def __len__(self) -> int:
        return len(self._rules)


def build_default_catalog(cfg=None) -> RuleCatalog:
    """Create a catalog with the built-in alert types and rules.

    Args:
        cfg: Configuration object (defaults to the module-level config)
    """
    if cfg is None:
        from ..config import config as cfg

    cooldown = timedelta(hours=cfg.RULE_COOLDOWN_HOURS)

    catalog = RuleCatalog(DEFAULT_ALERT_TYPES)
    catalog.register(HyperglycemiaStreakRule(
        threshold=cfg.HYPERGLYCEMIA_THRESHOLD_MGDL,
        consecutive=cfg.HYPERGLYCEMIA_CONSECUTIVE_READINGS,
        window=timedelta(hours=cfg.HYPERGLYCEMIA_WINDOW_HOURS),
        max_gap=timedelta(hours=cfg.HYPERGLYCEMIA_MAX_GAP_HOURS),
        cooldown=cooldown,
    ))
    catalog.register(HypoglycemiaRule(
        threshold=cfg.HYPOGLYCEMIA_THRESHOLD_MGDL,
        cooldown=cooldown,
    ))
    catalog.register(WeeklyAverageRule(
        threshold=cfg.WEEKLY_AVERAGE_THRESHOLD_MGDL,
        min_readings=cfg.WEEKLY_AVERAGE_MIN_READINGS,
        cooldown=timedelta(hours=cfg.WEEKLY_AVERAGE_COOLDOWN_HOURS),
    ))
    catalog.register(MissedDoseRule(
        grace=timedelta(minutes=cfg.MISSED_DOSE_GRACE_MINUTES),
        cooldown=cooldown,
    ))
    catalog.register(SymptomEscalationRule(
        severe_intensity=cfg.SYMPTOM_SEVERE_INTENSITY,
        recurrence_count=cfg.SYMPTOM_RECURRENCE_COUNT,
        cooldown=cooldown,
    ))
    return catalog
