"""Base class for alert-producing rules."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Iterable

from common.alert_store import Severity

from ..models import ClinicalWindow, DataKind, PatientContext, RuleOutcome


class AlertRule(ABC):
    """Abstract base class for a rule in the catalog.

    A rule is a pure function of a pre-fetched ClinicalWindow: it must not
    perform I/O. The Evaluator fetches the data kinds listed in
    ``required_data`` over ``window`` ending at the evaluation time.

    Subclasses implement ``evaluate`` and may narrow ``applies_to``.
    """

    def __init__(
        self,
        rule_id: str,
        alert_type: str,
        severity: Severity | None,
        window: timedelta,
        cooldown: timedelta = timedelta(0),
        required_data: Iterable[DataKind] = (),
        description: str = "",
    ):
        self.rule_id = rule_id
        self.alert_type = alert_type
        self.severity = severity
        self.window = window
        self.cooldown = cooldown
        self.required_data = frozenset(required_data)
        self.description = description

    def applies_to(self, patient: PatientContext) -> bool:
        """Whether this rule should run for the given patient."""
        return True

    @abstractmethod
    def evaluate(self, window: ClinicalWindow) -> RuleOutcome | None:
        """Apply the rule predicate.

        Args:
            window: Clinical data for the patient over this rule's window

        Returns:
            RuleOutcome if the rule fired, None otherwise
        """
        pass

    def window_bounds(self, as_of: datetime) -> tuple[datetime, datetime]:
        """Start and end of the data window evaluated at ``as_of``."""
        return as_of - self.window, as_of

    def data_bounds(self, kind: DataKind, as_of: datetime) -> tuple[datetime, datetime]:
        """Fetch range for one data kind; the rule window unless overridden."""
        return self.window_bounds(as_of)

    def validate(self) -> list[str]:
        """Return definition problems; empty when the rule is well formed."""
        problems = []
        if not self.rule_id:
            problems.append("missing rule id")
        if not self.alert_type:
            problems.append("missing alert type")
        if not isinstance(self.severity, Severity):
            problems.append("missing or invalid severity")
        if not isinstance(self.window, timedelta) or self.window <= timedelta(0):
            problems.append("window must be a positive timedelta")
        if not isinstance(self.cooldown, timedelta) or self.cooldown < timedelta(0):
            problems.append("cooldown must be a non-negative timedelta")
        if not self.required_data:
            problems.append("rule requires no clinical data")
        return problems

    def __repr__(self) -> str:
        return f"{type(self).__name__}(rule_id={self.rule_id!r}, alert_type={self.alert_type!r})"


class PredicateRule(AlertRule):
    """Rule defined by a plain predicate function instead of a subclass."""

    def __init__(
        self,
        rule_id: str,
        alert_type: str,
        severity: Severity | None,
        window: timedelta,
        predicate: Callable[[ClinicalWindow], RuleOutcome | None] | None,
        cooldown: timedelta = timedelta(0),
        required_data: Iterable[DataKind] = (),
        description: str = "",
        applies: Callable[[PatientContext], bool] | None = None,
    ):
        super().__init__(
            rule_id, alert_type, severity, window,
            cooldown=cooldown, required_data=required_data, description=description,
        )
        self.predicate = predicate
        self._applies = applies

    def applies_to(self, patient: PatientContext) -> bool:
        if self._applies is None:
            return True
        return self._applies(patient)

    def evaluate(self, window: ClinicalWindow) -> RuleOutcome | None:
        return self.predicate(window)

    def validate(self) -> list[str]:
        problems = super().validate()
        if not callable(self.predicate):
            problems.append("missing predicate")
        return problems
