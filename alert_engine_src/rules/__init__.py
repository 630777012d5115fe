"""Alert rules and the rule catalog."""

from .base import AlertRule, PredicateRule
from .catalog import DEFAULT_ALERT_TYPES, RuleCatalog, build_default_catalog
from .adherence import MissedDoseRule
from .glycemic import HyperglycemiaStreakRule, HypoglycemiaRule, WeeklyAverageRule
from .symptoms import SymptomEscalationRule

__all__ = [
    "AlertRule",
    "PredicateRule",
    "RuleCatalog",
    "DEFAULT_ALERT_TYPES",
    "build_default_catalog",
    "HyperglycemiaStreakRule",
    "HypoglycemiaRule",
    "WeeklyAverageRule",
    "MissedDoseRule",
    "SymptomEscalationRule",
]
