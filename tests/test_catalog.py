"""Tests for the rule catalog."""

from datetime import timedelta

import pytest

from common.alert_store import Severity
from alert_engine_src.config import config
from alert_engine_src.errors import DataIntegrityError
from alert_engine_src.models import DataKind, PatientContext, RuleOutcome
from alert_engine_src.rules import (
    DEFAULT_ALERT_TYPES,
    MissedDoseRule,
    PredicateRule,
    RuleCatalog,
    build_default_catalog,
)


def always_fires(window):
    return RuleOutcome(context_key="always")


def make_rule(**overrides):
    kwargs = dict(
        rule_id="custom",
        alert_type="hyperglycemia",
        severity=Severity.LOW,
        window=timedelta(hours=1),
        predicate=always_fires,
        required_data=[DataKind.MEASUREMENTS],
    )
    kwargs.update(overrides)
    return PredicateRule(**kwargs)


class TestRuleCatalog:
    """Test rule registration and lookup."""

    @pytest.fixture
    def catalog(self):
        return RuleCatalog(DEFAULT_ALERT_TYPES)

    def test_register_and_get(self, catalog):
        rule = catalog.register(make_rule())
        assert catalog.get_rule("custom") is rule
        assert len(catalog) == 1

    def test_duplicate_rule_id_rejected(self, catalog):
        catalog.register(make_rule())
        with pytest.raises(DataIntegrityError):
            catalog.register(make_rule())

    def test_unknown_alert_type_rejected(self, catalog):
        with pytest.raises(DataIntegrityError, match="unknown alert type"):
            catalog.register(make_rule(alert_type="nonexistent"))

    def test_missing_severity_rejected(self, catalog):
        with pytest.raises(DataIntegrityError, match="severity"):
            catalog.register(make_rule(severity=None))

    def test_missing_predicate_rejected(self, catalog):
        with pytest.raises(DataIntegrityError, match="predicate"):
            catalog.register(make_rule(predicate=None))

    def test_non_positive_window_rejected(self, catalog):
        with pytest.raises(DataIntegrityError, match="window"):
            catalog.register(make_rule(window=timedelta(0)))

    def test_rule_without_data_rejected(self, catalog):
        with pytest.raises(DataIntegrityError):
            catalog.register(make_rule(required_data=[]))

    def test_rejected_rule_is_not_registered(self, catalog):
        with pytest.raises(DataIntegrityError):
            catalog.register(make_rule(severity=None))
        assert catalog.get_rule("custom") is None

    def test_duplicate_alert_type_rejected(self, catalog):
        with pytest.raises(DataIntegrityError):
            catalog.register_alert_type(DEFAULT_ALERT_TYPES[0])

    def test_applicable_rules_respect_patient_tags(self, catalog):
        catalog.register(make_rule())
        catalog.register(MissedDoseRule())

        plain = PatientContext("P1")
        on_therapy = PatientContext("P2", frozenset({"active_therapy"}))

        assert [r.rule_id for r in catalog.list_applicable_rules(plain)] == ["custom"]
        assert [r.rule_id for r in catalog.list_applicable_rules(on_therapy)] == [
            "custom", "missed_dose",
        ]


class TestDefaultCatalog:
    """Test the built-in catalog."""

    def test_builds_without_errors(self):
        catalog = build_default_catalog()
        assert {r.rule_id for r in catalog} == {
            "hyperglycemia_streak",
            "hypoglycemia",
            "weekly_glycemic_average",
            "missed_dose",
            "symptom_escalation",
        }

    def test_manual_alert_type_registered(self):
        catalog = build_default_catalog()
        clinician_note = catalog.get_alert_type("clinician_note")
        assert clinician_note is not None
        assert clinician_note.default_severity == Severity.MEDIUM

    def test_every_rule_has_positive_window(self):
        for rule in build_default_catalog():
            assert rule.window > timedelta(0)
            assert rule.validate() == []

    def test_weekly_average_cooldown_is_configurable(self, monkeypatch):
        monkeypatch.setattr(config, "WEEKLY_AVERAGE_COOLDOWN_HOURS", 12)
        catalog = build_default_catalog(config)
        assert catalog.get_rule("weekly_glycemic_average").cooldown == timedelta(hours=12)

    def test_shared_cooldown_applies_to_other_rules(self, monkeypatch):
        monkeypatch.setattr(config, "RULE_COOLDOWN_HOURS", 6)
        monkeypatch.setattr(config, "WEEKLY_AVERAGE_COOLDOWN_HOURS", 168)
        catalog = build_default_catalog(config)
        assert catalog.get_rule("hyperglycemia_streak").cooldown == timedelta(hours=6)
        assert catalog.get_rule("weekly_glycemic_average").cooldown == timedelta(days=7)
