"""Tests for recipient resolution."""

from unittest.mock import Mock

import pytest

from common.alert_store import RecipientRole, Severity
from alert_engine_src.recipients import (
    LOOKUP_FAILED_WARNING,
    NO_DOCTOR_WARNING,
    RecipientResolver,
)


class TestRecipientResolver:
    """Test severity-driven routing."""

    @pytest.fixture
    def lookup(self):
        return Mock(return_value=["D1"])

    @pytest.fixture
    def resolver(self, lookup):
        return RecipientResolver(lookup, doctor_threshold="high")

    @pytest.mark.parametrize("severity", [Severity.LOW, Severity.MEDIUM])
    def test_below_threshold_patient_only(self, resolver, lookup, severity):
        resolution = resolver.resolve("P", severity)

        assert [(r.user_id, r.role) for r in resolution.recipients] == [
            ("P", RecipientRole.PATIENT)
        ]
        assert resolution.warning is None
        lookup.assert_not_called()

    @pytest.mark.parametrize("severity", [Severity.HIGH, Severity.CRITICAL])
    def test_at_or_above_threshold_adds_doctor(self, resolver, severity):
        resolution = resolver.resolve("P", severity)

        assert {(r.user_id, r.role) for r in resolution.recipients} == {
            ("P", RecipientRole.PATIENT),
            ("D1", RecipientRole.DOCTOR),
        }
        assert resolution.warning is None

    def test_no_doctor_assigned_warns(self, lookup, resolver):
        lookup.return_value = []
        resolution = resolver.resolve("P", Severity.CRITICAL)

        assert [r.user_id for r in resolution.recipients] == ["P"]
        assert resolution.warning == NO_DOCTOR_WARNING

    def test_lookup_failure_warns(self, lookup, resolver):
        lookup.side_effect = RuntimeError("directory down")
        resolution = resolver.resolve("P", Severity.HIGH)

        assert [r.user_id for r in resolution.recipients] == ["P"]
        assert resolution.warning == LOOKUP_FAILED_WARNING

    def test_duplicate_doctor_ids_collapsed(self, lookup, resolver):
        lookup.return_value = ["D1", "D1", "D2"]
        resolution = resolver.resolve("P", Severity.HIGH)
        assert [r.user_id for r in resolution.recipients] == ["P", "D1", "D2"]

    def test_threshold_is_configurable(self, lookup):
        resolver = RecipientResolver(lookup, doctor_threshold=Severity.MEDIUM)
        assert resolver.requires_doctor(Severity.MEDIUM)
        assert not resolver.requires_doctor(Severity.LOW)
