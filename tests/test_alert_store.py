"""Tests for the SQLite alert store and change log."""

import sqlite3
from datetime import timedelta

import pytest

from common.alert_store import (
    Alert,
    AlertRecipient,
    AlertStatus,
    ChangeLogEntry,
    ChangeOperation,
    DeliveryStatus,
    RecipientRole,
    Severity,
)

from conftest import AS_OF


def make_alert(store, patient_id="P", context="measurement:m1", rule_id="hyperglycemia_streak",
               created_at=AS_OF, doctors=("D",)):
    alert_id = store.generate_id()
    users = [(patient_id, RecipientRole.PATIENT)] + [(d, RecipientRole.DOCTOR) for d in doctors]
    return Alert(
        id=alert_id,
        patient_id=patient_id,
        alert_type="hyperglycemia",
        severity=Severity.HIGH,
        context_key=context,
        rule_id=rule_id,
        summary="3 readings above 180",
        details={"measurement_ids": ["m1", "m2", "m3"]},
        created_at=created_at,
        recipients=[
            AlertRecipient(id=store.generate_id(), alert_id=alert_id, user_id=user, role=role)
            for user, role in users
        ],
    )


class TestAlertStore:
    """Test alert persistence."""

    def test_save_and_get(self, store):
        alert = store.save_alert(make_alert(store))
        loaded = store.get_alert(alert.id)

        assert loaded.patient_id == "P"
        assert loaded.severity == Severity.HIGH
        assert loaded.status == AlertStatus.OPEN
        assert loaded.details == {"measurement_ids": ["m1", "m2", "m3"]}
        assert loaded.created_at == AS_OF
        assert {r.user_id for r in loaded.recipients} == {"P", "D"}

    def test_get_unknown_returns_none(self, store):
        assert store.get_alert("missing") is None
        assert store.get_recipient("missing") is None

    def test_second_open_alert_same_context_rejected(self, store):
        store.save_alert(make_alert(store))
        with pytest.raises(sqlite3.IntegrityError):
            store.save_alert(make_alert(store))

    def test_rejected_insert_leaves_no_recipients(self, store):
        store.save_alert(make_alert(store))
        duplicate = make_alert(store)
        with pytest.raises(sqlite3.IntegrityError):
            store.save_alert(duplicate)
        assert store.get_recipient(duplicate.recipients[0].id) is None

    def test_same_context_allowed_after_resolution(self, store):
        first = store.save_alert(make_alert(store))
        assert store.resolve(first.id, resolved_by="D")
        store.save_alert(make_alert(store))
        assert len(store.list_alerts(patient_id="P")) == 2

    def test_resolve_is_conditional(self, store):
        alert = store.save_alert(make_alert(store))
        assert store.resolve(alert.id, resolved_by="D", resolved_at=AS_OF) is True
        assert store.resolve(alert.id, resolved_by="P") is False

        loaded = store.get_alert(alert.id)
        assert loaded.resolved_by == "D"
        assert loaded.resolved_at == AS_OF
        assert all(r.delivery_status == DeliveryStatus.RESOLVED for r in loaded.recipients)
        assert all(r.resolved_at == AS_OF for r in loaded.recipients)

    def test_update_delivery_status(self, store):
        alert = store.save_alert(make_alert(store))
        recipient = alert.recipients[0]

        assert store.update_delivery_status(recipient.id, DeliveryStatus.SENT)
        assert store.get_recipient(recipient.id).delivery_status == DeliveryStatus.SENT

    def test_delivery_status_frozen_after_resolution(self, store):
        alert = store.save_alert(make_alert(store))
        store.resolve(alert.id, resolved_by="D")
        assert not store.update_delivery_status(alert.recipients[0].id, DeliveryStatus.FAILED)

    def test_list_alerts_for_user(self, store):
        store.save_alert(make_alert(store, patient_id="P1", doctors=("D",)))
        store.save_alert(make_alert(store, patient_id="P2", doctors=()))
        resolved = store.save_alert(make_alert(store, patient_id="P3", doctors=("D",)))
        store.resolve(resolved.id, resolved_by="D")

        assert {a.patient_id for a in store.list_alerts_for_user("D")} == {"P1", "P3"}
        assert {
            a.patient_id for a in store.list_alerts_for_user("D", status=AlertStatus.OPEN)
        } == {"P1"}
        assert store.list_alerts_for_user("P2")[0].recipients[0].user_id == "P2"
        assert store.list_alerts_for_user("nobody") == []

    def test_last_fired_includes_resolved(self, store):
        older = store.save_alert(
            make_alert(store, context="measurement:m1", created_at=AS_OF - timedelta(hours=5))
        )
        store.resolve(older.id, resolved_by="D")
        store.save_alert(make_alert(store, context="measurement:m2", created_at=AS_OF - timedelta(hours=1)))

        assert store.get_last_fired("P") == {"hyperglycemia_streak": AS_OF - timedelta(hours=1)}

    def test_last_fired_ignores_manual_alerts(self, store):
        store.save_alert(make_alert(store, context="manual", rule_id=None))
        assert store.get_last_fired("P") == {}

    def test_stats(self, store):
        store.save_alert(make_alert(store, patient_id="P1"))
        store.save_alert(make_alert(store, patient_id="P2"))

        stats = store.get_stats()
        assert stats["total"] == 2
        assert stats["status_open"] == 2
        assert stats["open_high"] == 2


class TestChangeLogStore:
    """Test the audit trail."""

    def test_record_and_read_back(self, changelog):
        entry = ChangeLogEntry(
            actor="D",
            entity_type="alert",
            entity_id="a1",
            operation=ChangeOperation.RESOLVED,
            before={"status": "open"},
            after={"status": "resolved"},
            timestamp=AS_OF,
        )
        entry_id = changelog.record(entry)

        entries = changelog.get_entries("a1")
        assert len(entries) == 1
        assert entries[0].id == entry_id
        assert entries[0].operation == ChangeOperation.RESOLVED
        assert entries[0].before == {"status": "open"}
        assert entries[0].after == {"status": "resolved"}
        assert entries[0].timestamp == AS_OF

    def test_creation_has_no_before_state(self, changelog):
        changelog.record(ChangeLogEntry(
            actor="system",
            entity_type="alert",
            entity_id="a1",
            operation=ChangeOperation.CREATED,
            before=None,
            after={"status": "open"},
        ))
        assert changelog.get_entries("a1")[0].before is None
        assert changelog.count() == 1
