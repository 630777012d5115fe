"""SQLite-backed alert storage for persistent alert tracking."""

import json
import logging
import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from .models import (
    Alert,
    AlertRecipient,
    AlertStatus,
    DeliveryStatus,
    Severity,
)

logger = logging.getLogger(__name__)

ALERT_COLUMNS = """
    id, patient_id, alert_type, rule_id, severity, context_key, status,
    window_start, window_end, summary, details, note,
    created_at, created_by, resolved_at, resolved_by, recipient_warning
"""

RECIPIENT_COLUMNS = "id, alert_id, user_id, role, delivery_status, resolved_at"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class SQLiteStore:
    """Shared connection handling for the SQLite-backed stores."""

    def __init__(self, db_path: str | None = None):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database. Defaults to ALERT_DB_PATH env var
                     or ~/.alert-engine/alerts.db
        """
        if db_path:
            self.db_path = os.path.expanduser(db_path)
        else:
            self.db_path = os.path.expanduser(
                os.environ.get("ALERT_DB_PATH", "~/.alert-engine/alerts.db")
            )

        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path) as f:
            schema = f.read()

        with self._connect() as conn:
            conn.executescript(schema)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, always close."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


class AlertStore(SQLiteStore):
    """SQLite-backed storage for managing alert lifecycle.

    Duplicate open alerts are rejected by a partial unique index on
    (patient_id, alert_type, context_key), so concurrent writers cannot both
    create the same open alert.
    """

    @staticmethod
    def generate_id() -> str:
        """Generate a unique alert or recipient ID."""
        return str(uuid.uuid4())

    # Core alert operations

    def save_alert(self, alert: Alert) -> Alert:
        """Insert a new alert together with its recipients.

        Returns:
            The stored alert

        Raises:
            sqlite3.IntegrityError: If an open alert for the same
                patient/type/context already exists
        """
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO alerts ({ALERT_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    alert.id, alert.patient_id, alert.alert_type, alert.rule_id,
                    alert.severity.value, alert.context_key, alert.status.value,
                    _iso(alert.window_start), _iso(alert.window_end),
                    alert.summary, json.dumps(alert.details) if alert.details else None,
                    alert.note, _iso(alert.created_at), alert.created_by,
                    _iso(alert.resolved_at), alert.resolved_by, alert.recipient_warning,
                )
            )
            conn.executemany(
                f"INSERT INTO alert_recipients ({RECIPIENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (
                        r.id, r.alert_id, r.user_id, r.role.value,
                        r.delivery_status.value, _iso(r.resolved_at),
                    )
                    for r in alert.recipients
                ]
            )

        logger.info(
            f"Created alert {alert.id} for {alert.patient_id} "
            f"({alert.alert_type}/{alert.context_key}, {alert.severity.value})"
        )
        return alert

    def get_alert(self, alert_id: str) -> Alert | None:
        """Get an alert by ID, recipients included."""
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {ALERT_COLUMNS} FROM alerts WHERE id = ?",
                (alert_id,)
            ).fetchone()
            if not row:
                return None
            alert = Alert.from_row(tuple(row))
            alert.recipients = self._load_recipients(conn, [alert.id]).get(alert.id, [])
            return alert

    def get_recipient(self, recipient_id: str) -> AlertRecipient | None:
        """Get a single recipient record by ID."""
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {RECIPIENT_COLUMNS} FROM alert_recipients WHERE id = ?",
                (recipient_id,)
            ).fetchone()
            return AlertRecipient.from_row(tuple(row)) if row else None

    def resolve(
        self,
        alert_id: str,
        resolved_by: str,
        resolved_at: datetime | None = None,
    ) -> bool:
        """Resolve an open alert and all of its recipient records.

        The update is conditional on the alert still being open, so of several
        concurrent callers exactly one gets True.

        Returns:
            True if this call performed the transition
        """
        resolved_at = resolved_at or datetime.now()

        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE alerts
                SET status = ?, resolved_at = ?, resolved_by = ?
                WHERE id = ? AND status = ?
                """,
                (
                    AlertStatus.RESOLVED.value,
                    resolved_at.isoformat(),
                    resolved_by,
                    alert_id,
                    AlertStatus.OPEN.value,
                )
            )

            if cursor.rowcount == 0:
                return False

            conn.execute(
                """
                UPDATE alert_recipients
                SET delivery_status = ?, resolved_at = ?
                WHERE alert_id = ?
                """,
                (DeliveryStatus.RESOLVED.value, resolved_at.isoformat(), alert_id)
            )

        logger.info(f"Alert {alert_id} resolved by {resolved_by}")
        return True

    def update_delivery_status(self, recipient_id: str, status: DeliveryStatus) -> bool:
        """Record the notification hand-off outcome for one recipient."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE alert_recipients SET delivery_status = ?
                WHERE id = ? AND resolved_at IS NULL
                """,
                (status.value, recipient_id)
            )
            return cursor.rowcount > 0

    # Query methods

    def list_open_alerts_for_patient(self, patient_id: str) -> list[Alert]:
        """List open alerts for one patient."""
        return self.list_alerts(patient_id=patient_id, status=AlertStatus.OPEN)

    def get_last_fired(self, patient_id: str) -> dict[str, datetime]:
        """Most recent creation time per rule for a patient, resolved alerts included."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                SELECT rule_id, MAX(created_at)
                FROM alerts
                WHERE patient_id = ? AND rule_id IS NOT NULL
                GROUP BY rule_id
                """,
                (patient_id,)
            )
            return {row[0]: datetime.fromisoformat(row[1]) for row in cursor.fetchall()}

    def list_alerts(
        self,
        patient_id: str | None = None,
        status: AlertStatus | None = None,
        alert_type: str | None = None,
        severity: Severity | None = None,
        limit: int = 500,
    ) -> list[Alert]:
        """List alerts with optional filters, newest first."""
        conditions = []
        params: list[Any] = []

        if patient_id:
            conditions.append("patient_id = ?")
            params.append(patient_id)

        if status:
            conditions.append("status = ?")
            params.append(status.value)

        if alert_type:
            conditions.append("alert_type = ?")
            params.append(alert_type)

        if severity:
            conditions.append("severity = ?")
            params.append(severity.value)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.append(limit)

        with self._connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {ALERT_COLUMNS}
                FROM alerts
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT ?
                """,
                params
            )
            alerts = [Alert.from_row(tuple(row)) for row in cursor.fetchall()]
            self._attach_recipients(conn, alerts)
            return alerts

    def list_alerts_for_user(
        self,
        user_id: str,
        status: AlertStatus | None = None,
    ) -> list[Alert]:
        """List alerts on which a user is a recipient."""
        params: list[Any] = [user_id]
        status_filter = ""
        if status:
            status_filter = " AND a.status = ?"
            params.append(status.value)

        columns = ", ".join(f"a.{c.strip()}" for c in ALERT_COLUMNS.split(","))

        with self._connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {columns}
                FROM alerts a
                JOIN alert_recipients r ON r.alert_id = a.id
                WHERE r.user_id = ?{status_filter}
                ORDER BY a.created_at DESC
                """,
                params
            )
            alerts = [Alert.from_row(tuple(row)) for row in cursor.fetchall()]
            self._attach_recipients(conn, alerts)
            return alerts

    def _attach_recipients(self, conn: sqlite3.Connection, alerts: list[Alert]) -> None:
        by_alert = self._load_recipients(conn, [a.id for a in alerts])
        for alert in alerts:
            alert.recipients = by_alert.get(alert.id, [])

    @staticmethod
    def _load_recipients(
        conn: sqlite3.Connection,
        alert_ids: list[str],
    ) -> dict[str, list[AlertRecipient]]:
        if not alert_ids:
            return {}
        placeholders = ",".join("?" * len(alert_ids))
        cursor = conn.execute(
            f"""
            SELECT {RECIPIENT_COLUMNS} FROM alert_recipients
            WHERE alert_id IN ({placeholders})
            ORDER BY role DESC, user_id
            """,
            alert_ids
        )
        result: dict[str, list[AlertRecipient]] = {}
        for row in cursor.fetchall():
            recipient = AlertRecipient.from_row(tuple(row))
            result.setdefault(recipient.alert_id, []).append(recipient)
        return result

    # Statistics

    def get_stats(self) -> dict[str, int]:
        """Get alert counts by status and severity."""
        with self._connect() as conn:
            stats = {}

            for row in conn.execute("SELECT status, COUNT(*) FROM alerts GROUP BY status"):
                stats[f"status_{row[0]}"] = row[1]

            for row in conn.execute(
                "SELECT severity, COUNT(*) FROM alerts WHERE status = ? GROUP BY severity",
                (AlertStatus.OPEN.value,)
            ):
                stats[f"open_{row[0]}"] = row[1]

            stats["total"] = conn.execute("SELECT COUNT(*) FROM alerts").fetchone()[0]
            stats["recipient_warnings"] = conn.execute(
                "SELECT COUNT(*) FROM alerts WHERE recipient_warning IS NOT NULL AND status = ?",
                (AlertStatus.OPEN.value,)
            ).fetchone()[0]

            return stats
