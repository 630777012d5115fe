"""SQLite-backed change log for alert state transitions."""

import json
import logging

from .models import ChangeLogEntry
from .store import SQLiteStore

logger = logging.getLogger(__name__)


class ChangeLogStore(SQLiteStore):
    """Append-only audit trail. Shares the alert database by default."""

    def record(self, entry: ChangeLogEntry) -> int:
        """Persist a change-log entry and return its row ID."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO change_log (
                    actor, entity_type, entity_id, operation,
                    before_state, after_state, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.actor,
                    entry.entity_type,
                    entry.entity_id,
                    entry.operation.value,
                    json.dumps(entry.before) if entry.before is not None else None,
                    json.dumps(entry.after) if entry.after is not None else None,
                    entry.timestamp.isoformat(),
                )
            )
            entry.id = cursor.lastrowid

        logger.debug(
            f"Change log: {entry.operation.value} {entry.entity_type}/{entry.entity_id} by {entry.actor}"
        )
        return entry.id

    def get_entries(self, entity_id: str, entity_type: str = "alert") -> list[ChangeLogEntry]:
        """Get the audit history for one entity, oldest first."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                SELECT id, actor, entity_type, entity_id, operation,
                       before_state, after_state, timestamp
                FROM change_log
                WHERE entity_type = ? AND entity_id = ?
                ORDER BY id ASC
                """,
                (entity_type, entity_id)
            )
            return [ChangeLogEntry.from_row(tuple(row)) for row in cursor.fetchall()]

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM change_log").fetchone()[0]
