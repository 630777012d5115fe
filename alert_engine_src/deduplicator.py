"""Deduplicator: suppresses duplicate and cooled-down candidate alerts."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from common.alert_store import Alert

from .models import CandidateAlert

logger = logging.getLogger(__name__)


@dataclass
class DedupResult:
    """Candidates to create and how many were dropped, by reason."""
    kept: list[CandidateAlert] = field(default_factory=list)
    duplicate_open: int = 0
    cooldown: int = 0
    superseded: int = 0

    @property
    def suppressed(self) -> int:
        return self.duplicate_open + self.cooldown + self.superseded


class Deduplicator:
    """Filters candidates against open alerts and rule cooldowns.

    Args:
        cooldowns: Cooldown per rule ID. Rules without an entry have none.
    """

    def __init__(self, cooldowns: dict[str, timedelta] | None = None):
        self.cooldowns = cooldowns or {}

    @classmethod
    def from_catalog(cls, catalog) -> "Deduplicator":
        return cls({rule.rule_id: rule.cooldown for rule in catalog})

    def filter(
        self,
        candidates: Iterable[CandidateAlert],
        open_alerts: Iterable[Alert],
        last_fired: dict[str, datetime] | None = None,
    ) -> DedupResult:
        """Drop candidates that would duplicate or re-fire too soon.

        Args:
            candidates: Candidates for a single patient
            open_alerts: That patient's currently open alerts
            last_fired: Most recent creation time per rule ID for the patient,
                resolved alerts included

        Returns:
            DedupResult with the surviving candidates
        """
        last_fired = last_fired or {}
        result = DedupResult()

        # Same (patient, type, context) within one run: highest severity wins
        best: dict[tuple[str, str, str], CandidateAlert] = {}
        for candidate in candidates:
            current = best.get(candidate.dedup_key)
            if current is None:
                best[candidate.dedup_key] = candidate
                continue
            result.superseded += 1
            if candidate.severity > current.severity:
                best[candidate.dedup_key] = candidate

        open_keys = {
            (alert.patient_id, alert.alert_type, alert.context_key)
            for alert in open_alerts
            if alert.is_open
        }

        for key, candidate in best.items():
            if key in open_keys:
                result.duplicate_open += 1
                logger.debug(f"Suppressed {key}: open alert exists")
                continue

            if self._in_cooldown(candidate, last_fired):
                result.cooldown += 1
                logger.debug(f"Suppressed {key}: rule {candidate.rule_id} in cooldown")
                continue

            result.kept.append(candidate)

        return result

    def _in_cooldown(self, candidate: CandidateAlert, last_fired: dict[str, datetime]) -> bool:
        if candidate.rule_id is None:
            return False
        cooldown = self.cooldowns.get(candidate.rule_id)
        fired_at = last_fired.get(candidate.rule_id)
        if not cooldown or fired_at is None:
            return False
        return candidate.detected_at - fired_at < cooldown
