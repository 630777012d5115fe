"""Alert lifecycle manager.

Owns every alert state change:

    OPEN --resolve(actor)--> RESOLVED

Creation (rule-triggered or manual) and resolution each emit exactly one
change-log entry. Audit writes are best effort: a failure is logged and the
state change stands.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable

from common.alert_store import (
    Alert,
    AlertRecipient,
    AlertStatus,
    AlertStore,
    ChangeLogEntry,
    ChangeOperation,
    DeliveryStatus,
    Severity,
)

from .clinical_client import ClinicalDataProvider
from .deduplicator import Deduplicator
from .errors import ConflictError, NotFoundError, ValidationError
from .models import CandidateAlert
from .notifiers import BaseNotifier
from .recipients import RecipientResolver
from .rules import RuleCatalog

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
MANUAL_CONTEXT = "manual"
ALERT_ENTITY = "alert"


class AuditSink(ABC):
    """External collaborator that persists change-log entries."""

    @abstractmethod
    def record(self, entry: ChangeLogEntry):
        pass


class AlertLifecycleManager:
    """Creates and resolves alerts."""

    def __init__(
        self,
        store: AlertStore,
        catalog: RuleCatalog,
        resolver: RecipientResolver,
        deduplicator: Deduplicator,
        audit_sink: AuditSink,
        provider: ClinicalDataProvider | None = None,
        notifier: BaseNotifier | None = None,
        clock: Callable[[], datetime] = datetime.now,
        call_provider: Callable[..., Any] | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.resolver = resolver
        self.deduplicator = deduplicator
        self.audit_sink = audit_sink
        self.provider = provider
        self.notifier = notifier
        self.clock = clock
        # Unbounded unless the engine supplies its timeout-bounded caller
        self.call_provider = call_provider or (lambda func, *args: func(*args))

    # Creation

    def create_from_candidate(
        self,
        candidate: CandidateAlert,
        actor: str = SYSTEM_ACTOR,
        note: str | None = None,
    ) -> Alert:
        """Persist a deduplicated candidate as a new open alert.

        Recipients are resolved once, here, and stored with the alert.

        Raises:
            ConflictError: If storage already holds an open alert for the
                same patient/type/context
        """
        resolution = self.resolver.resolve(candidate.patient_id, candidate.severity)

        alert_id = self.store.generate_id()
        alert = Alert(
            id=alert_id,
            patient_id=candidate.patient_id,
            alert_type=candidate.alert_type,
            severity=candidate.severity,
            context_key=candidate.context_key,
            status=AlertStatus.OPEN,
            rule_id=candidate.rule_id,
            window_start=candidate.window_start,
            window_end=candidate.window_end,
            summary=candidate.summary,
            details=candidate.details,
            note=note,
            created_at=candidate.detected_at,
            created_by=actor,
            recipient_warning=resolution.warning,
            recipients=[
                AlertRecipient(
                    id=self.store.generate_id(),
                    alert_id=alert_id,
                    user_id=r.user_id,
                    role=r.role,
                )
                for r in resolution.recipients
            ],
        )

        try:
            self.store.save_alert(alert)
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Open {candidate.alert_type} alert already exists for patient "
                f"{candidate.patient_id} ({candidate.context_key})"
            ) from e

        self._audit(ChangeLogEntry(
            actor=actor,
            entity_type=ALERT_ENTITY,
            entity_id=alert.id,
            operation=ChangeOperation.CREATED,
            before=None,
            after=alert.snapshot(),
            timestamp=self.clock(),
        ))

        if alert.recipient_warning:
            logger.warning(f"Alert {alert.id} created with recipient warning: {alert.recipient_warning}")

        self._notify(alert)
        return alert

    def create_manual_alert(
        self,
        patient_id: str,
        alert_type: str,
        severity: Severity | str | None,
        note: str | None,
        actor_id: str,
    ) -> Alert:
        """Create an alert entered by a clinician.

        Input is fully validated before anything is written: a rejected
        request leaves no alert and no change-log entry.

        Raises:
            ValidationError: Unknown alert type, bad severity, missing actor
            NotFoundError: Unknown patient
            TransientProviderError: The patient lookup timed out or failed
            ConflictError: A manual alert of this type is already open
        """
        if not actor_id:
            raise ValidationError("actor_id is required")
        if not patient_id:
            raise ValidationError("patient_id is required")

        registered = self.catalog.get_alert_type(alert_type)
        if registered is None:
            raise ValidationError(f"Unknown alert type: {alert_type!r}")

        if severity is None:
            parsed_severity = registered.default_severity
        else:
            try:
                parsed_severity = Severity.parse(severity)
            except ValueError as e:
                raise ValidationError(f"Unknown severity: {severity!r}") from e

        if self.provider is not None and not self.call_provider(
            self.provider.patient_exists, patient_id
        ):
            raise NotFoundError(f"Unknown patient: {patient_id}")

        now = self.clock()
        candidate = CandidateAlert(
            patient_id=patient_id,
            alert_type=registered.id,
            severity=parsed_severity,
            context_key=MANUAL_CONTEXT,
            detected_at=now,
            summary=(note or registered.description)[:200],
        )

        open_alerts = self.store.list_open_alerts_for_patient(patient_id)
        if not self.deduplicator.filter([candidate], open_alerts).kept:
            existing = next(
                (a.id for a in open_alerts
                 if a.alert_type == registered.id and a.context_key == MANUAL_CONTEXT),
                None,
            )
            raise ConflictError(
                f"Open manual {registered.id} alert already exists for patient {patient_id}",
                alert_id=existing,
            )

        alert = self.create_from_candidate(candidate, actor=actor_id, note=note)
        logger.info(f"Manual alert {alert.id} created by {actor_id} for patient {patient_id}")
        return alert

    # Resolution

    def resolve_alert(self, alert_recipient_id: str, actor_id: str) -> Alert:
        """Resolve the alert behind a recipient record.

        Resolving the alert resolves every one of its recipient records.

        Raises:
            NotFoundError: Unknown recipient record
            ConflictError: The alert is already resolved
        """
        recipient = self.store.get_recipient(alert_recipient_id)
        if recipient is None:
            raise NotFoundError(f"Unknown alert recipient: {alert_recipient_id}")
        return self.resolve_alert_by_id(recipient.alert_id, actor_id)

    def resolve_alert_by_id(self, alert_id: str, actor_id: str) -> Alert:
        """Resolve an alert by its own ID.

        Raises:
            ValidationError: Missing actor
            NotFoundError: Unknown alert
            ConflictError: The alert is already resolved
        """
        if not actor_id:
            raise ValidationError("actor_id is required")

        alert = self.store.get_alert(alert_id)
        if alert is None:
            raise NotFoundError(f"Unknown alert: {alert_id}")

        if not alert.status.can_transition_to(AlertStatus.RESOLVED):
            raise ConflictError(f"Alert {alert_id} is already resolved", alert_id=alert_id)

        before = alert.snapshot()
        now = self.clock()

        # Conditional update: only one concurrent caller wins
        if not self.store.resolve(alert_id, resolved_by=actor_id, resolved_at=now):
            raise ConflictError(f"Alert {alert_id} is already resolved", alert_id=alert_id)

        resolved = self.store.get_alert(alert_id)

        self._audit(ChangeLogEntry(
            actor=actor_id,
            entity_type=ALERT_ENTITY,
            entity_id=alert_id,
            operation=ChangeOperation.RESOLVED,
            before=before,
            after=resolved.snapshot(),
            timestamp=now,
        ))
        return resolved

    # Queries

    def list_open_alerts(self, user_id: str) -> list[Alert]:
        """Open alerts on which the user is a recipient."""
        return self.store.list_alerts_for_user(user_id, status=AlertStatus.OPEN)

    def list_all_alerts(self, user_id: str) -> list[Alert]:
        """Every alert on which the user is a recipient."""
        return self.store.list_alerts_for_user(user_id)

    # Collaborators

    def _audit(self, entry: ChangeLogEntry) -> None:
        try:
            self.audit_sink.record(entry)
        except Exception:
            logger.exception(
                f"Failed to record change log for {entry.entity_type} {entry.entity_id} "
                f"({entry.operation.value})"
            )

    def _notify(self, alert: Alert) -> None:
        if self.notifier is None:
            return

        for recipient in alert.recipients:
            try:
                sent = self.notifier.send_alert(alert, recipient)
            except Exception as e:
                logger.error(f"Notification hand-off failed for {recipient.user_id} on alert {alert.id}: {e}")
                sent = False

            status = DeliveryStatus.SENT if sent else DeliveryStatus.FAILED
            recipient.delivery_status = status
            self.store.update_delivery_status(recipient.id, status)
