"""AlertEngine: the operations exposed to the transport layer."""

import logging
from datetime import datetime

from common.alert_store import Alert, AlertStore, ChangeLogStore, Severity

from .clinical_client import ClinicalDataProvider, get_clinical_provider
from .config import config
from .deduplicator import Deduplicator
from .evaluator import Evaluator
from .lifecycle import AlertLifecycleManager, AuditSink
from .models import ScanResult
from .notifiers import BaseNotifier
from .recipients import RecipientResolver
from .rules import RuleCatalog, build_default_catalog
from .scheduler import ScanScheduler

logger = logging.getLogger(__name__)


class AlertEngine:
    """Wires the engine components together and exposes its operations."""

    def __init__(
        self,
        provider: ClinicalDataProvider,
        store: AlertStore,
        audit_sink: AuditSink | ChangeLogStore,
        catalog: RuleCatalog | None = None,
        notifier: BaseNotifier | None = None,
        max_workers: int | None = None,
        provider_timeout: float | None = None,
        doctor_threshold: Severity | str | None = None,
    ):
        self.provider = provider
        self.store = store
        self.audit_sink = audit_sink
        self.catalog = catalog or build_default_catalog()

        self.evaluator = Evaluator(self.catalog, provider, timeout=provider_timeout)
        self.deduplicator = Deduplicator.from_catalog(self.catalog)
        self.resolver = RecipientResolver(
            lambda patient_id: self.evaluator.call_provider(
                provider.get_assigned_doctors, patient_id
            ),
            doctor_threshold=doctor_threshold,
        )
        self.lifecycle = AlertLifecycleManager(
            store=store,
            catalog=self.catalog,
            resolver=self.resolver,
            deduplicator=self.deduplicator,
            audit_sink=audit_sink,
            provider=provider,
            notifier=notifier,
            call_provider=self.evaluator.call_provider,
        )
        self.scheduler = ScanScheduler(
            provider=provider,
            evaluator=self.evaluator,
            deduplicator=self.deduplicator,
            lifecycle=self.lifecycle,
            store=store,
            max_workers=max_workers,
        )

    @classmethod
    def from_config(
        cls,
        db_path: str | None = None,
        notifier: BaseNotifier | None = None,
        max_workers: int | None = None,
    ) -> "AlertEngine":
        """Build an engine from environment configuration.

        Raises:
            DataIntegrityError: If a rule definition is invalid
        """
        db_path = db_path or config.ALERT_DB_PATH
        return cls(
            provider=get_clinical_provider(),
            store=AlertStore(db_path=db_path),
            audit_sink=ChangeLogStore(db_path=db_path),
            catalog=build_default_catalog(config),
            notifier=notifier,
            max_workers=max_workers,
        )

    def create_manual_alert(
        self,
        patient_id: str,
        alert_type: str,
        severity: Severity | str | None,
        note: str | None,
        actor_id: str,
    ) -> Alert:
        return self.lifecycle.create_manual_alert(patient_id, alert_type, severity, note, actor_id)

    def list_open_alerts(self, user_id: str) -> list[Alert]:
        return self.lifecycle.list_open_alerts(user_id)

    def list_all_alerts(self, user_id: str) -> list[Alert]:
        return self.lifecycle.list_all_alerts(user_id)

    def resolve_alert(self, alert_recipient_id: str, actor_id: str) -> Alert:
        return self.lifecycle.resolve_alert(alert_recipient_id, actor_id)

    def run_scan_cycle(self, as_of: datetime | None = None) -> ScanResult:
        return self.scheduler.run_scan_cycle(as_of)

    def close(self) -> None:
        self.scheduler.stop()
        self.evaluator.close()
