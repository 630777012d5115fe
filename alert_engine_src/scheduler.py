"""Scan scheduler: periodic full-population alert scans.

Each active patient is evaluated in isolation on a bounded worker pool:

    Evaluator -> Deduplicator -> Lifecycle Manager (-> Recipient Resolver)

One patient's failure never blocks the others. A failed patient is counted
for the cycle and picked up again by the next cycle, never retried within
the same one.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime

from common.alert_store import AlertStore

from .clinical_client import ClinicalDataProvider, to_local_naive
from .config import config
from .deduplicator import Deduplicator
from .errors import ConflictError, TransientProviderError
from .evaluator import Evaluator
from .lifecycle import AlertLifecycleManager
from .models import PatientContext, PatientFailure, RuleDiagnostic, ScanResult

logger = logging.getLogger(__name__)


@dataclass
class PatientScanOutcome:
    """What happened for one patient in one cycle."""
    patient_id: str
    created_alert_ids: list[str] = field(default_factory=list)
    suppressed: int = 0
    recipient_warnings: int = 0
    diagnostics: list[RuleDiagnostic] = field(default_factory=list)
    failure: PatientFailure | None = None
    skipped: bool = False


class ScanScheduler:
    """Drives scan cycles over all active patients."""

    def __init__(
        self,
        provider: ClinicalDataProvider,
        evaluator: Evaluator,
        deduplicator: Deduplicator,
        lifecycle: AlertLifecycleManager,
        store: AlertStore,
        max_workers: int | None = None,
    ):
        self.provider = provider
        self.evaluator = evaluator
        self.deduplicator = deduplicator
        self.lifecycle = lifecycle
        self.store = store
        self.max_workers = max_workers or config.SCAN_MAX_WORKERS
        self._cancel = threading.Event()
        self._stop = threading.Event()
        self.cycles_run = 0
        self.total_created = 0

    def cancel(self) -> None:
        """Cancel the scan in progress; patients already started finish."""
        self._cancel.set()

    def stop(self) -> None:
        """Stop continuous mode and cancel the current scan."""
        self._stop.set()
        self._cancel.set()

    def scan_patient(self, patient: PatientContext, as_of: datetime) -> PatientScanOutcome:
        """Evaluate one patient and create any new alerts.

        Raises:
            TransientProviderError: If clinical data could not be fetched
        """
        outcome = PatientScanOutcome(patient_id=patient.patient_id)

        evaluation = self.evaluator.evaluate(patient, as_of)
        outcome.diagnostics = evaluation.diagnostics
        if not evaluation.candidates:
            return outcome

        # Explicit per-patient read; no cached alert state between scans
        open_alerts = self.store.list_open_alerts_for_patient(patient.patient_id)
        last_fired = self.store.get_last_fired(patient.patient_id)
        dedup = self.deduplicator.filter(evaluation.candidates, open_alerts, last_fired)
        outcome.suppressed = dedup.suppressed

        for candidate in dedup.kept:
            try:
                alert = self.lifecycle.create_from_candidate(candidate)
            except ConflictError as e:
                # Another worker created the same open alert first
                logger.info(f"Suppressed concurrent duplicate: {e}")
                outcome.suppressed += 1
                continue
            outcome.created_alert_ids.append(alert.id)
            if alert.has_recipient_warning:
                outcome.recipient_warnings += 1

        return outcome

    def _scan_patient_isolated(self, patient: PatientContext, as_of: datetime) -> PatientScanOutcome:
        if self._cancel.is_set():
            return PatientScanOutcome(patient_id=patient.patient_id, skipped=True)

        try:
            return self.scan_patient(patient, as_of)
        except TransientProviderError as e:
            logger.warning(f"Patient {patient.patient_id}: clinical data unavailable: {e}")
            return PatientScanOutcome(
                patient_id=patient.patient_id,
                failure=PatientFailure(patient.patient_id, str(e), transient=True),
            )
        except Exception as e:
            logger.exception(f"Patient {patient.patient_id}: evaluation failed")
            return PatientScanOutcome(
                patient_id=patient.patient_id,
                failure=PatientFailure(patient.patient_id, f"{type(e).__name__}: {e}"),
            )

    def run_scan_cycle(self, as_of: datetime | None = None) -> ScanResult:
        """
        Run a single scan over all active patients.

        An aware ``as_of`` is converted to naive local time, matching the
        timestamps the clinical provider returns.

        Returns:
            ScanResult with counts of created, suppressed and failed
        """
        as_of = to_local_naive(as_of) if as_of else datetime.now()
        result = ScanResult(as_of=as_of)

        try:
            try:
                patients = self.evaluator.call_provider(self.provider.list_active_patients)
            except Exception as e:
                logger.error(f"Could not list active patients: {e}")
                result.error = str(e)
                return result

            logger.info(f"Scanning {len(patients)} patient(s) as of {as_of.isoformat()}")

            with ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="scan",
            ) as pool:
                futures = [
                    pool.submit(self._scan_patient_isolated, patient, as_of)
                    for patient in patients
                ]
                for future in as_completed(futures):
                    self._merge(result, future.result())

            result.cancelled = self._cancel.is_set()
        finally:
            self._cancel.clear()
            result.finished_at = datetime.now()

        self.cycles_run += 1
        self.total_created += result.created

        logger.info(
            f"Scan complete: {result.created} created, {result.suppressed} suppressed, "
            f"{result.failed} failed, {result.rule_failures} rule failure(s)"
            + (f", cancelled with {result.patients_skipped} patient(s) skipped" if result.cancelled else "")
        )
        return result

    @staticmethod
    def _merge(result: ScanResult, outcome: PatientScanOutcome) -> None:
        if outcome.skipped:
            result.patients_skipped += 1
            return

        result.patients_scanned += 1
        result.diagnostics.extend(outcome.diagnostics)
        result.rule_failures += len(outcome.diagnostics)

        if outcome.failure is not None:
            result.failed += 1
            result.failures.append(outcome.failure)
            return

        result.created += len(outcome.created_alert_ids)
        result.created_alert_ids.extend(outcome.created_alert_ids)
        result.suppressed += outcome.suppressed
        result.recipient_warnings += outcome.recipient_warnings

    def run_continuous(self, interval_seconds: int | None = None) -> None:
        """
        Run scan cycles on a fixed interval until stopped or interrupted.

        Args:
            interval_seconds: Seconds between cycle starts (default from config)
        """
        interval = interval_seconds or config.SCAN_INTERVAL_SECONDS

        print("=" * 60)
        print("Alert & Monitoring Engine - Starting")
        print("=" * 60)
        print(f"  Scan Interval: {interval} seconds")
        print(f"  Workers:       {self.max_workers}")
        print("=" * 60)
        print("\nPress Ctrl+C to stop\n")

        try:
            while not self._stop.is_set():
                started = time.monotonic()
                try:
                    self.run_scan_cycle()
                except Exception as e:
                    logger.error(f"Error during scan cycle: {e}")

                remaining = interval - (time.monotonic() - started)
                if remaining > 0:
                    self._stop.wait(remaining)
        except KeyboardInterrupt:
            print("\n\nScheduler stopped by user")
            self.cancel()

        print(f"Cycles run: {self.cycles_run}, total alerts created: {self.total_created}")
