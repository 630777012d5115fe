"""Evaluator: runs the applicable rules for one patient."""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Callable

from .clinical_client import ClinicalDataProvider
from .config import config
from .errors import TransientProviderError
from .models import (
    CandidateAlert,
    ClinicalWindow,
    DataKind,
    EvaluationResult,
    PatientContext,
    RuleDiagnostic,
)
from .rules import AlertRule, RuleCatalog

logger = logging.getLogger(__name__)


class Evaluator:
    """Produces candidate alerts for one patient from the rule catalog.

    Clinical data is fetched per rule window and memoised for the duration
    of one ``evaluate`` call. A rule that raises is recorded as a
    RuleDiagnostic and the remaining rules still run. Provider timeouts and
    outages raise TransientProviderError to the caller.
    """

    def __init__(
        self,
        catalog: RuleCatalog,
        provider: ClinicalDataProvider,
        timeout: float | None = None,
        io_workers: int | None = None,
    ):
        self.catalog = catalog
        self.provider = provider
        self.timeout = timeout or config.PROVIDER_TIMEOUT_SECONDS
        self._io = ThreadPoolExecutor(
            max_workers=io_workers or max(4, config.SCAN_MAX_WORKERS * 2),
            thread_name_prefix="clinical-io",
        )
        self._fetchers: dict[DataKind, str] = {
            DataKind.MEASUREMENTS: "get_measurements",
            DataKind.INTAKES: "get_intakes",
            DataKind.SCHEDULES: "get_schedules",
            DataKind.SYMPTOMS: "get_symptoms",
        }

    def call_provider(self, func: Callable, *args):
        """Call a provider method, bounded by the configured timeout.

        A call that overruns is abandoned (provider calls are read-only) and
        reported as TransientProviderError.
        """
        future = self._io.submit(func, *args)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError as e:
            future.cancel()
            raise TransientProviderError(
                f"{getattr(func, '__name__', 'provider call')} timed out after {self.timeout}s"
            ) from e

    def _fetch(
        self,
        kind: DataKind,
        patient_id: str,
        start: datetime,
        end: datetime,
        cache: dict,
    ) -> list:
        key = (kind, start, end)
        if key not in cache:
            result = self.call_provider(
                getattr(self.provider, self._fetchers[kind]), patient_id, start, end
            )
            cache[key] = list(result or [])
        return cache[key]

    def _build_window(
        self,
        rule: AlertRule,
        patient_id: str,
        as_of: datetime,
        cache: dict,
    ) -> ClinicalWindow:
        start, end = rule.window_bounds(as_of)
        window = ClinicalWindow(patient_id=patient_id, start=start, end=end)
        for kind in rule.required_data:
            fetch_start, fetch_end = rule.data_bounds(kind, as_of)
            setattr(
                window, kind.value,
                self._fetch(kind, patient_id, fetch_start, fetch_end, cache),
            )
        return window

    def evaluate(self, patient: PatientContext | str, as_of: datetime) -> EvaluationResult:
        """Evaluate every applicable rule for a patient at ``as_of``.

        Raises:
            TransientProviderError: If clinical data could not be fetched
        """
        if isinstance(patient, str):
            patient = PatientContext(patient_id=patient)
        patient_id = patient.patient_id

        result = EvaluationResult(patient_id=patient_id)
        cache: dict = {}

        for rule in self.catalog.list_applicable_rules(patient):
            result.rules_evaluated += 1
            try:
                window = self._build_window(rule, patient_id, as_of, cache)
                outcome = rule.evaluate(window)
            except TransientProviderError:
                raise
            except Exception as e:
                logger.warning(f"Rule {rule.rule_id} failed for patient {patient_id}: {e}")
                result.diagnostics.append(RuleDiagnostic(
                    patient_id=patient_id,
                    rule_id=rule.rule_id,
                    error=f"{type(e).__name__}: {e}",
                    occurred_at=as_of,
                ))
                continue

            if outcome is None:
                continue

            result.candidates.append(CandidateAlert(
                patient_id=patient_id,
                alert_type=rule.alert_type,
                severity=outcome.severity or rule.severity,
                context_key=outcome.context_key,
                detected_at=as_of,
                rule_id=rule.rule_id,
                window_start=window.start,
                window_end=window.end,
                summary=outcome.summary,
                details=outcome.details,
            ))

        logger.debug(
            f"Patient {patient_id}: {result.rules_evaluated} rule(s), "
            f"{len(result.candidates)} candidate(s), {len(result.diagnostics)} failure(s)"
        )
        return result

    def close(self) -> None:
        self._io.shutdown(wait=False)
