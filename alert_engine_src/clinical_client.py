"""Clinical data provider for the alert engine.

Read-only access to a patient's measurements, intakes, schedules and
symptoms within a time window, plus the patient-doctor assignment lookup.
Every method returns an empty list (never None) when no data exists.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import requests

from .config import config
from .errors import TransientProviderError
from .models import Intake, Measurement, PatientContext, ScheduledDose, Symptom

logger = logging.getLogger(__name__)


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware timestamp to naive local time; naive values pass through."""
    # Store comparisons use naive local timestamps
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return to_local_naive(datetime.fromisoformat(value.replace("Z", "+00:00")))


class ClinicalDataProvider(ABC):
    """Abstract clinical data provider - implement for different backends."""

    @abstractmethod
    def list_active_patients(self) -> list[PatientContext]:
        """Patients to include in a full scan."""
        pass

    @abstractmethod
    def patient_exists(self, patient_id: str) -> bool:
        pass

    @abstractmethod
    def get_measurements(self, patient_id: str, start: datetime, end: datetime) -> list[Measurement]:
        pass

    @abstractmethod
    def get_intakes(self, patient_id: str, start: datetime, end: datetime) -> list[Intake]:
        pass

    @abstractmethod
    def get_schedules(self, patient_id: str, start: datetime, end: datetime) -> list[ScheduledDose]:
        pass

    @abstractmethod
    def get_symptoms(self, patient_id: str, start: datetime, end: datetime) -> list[Symptom]:
        pass

    @abstractmethod
    def get_assigned_doctors(self, patient_id: str) -> list[str]:
        """User IDs of the doctors assigned to a patient."""
        pass


class HTTPClinicalDataProvider(ClinicalDataProvider):
    """Client for the clinical records REST service.

    Every request carries a timeout. Timeouts, connection failures and 5xx
    responses raise TransientProviderError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or config.CLINICAL_API_BASE_URL).rstrip("/")
        self.timeout = timeout or config.PROVIDER_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        token = token or config.CLINICAL_API_TOKEN
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def get(self, path: str, params: dict | None = None) -> Any:
        """GET request to the clinical service. Returns None on 404."""
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransientProviderError(f"Timed out after {self.timeout}s: GET {path}") from e
        except requests.ConnectionError as e:
            raise TransientProviderError(f"Clinical service unavailable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 500:
            raise TransientProviderError(f"Clinical service error {response.status_code}: GET {path}")
        response.raise_for_status()
        return response.json()

    def _get_list(self, path: str, params: dict | None = None) -> list[dict]:
        data = self.get(path, params)
        if not data:
            return []
        if isinstance(data, dict):
            return data.get("items", [])
        return data

    @staticmethod
    def _window_params(start: datetime, end: datetime) -> dict:
        return {"from": start.isoformat(), "to": end.isoformat()}

    def list_active_patients(self) -> list[PatientContext]:
        return [
            PatientContext(
                patient_id=str(item["id"]),
                tags=frozenset(item.get("tags", [])),
            )
            for item in self._get_list("patients", {"status": "active"})
        ]

    def patient_exists(self, patient_id: str) -> bool:
        return self.get(f"patients/{patient_id}") is not None

    def get_measurements(self, patient_id: str, start: datetime, end: datetime) -> list[Measurement]:
        items = self._get_list(
            f"patients/{patient_id}/measurements", self._window_params(start, end)
        )
        return [
            Measurement(
                id=str(item["id"]),
                patient_id=patient_id,
                taken_at=_parse_datetime(item["taken_at"]),
                value=float(item["value"]) if item.get("value") is not None else None,
                unit=item.get("unit", "mg/dL"),
            )
            for item in items
        ]

    def get_intakes(self, patient_id: str, start: datetime, end: datetime) -> list[Intake]:
        items = self._get_list(
            f"patients/{patient_id}/intakes", self._window_params(start, end)
        )
        return [
            Intake(
                id=str(item["id"]),
                patient_id=patient_id,
                medication=item.get("medication", ""),
                taken_at=_parse_datetime(item["taken_at"]),
                schedule_id=str(item["schedule_id"]) if item.get("schedule_id") else None,
            )
            for item in items
        ]

    def get_schedules(self, patient_id: str, start: datetime, end: datetime) -> list[ScheduledDose]:
        items = self._get_list(
            f"patients/{patient_id}/schedules", self._window_params(start, end)
        )
        return [
            ScheduledDose(
                id=str(item["id"]),
                patient_id=patient_id,
                medication=item.get("medication", ""),
                due_at=_parse_datetime(item["due_at"]),
                therapy_id=str(item["therapy_id"]) if item.get("therapy_id") else None,
            )
            for item in items
        ]

    def get_symptoms(self, patient_id: str, start: datetime, end: datetime) -> list[Symptom]:
        items = self._get_list(
            f"patients/{patient_id}/symptoms", self._window_params(start, end)
        )
        return [
            Symptom(
                id=str(item["id"]),
                patient_id=patient_id,
                name=item.get("name", ""),
                reported_at=_parse_datetime(item["reported_at"]),
                intensity=int(item["intensity"]) if item.get("intensity") is not None else None,
                notes=item.get("notes", ""),
            )
            for item in items
        ]

    def get_assigned_doctors(self, patient_id: str) -> list[str]:
        return [str(item["id"]) for item in self._get_list(f"patients/{patient_id}/doctors")]


class InMemoryClinicalDataProvider(ClinicalDataProvider):
    """Dictionary-backed provider for local runs and tests."""

    def __init__(self):
        self.patients: dict[str, PatientContext] = {}
        self.measurements: dict[str, list[Measurement]] = {}
        self.intakes: dict[str, list[Intake]] = {}
        self.schedules: dict[str, list[ScheduledDose]] = {}
        self.symptoms: dict[str, list[Symptom]] = {}
        self.doctors: dict[str, list[str]] = {}

    def add_patient(self, patient_id: str, tags=(), doctors=()) -> PatientContext:
        patient = PatientContext(patient_id=patient_id, tags=frozenset(tags))
        self.patients[patient_id] = patient
        self.doctors[patient_id] = list(doctors)
        return patient

    def add_measurement(self, measurement: Measurement) -> None:
        self.measurements.setdefault(measurement.patient_id, []).append(measurement)

    def add_intake(self, intake: Intake) -> None:
        self.intakes.setdefault(intake.patient_id, []).append(intake)

    def add_schedule(self, dose: ScheduledDose) -> None:
        self.schedules.setdefault(dose.patient_id, []).append(dose)

    def add_symptom(self, symptom: Symptom) -> None:
        self.symptoms.setdefault(symptom.patient_id, []).append(symptom)

    def list_active_patients(self) -> list[PatientContext]:
        return list(self.patients.values())

    def patient_exists(self, patient_id: str) -> bool:
        return patient_id in self.patients

    def get_measurements(self, patient_id, start, end):
        return [m for m in self.measurements.get(patient_id, []) if start <= m.taken_at <= end]

    def get_intakes(self, patient_id, start, end):
        return [i for i in self.intakes.get(patient_id, []) if start <= i.taken_at <= end]

    def get_schedules(self, patient_id, start, end):
        return [s for s in self.schedules.get(patient_id, []) if start <= s.due_at <= end]

    def get_symptoms(self, patient_id, start, end):
        return [s for s in self.symptoms.get(patient_id, []) if start <= s.reported_at <= end]

    def get_assigned_doctors(self, patient_id):
        return list(self.doctors.get(patient_id, []))


def get_clinical_provider() -> ClinicalDataProvider:
    """Factory function to get the configured clinical data provider."""
    logger.info(f"Using clinical service at {config.CLINICAL_API_BASE_URL}")
    return HTTPClinicalDataProvider()
