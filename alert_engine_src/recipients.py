"""Recipient resolver: decides who must see an alert."""

import logging
from typing import Callable

from common.alert_store import RecipientRole, Severity

from .config import config
from .models import Recipient, RecipientResolution

logger = logging.getLogger(__name__)

NO_DOCTOR_WARNING = "no_assigned_doctor"
LOOKUP_FAILED_WARNING = "doctor_lookup_failed"


class RecipientResolver:
    """Maps severity to recipient roles and identities.

    Severities below ``doctor_threshold`` reach the patient only; at or above
    it the assigned doctors are added. When a doctor is required but none can
    be resolved the patient still receives the alert and the resolution
    carries a warning.

    Args:
        doctor_lookup: Callable returning assigned doctor user IDs for a patient
        doctor_threshold: Lowest severity that includes doctors
    """

    def __init__(
        self,
        doctor_lookup: Callable[[str], list[str]],
        doctor_threshold: Severity | str | None = None,
    ):
        self.doctor_lookup = doctor_lookup
        self.doctor_threshold = Severity.parse(doctor_threshold or config.DOCTOR_SEVERITY_THRESHOLD)

    def requires_doctor(self, severity: Severity) -> bool:
        return severity >= self.doctor_threshold

    def resolve(self, patient_id: str, severity: Severity) -> RecipientResolution:
        recipients = [Recipient(user_id=patient_id, role=RecipientRole.PATIENT)]

        if not self.requires_doctor(severity):
            return RecipientResolution(recipients=recipients)

        try:
            doctor_ids = self.doctor_lookup(patient_id)
        except Exception as e:
            logger.error(f"Doctor lookup failed for patient {patient_id}: {e}")
            return RecipientResolution(recipients=recipients, warning=LOOKUP_FAILED_WARNING)

        seen = {patient_id}
        for doctor_id in doctor_ids or []:
            if doctor_id in seen:
                continue
            seen.add(doctor_id)
            recipients.append(Recipient(user_id=doctor_id, role=RecipientRole.DOCTOR))

        if len(recipients) == 1:
            logger.warning(
                f"Patient {patient_id} has no assigned doctor for a {severity.value} alert"
            )
            return RecipientResolution(recipients=recipients, warning=NO_DOCTOR_WARNING)

        return RecipientResolution(recipients=recipients)
