"""Configuration management for the Alert & Monitoring Engine."""

import os
from pathlib import Path
from dotenv import load_dotenv

from .rules import criteria

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    # Fall back to template for defaults
    template_path = Path(__file__).parent.parent / ".env.template"
    if template_path.exists():
        load_dotenv(template_path)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class Config:
    """Application configuration."""

    # Clinical records service
    CLINICAL_API_BASE_URL: str = os.getenv("CLINICAL_API_BASE_URL", "http://localhost:8000/api")
    CLINICAL_API_TOKEN: str | None = os.getenv("CLINICAL_API_TOKEN")
    PROVIDER_TIMEOUT_SECONDS: float = _env_float("PROVIDER_TIMEOUT_SECONDS", 10.0)

    # Alert store settings
    ALERT_DB_PATH: str | None = os.getenv("ALERT_DB_PATH")

    # Scan settings
    SCAN_INTERVAL_SECONDS: int = _env_int("SCAN_INTERVAL_SECONDS", 300)
    SCAN_MAX_WORKERS: int = _env_int("SCAN_MAX_WORKERS", 4)

    # Severity at or above which assigned doctors are notified
    DOCTOR_SEVERITY_THRESHOLD: str = os.getenv("DOCTOR_SEVERITY_THRESHOLD", "high")

    # Rule thresholds (defaults documented in rules/criteria.py)
    HYPERGLYCEMIA_THRESHOLD_MGDL: float = _env_float(
        "HYPERGLYCEMIA_THRESHOLD_MGDL", criteria.HYPERGLYCEMIA_THRESHOLD_MGDL
    )
    HYPERGLYCEMIA_CONSECUTIVE_READINGS: int = _env_int(
        "HYPERGLYCEMIA_CONSECUTIVE_READINGS", criteria.HYPERGLYCEMIA_CONSECUTIVE_READINGS
    )
    HYPERGLYCEMIA_WINDOW_HOURS: int = _env_int(
        "HYPERGLYCEMIA_WINDOW_HOURS", criteria.DAILY_RESUME_HOURS
    )
    HYPERGLYCEMIA_MAX_GAP_HOURS: float = _env_float(
        "HYPERGLYCEMIA_MAX_GAP_HOURS", criteria.HYPERGLYCEMIA_MAX_GAP_HOURS
    )
    HYPOGLYCEMIA_THRESHOLD_MGDL: float = _env_float(
        "HYPOGLYCEMIA_THRESHOLD_MGDL", criteria.HYPOGLYCEMIA_THRESHOLD_MGDL
    )
    WEEKLY_AVERAGE_THRESHOLD_MGDL: float = _env_float(
        "WEEKLY_AVERAGE_THRESHOLD_MGDL", criteria.WEEKLY_AVERAGE_THRESHOLD_MGDL
    )
    WEEKLY_AVERAGE_MIN_READINGS: int = _env_int(
        "WEEKLY_AVERAGE_MIN_READINGS", criteria.WEEKLY_AVERAGE_MIN_READINGS
    )
    WEEKLY_AVERAGE_COOLDOWN_HOURS: float = _env_float(
        "WEEKLY_AVERAGE_COOLDOWN_HOURS", criteria.WEEKLY_RESUME_DAYS * 24
    )
    MISSED_DOSE_GRACE_MINUTES: int = _env_int(
        "MISSED_DOSE_GRACE_MINUTES", criteria.MISSED_DOSE_GRACE_MINUTES
    )
    SYMPTOM_SEVERE_INTENSITY: int = _env_int(
        "SYMPTOM_SEVERE_INTENSITY", criteria.SYMPTOM_SEVERE_INTENSITY
    )
    SYMPTOM_RECURRENCE_COUNT: int = _env_int(
        "SYMPTOM_RECURRENCE_COUNT", criteria.SYMPTOM_RECURRENCE_COUNT
    )
    RULE_COOLDOWN_HOURS: float = _env_float(
        "RULE_COOLDOWN_HOURS", criteria.DEFAULT_COOLDOWN_HOURS
    )


config = Config()
