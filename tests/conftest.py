"""Shared fixtures for alert engine tests."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.alert_store import AlertStore, ChangeLogStore
from alert_engine_src.clinical_client import InMemoryClinicalDataProvider
from alert_engine_src.engine import AlertEngine
from alert_engine_src.models import Measurement
from alert_engine_src.notifiers import ConsoleNotifier


AS_OF = datetime(2025, 3, 10, 12, 0)


def add_readings(provider, patient_id, values, start, step=timedelta(hours=2), prefix="m"):
    """Add glycemic readings spaced ``step`` apart starting at ``start``."""
    readings = []
    for i, value in enumerate(values):
        reading = Measurement(
            id=f"{prefix}{i + 1}-{patient_id}",
            patient_id=patient_id,
            taken_at=start + step * i,
            value=value,
        )
        provider.add_measurement(reading)
        readings.append(reading)
    return readings


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def provider():
    return InMemoryClinicalDataProvider()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "alerts.db")


@pytest.fixture
def store(db_path):
    return AlertStore(db_path)


@pytest.fixture
def changelog(db_path):
    return ChangeLogStore(db_path)


@pytest.fixture
def notifier():
    return ConsoleNotifier(quiet=True)


@pytest.fixture
def engine(provider, store, changelog, notifier):
    engine = AlertEngine(
        provider=provider,
        store=store,
        audit_sink=changelog,
        notifier=notifier,
        max_workers=4,
        provider_timeout=5,
        doctor_threshold="high",
    )
    yield engine
    engine.close()
