"""Tests for the clinical data providers."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
import requests

from alert_engine_src.clinical_client import (
    HTTPClinicalDataProvider,
    InMemoryClinicalDataProvider,
    to_local_naive,
)
from alert_engine_src.errors import TransientProviderError
from alert_engine_src.models import Measurement

from conftest import AS_OF


START = datetime(2025, 3, 9, 12, 0)


def response(status_code=200, payload=None):
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


class TestHTTPClinicalDataProvider:
    """Test the REST client with a mocked session."""

    @pytest.fixture
    def session(self):
        session = Mock()
        session.headers = {}
        return session

    @pytest.fixture
    def client(self, session):
        return HTTPClinicalDataProvider(
            base_url="http://clinical.test/api/",
            token="secret",
            timeout=3,
            session=session,
        )

    def test_auth_header_and_timeout(self, client, session):
        session.get.return_value = response(payload=[])
        client.get_measurements("P", START, AS_OF)

        assert session.headers["Authorization"] == "Bearer secret"
        args, kwargs = session.get.call_args
        assert args[0] == "http://clinical.test/api/patients/P/measurements"
        assert kwargs["timeout"] == 3
        assert kwargs["params"] == {"from": START.isoformat(), "to": AS_OF.isoformat()}

    def test_parse_measurements(self, client, session):
        session.get.return_value = response(payload=[
            {"id": 1, "taken_at": "2025-03-10T06:00:00", "value": "201.5"},
            {"id": 2, "taken_at": "2025-03-10T08:00:00", "value": None, "unit": "mg/dL"},
        ])
        measurements = client.get_measurements("P", START, AS_OF)

        assert measurements[0].id == "1"
        assert measurements[0].value == 201.5
        assert measurements[0].taken_at == datetime(2025, 3, 10, 6, 0)
        assert measurements[1].value is None

    def test_items_envelope(self, client, session):
        session.get.return_value = response(payload={
            "items": [{"id": "P1", "tags": ["active_therapy"]}, {"id": "P2"}],
        })
        patients = client.list_active_patients()

        assert [p.patient_id for p in patients] == ["P1", "P2"]
        assert patients[0].has_tag("active_therapy")
        assert session.get.call_args.kwargs["params"] == {"status": "active"}

    def test_parse_schedules_intakes_symptoms(self, client, session):
        session.get.side_effect = [
            response(payload=[{"id": "s1", "medication": "Metformin", "due_at": "2025-03-10T08:00:00"}]),
            response(payload=[{
                "id": "i1", "medication": "Metformin",
                "taken_at": "2025-03-10T08:15:00", "schedule_id": "s1",
            }]),
            response(payload=[{
                "id": "y1", "name": "Dizziness",
                "reported_at": "2025-03-10T09:00:00", "intensity": "7",
            }]),
        ]

        schedules = client.get_schedules("P", START, AS_OF)
        intakes = client.get_intakes("P", START, AS_OF)
        symptoms = client.get_symptoms("P", START, AS_OF)

        assert schedules[0].due_at == datetime(2025, 3, 10, 8, 0)
        assert intakes[0].schedule_id == "s1"
        assert symptoms[0].intensity == 7

    def test_assigned_doctors(self, client, session):
        session.get.return_value = response(payload=[{"id": 42}, {"id": "D7"}])
        assert client.get_assigned_doctors("P") == ["42", "D7"]

    def test_not_found_is_empty(self, client, session):
        session.get.return_value = response(status_code=404)
        assert client.get_measurements("P", START, AS_OF) == []
        assert client.patient_exists("P") is False

    def test_patient_exists(self, client, session):
        session.get.return_value = response(payload={"id": "P"})
        assert client.patient_exists("P") is True

    def test_timeout_is_transient(self, client, session):
        session.get.side_effect = requests.Timeout("read timed out")
        with pytest.raises(TransientProviderError, match="Timed out"):
            client.get_measurements("P", START, AS_OF)

    def test_connection_error_is_transient(self, client, session):
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(TransientProviderError):
            client.list_active_patients()

    def test_server_error_is_transient(self, client, session):
        session.get.return_value = response(status_code=503)
        with pytest.raises(TransientProviderError, match="503"):
            client.get_symptoms("P", START, AS_OF)

    def test_client_error_raises(self, client, session):
        session.get.return_value = response(status_code=401)
        with pytest.raises(requests.HTTPError):
            client.get_intakes("P", START, AS_OF)


class TestInMemoryClinicalDataProvider:

    def test_window_is_inclusive(self):
        provider = InMemoryClinicalDataProvider()
        provider.add_patient("P")
        for i, taken_at in enumerate([START, AS_OF, datetime(2025, 3, 10, 12, 1)]):
            provider.add_measurement(Measurement(id=f"m{i}", patient_id="P", taken_at=taken_at, value=100))

        assert [m.id for m in provider.get_measurements("P", START, AS_OF)] == ["m0", "m1"]

    def test_unknown_patient_returns_empty(self):
        provider = InMemoryClinicalDataProvider()
        assert provider.get_symptoms("nobody", START, AS_OF) == []
        assert provider.get_assigned_doctors("nobody") == []
        assert provider.patient_exists("nobody") is False


class TestToLocalNaive:

    def test_naive_passes_through(self):
        assert to_local_naive(AS_OF) is AS_OF

    def test_aware_converted_to_local(self):
        aware = AS_OF.astimezone(timezone(timedelta(hours=5)))
        converted = to_local_naive(aware)
        assert converted.tzinfo is None
        assert converted == AS_OF
