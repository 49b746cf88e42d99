"""Unit tests for store.py: record flattening and the HTTP client."""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import requests

from hecs_projector.calculator import SimulationInput, VoluntaryPayment, project
from hecs_projector.rate_tables import get_schedule
from hecs_projector.store import (
    PersistError,
    SubmissionRecord,
    SubmissionStore,
    save_submission,
    store_from_env,
)

_ENV_VARS = (
    "HECS_ENV",
    "SUPABASE_URL", "SUPABASE_ANON_KEY",
    "PRODUCTION_SUPABASE_URL", "PRODUCTION_SUPABASE_ANON_KEY",
    "DEVELOPMENT_SUPABASE_URL", "DEVELOPMENT_SUPABASE_ANON_KEY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _inputs(voluntary=None) -> SimulationInput:
    return SimulationInput(
        current_debt=Decimal("20000"),
        annual_income=Decimal("70000"),
        salary_growth_rate=Decimal("3"),
        voluntary_payment=voluntary,
    )


def _result(inputs):
    return project(inputs, get_schedule("2024-25").thresholds, Decimal("4.0"))


class _FakeResponse:
    def __init__(self, status_code: int = 201) -> None:
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class _Recorder:
    def __init__(self, response=None, exc=None) -> None:
        self.calls = []
        self._response = response or _FakeResponse()
        self._exc = exc

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self._exc is not None:
            raise self._exc
        return self._response


class TestSubmissionRecord:
    def test_flattened_fields(self):
        inputs = _inputs()
        result = _result(inputs)
        when = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        record = SubmissionRecord.from_result(inputs, result, submitted_at=when)
        assert record.current_debt == 20000.0
        assert record.annual_income == 70000.0
        assert record.expected_salary_increase == 3.0
        assert record.voluntary_payment_year is None
        assert record.voluntary_payment_amount is None
        assert record.years_to_repay == result.years_to_repay
        assert record.total_interest == float(result.total_indexation_accrued.quantize(Decimal("0.01")))
        assert record.total_repayments == float(result.total_repaid.quantize(Decimal("0.01")))
        assert record.created_at == "2025-01-02T03:04:05+00:00"

    def test_voluntary_payment_fields(self):
        inputs = _inputs(VoluntaryPayment(year=2, amount=Decimal("5000")))
        record = SubmissionRecord.from_result(inputs, _result(inputs))
        assert record.voluntary_payment_year == 2
        assert record.voluntary_payment_amount == 5000.0

    def test_payload_keys(self):
        inputs = _inputs()
        payload = SubmissionRecord.from_result(inputs, _result(inputs)).to_payload()
        assert set(payload) == {
            "current_debt", "annual_income", "expected_salary_increase",
            "voluntary_payment_year", "voluntary_payment_amount",
            "years_to_repay", "total_interest", "total_repayments", "created_at",
        }


class TestSubmissionStore:
    def test_posts_to_table_endpoint(self, monkeypatch):
        recorder = _Recorder()
        monkeypatch.setattr(requests, "post", recorder)
        store = SubmissionStore("https://example.supabase.co/", "anon-key")
        inputs = _inputs()
        record = SubmissionRecord.from_result(inputs, _result(inputs))

        store.save(record)

        url, kwargs = recorder.calls[0]
        assert url == "https://example.supabase.co/rest/v1/calculator_inputs"
        assert kwargs["json"] == record.to_payload()
        assert kwargs["headers"]["apikey"] == "anon-key"
        assert kwargs["headers"]["Authorization"] == "Bearer anon-key"
        assert kwargs["timeout"] == 10

    def test_http_error_becomes_persist_error(self, monkeypatch):
        monkeypatch.setattr(requests, "post", _Recorder(response=_FakeResponse(500)))
        store = SubmissionStore("https://example.supabase.co", "k")
        inputs = _inputs()
        with pytest.raises(PersistError, match="Could not save"):
            store.save(SubmissionRecord.from_result(inputs, _result(inputs)))

    def test_network_error_becomes_persist_error(self, monkeypatch):
        monkeypatch.setattr(requests, "post", _Recorder(exc=requests.ConnectionError("down")))
        store = SubmissionStore("https://example.supabase.co", "k")
        inputs = _inputs()
        with pytest.raises(PersistError, match="down"):
            store.save(SubmissionRecord.from_result(inputs, _result(inputs)))

    def test_failed_save_leaves_result_untouched(self, monkeypatch):
        monkeypatch.setattr(requests, "post", _Recorder(exc=requests.Timeout("slow")))
        inputs = _inputs()
        result = _result(inputs)
        before = (result.years_to_repay, result.total_repaid, result.yearly_records)
        with pytest.raises(PersistError):
            save_submission(inputs, result, SubmissionStore("https://x.supabase.co", "k"))
        assert (result.years_to_repay, result.total_repaid, result.yearly_records) == before


class TestStoreFromEnv:
    def test_missing_configuration(self):
        with pytest.raises(PersistError, match="not configured"):
            store_from_env()

    def test_generic_variables(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://generic.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "k")
        assert store_from_env().endpoint.startswith("https://generic.supabase.co/")

    def test_development_prefix_wins(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://generic.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "k")
        monkeypatch.setenv("DEVELOPMENT_SUPABASE_URL", "https://dev.supabase.co")
        assert store_from_env().endpoint.startswith("https://dev.supabase.co/")

    def test_production_environment(self, monkeypatch):
        monkeypatch.setenv("HECS_ENV", "production")
        monkeypatch.setenv("DEVELOPMENT_SUPABASE_URL", "https://dev.supabase.co")
        monkeypatch.setenv("PRODUCTION_SUPABASE_URL", "https://prod.supabase.co")
        monkeypatch.setenv("PRODUCTION_SUPABASE_ANON_KEY", "k")
        assert store_from_env().endpoint.startswith("https://prod.supabase.co/")

    def test_save_submission_uses_env_store(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://generic.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "k")
        recorder = _Recorder()
        monkeypatch.setattr(requests, "post", recorder)
        inputs = _inputs()
        record = save_submission(inputs, _result(inputs))
        assert recorder.calls[0][0] == "https://generic.supabase.co/rest/v1/calculator_inputs"
        assert record.current_debt == 20000.0
