"""Submission store: saves calculation summaries to a Supabase table.

Talks to the PostgREST endpoint directly over HTTPS. Saving is always
user-triggered and never affects the projection already computed; callers
catch PersistError and show it as a notice.
"""
from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import requests

from .calculator import SimulationInput, SimulationResult
from .config import CENT, DEFAULT_ENV, ENV_NAME_VAR, PERSIST_TIMEOUT, SUBMISSIONS_TABLE

logger = logging.getLogger(__name__)


class PersistError(Exception):
    """Raised when a submission cannot be saved for any reason."""


@dataclass(frozen=True)
class SubmissionRecord:
    current_debt: float
    annual_income: float
    expected_salary_increase: float
    voluntary_payment_year: Optional[int]
    voluntary_payment_amount: Optional[float]
    years_to_repay: int
    total_interest: float
    total_repayments: float
    created_at: str

    @classmethod
    def from_result(
        cls,
        inputs: SimulationInput,
        result: SimulationResult,
        *,
        submitted_at: Optional[datetime] = None,
    ) -> "SubmissionRecord":
        vp = inputs.voluntary_payment
        when = submitted_at or datetime.now(timezone.utc)
        return cls(
            current_debt=_money(inputs.current_debt),
            annual_income=_money(inputs.annual_income),
            expected_salary_increase=float(inputs.salary_growth_rate),
            voluntary_payment_year=vp.year if vp else None,
            voluntary_payment_amount=_money(vp.amount) if vp else None,
            years_to_repay=result.years_to_repay,
            total_interest=_money(result.total_indexation_accrued),
            total_repayments=_money(result.total_repaid),
            created_at=when.isoformat(),
        )

    def to_payload(self) -> dict:
        return asdict(self)


def _money(value: Decimal) -> float:
    # numeric columns in the table; JSON has no decimal type
    return float(value.quantize(CENT))


class SubmissionStore:
    """Thin client for the submissions table."""

    def __init__(self, url: str, api_key: str, *, table: str = SUBMISSIONS_TABLE) -> None:
        self._endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def save(self, record: SubmissionRecord) -> None:
        """POST *record*. Raises PersistError on network or HTTP failure."""
        try:
            resp = requests.post(
                self._endpoint,
                json=record.to_payload(),
                headers=self._headers,
                timeout=PERSIST_TIMEOUT,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("saving submission failed: %s", exc)
            raise PersistError(f"Could not save calculation: {exc}") from exc
        logger.info("saved submission created_at=%s", record.created_at)


def detect_environment() -> str:
    return os.environ.get(ENV_NAME_VAR, DEFAULT_ENV).strip().lower() or DEFAULT_ENV


def store_from_env() -> SubmissionStore:
    """Build a SubmissionStore from environment variables.

    Looks for ``PRODUCTION_SUPABASE_URL`` / ``DEVELOPMENT_SUPABASE_URL``
    (and the matching ``_ANON_KEY``) depending on ``HECS_ENV``, then falls
    back to ``SUPABASE_URL`` / ``SUPABASE_ANON_KEY``.
    """
    env = detect_environment()
    prefix = "PRODUCTION" if env == "production" else "DEVELOPMENT"
    url = os.environ.get(f"{prefix}_SUPABASE_URL") or os.environ.get("SUPABASE_URL")
    key = os.environ.get(f"{prefix}_SUPABASE_ANON_KEY") or os.environ.get("SUPABASE_ANON_KEY")
    if not url or not key:
        missing = [
            name for name, value in (
                (f"{prefix}_SUPABASE_URL or SUPABASE_URL", url),
                (f"{prefix}_SUPABASE_ANON_KEY or SUPABASE_ANON_KEY", key),
            )
            if not value
        ]
        raise PersistError(
            f"Storage is not configured for the {env} environment "
            f"(missing: {', '.join(missing)})."
        )
    logger.debug("using %s storage at %s", env, url[:30])
    return SubmissionStore(url, key)


def save_submission(
    inputs: SimulationInput,
    result: SimulationResult,
    store: Optional[SubmissionStore] = None,
) -> SubmissionRecord:
    """Flatten and save one calculation. Raises PersistError on failure."""
    record = SubmissionRecord.from_result(inputs, result)
    (store or store_from_env()).save(record)
    return record
