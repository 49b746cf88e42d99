"""Input resolution and validation.

Resolution order:
1. salary growth defaults to DEFAULT_SALARY_GROWTH.
2. table year defaults to DEFAULT_TABLE_YEAR.
3. indexation rate falls back to the selected schedule if not user-supplied.
4. Every field is validated; all problems are reported together so the
   caller can show them next to the offending fields.

The engine is never reached with invalid input.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from .calculator import SimulationInput, SimulationResult, VoluntaryPayment, project
from .config import (
    DEFAULT_SALARY_GROWTH, DEFAULT_TABLE_YEAR, HORIZON_YEARS,
    MAX_DEBT, MAX_INCOME, MAX_PERCENT, MIN_PERCENT, ZERO,
)
from .rate_tables import RateSchedule, get_schedule

logger = logging.getLogger(__name__)


@dataclass
class UserInputs:
    """Raw user-supplied values.  None means "not provided, use the default"."""
    # Mandatory
    current_debt: Decimal
    annual_income: Decimal
    # Optional
    salary_growth_rate: Optional[Decimal] = None
    table_year: Optional[str] = None
    indexation_rate: Optional[Decimal] = None
    voluntary_payment_year: Optional[int] = None
    voluntary_payment_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class ResolvedInputs:
    """Validated inputs plus the rate configuration they run against."""
    simulation: SimulationInput
    schedule: RateSchedule
    indexation_rate: Decimal
    # Provenance: 'user', 'default' or 'schedule' for each optional field
    sources: dict[str, str] = field(default_factory=dict)


class InputValidationError(ValueError):
    """Raised when one or more input fields are invalid.

    ``errors`` maps field name to a human-readable message.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        detail = "; ".join(f"{name}: {msg}" for name, msg in self.errors.items())
        super().__init__(f"Invalid input: {detail}")


def _check_amount(errors: dict[str, str], name: str, value: Decimal, ceiling: Decimal, label: str) -> None:
    if not value.is_finite():
        errors[name] = f"{label} must be a number"
    elif value < ZERO:
        errors[name] = f"{label} cannot be negative"
    elif value > ceiling:
        errors[name] = f"{label} cannot exceed {ceiling:,.0f}"


def _check_percent(errors: dict[str, str], name: str, value: Decimal) -> None:
    if not value.is_finite() or value < MIN_PERCENT or value > MAX_PERCENT:
        errors[name] = "Please enter a valid percentage between 0 and 100"


def resolve(inputs: UserInputs) -> ResolvedInputs:
    """Fill defaults, validate, and return ResolvedInputs.

    Raises InputValidationError listing every invalid field.
    """
    errors: dict[str, str] = {}
    sources: dict[str, str] = {}

    _check_amount(errors, "current_debt", inputs.current_debt, MAX_DEBT, "Debt")
    _check_amount(errors, "annual_income", inputs.annual_income, MAX_INCOME, "Income")

    if inputs.salary_growth_rate is not None:
        salary_growth = inputs.salary_growth_rate
        sources["salary_growth_rate"] = "user"
    else:
        salary_growth = DEFAULT_SALARY_GROWTH
        sources["salary_growth_rate"] = "default"
    _check_percent(errors, "salary_growth_rate", salary_growth)

    schedule: Optional[RateSchedule] = None
    table_year = inputs.table_year or DEFAULT_TABLE_YEAR
    sources["table_year"] = "user" if inputs.table_year else "default"
    try:
        schedule = get_schedule(table_year)
    except ValueError as exc:
        errors["table_year"] = str(exc)

    indexation_rate: Optional[Decimal] = None
    if inputs.indexation_rate is not None:
        indexation_rate = inputs.indexation_rate
        sources["indexation_rate"] = "user"
        _check_percent(errors, "indexation_rate", indexation_rate)
    elif schedule is not None:
        indexation_rate = schedule.indexation_rate
        sources["indexation_rate"] = "schedule"

    voluntary: Optional[VoluntaryPayment] = None
    vp_year = inputs.voluntary_payment_year
    vp_amount = inputs.voluntary_payment_amount
    if (vp_year is None) != (vp_amount is None):
        missing = "voluntary_payment_amount" if vp_amount is None else "voluntary_payment_year"
        errors[missing] = "Voluntary payment needs both a year and an amount"
    elif vp_year is not None and vp_amount is not None:
        if vp_year < 1 or vp_year > HORIZON_YEARS:
            errors["voluntary_payment_year"] = f"Year must be between 1 and {HORIZON_YEARS}"
        if not vp_amount.is_finite():
            errors["voluntary_payment_amount"] = "Amount must be a number"
        elif vp_amount <= ZERO:
            errors["voluntary_payment_amount"] = "Amount must be greater than 0"
        elif inputs.current_debt.is_finite() and vp_amount > inputs.current_debt:
            errors["voluntary_payment_amount"] = "Amount cannot exceed the current debt"
        voluntary = VoluntaryPayment(year=vp_year, amount=vp_amount)

    if errors:
        logger.debug("rejected inputs: %s", errors)
        raise InputValidationError(errors)

    return ResolvedInputs(
        simulation=SimulationInput(
            current_debt=inputs.current_debt,
            annual_income=inputs.annual_income,
            salary_growth_rate=salary_growth,
            voluntary_payment=voluntary,
        ),
        schedule=schedule,
        indexation_rate=indexation_rate,
        sources=sources,
    )


def run_projection(resolved: ResolvedInputs) -> SimulationResult:
    """Run the engine against the resolved schedule."""
    return project(
        resolved.simulation,
        resolved.schedule.thresholds,
        resolved.indexation_rate,
    )
