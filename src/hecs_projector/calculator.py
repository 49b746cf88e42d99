"""Year-by-year HECS-HELP projection engine.

All monetary values use decimal.Decimal; float is forbidden.
Intermediate values keep full precision; rounding is left to display code.

Order of operations inside a simulated year:
    1. repayment = income * rate(income) / 100  (+ voluntary amount, if due)
    2. indexation = balance * indexation_rate / 100
    3. balance = max(0, balance + indexation - repayment)
    4. income grows by the salary growth rate
    5. progress marks are checked against the new balance
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence

from .config import HORIZON_YEARS, HUNDRED, WEEKS_PER_YEAR, ZERO
from .rate_tables import RepaymentThreshold, resolve_rate

logger = logging.getLogger(__name__)


class MilestoneKind(str, Enum):
    START = "start"
    PROGRESS = "progress"
    PAYMENT_EVENT = "payment-event"
    PAYOFF = "payoff"
    HORIZON_REACHED = "horizon-reached"


class RepaidShare(Enum):
    """Progress marks, in the order they are checked each year."""
    QUARTER = 25
    HALF = 50
    THREE_QUARTERS = 75

    @property
    def remaining_fraction(self) -> Decimal:
        return (HUNDRED - Decimal(self.value)) / HUNDRED

    @property
    def description(self) -> str:
        return f"{self.value}% of debt repaid"


@dataclass(frozen=True)
class VoluntaryPayment:
    year: int
    amount: Decimal


@dataclass(frozen=True)
class SimulationInput:
    current_debt: Decimal
    annual_income: Decimal
    salary_growth_rate: Decimal
    voluntary_payment: Optional[VoluntaryPayment] = None

    def __post_init__(self) -> None:
        if self.current_debt < ZERO:
            raise ValueError("current_debt must be >= 0")
        if self.annual_income < ZERO:
            raise ValueError("annual_income must be >= 0")
        vp = self.voluntary_payment
        if vp is not None and (vp.year is None or vp.amount is None):
            raise ValueError("voluntary_payment needs both year and amount")


@dataclass(frozen=True)
class YearlyRecord:
    year: int
    remaining_debt: Decimal
    annual_repayment: Decimal
    income: Decimal


@dataclass(frozen=True)
class Milestone:
    year: int
    description: str
    kind: MilestoneKind
    debt_value_at_event: Decimal


@dataclass(frozen=True)
class SimulationResult:
    initial_repayment_rate: Decimal
    initial_annual_repayment: Decimal
    initial_weekly_repayment: Decimal
    years_to_repay: int
    projected_balance_next_period: Decimal
    yearly_records: tuple[YearlyRecord, ...]
    milestones: tuple[Milestone, ...]
    total_indexation_accrued: Decimal
    total_repaid: Decimal

    @property
    def paid_off(self) -> bool:
        return bool(self.milestones) and self.milestones[-1].kind is MilestoneKind.PAYOFF

    @property
    def final_balance(self) -> Decimal:
        if not self.yearly_records:
            return self.milestones[0].debt_value_at_event if self.milestones else ZERO
        return self.yearly_records[-1].remaining_debt

    def balance_series(self) -> list[tuple[int, Decimal]]:
        return [(r.year, r.remaining_debt) for r in self.yearly_records]

    def repayment_series(self) -> list[tuple[int, Decimal]]:
        return [(r.year, r.annual_repayment) for r in self.yearly_records]


def compute_compulsory_repayment(
    income: Decimal,
    thresholds: Sequence[RepaymentThreshold],
) -> tuple[Decimal, Decimal]:
    """Return ``(rate, annual_repayment)`` for one year of *income*."""
    rate = resolve_rate(income, thresholds)
    return rate, income * rate / HUNDRED


def project(
    inputs: SimulationInput,
    thresholds: Sequence[RepaymentThreshold],
    indexation_rate: Decimal,
) -> SimulationResult:
    """Project the loan balance year by year until payoff or the horizon.

    Progress milestones fire at most once each, the first year the balance
    drops to or below the matching share of the *initial* debt. A voluntary
    payment is applied at the start of its year and is recorded before any
    progress milestone of that year.
    """
    initial_debt = inputs.current_debt
    initial_rate, initial_repayment = compute_compulsory_repayment(
        inputs.annual_income, thresholds
    )

    remaining_debt = initial_debt
    current_income = inputs.annual_income
    year = 0
    total_indexation = ZERO
    total_repaid = ZERO
    fired: set[RepaidShare] = set()

    records: list[YearlyRecord] = []
    milestones: list[Milestone] = [
        Milestone(
            year=0,
            description="Starting HECS-HELP debt",
            kind=MilestoneKind.START,
            debt_value_at_event=initial_debt,
        )
    ]
    vp = inputs.voluntary_payment

    while remaining_debt > ZERO and year < HORIZON_YEARS:
        _, yearly_repayment = compute_compulsory_repayment(current_income, thresholds)
        yearly_indexation = remaining_debt * indexation_rate / HUNDRED
        total_yearly_repayment = yearly_repayment

        if vp is not None and year == vp.year - 1:
            total_yearly_repayment += vp.amount
            milestones.append(
                Milestone(
                    year=year + 1,
                    description=f"Voluntary payment of {vp.amount:,.2f}",
                    kind=MilestoneKind.PAYMENT_EVENT,
                    debt_value_at_event=max(ZERO, remaining_debt - total_yearly_repayment),
                )
            )

        remaining_debt = max(
            ZERO, remaining_debt + yearly_indexation - total_yearly_repayment
        )
        total_indexation += yearly_indexation
        total_repaid += total_yearly_repayment

        records.append(
            YearlyRecord(
                year=year + 1,
                remaining_debt=remaining_debt,
                annual_repayment=total_yearly_repayment,
                income=current_income,
            )
        )
        logger.debug(
            "year %d: income=%s repayment=%s indexation=%s balance=%s",
            year + 1, current_income, total_yearly_repayment,
            yearly_indexation, remaining_debt,
        )

        current_income = current_income * (1 + inputs.salary_growth_rate / HUNDRED)
        year += 1

        for share in RepaidShare:
            if share in fired:
                continue
            if remaining_debt <= initial_debt * share.remaining_fraction:
                fired.add(share)
                milestones.append(
                    Milestone(
                        year=year,
                        description=share.description,
                        kind=MilestoneKind.PROGRESS,
                        debt_value_at_event=remaining_debt,
                    )
                )

    # A zero starting balance never enters the loop and gets no closing milestone.
    # Running the full horizon counts as not repaid, even if the last year clears it.
    if initial_debt > ZERO:
        if year < HORIZON_YEARS:
            milestones.append(
                Milestone(
                    year=year,
                    description="Debt fully repaid! 🎉",
                    kind=MilestoneKind.PAYOFF,
                    debt_value_at_event=ZERO,
                )
            )
        else:
            logger.info(
                "Projection reached the %d-year horizon with %s outstanding",
                HORIZON_YEARS, remaining_debt,
            )
            milestones.append(
                Milestone(
                    year=HORIZON_YEARS,
                    description="Projection limit reached - debt not fully repaid",
                    kind=MilestoneKind.HORIZON_REACHED,
                    debt_value_at_event=remaining_debt,
                )
            )

    return SimulationResult(
        initial_repayment_rate=initial_rate,
        initial_annual_repayment=initial_repayment,
        initial_weekly_repayment=initial_repayment / WEEKS_PER_YEAR,
        years_to_repay=year,
        projected_balance_next_period=initial_debt * (1 + indexation_rate / HUNDRED),
        yearly_records=tuple(records),
        milestones=tuple(milestones),
        total_indexation_accrued=total_indexation,
        total_repaid=total_repaid,
    )
