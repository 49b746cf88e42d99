"""Static repayment-rate tables and the income → rate lookup.

Each schedule pairs an ordered table of income brackets with the indexation
rate applied to outstanding balances for the same period. Rates are stored in
percent units (Decimal("3.0") = 3 % of income) as Decimal strings to avoid
float imprecision.

Brackets are half-open: ``min_income <= income < max_income``. A ``None``
upper bound means the bracket is unbounded. Tables are validated when they
are built, so a malformed preset fails at import rather than mid-projection.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .config import ZERO


class RateTableError(ValueError):
    """Raised when a repayment table has gaps, overlaps or bad bounds."""


@dataclass(frozen=True)
class RepaymentThreshold:
    min_income: Decimal
    max_income: Optional[Decimal]  # None = unbounded
    rate: Decimal                  # percent of income

    def contains(self, income: Decimal) -> bool:
        if income < self.min_income:
            return False
        return self.max_income is None or income < self.max_income


@dataclass(frozen=True)
class RateSchedule:
    year: str
    thresholds: tuple[RepaymentThreshold, ...]  # ascending min_income
    indexation_rate: Decimal
    description: str = ""

    def __post_init__(self) -> None:
        validate_table(self.thresholds)

    def rate_for(self, income: Decimal) -> Decimal:
        return resolve_rate(income, self.thresholds)

    @property
    def repayment_threshold(self) -> Decimal:
        """Lowest income at which a non-zero repayment applies."""
        for bracket in self.thresholds:
            if bracket.rate > ZERO:
                return bracket.min_income
        return ZERO


def validate_table(thresholds: Sequence[RepaymentThreshold]) -> None:
    """Raise RateTableError unless *thresholds* tile [0, ∞) exactly once."""
    if not thresholds:
        raise RateTableError("Repayment table is empty.")
    if thresholds[0].min_income != ZERO:
        raise RateTableError(
            f"First bracket must start at 0 (starts at {thresholds[0].min_income})."
        )

    last = len(thresholds) - 1
    for i, bracket in enumerate(thresholds):
        if bracket.rate < ZERO:
            raise RateTableError(f"Bracket {i} has a negative rate ({bracket.rate}).")
        if bracket.max_income is None:
            if i != last:
                raise RateTableError(f"Bracket {i} is unbounded but is not the last bracket.")
            continue
        if bracket.max_income <= bracket.min_income:
            raise RateTableError(
                f"Bracket {i} upper bound {bracket.max_income} must exceed "
                f"its lower bound {bracket.min_income}."
            )
        if i == last:
            raise RateTableError("Last bracket must be unbounded.")
        following = thresholds[i + 1].min_income
        if following > bracket.max_income:
            raise RateTableError(
                f"Gap between {bracket.max_income} and {following} (brackets {i}/{i + 1})."
            )
        if following < bracket.max_income:
            raise RateTableError(
                f"Overlap between {following} and {bracket.max_income} (brackets {i}/{i + 1})."
            )


def thresholds_from_breakpoints(
    breakpoints: Iterable[tuple[str, str]],
) -> tuple[RepaymentThreshold, ...]:
    """Build a contiguous table from ``(min_income, rate)`` pairs.

    Each bracket ends where the next one starts; the last is unbounded.
    """
    points = [(Decimal(lo), Decimal(rate)) for lo, rate in breakpoints]
    rows = []
    for i, (lo, rate) in enumerate(points):
        hi = points[i + 1][0] if i + 1 < len(points) else None
        rows.append(RepaymentThreshold(min_income=lo, max_income=hi, rate=rate))
    return tuple(rows)


def resolve_rate(income: Decimal, thresholds: Sequence[RepaymentThreshold]) -> Decimal:
    """Return the repayment rate (percent) for *income*.

    Linear scan; tables hold at most a couple of dozen brackets.
    Income below the lowest bracket repays nothing.
    """
    for bracket in thresholds:
        if bracket.contains(income):
            return bracket.rate
    return ZERO


# Static embedded schedules
_SCHEDULES: dict[str, RateSchedule] = {
    "2023": RateSchedule(
        year="2023",
        thresholds=thresholds_from_breakpoints([
            ("0", "0"),
            ("51550", "1.0"),
            ("57154", "2.0"),
            ("62764", "2.5"),
            ("66354", "3.0"),
            ("69999", "3.5"),
            ("73999", "4.0"),
            ("77999", "4.5"),
            ("82999", "5.0"),
            ("87999", "5.5"),
            ("92999", "6.0"),
            ("97999", "6.5"),
            ("102999", "7.0"),
            ("107999", "10.0"),
        ]),
        indexation_rate=Decimal("7.1"),
        description="2023 indexation (7.1 %) with the simplified 14-bracket table",
    ),
    "2024-25": RateSchedule(
        year="2024-25",
        thresholds=thresholds_from_breakpoints([
            ("0", "0"),
            ("51550", "1.0"),
            ("59519", "2.0"),
            ("63090", "2.5"),
            ("66876", "3.0"),
            ("70889", "3.5"),
            ("75141", "4.0"),
            ("79650", "4.5"),
            ("84430", "5.0"),
            ("89495", "5.5"),
            ("94866", "6.0"),
            ("100558", "6.5"),
            ("106591", "7.0"),
            ("112986", "7.5"),
            ("119765", "8.0"),
            ("126951", "8.5"),
            ("134569", "9.0"),
            ("142643", "9.5"),
            ("151201", "10.0"),
        ]),
        indexation_rate=Decimal("3.2"),
        description="2024-25 indexation (3.2 %) with the 19-bracket table",
    ),
}

SUPPORTED_TABLE_YEARS = frozenset(_SCHEDULES.keys())


def get_schedule(year: str) -> RateSchedule:
    """Return the static schedule for *year*.

    Raises ValueError for unknown years.
    """
    key = year.strip()
    if key not in _SCHEDULES:
        raise ValueError(
            f"Unsupported table year '{key}'. "
            f"Supported years: {', '.join(sorted(SUPPORTED_TABLE_YEARS))}"
        )
    return _SCHEDULES[key]
