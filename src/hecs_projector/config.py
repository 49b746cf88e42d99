"""Application-wide constants and configuration defaults.

All tuneable defaults live here so there is a single place to adjust them.
"""
from __future__ import annotations

from decimal import Decimal

# ── Projection ────────────────────────────────────────────────────────────────

HORIZON_YEARS: int = 50        # hard stop when repayments never outpace indexation
WEEKS_PER_YEAR = Decimal("52")

# ── Input defaults ────────────────────────────────────────────────────────────

DEFAULT_SALARY_GROWTH = Decimal("3")
DEFAULT_TABLE_YEAR: str = "2024-25"

# ── Input sanity bounds ───────────────────────────────────────────────────────

MAX_DEBT = Decimal("1000000")
MAX_INCOME = Decimal("10000000")
MIN_PERCENT = Decimal("0")
MAX_PERCENT = Decimal("100")

# ── Persistence collaborator ─────────────────────────────────────────────────

ENV_NAME_VAR = "HECS_ENV"
DEFAULT_ENV = "development"
SUBMISSIONS_TABLE = "calculator_inputs"
PERSIST_TIMEOUT = 10  # seconds

# ── Logging ───────────────────────────────────────────────────────────────────

LOG_FORMAT = "%(name)s: %(message)s"

# ── Numeric convenience ───────────────────────────────────────────────────────

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")
