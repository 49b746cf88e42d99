"""Unit tests for resolver.py: defaults, provenance and field validation."""
from decimal import Decimal

import pytest

from hecs_projector.calculator import MilestoneKind
from hecs_projector.config import DEFAULT_SALARY_GROWTH, DEFAULT_TABLE_YEAR
from hecs_projector.resolver import InputValidationError, UserInputs, resolve, run_projection


def _base_inputs(**kwargs) -> UserInputs:
    defaults = dict(
        current_debt=Decimal("20000"),
        annual_income=Decimal("70000"),
    )
    defaults.update(kwargs)
    return UserInputs(**defaults)


def _errors(**kwargs) -> dict:
    with pytest.raises(InputValidationError) as excinfo:
        resolve(_base_inputs(**kwargs))
    return excinfo.value.errors


class TestResolveDefaults:
    def test_default_salary_growth(self):
        resolved = resolve(_base_inputs())
        assert resolved.simulation.salary_growth_rate == DEFAULT_SALARY_GROWTH
        assert resolved.sources["salary_growth_rate"] == "default"

    def test_default_table_year(self):
        resolved = resolve(_base_inputs())
        assert resolved.schedule.year == DEFAULT_TABLE_YEAR
        assert resolved.sources["table_year"] == "default"

    def test_indexation_from_schedule(self):
        resolved = resolve(_base_inputs(table_year="2023"))
        assert resolved.indexation_rate == Decimal("7.1")
        assert resolved.sources["indexation_rate"] == "schedule"

    def test_indexation_user_override(self):
        resolved = resolve(_base_inputs(indexation_rate=Decimal("4.0")))
        assert resolved.indexation_rate == Decimal("4.0")
        assert resolved.sources["indexation_rate"] == "user"

    def test_no_voluntary_payment_by_default(self):
        assert resolve(_base_inputs()).simulation.voluntary_payment is None

    def test_voluntary_payment_pair(self):
        resolved = resolve(_base_inputs(
            voluntary_payment_year=2, voluntary_payment_amount=Decimal("5000"),
        ))
        vp = resolved.simulation.voluntary_payment
        assert vp.year == 2
        assert vp.amount == Decimal("5000")

    def test_voluntary_amount_equal_to_debt_allowed(self):
        resolved = resolve(_base_inputs(
            voluntary_payment_year=1, voluntary_payment_amount=Decimal("20000"),
        ))
        assert resolved.simulation.voluntary_payment.amount == Decimal("20000")


class TestValidation:
    def test_negative_debt(self):
        assert "negative" in _errors(current_debt=Decimal("-1"))["current_debt"]

    def test_negative_income(self):
        assert "negative" in _errors(annual_income=Decimal("-5"))["annual_income"]

    def test_debt_ceiling(self):
        assert "exceed" in _errors(current_debt=Decimal("5000000"))["current_debt"]

    def test_income_ceiling(self):
        assert "exceed" in _errors(annual_income=Decimal("50000000"))["annual_income"]

    @pytest.mark.parametrize("value", ["-0.5", "100.01", "250"])
    def test_salary_growth_out_of_range(self, value):
        errors = _errors(salary_growth_rate=Decimal(value))
        assert "between 0 and 100" in errors["salary_growth_rate"]

    @pytest.mark.parametrize("value", ["0", "100"])
    def test_salary_growth_bounds_accepted(self, value):
        resolved = resolve(_base_inputs(salary_growth_rate=Decimal(value)))
        assert resolved.simulation.salary_growth_rate == Decimal(value)

    def test_indexation_out_of_range(self):
        assert "indexation_rate" in _errors(indexation_rate=Decimal("-1"))

    def test_unknown_table_year(self):
        assert "Unsupported" in _errors(table_year="1999")["table_year"]

    def test_voluntary_year_without_amount(self):
        errors = _errors(voluntary_payment_year=1)
        assert "both" in errors["voluntary_payment_amount"]

    def test_voluntary_amount_without_year(self):
        errors = _errors(voluntary_payment_amount=Decimal("100"))
        assert "both" in errors["voluntary_payment_year"]

    def test_voluntary_amount_exceeds_debt(self):
        errors = _errors(voluntary_payment_year=1, voluntary_payment_amount=Decimal("20000.01"))
        assert "exceed" in errors["voluntary_payment_amount"]

    def test_voluntary_amount_must_be_positive(self):
        errors = _errors(voluntary_payment_year=1, voluntary_payment_amount=Decimal("0"))
        assert "greater than 0" in errors["voluntary_payment_amount"]

    @pytest.mark.parametrize("year", [0, 51])
    def test_voluntary_year_out_of_range(self, year):
        errors = _errors(voluntary_payment_year=year, voluntary_payment_amount=Decimal("100"))
        assert "between 1 and 50" in errors["voluntary_payment_year"]

    @pytest.mark.parametrize("value", ["nan", "inf", "-Infinity", "sNaN"])
    def test_non_finite_amounts(self, value):
        errors = _errors(current_debt=Decimal(value), annual_income=Decimal(value))
        assert errors["current_debt"] == "Debt must be a number"
        assert errors["annual_income"] == "Income must be a number"

    @pytest.mark.parametrize("value", ["nan", "inf"])
    def test_non_finite_percentages(self, value):
        errors = _errors(salary_growth_rate=Decimal(value), indexation_rate=Decimal(value))
        assert "between 0 and 100" in errors["salary_growth_rate"]
        assert "between 0 and 100" in errors["indexation_rate"]

    def test_non_finite_voluntary_amount(self):
        errors = _errors(voluntary_payment_year=1, voluntary_payment_amount=Decimal("nan"))
        assert errors["voluntary_payment_amount"] == "Amount must be a number"

    def test_all_errors_reported_together(self):
        errors = _errors(
            current_debt=Decimal("-1"),
            annual_income=Decimal("-1"),
            salary_growth_rate=Decimal("101"),
        )
        assert set(errors) == {"current_debt", "annual_income", "salary_growth_rate"}

    def test_error_message_lists_fields(self):
        with pytest.raises(InputValidationError, match="current_debt"):
            resolve(_base_inputs(current_debt=Decimal("-1")))

    def test_validation_error_is_value_error(self):
        assert issubclass(InputValidationError, ValueError)


class TestRunProjection:
    def test_uses_resolved_schedule(self):
        resolved = resolve(_base_inputs(indexation_rate=Decimal("4.0")))
        result = run_projection(resolved)
        assert result.initial_repayment_rate == Decimal("3.0")
        assert result.projected_balance_next_period == Decimal("20800")

    def test_2023_table_gives_different_rate(self):
        resolved = resolve(_base_inputs(table_year="2023"))
        assert run_projection(resolved).initial_repayment_rate == Decimal("3.5")

    def test_zero_debt(self):
        result = run_projection(resolve(_base_inputs(current_debt=Decimal("0"))))
        assert result.years_to_repay == 0
        assert [m.kind for m in result.milestones] == [MilestoneKind.START]
