"""Tests for homestaff.billing -- the billing calculator.

Covers:
- Commission per plan: standard, japa (half), trial (salary/30 + fee)
- GST: rounding to cents, half-up, zero rate
- total == commission + tax with no re-rounding
- Reference scenarios at 18 % GST and a 199 trial fee
- Input coercion: Decimal, int, float, str
- Rejection of negative, NaN, infinite and unparsable amounts
- Rejection of unknown plans
- BillingResult.to_dict
"""

from __future__ import annotations

from decimal import Decimal, localcontext

import pytest

from homestaff.billing import (
    BillingError,
    _COMMISSION_RULES,
    BillingResult,
    InvalidAmount,
    InvalidVariant,
    PlanVariant,
    calculate,
    commission_for,
    round2,
    to_decimal,
)

GST = Decimal("18")
TRIAL_FEE = Decimal("199")

SALARIES = ["0", "1", "999.99", "3000", "5000", "10000", "10000.50", "12345.67", "1000000"]


def _daily_rate_plus_fee(salary) -> Decimal:
    """One day of *salary* at the default precision, plus the fee added exactly."""
    daily_rate = Decimal(salary) / 30
    with localcontext() as ctx:
        ctx.prec = 100
        return daily_rate + TRIAL_FEE


# ---------------------------------------------------------------------------
# PlanVariant
# ---------------------------------------------------------------------------


class TestPlanVariant:
    def test_domain_values(self):
        assert PlanVariant.STANDARD.value == "standard"
        assert PlanVariant.HALF_COMMISSION.value == "japa"
        assert PlanVariant.TRIAL.value == "trial"

    def test_choices(self):
        assert PlanVariant.choices() == ["standard", "japa", "trial"]

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("standard", PlanVariant.STANDARD),
            ("japa", PlanVariant.HALF_COMMISSION),
            ("trial", PlanVariant.TRIAL),
            ("JAPA", PlanVariant.HALF_COMMISSION),
            ("  Trial ", PlanVariant.TRIAL),
            (PlanVariant.STANDARD, PlanVariant.STANDARD),
        ],
    )
    def test_parse_accepts_known_plans(self, raw, expected):
        assert PlanVariant.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["premium", "", "half", None, 3, ["standard"]])
    def test_parse_rejects_unknown(self, raw):
        with pytest.raises(InvalidVariant) as exc_info:
            PlanVariant.parse(raw)
        assert exc_info.value.value == raw
        assert "standard, japa, trial" in str(exc_info.value)


# ---------------------------------------------------------------------------
# Commission rules
# ---------------------------------------------------------------------------


class TestCommission:
    """Commission formula per plan."""

    @pytest.mark.parametrize("salary", SALARIES)
    def test_standard_is_full_salary(self, salary):
        result = calculate(salary, PlanVariant.STANDARD, GST, TRIAL_FEE)
        assert result.commission == Decimal(salary)

    @pytest.mark.parametrize("salary", SALARIES)
    def test_japa_is_half_salary(self, salary):
        result = calculate(salary, PlanVariant.HALF_COMMISSION, GST, TRIAL_FEE)
        assert result.commission == Decimal(salary) / 2

    @pytest.mark.parametrize("salary", SALARIES)
    def test_japa_is_half_of_standard(self, salary):
        standard = calculate(salary, "standard", GST, TRIAL_FEE)
        japa = calculate(salary, "japa", GST, TRIAL_FEE)
        assert japa.commission == standard.commission / 2

    @pytest.mark.parametrize("salary", SALARIES)
    def test_trial_is_one_day_plus_fee(self, salary):
        result = calculate(salary, PlanVariant.TRIAL, GST, TRIAL_FEE)
        assert result.commission == _daily_rate_plus_fee(salary)

    def test_trial_fee_ignored_outside_trial(self):
        low = calculate(10000, "standard", GST, 0)
        high = calculate(10000, "standard", GST, 5000)
        assert low == BillingResult(
            plan=PlanVariant.STANDARD,
            commission=high.commission,
            tax_amount=high.tax_amount,
            total_amount=high.total_amount,
            tax_rate=GST,
            trial_fee=Decimal("0"),
        )

    def test_trial_fractional_commission_not_rounded(self):
        result = calculate(1000, "trial", GST, TRIAL_FEE)
        assert result.commission == _daily_rate_plus_fee(1000)
        # More than two decimal places survive in commission and total.
        assert result.commission.as_tuple().exponent < -2
        assert result.total_amount.as_tuple().exponent < -2

    def test_every_plan_has_a_rule(self):
        assert set(_COMMISSION_RULES) == set(PlanVariant)

    def test_commission_for_every_plan(self):
        for plan in PlanVariant:
            assert commission_for(plan, Decimal("0"), Decimal("0")) == 0


# ---------------------------------------------------------------------------
# Tax and total
# ---------------------------------------------------------------------------


class TestTax:
    def test_eighteen_percent(self):
        assert calculate(10000, "standard", 18, 199).tax_amount == Decimal("1800.00")

    def test_custom_rates(self):
        assert calculate(10000, "standard", 5, 199).tax_amount == Decimal("500")
        assert calculate(10000, "standard", 12, 199).tax_amount == Decimal("1200")

    def test_fractional_rate(self):
        # 1000 * 12.5% = 125.00
        assert calculate(1000, "standard", "12.5", 199).tax_amount == Decimal("125.00")

    def test_tax_rounded_to_cents(self):
        result = calculate(10001, "standard", 18, 199)
        assert result.tax_amount == Decimal("1800.18")
        assert result.tax_amount.as_tuple().exponent == -2

    def test_half_up_rounding(self):
        # 0.25 * 18% = 0.045 -> 0.05
        result = calculate("0.25", "standard", 18, 199)
        assert result.tax_amount == Decimal("0.05")

    def test_rounds_down_below_half(self):
        # 0.24 * 18% = 0.0432 -> 0.04
        assert calculate("0.24", "standard", 18, 199).tax_amount == Decimal("0.04")

    @pytest.mark.parametrize("plan", PlanVariant.choices())
    @pytest.mark.parametrize("salary", SALARIES)
    def test_tax_has_at_most_two_decimals(self, plan, salary):
        result = calculate(salary, plan, GST, TRIAL_FEE)
        assert result.tax_amount.as_tuple().exponent >= -2
        with localcontext() as ctx:
            ctx.prec = 100
            assert result.tax_amount == round2(result.commission * GST / 100)

    @pytest.mark.parametrize("plan", PlanVariant.choices())
    @pytest.mark.parametrize("salary", SALARIES)
    def test_total_is_commission_plus_tax(self, plan, salary):
        result = calculate(salary, plan, GST, TRIAL_FEE)
        with localcontext() as ctx:
            ctx.prec = 100
            assert result.total_amount == result.commission + result.tax_amount

    def test_tax_rounded_once_on_long_fractions(self):
        # Exactly 0.0049999... before rounding, so half-up gives 0.00.
        result = calculate(Decimal("0.0049999999999999999999999999999"), "standard", 100, 199)
        assert result.tax_amount == Decimal("0.00")

    def test_tax_on_long_fraction_of_a_cent(self):
        # 0.00500000000000000000000000000001 rounds up.
        result = calculate(Decimal("0.00500000000000000000000000000001"), "standard", 100, 199)
        assert result.tax_amount == Decimal("0.01")

    def test_total_is_exact_for_long_fractions(self):
        result = calculate(Decimal("9.999999999999999999999999999"), "standard", 18, 199)
        assert result.tax_amount == Decimal("1.80")
        assert result.total_amount == Decimal("11.799999999999999999999999999")

    def test_long_fractional_rate(self):
        rate = Decimal("18.00000000000000000000000000001")
        result = calculate(10000, "standard", rate, 199)
        assert result.tax_amount == Decimal("1800.00")
        assert result.total_amount == Decimal("11800.00")

    def test_long_fractional_trial_fee_kept_exactly(self):
        fee = Decimal("199.000000000000000000000000000001")
        result = calculate(3000, "trial", 18, fee)
        assert result.commission == Decimal("299.000000000000000000000000000001")
        assert result.tax_amount == Decimal("53.82")
        assert result.total_amount == Decimal("352.820000000000000000000000000001")

    def test_ambient_precision_does_not_change_results(self):
        with localcontext() as ctx:
            ctx.prec = 5
            result = calculate("123456.789", "standard", 18, 199)
        assert result.tax_amount == Decimal("22222.22")
        assert result.total_amount == Decimal("145679.009")

    @pytest.mark.parametrize("plan", PlanVariant.choices())
    def test_zero_rate(self, plan):
        result = calculate(10000, plan, 0, TRIAL_FEE)
        assert result.tax_amount == 0
        assert result.total_amount == result.commission

    @pytest.mark.parametrize("plan", ["standard", "japa"])
    def test_zero_salary(self, plan):
        result = calculate(0, plan, GST, TRIAL_FEE)
        assert result.commission == 0
        assert result.tax_amount == 0
        assert result.total_amount == 0

    def test_zero_salary_trial_still_charges_fee(self):
        result = calculate(0, "trial", GST, TRIAL_FEE)
        assert result.commission == Decimal("199")
        assert result.tax_amount == Decimal("35.82")
        assert result.total_amount == Decimal("234.82")


# ---------------------------------------------------------------------------
# Reference scenarios (18 % GST, 199 trial fee)
# ---------------------------------------------------------------------------


class TestScenarios:
    @pytest.mark.parametrize(
        "salary, plan, rate, commission, tax, total",
        [
            (10000, PlanVariant.STANDARD, 18, "10000.00", "1800.00", "11800.00"),
            (10000, PlanVariant.HALF_COMMISSION, 18, "5000.00", "900.00", "5900.00"),
            (3000, PlanVariant.TRIAL, 18, "299.00", "53.82", "352.82"),
            (1000000, PlanVariant.STANDARD, 18, "1000000.00", "180000.00", "1180000.00"),
            (10000, PlanVariant.STANDARD, 0, "10000.00", "0.00", "10000.00"),
        ],
    )
    def test_scenario(self, salary, plan, rate, commission, tax, total):
        result = calculate(salary, plan, rate, 199)
        assert result.commission == Decimal(commission)
        assert result.tax_amount == Decimal(tax)
        assert result.total_amount == Decimal(total)

    def test_negative_salary_rejected(self):
        with pytest.raises(InvalidAmount) as exc_info:
            calculate(-1, PlanVariant.STANDARD, 18, 199)
        assert exc_info.value.field == "salary"

    def test_decimal_salary(self):
        assert calculate(10000.50, "standard", 18, 199).commission == Decimal("10000.50")

    def test_huge_salary_keeps_every_digit(self):
        salary = 10 ** 30
        result = calculate(salary, "standard", 18, 199)
        assert result.commission == Decimal(salary)
        assert result.tax_amount == Decimal("180000000000000000000000000000.00")
        assert result.total_amount == Decimal("1180000000000000000000000000000.00")
        with localcontext() as ctx:
            ctx.prec = 60
            assert result.total_amount == result.commission + result.tax_amount


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize("field", ["salary", "tax_rate", "trial_fee"])
    @pytest.mark.parametrize(
        "bad",
        [-1, "-0.01", Decimal("-5"), float("nan"), float("inf"), "NaN", "Infinity", "abc", "", True, None, [1]],
    )
    def test_rejects_bad_amounts(self, field, bad):
        args = {"salary": 10000, "tax_rate": 18, "trial_fee": 199}
        args[field] = bad
        with pytest.raises(InvalidAmount) as exc_info:
            calculate(args["salary"], "standard", args["tax_rate"], args["trial_fee"])
        assert exc_info.value.field == field
        assert field in str(exc_info.value)

    def test_unknown_plan_rejected(self):
        with pytest.raises(InvalidVariant):
            calculate(10000, "premium", 18, 199)

    def test_errors_are_value_errors(self):
        assert issubclass(InvalidAmount, BillingError)
        assert issubclass(InvalidVariant, BillingError)
        assert issubclass(BillingError, ValueError)

    def test_out_of_range_exponent_rejected(self):
        with pytest.raises(InvalidAmount):
            to_decimal("1e999999999", "salary")

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (Decimal("12.34"), Decimal("12.34")),
            (12, Decimal("12")),
            (0.1, Decimal("0.1")),
            (" 42.50 ", Decimal("42.50")),
            ("-0", Decimal("0")),
        ],
    )
    def test_to_decimal_coercion(self, raw, expected):
        assert to_decimal(raw, "salary") == expected

    def test_float_and_string_inputs_agree(self):
        assert calculate(0.1, "standard", 18, 199) == calculate("0.1", "standard", "18", "199")


# ---------------------------------------------------------------------------
# BillingResult
# ---------------------------------------------------------------------------


class TestBillingResult:
    def test_to_dict(self):
        d = calculate(3000, "trial", 18, 199).to_dict()
        assert d == {
            "plan": "trial",
            "commission": "299",
            "tax_amount": "53.82",
            "total_amount": "352.82",
            "tax_rate": "18",
            "trial_fee": "199",
        }

    def test_frozen(self):
        result = calculate(10000, "standard", 18, 199)
        with pytest.raises(AttributeError):
            result.commission = Decimal("1")  # type: ignore[misc]
