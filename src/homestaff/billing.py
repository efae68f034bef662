"""Billing calculation for booking payments.

Maps a salary, a billing plan, a tax (GST) rate and the trial fee to the
commission owed, the tax on that commission, and the total payable.

Plan schedule
~~~~~~~~~~~~~
- ``standard``: commission is the full salary.
- ``japa``: commission is half the salary.
- ``trial``: commission is one day of salary (``salary / 30``) plus the
  fixed trial fee.

Tax is ``commission * tax_rate / 100`` rounded half-up to two decimal
places.  The total is the exact sum ``commission + tax_amount`` with no
further rounding, so a fractional trial commission carries its extra digits
into the total.

All arithmetic uses :class:`decimal.Decimal`.  Only the daily rate of a trial
booking is inexact; it keeps the significant digits of the current context.

Example::

    result = calculate(10000, PlanVariant.STANDARD, tax_rate=18, trial_fee=199)
    print(result.commission, result.tax_amount, result.total_amount)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import (
    MAX_EMAX,
    MIN_EMIN,
    ROUND_HALF_UP,
    Decimal,
    InvalidOperation,
    getcontext,
    localcontext,
)
from enum import Enum
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]

_CENT = Decimal("0.01")
_TWO = Decimal("2")
_TRIAL_DAYS = Decimal("30")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class BillingError(ValueError):
    """Base class for rejected billing inputs."""


class InvalidVariant(BillingError):
    """Raised when the plan variant is not one of the supported plans."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(
            f"Unknown billing plan {value!r}. "
            f"Expected one of: {', '.join(PlanVariant.choices())}"
        )


class InvalidAmount(BillingError):
    """Raised when a monetary input is negative, NaN, infinite or unparsable.

    Attributes:
        field: Name of the offending input (``"salary"``, ``"tax_rate"``...).
        value: The raw value that was rejected.
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field} {value!r}: {reason}")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class PlanVariant(str, Enum):
    """Billing plans a payment can be raised under."""

    STANDARD = "standard"
    HALF_COMMISSION = "japa"
    TRIAL = "trial"

    @classmethod
    def parse(cls, value: Union[PlanVariant, str]) -> PlanVariant:
        """Return the plan for *value*, accepting members or domain strings.

        Raises :class:`InvalidVariant` for anything else.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidVariant(value)

    @classmethod
    def choices(cls) -> List[str]:
        return [member.value for member in cls]


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BillingResult:
    """Outcome of a billing calculation.

    Attributes:
        plan: Plan the amounts were computed under.
        commission: Amount owed before tax.
        tax_amount: Tax on ``commission``, rounded to 2 decimal places.
        total_amount: ``commission + tax_amount``, not re-rounded.
        tax_rate: Tax percentage used.
        trial_fee: Trial fee that was available to the calculation.
    """

    plan: PlanVariant
    commission: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    tax_rate: Decimal
    trial_fee: Decimal

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serialisable dictionary with amounts as strings."""
        return {
            "plan": self.plan.value,
            "commission": str(self.commission),
            "tax_amount": str(self.tax_amount),
            "total_amount": str(self.total_amount),
            "tax_rate": str(self.tax_rate),
            "trial_fee": str(self.trial_fee),
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_decimal(value: Amount, field: str) -> Decimal:
    """Coerce *value* to a finite, non-negative :class:`Decimal`.

    Floats are routed through ``str()`` so ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if isinstance(value, bool):
        raise InvalidAmount(field, value, "expected a number, got a boolean")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidAmount(field, value, "not a number") from None
    else:
        raise InvalidAmount(field, value, f"unsupported type {type(value).__name__}")

    if not amount.is_finite():
        raise InvalidAmount(field, value, "must be a finite number")
    if amount < 0:
        raise InvalidAmount(field, value, "must not be negative")
    if amount.adjusted() > getcontext().Emax:
        raise InvalidAmount(field, value, "out of range")
    return amount


def round2(amount: Decimal) -> Decimal:
    """Round *amount* half-up to whole cents."""
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def _exact_precision(*amounts: Decimal) -> int:
    """Return a precision at which any sum or pairwise product of *amounts* is exact.

    Never lower than the current context precision.
    """
    top = max(a.adjusted() for a in amounts)
    bottom = min(a.as_tuple().exponent for a in amounts)
    digits = sum(len(a.as_tuple().digits) for a in amounts)
    return max(getcontext().prec, top - bottom + 2, digits + 1)


# ---------------------------------------------------------------------------
# Commission policy
# ---------------------------------------------------------------------------


def _full_salary(salary: Decimal, trial_fee: Decimal) -> Decimal:
    return salary


def _half_salary(salary: Decimal, trial_fee: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _exact_precision(salary, _TWO)
        return salary / _TWO


def _one_day_plus_fee(salary: Decimal, trial_fee: Decimal) -> Decimal:
    with localcontext() as ctx:
        # The daily rate is the one inexact step: it keeps the context's
        # significant digits, plus room for the integer part of large salaries.
        ctx.prec = max(ctx.prec, salary.adjusted() + 5)
        daily_rate = salary / _TRIAL_DAYS
        ctx.prec = _exact_precision(daily_rate, trial_fee)
        return daily_rate + trial_fee


_COMMISSION_RULES: Dict[PlanVariant, Callable[[Decimal, Decimal], Decimal]] = {
    PlanVariant.STANDARD: _full_salary,
    PlanVariant.HALF_COMMISSION: _half_salary,
    PlanVariant.TRIAL: _one_day_plus_fee,
}


def commission_for(plan: PlanVariant, salary: Decimal, trial_fee: Decimal) -> Decimal:
    """Return the pre-tax commission for *salary* under *plan*."""
    return _COMMISSION_RULES[plan](salary, trial_fee)


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------


def calculate(
    salary: Amount,
    plan_variant: Union[PlanVariant, str],
    tax_rate: Amount,
    trial_fee: Amount,
) -> BillingResult:
    """Compute commission, tax and total for one booking payment.

    Args:
        salary: Monthly salary agreed for the booking.
        plan_variant: A :class:`PlanVariant` or its value
            (``"standard"``, ``"japa"``, ``"trial"``).
        tax_rate: Tax percentage, e.g. ``18`` for 18 % GST.
        trial_fee: Fixed fee added to the commission on trial bookings.

    Returns:
        A :class:`BillingResult`.

    Raises:
        InvalidVariant: *plan_variant* is not a supported plan.
        InvalidAmount: any amount is negative, NaN, infinite or unparsable.
    """
    plan = PlanVariant.parse(plan_variant)
    salary_d = to_decimal(salary, "salary")
    rate_d = to_decimal(tax_rate, "tax_rate")
    fee_d = to_decimal(trial_fee, "trial_fee")

    with localcontext() as ctx:
        ctx.Emax, ctx.Emin = MAX_EMAX, MIN_EMIN
        commission = commission_for(plan, salary_d, fee_d)

        # The product and the shift by two places are exact, so the tax is
        # rounded once, by round2.
        ctx.prec = _exact_precision(commission, rate_d)
        raw_tax = (commission * rate_d).scaleb(-2)
        ctx.prec = max(ctx.prec, raw_tax.adjusted() + 4)
        tax_amount = round2(raw_tax)

        ctx.prec = _exact_precision(commission, tax_amount)
        total_amount = commission + tax_amount

    logger.debug(
        "Billing %s salary=%s rate=%s -> commission=%s tax=%s total=%s",
        plan.value, salary_d, rate_d, commission, tax_amount, total_amount,
    )
    return BillingResult(
        plan=plan,
        commission=commission,
        tax_amount=tax_amount,
        total_amount=total_amount,
        tax_rate=rate_d,
        trial_fee=fee_d,
    )
