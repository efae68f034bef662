"""Payment records raised against bookings.

Two entry points call the billing calculator:

- :func:`preview_billing` / :meth:`BillingService.preview` -- the live
  calculator shown while staff type a salary.  Nothing is stored.
- :meth:`BillingService.create_payment` -- computes the amounts and stores
  a ``pending`` :class:`PaymentRecord` in the :class:`PaymentLedger`.

The service reads one :class:`~homestaff.config.SystemConfig` snapshot per
call and hands its tax rate and trial fee to the calculator explicitly.

Example::

    service = BillingService(ConfigProvider())
    record = service.create_payment(booking_id=42, plan="trial", base_salary=3000)
    print(record.total_amount, record.status.value)
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

from homestaff.billing import Amount, BillingResult, PlanVariant, calculate, to_decimal
from homestaff.config import SystemConfig

logger = logging.getLogger(__name__)

ConfigSource = Callable[[], SystemConfig]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class PaymentStatus(str, Enum):
    """Lifecycle states of a booking payment."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"

    @classmethod
    def parse(cls, value: PaymentStatus | str) -> PaymentStatus:
        """Return the status for *value*, ignoring case and surrounding blanks.

        Raises :class:`InvalidStatus` for anything else.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidStatus(value)


class InvalidStatus(ValueError):
    """Raised when a payment status is not one of :class:`PaymentStatus`."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(
            f"Unknown payment status {value!r}. "
            f"Expected one of: {', '.join(s.value for s in PaymentStatus)}"
        )


class PaymentNotFoundError(KeyError):
    """Raised when a payment id is not in the ledger."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentRecord:
    """A payment raised for a booking.

    ``trial_fee`` is only set for trial-plan payments.
    """

    payment_id: str
    booking_id: int
    payment_type: PlanVariant
    base_salary: Decimal
    commission: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    trial_fee: Decimal | None
    status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    payment_date: datetime | None = None
    notes: str | None = None

    @classmethod
    def from_result(
        cls,
        booking_id: int,
        base_salary: Decimal,
        result: BillingResult,
    ) -> PaymentRecord:
        """Build a new ``pending`` record from a calculation."""
        now = datetime.now(timezone.utc)
        return cls(
            payment_id=secrets.token_hex(8),
            booking_id=booking_id,
            payment_type=result.plan,
            base_salary=base_salary,
            commission=result.commission,
            tax_rate=result.tax_rate,
            tax_amount=result.tax_amount,
            total_amount=result.total_amount,
            trial_fee=result.trial_fee if result.plan is PlanVariant.TRIAL else None,
            status=PaymentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable dictionary."""
        return {
            "payment_id": self.payment_id,
            "booking_id": self.booking_id,
            "payment_type": self.payment_type.value,
            "base_salary": str(self.base_salary),
            "commission": str(self.commission),
            "tax_rate": str(self.tax_rate),
            "tax_amount": str(self.tax_amount),
            "total_amount": str(self.total_amount),
            "trial_fee": str(self.trial_fee) if self.trial_fee is not None else None,
            "status": self.status.value,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class PaymentLedger:
    """Thread-safe in-memory store of :class:`PaymentRecord` objects.

    Stands in for the payments table; a database-backed ledger only needs to
    provide the same methods.
    """

    def __init__(self) -> None:
        self._records: dict[str, PaymentRecord] = {}
        self._lock = threading.RLock()

    def add(self, record: PaymentRecord) -> PaymentRecord:
        with self._lock:
            self._records[record.payment_id] = record
        return record

    def get(self, payment_id: str) -> PaymentRecord:
        with self._lock:
            try:
                return self._records[payment_id]
            except KeyError:
                raise PaymentNotFoundError(payment_id) from None

    def replace(self, record: PaymentRecord) -> PaymentRecord:
        with self._lock:
            if record.payment_id not in self._records:
                raise PaymentNotFoundError(record.payment_id)
            self._records[record.payment_id] = record
        return record

    def update(
        self,
        payment_id: str,
        change: Callable[[PaymentRecord], PaymentRecord],
    ) -> PaymentRecord:
        """Replace a record with ``change(record)`` while holding the lock.

        If *change* raises, the stored record is left as it was.
        """
        with self._lock:
            updated = change(self.get(payment_id))
            self._records[payment_id] = updated
        return updated

    def list_for_booking(self, booking_id: int) -> list[PaymentRecord]:
        """Return the booking's payments, oldest first."""
        with self._lock:
            return [r for r in self._records.values() if r.booking_id == booking_id]


# ---------------------------------------------------------------------------
# Boundary operations
# ---------------------------------------------------------------------------


def preview_billing(
    salary: Amount,
    plan: PlanVariant | str,
    config: SystemConfig,
) -> BillingResult:
    """Compute a billing preview from a config snapshot without storing anything."""
    return calculate(salary, plan, config.tax_rate, config.trial_fee)


class BillingService:
    """Runs billing calculations against the current system config.

    Args:
        config_source: Zero-argument callable returning a
            :class:`SystemConfig`, e.g. :class:`~homestaff.config.ConfigProvider`.
        ledger: Where created payments are stored.  Defaults to a fresh
            in-memory :class:`PaymentLedger`.
    """

    def __init__(
        self,
        config_source: ConfigSource,
        ledger: PaymentLedger | None = None,
    ) -> None:
        self._config_source = config_source
        self._ledger = ledger or PaymentLedger()

    @property
    def ledger(self) -> PaymentLedger:
        return self._ledger

    def preview(self, salary: Amount, plan: PlanVariant | str) -> BillingResult:
        """Return the amounts a payment would carry, using the current config."""
        return preview_billing(salary, plan, self._config_source())

    def create_payment(
        self,
        booking_id: int,
        plan: PlanVariant | str,
        base_salary: Amount,
    ) -> PaymentRecord:
        """Calculate and store a ``pending`` payment for *booking_id*.

        Billing errors propagate before anything is stored.
        """
        result = preview_billing(base_salary, plan, self._config_source())
        salary = to_decimal(base_salary, "base_salary")
        record = self._ledger.add(PaymentRecord.from_result(booking_id, salary, result))
        logger.info(
            "Created %s payment %s for booking %s: total %s",
            record.payment_type.value, record.payment_id, booking_id, record.total_amount,
        )
        return record

    def payments_for_booking(self, booking_id: int) -> list[PaymentRecord]:
        return self._ledger.list_for_booking(booking_id)

    def update_status(
        self,
        payment_id: str,
        status: PaymentStatus | str,
        *,
        notes: str | None = None,
    ) -> PaymentRecord:
        """Move a payment to *status*; marking it paid stamps ``payment_date``.

        Raises :class:`PaymentNotFoundError` for unknown ids and
        :class:`InvalidStatus` for unknown statuses.
        """
        new_status = PaymentStatus.parse(status)
        previous: PaymentStatus | None = None

        def transition(current: PaymentRecord) -> PaymentRecord:
            nonlocal previous
            previous = current.status
            now = datetime.now(timezone.utc)
            return replace(
                current,
                status=new_status,
                updated_at=now,
                payment_date=now if new_status is PaymentStatus.PAID else current.payment_date,
                notes=notes if notes is not None else current.notes,
            )

        updated = self._ledger.update(payment_id, transition)
        logger.info("Payment %s: %s -> %s", payment_id, previous.value, new_status.value)
        return updated
