"""Skonto (early payment discount) calculations."""

from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from parkledger.domain.entities import Invoice, SkontoStatus
from parkledger.utils.money import Number, ZERO, from_cents, to_cents, to_decimal


def calculate_skonto_discount(gross_amount: Number, skonto_percent: Number) -> Decimal:
    """Discount in EUR, computed on integer cents.

    Returns 0 unless ``0 < skonto_percent <= 100`` and ``gross_amount > 0``.
    """
    gross = to_decimal(gross_amount)
    percent = to_decimal(skonto_percent)
    if percent <= 0 or percent > 100 or gross <= 0:
        return ZERO

    discount_cents = (to_cents(gross) * percent / 100).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return from_cents(int(discount_cents))


def calculate_skonto_payment_amount(gross_amount: Number, skonto_percent: Number) -> Decimal:
    """Amount due when paying within the Skonto period."""
    discount = calculate_skonto_discount(gross_amount, skonto_percent)
    return from_cents(to_cents(gross_amount) - to_cents(discount))


def calculate_skonto_deadline(invoice_date: date, skonto_days: int) -> date:
    """Last day of the Skonto period (calendar days, no business-day logic)."""
    return invoice_date + timedelta(days=skonto_days)


def is_skonto_valid(skonto_deadline: date, now: Optional[datetime] = None) -> bool:
    """True while ``now`` has not passed the end of the deadline day."""
    now = now or datetime.now()
    return now <= datetime.combine(skonto_deadline, time.max, tzinfo=now.tzinfo)


def get_skonto_status(
    skonto_percent: Optional[Number],
    skonto_days: Optional[int],
    skonto_deadline: Optional[date],
    skonto_paid: bool = False,
    now: Optional[datetime] = None,
) -> SkontoStatus:
    """Determine the Skonto state.

    NONE without configuration; APPLIED once paid with Skonto, regardless of
    the deadline; otherwise ELIGIBLE or EXPIRED by comparing ``now`` with
    the deadline. An invoice without a deadline yet (not sent) is ELIGIBLE.
    """
    if not skonto_percent or not skonto_days:
        return SkontoStatus.NONE
    if skonto_paid:
        return SkontoStatus.APPLIED
    if skonto_deadline is None or is_skonto_valid(skonto_deadline, now):
        return SkontoStatus.ELIGIBLE
    return SkontoStatus.EXPIRED


def get_invoice_skonto_status(invoice: Invoice, now: Optional[datetime] = None) -> SkontoStatus:
    """Skonto state of a persisted invoice."""
    return get_skonto_status(
        skonto_percent=invoice.skonto_percent,
        skonto_days=invoice.skonto_days,
        skonto_deadline=invoice.skonto_deadline,
        skonto_paid=invoice.skonto_paid,
        now=now,
    )
