"""Monthly invoice schedule for a lease contract."""
import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List

from dateutil.relativedelta import relativedelta

from ..errors import ValidationError
from .money import to_decimal
from .status import InvoiceStatus
from .totals import InvoiceTotals, totals_for_rent

PAYMENT_DAY_MIN = 1
PAYMENT_DAY_MAX = 30


@dataclass(frozen=True)
class ScheduledInvoice:
    sequence: int
    number: str
    period: date
    issue_date: date
    due_date: date
    totals: InvoiceTotals
    status: InvoiceStatus
    charge_description: str

    @property
    def subtotal(self) -> Decimal:
        return self.totals.subtotal


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def due_date_for(period: date, payment_day: int) -> date:
    """``payment_day`` within the month of ``period``, clamped to the month's last day."""
    last_day = calendar.monthrange(period.year, period.month)[1]
    return period.replace(day=min(payment_day, last_day))


def validate_terms(start_date: date, end_date: date, rent_amount, payment_day) -> Decimal:
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if end_date < start_date:
        raise ValidationError(
            "end_date must be on or after start_date", start_date=start_date, end_date=end_date
        )
    if isinstance(payment_day, bool) or not isinstance(payment_day, int):
        raise ValidationError("payment_day must be an integer", payment_day=payment_day)
    if not PAYMENT_DAY_MIN <= payment_day <= PAYMENT_DAY_MAX:
        raise ValidationError(
            f"payment_day must be between {PAYMENT_DAY_MIN} and {PAYMENT_DAY_MAX}",
            payment_day=payment_day,
        )
    rent = to_decimal(rent_amount, "rent_amount")
    if rent <= 0:
        raise ValidationError("rent_amount must be positive", rent_amount=rent)
    return rent


def plan_schedule(
    start_date: date,
    end_date: date,
    rent_amount,
    payment_day: int,
    number_prefix: str = "INV",
) -> List[ScheduledInvoice]:
    """One invoice per calendar month touched by ``start_date..end_date``.

    Partial first and last months are billed the full rent. The first
    invoice is issued on ``start_date``, the rest on the first of their month.
    """
    rent = validate_terms(start_date, end_date, rent_amount, payment_day)
    totals = totals_for_rent(rent)

    schedule = []
    period = start_date.replace(day=1)
    sequence = 1
    while period <= end_date:
        schedule.append(
            ScheduledInvoice(
                sequence=sequence,
                number=f"{number_prefix}-{sequence:03d}",
                period=period,
                issue_date=start_date if sequence == 1 else period,
                due_date=due_date_for(period, payment_day),
                totals=totals,
                status=InvoiceStatus.ISSUED,
                charge_description=f"Rent - {period:%B %Y}",
            )
        )
        period = period + relativedelta(months=1)
        sequence += 1
    return schedule
