from datetime import date
from enum import Enum
from typing import Optional, Union

from .money import to_decimal


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    PAID = "paid"


# statuses the collections sweep still has to look at
OPEN_STATUSES = (InvoiceStatus.ISSUED, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE)


def resolve_status(
    total_amount,
    amount_paid,
    due_date: date,
    today: date,
    current: Optional[Union[InvoiceStatus, str]] = None,
) -> InvoiceStatus:
    """Derive an invoice's status from what has been paid and when it is due.

    First match wins:

    1. paid in full                        -> ``paid``
    2. past due with a balance outstanding -> ``overdue`` (even if partly paid)
    3. something paid, not yet due         -> ``partial``
    4. nothing paid, not yet due           -> ``issued``

    A ``draft`` invoice stays a draft until it is issued explicitly; the
    resolver never turns any other status back into ``draft``.
    """
    if current is not None and InvoiceStatus(current) is InvoiceStatus.DRAFT:
        return InvoiceStatus.DRAFT

    total = to_decimal(total_amount, "total_amount")
    paid = to_decimal(amount_paid, "amount_paid")

    if paid >= total:
        return InvoiceStatus.PAID
    if today > due_date:
        return InvoiceStatus.OVERDUE
    if paid > 0:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.ISSUED
