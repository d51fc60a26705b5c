"""Balance-due checks and amount-paid arithmetic for invoice payments.

These functions only compute; the caller must read ``total`` and ``paid``
from a locked invoice row and write the result back in the same transaction.
"""
from decimal import Decimal

from ..errors import ConcurrencyConflictError, InvalidAmountError, OverpaymentError
from .money import quantize, to_decimal


def balance_due(total_amount, amount_paid, returning=0) -> Decimal:
    """Outstanding balance, with ``returning`` (a payment being replaced) given back first."""
    return quantize(to_decimal(total_amount) - to_decimal(amount_paid) + to_decimal(returning))


def check_payment(total_amount, amount_paid, amount, replacing=0) -> Decimal:
    amount = quantize(to_decimal(amount))
    # checked after rounding so sub-cent amounts cannot land as zero payments
    if amount <= 0:
        raise InvalidAmountError("Payment amount must be greater than zero", amount=amount)
    due = balance_due(total_amount, amount_paid, replacing)
    if amount > due:
        raise OverpaymentError(
            f"Payment amount ({amount}) exceeds the balance due ({due})",
            amount=amount,
            balance_due=due,
        )
    return amount


def apply_payment(total_amount, amount_paid, amount) -> Decimal:
    """New amount paid after adding ``amount``."""
    amount = check_payment(total_amount, amount_paid, amount)
    return quantize(to_decimal(amount_paid) + amount)


def revise_payment(total_amount, amount_paid, old_amount, new_amount) -> Decimal:
    """New amount paid after an existing payment changes from ``old_amount`` to ``new_amount``."""
    new_amount = check_payment(total_amount, amount_paid, new_amount, replacing=old_amount)
    return quantize(to_decimal(amount_paid) - to_decimal(old_amount) + new_amount)


def remove_payment(amount_paid, amount) -> Decimal:
    """New amount paid after ``amount`` is taken back out."""
    remaining = to_decimal(amount_paid) - to_decimal(amount)
    if remaining < 0:
        raise ConcurrencyConflictError(
            "Invoice amount paid is lower than the payment being removed",
            amount_paid=amount_paid,
            amount=amount,
        )
    return quantize(remaining)
