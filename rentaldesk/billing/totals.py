"""Invoice totals from line-item charges."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from ..errors import InvalidChargeError
from .money import as_str, quantize, to_decimal

CHARGE_RENT = "rent"
CHARGE_LATE_FEE = "late_fee"
CHARGE_OTHER = "other"
CHARGE_KINDS = (CHARGE_RENT, CHARGE_LATE_FEE, CHARGE_OTHER)


@dataclass(frozen=True)
class ChargeLine:
    description: str
    amount: Decimal
    kind: str = CHARGE_RENT


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax: Decimal
    other_charges: Decimal
    late_fee: Decimal
    total: Decimal

    def as_dict(self):
        return {
            "subtotal": as_str(self.subtotal),
            "tax": as_str(self.tax),
            "other_charges": as_str(self.other_charges),
            "late_fee": as_str(self.late_fee),
            "total": as_str(self.total),
        }


def _non_negative(value, field: str) -> Decimal:
    amount = to_decimal(value or 0, field)
    if amount < 0:
        raise InvalidChargeError(f"{field} cannot be negative", field=field, amount=amount)
    return amount


def calculate_totals(
    charges: Iterable,
    tax=0,
    other_charges=0,
    late_fee=None,
    allow_credits: bool = False,
) -> InvoiceTotals:
    """Derive subtotal, late fee and total from ``charges``.

    ``charges`` is any iterable of objects with ``amount`` and an optional
    ``kind`` (``ChargeLine`` or the ``InvoiceCharge`` model). Late-fee lines
    add to ``late_fee``, every other line to ``subtotal``. ``late_fee`` is an
    extra fee not present as a charge line.

    Negative charges are credits and are rejected unless ``allow_credits``;
    a negative total is always rejected. Each component is rounded once from
    its full-precision sum and the total is their exact sum, so
    ``total == subtotal + tax + other_charges + late_fee`` always holds.
    """
    subtotal = Decimal(0)
    fees = Decimal(0)
    for charge in charges:
        amount = to_decimal(charge.amount, "charge amount")
        if amount < 0 and not allow_credits:
            raise InvalidChargeError(
                "Charge amounts cannot be negative",
                description=getattr(charge, "description", ""),
                amount=amount,
            )
        if getattr(charge, "kind", CHARGE_RENT) == CHARGE_LATE_FEE:
            fees += amount
        else:
            subtotal += amount

    if late_fee is not None:
        fees += _non_negative(late_fee, "late_fee")

    tax = quantize(_non_negative(tax, "tax"))
    other_charges = quantize(_non_negative(other_charges, "other_charges"))
    subtotal = quantize(subtotal)
    fees = quantize(fees)

    total = subtotal + tax + other_charges + fees
    if total < 0:
        raise InvalidChargeError("Invoice total cannot be negative", total=total)
    return InvoiceTotals(subtotal=subtotal, tax=tax, other_charges=other_charges, late_fee=fees, total=total)


def totals_for_rent(rent_amount, tax=0, other_charges=0) -> InvoiceTotals:
    return calculate_totals([ChargeLine("rent", rent_amount)], tax=tax, other_charges=other_charges)


def check_charge_kind(kind: Optional[str]) -> str:
    kind = kind or CHARGE_OTHER
    if kind not in CHARGE_KINDS:
        raise InvalidChargeError(f"Unknown charge kind: {kind}", kind=kind)
    return kind
