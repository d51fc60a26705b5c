from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..errors import InvalidPolicyError, ValidationError
from .money import ZERO, percent_of, quantize, to_decimal
from .status import InvoiceStatus


class LateFeeType(str, Enum):
    NONE = "none"
    PERCENT = "percent"
    FIXED = "fixed"


@dataclass(frozen=True)
class LateFeePolicy:
    kind: LateFeeType = LateFeeType.NONE
    value: Optional[Decimal] = None

    @classmethod
    def build(cls, kind, value=None) -> "LateFeePolicy":
        try:
            kind = LateFeeType(kind or LateFeeType.NONE)
        except ValueError:
            raise InvalidPolicyError(f"Unknown late fee type: {kind}", late_fee_type=kind)
        if value is not None and value != "":
            try:
                value = to_decimal(value, "late_fee_value")
            except ValidationError as e:
                raise InvalidPolicyError(e.message, late_fee_value=value)
        else:
            value = None
        policy = cls(kind=kind, value=value)
        policy.validate()
        return policy

    @classmethod
    def from_contract(cls, contract) -> "LateFeePolicy":
        return cls.build(contract.late_fee_type, contract.late_fee_value)

    def validate(self) -> None:
        if self.kind is LateFeeType.NONE:
            return
        if self.value is None:
            raise InvalidPolicyError(
                f"A {self.kind.value} late fee needs a value", late_fee_type=self.kind.value
            )
        if self.value < 0:
            raise InvalidPolicyError("Late fee value cannot be negative", late_fee_value=self.value)

    def describe(self) -> str:
        if self.kind is LateFeeType.PERCENT:
            return f"Late payment fee ({self.value.normalize():f}%)"
        if self.kind is LateFeeType.FIXED:
            return "Late payment fee (fixed amount)"
        return "Late payment fee"


def evaluate_late_fee(policy: LateFeePolicy, rent_amount) -> Decimal:
    """Fee owed under ``policy`` for one overdue invoice of ``rent_amount``."""
    policy.validate()
    if policy.kind is LateFeeType.NONE:
        return ZERO
    if policy.kind is LateFeeType.PERCENT:
        return quantize(percent_of(rent_amount, policy.value))
    return quantize(policy.value)


def late_fee_due(status, already_applied: bool) -> bool:
    """A late fee is charged once, the first time an invoice is seen overdue."""
    return InvoiceStatus(status) is InvoiceStatus.OVERDUE and not already_applied
