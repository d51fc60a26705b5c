"""Pure billing rules: no database, no clock, no Flask."""
from .allocator import apply_payment, balance_due, check_payment, remove_payment, revise_payment
from .late_fees import LateFeePolicy, LateFeeType, evaluate_late_fee, late_fee_due
from .money import ZERO, as_str, quantize, to_decimal
from .schedule import ScheduledInvoice, due_date_for, months_between, plan_schedule, validate_terms
from .status import OPEN_STATUSES, InvoiceStatus, resolve_status
from .totals import (
    CHARGE_KINDS,
    CHARGE_LATE_FEE,
    CHARGE_OTHER,
    CHARGE_RENT,
    ChargeLine,
    InvoiceTotals,
    calculate_totals,
)
