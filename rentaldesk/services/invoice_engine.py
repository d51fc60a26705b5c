"""Billing and collections operations against the database.

Every public function here is one unit of work: it locks the rows it
changes, re-reads them inside the transaction, applies the pure rules from
``rentaldesk.billing`` and commits, or rolls back entirely on any error.

``tenant_id`` restricts lookups to one organization; ``None`` means the
caller has already scoped the request (the overdue sweep runs across all
tenants). ``clock`` defaults to the application clock.
"""
import logging

from ..billing import allocator
from ..billing.late_fees import evaluate_late_fee, late_fee_due
from ..billing.money import ZERO, quantize, to_decimal
from ..billing.schedule import plan_schedule
from ..billing.status import InvoiceStatus, resolve_status
from ..billing.totals import CHARGE_LATE_FEE, CHARGE_RENT, ChargeLine, calculate_totals, check_charge_kind
from ..clock import get_clock
from ..errors import (
    ContractAlreadyActiveError,
    InvalidChargeError,
    InvoiceNotFoundError,
    PaymentNotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import (
    AuditLog,
    Invoice,
    InvoiceCharge,
    Payment,
    Property,
    PAYMENT_METHODS,
    PRE_ACTIVE_STATUSES,
)
from .contracts import ensure_no_overlap, load_contract
from .transaction import atomic, locked

logger = logging.getLogger(__name__)

INVOICE_EDITABLE_FIELDS = ('issue_date', 'due_date', 'tax', 'other_charges')


# ---------------- Loading ----------------
def load_invoice(invoice_id, tenant_id=None, lock=True):
    query = Invoice.query.filter(Invoice.id == invoice_id)
    if tenant_id is not None:
        query = query.filter(Invoice.tenant_id == tenant_id)
    invoice = (locked(query) if lock else query).one_or_none()
    if invoice is None:
        raise InvoiceNotFoundError(invoice_id=invoice_id)
    return invoice


def load_payment(payment_id, tenant_id=None, lock=False):
    query = Payment.query.filter(Payment.id == payment_id)
    if tenant_id is not None:
        query = query.filter(Payment.tenant_id == tenant_id)
    payment = (locked(query) if lock else query).one_or_none()
    if payment is None:
        raise PaymentNotFoundError(payment_id=payment_id)
    return payment


# ---------------- Projections kept in sync on the invoice row ----------------
def _apply_totals(invoice, totals):
    invoice.subtotal = totals.subtotal
    invoice.tax = totals.tax
    invoice.other_charges = totals.other_charges
    invoice.late_fee = totals.late_fee
    invoice.total_amount = totals.total


def _recalculate(invoice):
    totals = calculate_totals(invoice.charges, tax=invoice.tax, other_charges=invoice.other_charges)
    if totals.total < to_decimal(invoice.amount_paid):
        raise InvalidChargeError(
            "Invoice total cannot fall below the amount already paid",
            total=totals.total,
            amount_paid=invoice.amount_paid,
        )
    _apply_totals(invoice, totals)
    return totals


def refresh_status(invoice, today):
    """Recompute the cached ``status`` column; the only place it is written after creation."""
    status = resolve_status(
        invoice.total_amount, invoice.amount_paid, invoice.due_date, today, current=invoice.status
    )
    invoice.status = status.value
    return status


def charge_late_fee(invoice, today):
    """Add the contract's late fee to a locked invoice if it just became overdue.

    Returns the fee charged, ``0`` when none is due. ``late_fee_applied`` is
    set the first time the invoice is seen overdue, whatever the policy, so
    repeated sweeps never charge twice.
    """
    refresh_status(invoice, today)
    if not late_fee_due(invoice.status, invoice.late_fee_applied):
        return ZERO

    contract = invoice.contract
    policy = contract.late_fee_policy()
    fee = evaluate_late_fee(policy, contract.rent_amount)
    invoice.late_fee_applied = True
    invoice.late_fee_applied_on = today
    if fee > 0:
        invoice.charges.append(InvoiceCharge(description=policy.describe(), amount=fee, kind=CHARGE_LATE_FEE))
        _recalculate(invoice)
        refresh_status(invoice, today)
        AuditLog.record(invoice.tenant_id, 'invoice.late_fee', 'invoice', invoice.id, amount=fee, policy=policy.kind.value)
        logger.info("Late fee %s charged on invoice %s", fee, invoice.number)
    return fee


def _check_method(method):
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"method must be one of: {', '.join(PAYMENT_METHODS)}", method=method
        )
    return method


# ---------------- Contract activation ----------------
def generate_schedule(contract_id, tenant_id=None, clock=None, actor='system'):
    """Activate a draft contract and create its monthly invoices.

    All invoices and the contract's move to ``active`` are committed together;
    if anything fails nothing is saved. The property row is locked and the
    overlap rule re-checked inside the transaction, so two activations on the
    same property cannot both succeed.
    """
    clock = clock or get_clock()
    with atomic():
        contract = load_contract(contract_id, tenant_id, lock=True)
        if contract.status not in PRE_ACTIVE_STATUSES:
            raise ContractAlreadyActiveError(contract=contract.number, status=contract.status)

        locked(Property.query.filter(Property.id == contract.property_id)).one()
        ensure_no_overlap(
            contract.property_id, contract.start_date, contract.end_date,
            contract.tenant_id, exclude_id=contract.id, lock=True,
        )
        contract.late_fee_policy().validate()

        plan = plan_schedule(
            contract.start_date, contract.end_date, contract.rent_amount,
            contract.payment_day, number_prefix=contract.number,
        )
        invoices = []
        for item in plan:
            invoice = Invoice(
                tenant_id=contract.tenant_id,
                number=item.number,
                contract=contract,
                tenant_contact_id=contract.tenant_contact_id,
                issue_date=item.issue_date,
                due_date=item.due_date,
                amount_paid=ZERO,
                late_fee_applied=False,
                status=item.status.value,
            )
            invoice.charges.append(
                InvoiceCharge(description=item.charge_description, amount=item.subtotal, kind=CHARGE_RENT)
            )
            _apply_totals(invoice, calculate_totals(invoice.charges))
            db.session.add(invoice)
            invoices.append(invoice)

        contract.status = 'active'
        contract.activated_at = clock.now()
        contract.property.status = 'rented'
        db.session.flush()
        invoice_ids = [invoice.id for invoice in invoices]
        AuditLog.record(contract.tenant_id, 'contract.activated', 'contract', contract.id, actor=actor, invoices=len(invoice_ids))

    logger.info("Activated contract %s with %d invoices", contract_id, len(invoice_ids))
    return invoice_ids


# ---------------- Invoices ----------------
def _next_manual_number(contract):
    sequence = Invoice.query.filter(Invoice.contract_id == contract.id).count() + 1
    return f"{contract.number}-M{sequence:03d}"


def create_invoice(contract_id, issue_date, due_date, charges=None, subtotal=None, tax=0,
                   other_charges=0, number=None, issue=False, tenant_id=None, clock=None, actor='system'):
    """Create an invoice by hand from charge lines (or a single ``subtotal``)."""
    clock = clock or get_clock()
    if issue_date is None or due_date is None:
        raise ValidationError("issue_date and due_date are required")
    if due_date < issue_date:
        raise ValidationError("due_date cannot be before issue_date", issue_date=issue_date, due_date=due_date)

    lines = [
        ChargeLine(
            description=line.get('description') or 'Charge',
            amount=to_decimal(line.get('amount'), 'charge amount'),
            kind=check_charge_kind(line.get('kind')),
        )
        for line in (charges or [])
    ]
    if not lines and subtotal is not None:
        lines = [ChargeLine(description='Rent', amount=to_decimal(subtotal, 'subtotal'), kind=CHARGE_RENT)]
    if not lines:
        raise ValidationError("An invoice needs at least one charge or a subtotal")
    totals = calculate_totals(lines, tax=tax, other_charges=other_charges)

    with atomic():
        contract = load_contract(contract_id, tenant_id)
        invoice = Invoice(
            tenant_id=contract.tenant_id,
            number=number or _next_manual_number(contract),
            contract=contract,
            tenant_contact_id=contract.tenant_contact_id,
            issue_date=issue_date,
            due_date=due_date,
            amount_paid=ZERO,
            late_fee_applied=False,
            status=InvoiceStatus.DRAFT.value,
        )
        for line in lines:
            invoice.charges.append(InvoiceCharge(description=line.description, amount=quantize(line.amount), kind=line.kind))
        _apply_totals(invoice, totals)
        if issue:
            invoice.status = InvoiceStatus.ISSUED.value
            refresh_status(invoice, clock.today())
        db.session.add(invoice)
        db.session.flush()
        invoice_id = invoice.id
        AuditLog.record(invoice.tenant_id, 'invoice.created', 'invoice', invoice_id, actor=actor, total=totals.total)
    return invoice_id


def update_invoice(invoice_id, tenant_id=None, clock=None, **changes):
    """Change dates, tax or other charges; totals and status are re-derived."""
    clock = clock or get_clock()
    for field in ('tax', 'other_charges'):
        if field in changes:
            changes[field] = quantize(to_decimal(changes[field], field))
    with atomic():
        invoice = load_invoice(invoice_id, tenant_id)
        for field in INVOICE_EDITABLE_FIELDS:
            if field in changes:
                setattr(invoice, field, changes[field])
        if invoice.due_date < invoice.issue_date:
            raise ValidationError("due_date cannot be before issue_date")
        totals = _recalculate(invoice)
        refresh_status(invoice, clock.today())
    return totals


def recalculate_invoice(invoice_id, tenant_id=None, clock=None):
    """Re-derive subtotal, late fee and total from the invoice's charges."""
    clock = clock or get_clock()
    with atomic():
        invoice = load_invoice(invoice_id, tenant_id)
        totals = _recalculate(invoice)
        refresh_status(invoice, clock.today())
    return totals


def issue_invoice(invoice_id, tenant_id=None, clock=None, actor='system'):
    clock = clock or get_clock()
    with atomic():
        invoice = load_invoice(invoice_id, tenant_id)
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise ValidationError("Only draft invoices can be issued", status=invoice.status)
        invoice.status = InvoiceStatus.ISSUED.value
        status = refresh_status(invoice, clock.today())
        AuditLog.record(invoice.tenant_id, 'invoice.issued', 'invoice', invoice.id, actor=actor)
    return status


def resolve_invoice_status(invoice_id, as_of=None, persist=False, tenant_id=None, clock=None):
    """Status of the invoice as of ``as_of``.

    With ``persist=False`` this is a read-only dry run; otherwise the invoice
    row is locked and the resolved status stored.
    """
    clock = clock or get_clock()
    as_of = as_of or clock.today()
    if not persist:
        invoice = load_invoice(invoice_id, tenant_id, lock=False)
        return resolve_status(
            invoice.total_amount, invoice.amount_paid, invoice.due_date, as_of, current=invoice.status
        )
    with atomic():
        invoice = load_invoice(invoice_id, tenant_id)
        previous = invoice.status
        status = refresh_status(invoice, as_of)
    if previous != status.value:
        logger.info("Invoice %s status %s -> %s", invoice_id, previous, status.value)
    return status


def apply_late_fee(invoice_id, tenant_id=None, clock=None):
    clock = clock or get_clock()
    with atomic():
        invoice = load_invoice(invoice_id, tenant_id)
        fee = charge_late_fee(invoice, clock.today())
    return fee


def add_charge(invoice_id, description, amount, kind='other', tenant_id=None, clock=None):
    clock = clock or get_clock()
    if not description:
        raise ValidationError("description is required", field='description')
    with atomic():
        invoice = load_invoice(invoice_id, tenant_id)
        charge = InvoiceCharge(description=description, amount=quantize(to_decimal(amount)), kind=check_charge_kind(kind))
        invoice.charges.append(charge)
        _recalculate(invoice)
        refresh_status(invoice, clock.today())
        db.session.flush()
        charge_id = charge.id
    return charge_id


def remove_charge(invoice_id, charge_id, tenant_id=None, clock=None):
    clock = clock or get_clock()
    with atomic():
        invoice = load_invoice(invoice_id, tenant_id)
        charge = next((c for c in invoice.charges if c.id == charge_id), None)
        if charge is None:
            raise InvalidChargeError("Charge does not belong to this invoice", charge_id=charge_id)
        invoice.charges.remove(charge)
        _recalculate(invoice)
        refresh_status(invoice, clock.today())


# ---------------- Payments ----------------
def record_payment(invoice_id, amount, payment_date=None, method='transfer', tenant_id=None,
                   receipt_url=None, clock=None, actor='system'):
    """Apply a payment to an invoice and return the new payment's id.

    The balance due is checked against the invoice row as re-read under lock,
    so concurrent payments cannot both pass on a stale balance.
    """
    clock = clock or get_clock()
    method = _check_method(method)
    with atomic():
        invoice = load_invoice(invoice_id, tenant_id)
        if invoice.status == InvoiceStatus.DRAFT.value:
            raise ValidationError("Invoice must be issued before it can take payments", invoice=invoice.number)
        new_paid = allocator.apply_payment(invoice.total_amount, invoice.amount_paid, amount)
        payment = Payment(
            tenant_id=invoice.tenant_id,
            invoice=invoice,
            amount=new_paid - to_decimal(invoice.amount_paid),
            payment_date=payment_date or clock.today(),
            method=method,
            receipt_url=receipt_url,
        )
        invoice.amount_paid = new_paid
        db.session.add(payment)
        status = refresh_status(invoice, clock.today())
        db.session.flush()
        payment_id = payment.id
        AuditLog.record(invoice.tenant_id, 'payment.recorded', 'payment', payment_id, actor=actor,
                        invoice=invoice.number, amount=payment.amount)

    logger.info("Payment %s recorded on invoice %s, status %s", payment_id, invoice_id, status.value)
    return payment_id


def revise_payment(payment_id, amount=None, payment_date=None, method=None, receipt_url=None,
                   tenant_id=None, clock=None, actor='system'):
    """Edit a payment; a new amount is checked with the old amount given back first."""
    clock = clock or get_clock()
    if method is not None:
        _check_method(method)
    with atomic():
        invoice_id = load_payment(payment_id, tenant_id).invoice_id
        invoice = load_invoice(invoice_id)
        payment = load_payment(payment_id, tenant_id, lock=True)
        if amount is not None:
            new_paid = allocator.revise_payment(invoice.total_amount, invoice.amount_paid, payment.amount, amount)
            payment.amount = quantize(to_decimal(amount))
            invoice.amount_paid = new_paid
        if payment_date is not None:
            payment.payment_date = payment_date
        if method is not None:
            payment.method = method
        if receipt_url is not None:
            payment.receipt_url = receipt_url
        refresh_status(invoice, clock.today())
        AuditLog.record(invoice.tenant_id, 'payment.revised', 'payment', payment.id, actor=actor, amount=payment.amount)
    return payment


def reverse_payment(payment_id, tenant_id=None, clock=None, actor='system'):
    """Delete a payment and take its amount back out of the invoice."""
    clock = clock or get_clock()
    with atomic():
        invoice_id = load_payment(payment_id, tenant_id).invoice_id
        invoice = load_invoice(invoice_id)
        payment = load_payment(payment_id, tenant_id, lock=True)
        invoice.amount_paid = allocator.remove_payment(invoice.amount_paid, payment.amount)
        invoice.payments.remove(payment)
        status = refresh_status(invoice, clock.today())
        AuditLog.record(invoice.tenant_id, 'payment.reversed', 'payment', payment_id, actor=actor,
                        invoice=invoice.number, amount=payment.amount)

    logger.info("Payment %s reversed on invoice %s, status %s", payment_id, invoice_id, status.value)
