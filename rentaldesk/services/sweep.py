"""Scheduled collections jobs: overdue detection and contract expiry."""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List

from flask import current_app

from ..billing.status import OPEN_STATUSES, InvoiceStatus
from ..clock import get_clock
from ..models import AuditLog, Contract, Invoice, Policy
from .invoice_engine import charge_late_fee, load_invoice
from .transaction import atomic, locked

logger = logging.getLogger(__name__)


@dataclass
class SweepFailure:
    invoice_id: int
    error: str


@dataclass
class SweepReport:
    as_of: date
    examined: int = 0
    marked_overdue: List[int] = field(default_factory=list)
    late_fees: List[int] = field(default_factory=list)
    errors: List[SweepFailure] = field(default_factory=list)

    def as_dict(self):
        return {
            'as_of': self.as_of.isoformat(),
            'examined': self.examined,
            'marked_overdue': self.marked_overdue,
            'late_fees': self.late_fees,
            'errors': [{'invoice_id': e.invoice_id, 'error': e.error} for e in self.errors],
        }


def overdue_candidates(today, tenant_id=None):
    query = Invoice.query.filter(
        Invoice.status.in_([s.value for s in OPEN_STATUSES]),
        Invoice.due_date < today,
    )
    if tenant_id is not None:
        query = query.filter(Invoice.tenant_id == tenant_id)
    return [row.id for row in query.with_entities(Invoice.id).order_by(Invoice.due_date, Invoice.id)]


def run_overdue_sweep(clock=None, tenant_id=None) -> SweepReport:
    """Mark past-due invoices overdue and charge each its late fee once.

    Every invoice is handled in its own transaction: a failure is recorded in
    the report and the sweep moves on, so rerunning it on the same day only
    retries what failed.
    """
    clock = clock or get_clock()
    today = clock.today()
    report = SweepReport(as_of=today)

    for invoice_id in overdue_candidates(today, tenant_id):
        report.examined += 1
        try:
            with atomic():
                invoice = load_invoice(invoice_id)
                previous = invoice.status
                fee = charge_late_fee(invoice, today)
                if previous != invoice.status and invoice.status == InvoiceStatus.OVERDUE.value:
                    report.marked_overdue.append(invoice_id)
                if fee > 0:
                    report.late_fees.append(invoice_id)
        except Exception as e:
            logger.exception("Overdue sweep failed for invoice %s", invoice_id)
            report.errors.append(SweepFailure(invoice_id=invoice_id, error=str(e)))

    logger.info(
        "Overdue sweep %s: examined=%d overdue=%d late_fees=%d errors=%d",
        today, report.examined, len(report.marked_overdue), len(report.late_fees), len(report.errors),
    )
    return report


def run_contract_sweep(clock=None, expiring_days=None):
    """Move active contracts to expiring/expired and expire their policies.

    Returns a dict with the ids moved to each status.
    """
    clock = clock or get_clock()
    today = clock.today()
    if expiring_days is None:
        expiring_days = current_app.config.get('CONTRACT_EXPIRING_DAYS', 30)
    horizon = today + timedelta(days=expiring_days)
    result = {'expiring': [], 'expired': [], 'policies_expired': []}

    with atomic():
        ending = locked(Contract.query.filter(
            Contract.status.in_(('active', 'expiring')),
            Contract.end_date <= horizon,
        )).all()
        for contract in ending:
            if contract.end_date < today:
                contract.status = 'expired'
                if contract.property and contract.property.status == 'rented':
                    contract.property.status = 'available'
                result['expired'].append(contract.id)
                AuditLog.record(contract.tenant_id, 'contract.expired', 'contract', contract.id)
            elif contract.status == 'active':
                contract.status = 'expiring'
                result['expiring'].append(contract.id)

        for policy in locked(Policy.query.filter(Policy.status == 'active', Policy.end_date < today)).all():
            policy.status = 'expired'
            result['policies_expired'].append(policy.id)

    logger.info(
        "Contract sweep %s: expiring=%d expired=%d policies_expired=%d",
        today, len(result['expiring']), len(result['expired']), len(result['policies_expired']),
    )
    return result
