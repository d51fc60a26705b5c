from decimal import Decimal

from dateutil.relativedelta import relativedelta

from ..billing.money import HUNDRED, ZERO, as_str, quantize
from ..billing.status import InvoiceStatus
from ..clock import get_clock
from ..extensions import db
from ..models import Contract, Invoice, Property


def _sum(query, column):
    return quantize(query.with_entities(db.func.coalesce(db.func.sum(column), 0)).scalar() or 0)


def collection_stats(tenant_id, clock=None):
    """Month-to-date billing figures and the overall recovery rate for one tenant."""
    clock = clock or get_clock()
    today = clock.today()
    month_start = today.replace(day=1)
    next_month = month_start + relativedelta(months=1)

    billed = Invoice.query.filter(
        Invoice.tenant_id == tenant_id,
        Invoice.status != InvoiceStatus.DRAFT.value,
    )
    this_month = billed.filter(Invoice.issue_date >= month_start, Invoice.issue_date < next_month)
    overdue = billed.filter(Invoice.status == InvoiceStatus.OVERDUE.value)

    total_issued = _sum(billed, Invoice.total_amount)
    total_collected = _sum(billed, Invoice.amount_paid)
    recovery = (total_collected / total_issued * HUNDRED) if total_issued > 0 else ZERO

    return {
        'as_of': today.isoformat(),
        'issued': as_str(_sum(this_month, Invoice.total_amount)),
        'collected': as_str(_sum(this_month, Invoice.amount_paid)),
        'overdue': as_str(_sum(overdue, Invoice.total_amount) - _sum(overdue, Invoice.amount_paid)),
        'overdue_count': overdue.count(),
        'recovery': format(recovery.quantize(Decimal('0.1')), 'f'),
        'active_contracts': Contract.query.filter(
            Contract.tenant_id == tenant_id, Contract.status.in_(('active', 'expiring'))
        ).count(),
        'properties': Property.query.filter(Property.tenant_id == tenant_id).count(),
    }
