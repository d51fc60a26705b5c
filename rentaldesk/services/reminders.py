"""Payment reminder e-mails sent by the daily job."""
import logging
from datetime import timedelta

from flask import current_app

from ..billing.money import as_str
from ..billing.status import InvoiceStatus
from ..clock import get_clock
from ..models import Invoice
from ..utils.notifications import send_email

logger = logging.getLogger(__name__)


def _upcoming_body(invoice):
    return (
        f"Hello {invoice.tenant_contact.full_name},\n\n"
        f"Invoice {invoice.number} for {as_str(invoice.total_amount)} is due on {invoice.due_date:%Y-%m-%d}.\n"
        f"Balance due: {as_str(invoice.balance_due)}\n\n"
        "Please make your payment before the due date to avoid late fees."
    )


def _overdue_body(invoice):
    return (
        f"Hello {invoice.tenant_contact.full_name},\n\n"
        f"Invoice {invoice.number} was due on {invoice.due_date:%Y-%m-%d} and is now overdue.\n"
        f"Balance due: {as_str(invoice.balance_due)}\n\n"
        "Late fees may apply under your contract. Please pay as soon as possible."
    )


def upcoming_invoices(today, days_before, tenant_id=None):
    query = Invoice.query.filter(
        Invoice.due_date == today + timedelta(days=days_before),
        Invoice.status.in_((InvoiceStatus.ISSUED.value, InvoiceStatus.PARTIAL.value)),
    )
    if tenant_id is not None:
        query = query.filter(Invoice.tenant_id == tenant_id)
    return query.order_by(Invoice.id).all()


def just_overdue_invoices(today, tenant_id=None):
    query = Invoice.query.filter(
        Invoice.due_date == today - timedelta(days=1),
        Invoice.status.notin_((InvoiceStatus.PAID.value, InvoiceStatus.DRAFT.value)),
    )
    if tenant_id is not None:
        query = query.filter(Invoice.tenant_id == tenant_id)
    return query.order_by(Invoice.id).all()


def send_due_reminders(clock=None, tenant_id=None):
    """Send the "due soon" and "due yesterday" reminders for today.

    Returns ``{'upcoming': [...], 'overdue': [...]}`` with the invoice ids
    whose e-mail was actually sent.
    """
    clock = clock or get_clock()
    today = clock.today()
    days_before = current_app.config.get('REMINDER_DAYS_BEFORE', 3)
    sent = {'upcoming': [], 'overdue': []}

    for invoice in upcoming_invoices(today, days_before, tenant_id):
        subject = f"Reminder: invoice {invoice.number} is due in {days_before} days"
        if send_email(invoice.tenant_contact.email, subject, _upcoming_body(invoice)):
            sent['upcoming'].append(invoice.id)

    for invoice in just_overdue_invoices(today, tenant_id):
        subject = f"URGENT: invoice {invoice.number} was due yesterday"
        if send_email(invoice.tenant_contact.email, subject, _overdue_body(invoice)):
            sent['overdue'].append(invoice.id)

    logger.info("Reminders %s: upcoming=%d overdue=%d", today, len(sent['upcoming']), len(sent['overdue']))
    return sent
