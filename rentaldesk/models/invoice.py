from . import db
from ..billing.allocator import balance_due
from ..billing.money import as_str
from ..billing.status import InvoiceStatus
from ..billing.totals import CHARGE_RENT
from ..clock import utcnow


class Invoice(db.Model):
    __tablename__ = 'invoices'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    number = db.Column(db.String(60), nullable=False)

    # Foreign Keys
    contract_id = db.Column(db.Integer, db.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False, index=True)
    tenant_contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id'), nullable=False)

    # Dates
    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)

    # Financial details, always written by the totals calculator
    subtotal = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    other_charges = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    late_fee = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    amount_paid = db.Column(db.Numeric(15, 2), nullable=False, default=0)

    # Status tracking, a projection of the fields above (see billing.status)
    status = db.Column(db.String(20), nullable=False, default=InvoiceStatus.DRAFT.value, index=True)
    late_fee_applied = db.Column(db.Boolean, nullable=False, default=False)
    late_fee_applied_on = db.Column(db.Date, nullable=True)

    # Metadata
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    contract = db.relationship('Contract', back_populates='invoices')
    tenant_contact = db.relationship('Contact', foreign_keys=[tenant_contact_id])
    charges = db.relationship(
        'InvoiceCharge', back_populates='invoice', lazy=True,
        cascade='all, delete-orphan', order_by='InvoiceCharge.id',
    )
    payments = db.relationship(
        'Payment', back_populates='invoice', lazy=True,
        cascade='all, delete-orphan', order_by='Payment.payment_date',
    )

    __table_args__ = (db.UniqueConstraint('tenant_id', 'number', name='uq_invoice_number_per_tenant'),)

    def __repr__(self):
        return f'<Invoice {self.id}: {self.number} {self.total_amount} due {self.due_date} ({self.status})>'

    @property
    def balance_due(self):
        return balance_due(self.total_amount, self.amount_paid)

    def days_overdue(self, today):
        """Days past due (0 if not overdue)."""
        if self.status != InvoiceStatus.OVERDUE.value:
            return 0
        return (today - self.due_date).days

    def serialize(self, include_lines=False):
        data = {
            'id': self.id,
            'number': self.number,
            'contract_id': self.contract_id,
            'tenant_contact_id': self.tenant_contact_id,
            'issue_date': self.issue_date.isoformat(),
            'due_date': self.due_date.isoformat(),
            'subtotal': as_str(self.subtotal),
            'tax': as_str(self.tax),
            'other_charges': as_str(self.other_charges),
            'late_fee': as_str(self.late_fee),
            'total_amount': as_str(self.total_amount),
            'amount_paid': as_str(self.amount_paid),
            'balance_due': as_str(self.balance_due),
            'status': self.status,
            'late_fee_applied': self.late_fee_applied,
            'late_fee_applied_on': self.late_fee_applied_on.isoformat() if self.late_fee_applied_on else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_lines:
            data['charges'] = [charge.serialize() for charge in self.charges]
            data['payments'] = [payment.serialize() for payment in self.payments]
        return data


class InvoiceCharge(db.Model):
    __tablename__ = 'invoice_charges'

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    kind = db.Column(db.String(20), nullable=False, default=CHARGE_RENT)  # rent, late_fee, other
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    invoice = db.relationship('Invoice', back_populates='charges')

    def __repr__(self):
        return f'<InvoiceCharge {self.id}: {self.description} {self.amount}>'

    def serialize(self):
        return {
            'id': self.id,
            'invoice_id': self.invoice_id,
            'description': self.description,
            'amount': as_str(self.amount),
            'kind': self.kind,
        }
