from . import db
from ..billing.money import as_str
from ..clock import utcnow

PAYMENT_METHODS = ('cash', 'transfer', 'check', 'card')


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)

    # Payment details
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    method = db.Column(db.String(20), nullable=False)  # cash, transfer, check, card
    receipt_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    invoice = db.relationship('Invoice', back_populates='payments')

    def __repr__(self):
        return f'<Payment {self.id}: {self.amount} on invoice {self.invoice_id}>'

    def serialize(self):
        return {
            'id': self.id,
            'invoice_id': self.invoice_id,
            'invoice_number': self.invoice.number if self.invoice else None,
            'amount': as_str(self.amount),
            'payment_date': self.payment_date.isoformat(),
            'method': self.method,
            'receipt_url': self.receipt_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
