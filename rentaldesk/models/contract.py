from datetime import date

from . import db
from ..billing.late_fees import LateFeePolicy
from ..billing.money import as_str
from ..clock import utcnow

CONTRACT_STATUSES = ('draft', 'signed', 'active', 'expiring', 'expired', 'closed')
# contracts that can be activated into an invoice schedule
PRE_ACTIVE_STATUSES = ('draft', 'signed')
# contracts that hold the property for their date range
OCCUPYING_STATUSES = ('signed', 'active', 'expiring')


class Contract(db.Model):
    __tablename__ = 'contracts'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    number = db.Column(db.String(50), nullable=False)

    property_id = db.Column(db.Integer, db.ForeignKey('properties.id', ondelete='CASCADE'), nullable=False, index=True)
    owner_contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id'), nullable=False)
    tenant_contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id'), nullable=False)

    # Lease Terms
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    # Financial Terms
    rent_amount = db.Column(db.Numeric(15, 2), nullable=False)
    payment_day = db.Column(db.Integer, nullable=False)  # Day of month rent is due, 1-30
    late_fee_type = db.Column(db.String(10), nullable=False, default='none')  # none, percent, fixed
    late_fee_value = db.Column(db.Numeric(15, 2), nullable=True)

    # Status
    status = db.Column(db.String(20), nullable=False, default='draft', index=True)
    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    policy_id = db.Column(db.Integer, db.ForeignKey('policies.id', ondelete='SET NULL'), nullable=True)

    # Metadata
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    notes = db.Column(db.Text, nullable=True)

    # Relationships
    property = db.relationship('Property', back_populates='contracts')
    owner = db.relationship('Contact', foreign_keys=[owner_contact_id])
    tenant_contact = db.relationship('Contact', foreign_keys=[tenant_contact_id])
    policy = db.relationship('Policy', foreign_keys=[policy_id])
    invoices = db.relationship(
        'Invoice', back_populates='contract', lazy=True,
        cascade='all, delete-orphan', order_by='Invoice.due_date',
    )

    __table_args__ = (db.UniqueConstraint('tenant_id', 'number', name='uq_contract_number_per_tenant'),)

    def __repr__(self):
        return f'<Contract {self.id}: {self.number} {self.start_date} to {self.end_date}>'

    def late_fee_policy(self):
        return LateFeePolicy.from_contract(self)

    def overlaps(self, start_date, end_date):
        return self.start_date <= end_date and self.end_date >= start_date

    def days_until_expiration(self, today: date):
        if today > self.end_date:
            return 0
        return (self.end_date - today).days

    def serialize(self):
        return {
            'id': self.id,
            'number': self.number,
            'property_id': self.property_id,
            'owner_contact_id': self.owner_contact_id,
            'tenant_contact_id': self.tenant_contact_id,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'rent_amount': as_str(self.rent_amount),
            'payment_day': self.payment_day,
            'late_fee_type': self.late_fee_type,
            'late_fee_value': as_str(self.late_fee_value),
            'status': self.status,
            'activated_at': self.activated_at.isoformat() if self.activated_at else None,
            'policy_id': self.policy_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'notes': self.notes,
            'property_name': self.property.name if self.property else None,
            'tenant_name': self.tenant_contact.full_name if self.tenant_contact else None,
        }
