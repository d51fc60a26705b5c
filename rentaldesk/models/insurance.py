from . import db
from ..clock import utcnow


class Insurer(db.Model):
    """Rent-guarantee insurer that covers contracts through policies."""
    __tablename__ = 'insurers'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    email_reports = db.Column(db.String(255), nullable=True)
    policy_type = db.Column(db.String(20), nullable=True)  # collective, individual
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    policies = db.relationship('Policy', back_populates='insurer', lazy=True, cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Insurer {self.id}: {self.name}>'

    def serialize(self):
        return {
            'id': self.id,
            'name': self.name,
            'email_reports': self.email_reports,
            'policy_type': self.policy_type,
            'notes': self.notes,
            'policy_count': len(self.policies),
        }


class Policy(db.Model):
    __tablename__ = 'policies'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    policy_number = db.Column(db.String(60), nullable=False)
    insurer_id = db.Column(db.Integer, db.ForeignKey('insurers.id', ondelete='CASCADE'), nullable=False)
    contract_id = db.Column(db.Integer, nullable=True, index=True)
    coverage_type = db.Column(db.String(60), nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')  # active, expired
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    insurer = db.relationship('Insurer', back_populates='policies')

    __table_args__ = (db.UniqueConstraint('tenant_id', 'policy_number', name='uq_policy_number_per_tenant'),)

    def __repr__(self):
        return f'<Policy {self.id}: {self.policy_number}>'

    def serialize(self):
        return {
            'id': self.id,
            'policy_number': self.policy_number,
            'insurer_id': self.insurer_id,
            'insurer_name': self.insurer.name if self.insurer else None,
            'contract_id': self.contract_id,
            'coverage_type': self.coverage_type,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'status': self.status,
        }
