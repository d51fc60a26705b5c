from . import db
from ..billing.money import as_str
from ..clock import utcnow

PROPERTY_STATUSES = ('available', 'rented', 'maintenance', 'reserved')


class Property(db.Model):
    __tablename__ = 'properties'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)

    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(512), nullable=True)
    stratum = db.Column(db.Integer, nullable=True)
    property_type = db.Column(db.String(50), nullable=True)  # apartment, house, office, retail
    list_rent = db.Column(db.Numeric(15, 2), nullable=True)

    status = db.Column(db.String(20), nullable=False, default='available')
    owner_contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id'), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    # Relationships
    owner = db.relationship('Contact', foreign_keys=[owner_contact_id])
    contracts = db.relationship('Contract', back_populates='property', lazy=True, cascade='all, delete-orphan')

    __table_args__ = (db.UniqueConstraint('tenant_id', 'code', name='uq_property_code_per_tenant'),)

    def __repr__(self):
        return f'<Property {self.id}: {self.code} {self.name}>'

    def serialize(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'address': self.address,
            'stratum': self.stratum,
            'property_type': self.property_type,
            'list_rent': as_str(self.list_rent),
            'status': self.status,
            'owner_contact_id': self.owner_contact_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
