from . import db
from ..clock import utcnow

CONTACT_ROLES = ('owner', 'tenant', 'guarantor', 'provider')


class Contact(db.Model):
    """A person or company: property owner, lease occupant, guarantor or provider."""
    __tablename__ = 'contacts'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)

    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(40), nullable=True)
    roles = db.Column(db.String(120), nullable=False, default='tenant')  # comma separated CONTACT_ROLES
    doc_type = db.Column(db.String(20), nullable=True)
    doc_number = db.Column(db.String(40), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def __repr__(self):
        return f'<Contact {self.id}: {self.full_name}>'

    @property
    def role_list(self):
        return [r for r in (self.roles or '').split(',') if r]

    @role_list.setter
    def role_list(self, values):
        self.roles = ','.join(values)

    def serialize(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'roles': self.role_list,
            'doc_type': self.doc_type,
            'doc_number': self.doc_number,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
