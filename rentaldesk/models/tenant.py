from . import db
from ..clock import utcnow


class Tenant(db.Model):
    """An isolated customer organization. Every business row is scoped to one."""
    __tablename__ = 'tenants'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    plan = db.Column(db.String(20), nullable=False, default='trial')  # trial, starter, growth, pro
    max_properties = db.Column(db.Integer, nullable=False, default=10)
    status = db.Column(db.String(20), nullable=False, default='active')  # active, paused, cancelled
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def __repr__(self):
        return f'<Tenant {self.id}: {self.name}>'

    def serialize(self):
        return {
            'id': self.id,
            'name': self.name,
            'plan': self.plan,
            'max_properties': self.max_properties,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
