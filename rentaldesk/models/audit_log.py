from . import db
from ..clock import utcnow


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)
    actor = db.Column(db.String(255), nullable=False, default='system')
    action = db.Column(db.String(60), nullable=False)
    entity = db.Column(db.String(60), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)
    meta = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)

    def __repr__(self):
        return f'<AuditLog {self.id}: {self.action} {self.entity}:{self.entity_id}>'

    @classmethod
    def record(cls, tenant_id, action, entity, entity_id=None, actor='system', **meta):
        """Add an audit row to the current unit of work; the caller commits."""
        entry = cls(
            tenant_id=tenant_id,
            actor=actor,
            action=action,
            entity=entity,
            entity_id=entity_id,
            meta={k: str(v) for k, v in meta.items()},
        )
        db.session.add(entry)
        return entry

    def serialize(self):
        return {
            'id': self.id,
            'actor': self.actor,
            'action': self.action,
            'entity': self.entity,
            'entity_id': self.entity_id,
            'meta': self.meta or {},
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
