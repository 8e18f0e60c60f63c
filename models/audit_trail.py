"""Audit trail model for entity lifecycle changes."""
from datetime import datetime
from sqlalchemy import event
from database import db


class AuditTrailImmutableError(RuntimeError):
    """Raised when code tries to rewrite or remove an audit trail row."""


class AuditTrail(db.Model):
    """Append-only record of one create/update/delete/restore of an entity."""

    __tablename__ = 'audit_trails'
    __table_args__ = (
        db.Index('ix_audit_trails_entity', 'entity_name', 'entity_id'),
        db.Index('ix_audit_trails_user', 'user_id'),
        db.Index('ix_audit_trails_created_at', 'created_at'),
    )

    ACTION_CREATED = 'created'
    ACTION_UPDATED = 'updated'
    ACTION_DELETED = 'deleted'
    ACTION_RESTORED = 'restored'

    id = db.Column(db.Integer, primary_key=True)
    entity_name = db.Column(db.String(120), nullable=False)
    entity_id = db.Column(db.String(64), nullable=False)
    action = db.Column(db.String(20), nullable=False)
    # No foreign key: entries outlive the users they name.
    user_id = db.Column(db.Integer, nullable=True)
    changes = db.Column(db.JSON, nullable=False)
    ip_address = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f'<AuditTrail {self.action} {self.entity_name}#{self.entity_id}>'

    @property
    def before(self):
        return (self.changes or {}).get('before')

    @property
    def after(self):
        return (self.changes or {}).get('after')


@event.listens_for(AuditTrail, 'before_update')
def _refuse_update(mapper, connection, target):
    raise AuditTrailImmutableError(f'Audit trail entry {target.id} cannot be modified.')


@event.listens_for(AuditTrail, 'before_delete')
def _refuse_delete(mapper, connection, target):
    raise AuditTrailImmutableError(f'Audit trail entry {target.id} cannot be deleted.')
