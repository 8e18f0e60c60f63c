"""Append-only store for audit trail entries."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from database import db


class AuditStoreError(RuntimeError):
    """Raised when an audit entry cannot be recorded."""


@dataclass(frozen=True)
class AuditEntry:
    """One lifecycle transition of one entity, ready to be appended."""

    entity_name: str
    entity_id: Any
    action: str
    changes: dict
    actor_id: int | None = None
    ip_address: str | None = None

    def as_row(self) -> dict:
        return {
            'entity_name': self.entity_name,
            'entity_id': format_entity_id(self.entity_id),
            'action': self.action,
            'user_id': self.actor_id,
            'changes': self.changes,
            'ip_address': self.ip_address,
            'created_at': datetime.utcnow(),
        }


def format_entity_id(entity_id) -> str:
    """Render a primary key as text; composite keys are comma joined."""
    if isinstance(entity_id, (tuple, list)):
        return ','.join(str(part) for part in entity_id)
    return str(entity_id)


def _validate(entry: AuditEntry) -> None:
    if not entry.entity_name:
        raise AuditStoreError('Audit entry is missing an entity name.')
    if entry.entity_id is None or entry.entity_id == '':
        raise AuditStoreError(f'Audit entry for {entry.entity_name} is missing an entity id.')
    if isinstance(entry.entity_id, (tuple, list)) and any(part is None for part in entry.entity_id):
        raise AuditStoreError(f'Audit entry for {entry.entity_name} has an incomplete entity id.')


def append(entry: AuditEntry, connection=None) -> None:
    """
    Record *entry* in the audit trail.

    Inside a flush pass the flush's *connection*: the row is inserted in a
    SAVEPOINT on it, so a failed insert leaves the outer transaction usable.
    Without one, the row goes through ``db.session``.

    Raises AuditStoreError on any failure. Never retries.
    """
    from models.audit_trail import AuditTrail

    _validate(entry)
    row = entry.as_row()
    try:
        if connection is None:
            db.session.add(AuditTrail(**row))
            db.session.flush()
            return
        with connection.begin_nested():
            connection.execute(AuditTrail.__table__.insert().values(**row))
    except SQLAlchemyError as exc:
        raise AuditStoreError(str(exc)) from exc
