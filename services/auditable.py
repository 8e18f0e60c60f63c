"""
Audit trail behaviour for models.

    @auditable
    class Order(db.Model):
        ...

    @auditable(ignore={'secret'})
    class Vault(db.Model):
        ...

Every create, update and delete of an audited model (plus restore, for soft
deletable models) appends one AuditTrail row describing the change. A model
that declares its own ignore set replaces the default one entirely; the two
are never merged.

Auditing must never break the write it observes: any failure on the way to
the audit trail is logged as a warning and dropped.
"""
from __future__ import annotations

import enum
import logging
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from flask import current_app, has_app_context

from services import audit
from services.audit_context import AuditContext
from services.lifecycle import (
    LifecycleAction,
    LifecycleEvent,
    changed_keys,
    register_observer,
    supports_restore,
    warn_failure,
)

logger = logging.getLogger(__name__)

DEFAULT_IGNORED = frozenset({'password', 'remember_token', 'updated_at', 'created_at'})

_audited: set[type] = set()


def ignored_attributes(model: type) -> frozenset:
    override = getattr(model, '__audit_ignore__', None)
    if override is None:
        return DEFAULT_IGNORED
    return frozenset(override)


def filter_attributes(attributes: dict, ignored) -> dict:
    return {key: value for key, value in attributes.items() if key not in ignored}


def _jsonable(value):
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    return value


def _payload(attributes: dict, ignored) -> dict:
    return {key: _jsonable(value) for key, value in filter_attributes(attributes, ignored).items()}


def build_changes(event: LifecycleEvent, ignored) -> dict | None:
    """
    Return the ``{'before': ..., 'after': ...}`` payload for *event*.

    None means there is nothing worth recording: an update that changed no
    attribute outside the ignore set.
    """
    action = event.action
    if action in (LifecycleAction.CREATED, LifecycleAction.RESTORED):
        return {'before': None, 'after': _payload(event.current, ignored)}
    if action == LifecycleAction.UPDATED:
        dirty = [key for key in changed_keys(event.current, event.prior) if key not in ignored]
        if not dirty:
            return None
        before = {key: event.prior.get(key) for key in dirty}
        after = {key: event.current[key] for key in dirty}
        return {'before': _payload(before, ignored), 'after': _payload(after, ignored)}
    if action == LifecycleAction.DELETED:
        return {'before': _payload(event.current, ignored), 'after': None}
    raise ValueError(f'Unsupported lifecycle action: {action!r}')


def _audit_enabled() -> bool:
    if not has_app_context():
        return True
    return bool(current_app.config.get('AUDIT_ENABLED', True))


class AuditObserver:
    """Lifecycle observer that appends one audit entry per event."""

    def __init__(self, store=None):
        # None means services.audit.append, looked up per call.
        self.store = store

    def __call__(self, event: LifecycleEvent, context: AuditContext) -> None:
        if not _audit_enabled():
            return
        try:
            changes = build_changes(event, ignored_attributes(event.model))
            if changes is None:
                return
            entry = audit.AuditEntry(
                entity_name=event.model.__name__,
                entity_id=event.entity_id,
                action=event.action.value,
                changes=changes,
                actor_id=context.actor_id,
                ip_address=context.ip_address,
            )
            append = self.store or audit.append
            append(entry, connection=event.connection)
        except Exception as exc:
            _warn_failure(event, exc)


def _warn_failure(event: LifecycleEvent, exc: Exception) -> None:
    warn_failure(logger, event.model, event.entity_id, event.action, exc)


def auditable(model=None, *, ignore=None, store=None):
    """
    Class decorator that audits a Flask-SQLAlchemy model.

    *ignore* replaces the default ignore set for this model (and its
    subclasses). *store* swaps the append function, mainly for tests.
    Subclasses of an audited model are audited through their base and are
    not registered again.
    """
    def attach(cls):
        if ignore is not None:
            cls.__audit_ignore__ = frozenset(ignore)
        if any(base in _audited for base in cls.__mro__):
            return cls
        actions = [LifecycleAction.CREATED, LifecycleAction.UPDATED, LifecycleAction.DELETED]
        if supports_restore(cls):
            actions.append(LifecycleAction.RESTORED)
        register_observer(cls, AuditObserver(store=store), actions)
        _audited.add(cls)
        return cls

    if model is not None:
        return attach(model)
    return attach
