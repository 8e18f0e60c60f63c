"""
Who and where for audit entries.

The caller binds an AuditContext to the database session it is about to
use: the Flask app does it per request, job runners and scripts use the
``audit_context`` context manager. Nothing bound means an anonymous,
origin-less change.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass

from flask import current_app, has_request_context, request
from flask_login import current_user

SESSION_KEY = 'audit_context'


@dataclass(frozen=True)
class AuditContext:
    actor_id: int | None = None
    ip_address: str | None = None

    @classmethod
    def from_request(cls) -> 'AuditContext':
        """Build a context from the Flask request and the logged in user."""
        if not has_request_context():
            return cls()
        return cls(actor_id=_current_actor_id(), ip_address=_request_ip())


def _current_actor_id():
    if not getattr(current_user, 'is_authenticated', False):
        return None
    return getattr(current_user, 'id', None)


def _request_ip():
    if current_app.config.get('AUDIT_TRUST_FORWARDED_FOR', False):
        forwarded = request.headers.get('X-Forwarded-For', '')
        first_hop = forwarded.split(',')[0].strip()
        if first_hop:
            return first_hop[:64]
    return request.remote_addr


def bind(session, context: AuditContext | None) -> None:
    if context is None:
        session.info.pop(SESSION_KEY, None)
    else:
        session.info[SESSION_KEY] = context


def current(session) -> AuditContext:
    if session is None:
        return AuditContext()
    return session.info.get(SESSION_KEY) or AuditContext()


@contextmanager
def audit_context(session, actor_id=None, ip_address=None):
    """Temporarily attribute changes made through *session*."""
    previous = session.info.get(SESSION_KEY)
    context = AuditContext(actor_id=actor_id, ip_address=ip_address)
    bind(session, context)
    try:
        yield context
    finally:
        bind(session, previous)
