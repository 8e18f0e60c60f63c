"""
SQLAlchemy models for the audit trail service.
"""
from .audit_trail import AuditTrail, AuditTrailImmutableError
from .soft_delete import SoftDeleteMixin
from .user import User

__all__ = [
    'AuditTrail',
    'AuditTrailImmutableError',
    'SoftDeleteMixin',
    'User',
]
