"""
Soft delete support: rows are marked with a deletion timestamp instead of
being removed, and can be restored later.
"""
from datetime import datetime
from database import db


class SoftDeleteMixin:
    """Adds a ``deleted_at`` column plus soft delete / restore helpers."""

    # Read by services.lifecycle to detect soft delete and restore transitions.
    __soft_delete_column__ = 'deleted_at'

    deleted_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self):
        if self.deleted_at is None:
            self.deleted_at = datetime.utcnow()

    def restore(self):
        self.deleted_at = None

    @classmethod
    def without_trashed(cls):
        """Return a query limited to rows that are not soft deleted."""
        return cls.query.filter(cls.deleted_at.is_(None))
