"""Structured logging and optional error monitoring setup.

Audit failures are logged as warnings carrying a ``context`` dict (model, id,
action, message). Both formatters below render it, so the fields survive
whether or not structured logging is on.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

AUDIT_LOGGERS = ('services.auditable', 'services.lifecycle')
CONTEXT_FIELDS = ('model', 'id', 'action', 'message')


def _context_of(record: logging.LogRecord) -> dict:
    context = getattr(record, 'context', None)
    return context if isinstance(context, dict) else {}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        context = _context_of(record)
        if context:
            payload['context'] = context
        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)
        # Entity ids may be tuples, dates or UUIDs.
        return json.dumps(payload, ensure_ascii=True, default=str)


class ContextFormatter(logging.Formatter):
    """Plain text lines with the audit context appended as key=value pairs."""

    def __init__(self):
        super().__init__('%(asctime)s %(levelname)s %(name)s: %(message)s')

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context_of(record)
        pairs = [f'{key}={context[key]!r}' for key in CONTEXT_FIELDS if key in context]
        pairs += [f'{key}={value!r}' for key, value in context.items() if key not in CONTEXT_FIELDS]
        return f'{line} [{" ".join(pairs)}]' if pairs else line


def configure_logging(structured: bool = True) -> None:
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    formatter = JsonFormatter() if structured else ContextFormatter()
    for handler in root.handlers:
        handler.setFormatter(formatter)
    # Audit warnings are the only trace of a dropped entry.
    for name in AUDIT_LOGGERS:
        audit_logger = logging.getLogger(name)
        audit_logger.disabled = False
        if audit_logger.level > logging.WARNING:
            audit_logger.setLevel(logging.WARNING)


def configure_error_monitoring(dsn: str) -> bool:
    """Start Sentry when a DSN is set. Returns True if monitoring is on."""
    if not dsn:
        return False
    try:
        import sentry_sdk
        sentry_sdk.init(dsn=dsn, traces_sample_rate=0.0)
    except Exception:
        logging.getLogger(__name__).warning('Sentry SDK not available; DSN configured but monitoring disabled.')
        return False
    return True
