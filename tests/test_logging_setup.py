import io
import json
import logging

import pytest

from services import audit
from services.audit import AuditStoreError
from services.logging_setup import (
    AUDIT_LOGGERS,
    ContextFormatter,
    JsonFormatter,
    configure_error_monitoring,
    configure_logging,
)
from sample_models import Order


@pytest.fixture
def audit_stream():
    """Capture what the auditable logger emits, rendered by a given formatter."""
    handlers = []
    audit_logger = logging.getLogger('services.auditable')

    def attach(formatter):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        audit_logger.addHandler(handler)
        handlers.append(handler)
        return stream

    yield attach
    for handler in handlers:
        audit_logger.removeHandler(handler)


def _fail_store(monkeypatch):
    def failing_append(entry, connection=None):
        raise AuditStoreError('audit store unavailable')
    monkeypatch.setattr(audit, 'append', failing_append)


def test_json_formatter_includes_audit_context():
    record = logging.LogRecord('services.auditable', logging.WARNING, __file__, 1,
                               'Audit logging failed for %s', ('Order',), None)
    record.context = {'model': 'shop.Order', 'id': 42, 'action': 'created', 'message': 'boom'}

    payload = json.loads(JsonFormatter().format(record))

    assert payload['level'] == 'WARNING'
    assert payload['message'] == 'Audit logging failed for Order'
    assert payload['context'] == {'model': 'shop.Order', 'id': 42, 'action': 'created', 'message': 'boom'}


def test_json_formatter_without_context():
    record = logging.LogRecord('app', logging.INFO, __file__, 1, 'ready', (), None)
    payload = json.loads(JsonFormatter().format(record))
    assert 'context' not in payload


def test_store_failure_is_rendered_as_json(session, monkeypatch, audit_stream):
    stream = audit_stream(JsonFormatter())
    _fail_store(monkeypatch)

    session.add(Order(id=11, total=3))
    session.commit()

    [line] = stream.getvalue().splitlines()
    payload = json.loads(line)
    assert payload['level'] == 'WARNING'
    assert payload['logger'] == 'services.auditable'
    assert payload['context']['model'].endswith('.Order')
    assert payload['context']['id'] == 11
    assert payload['context']['action'] == 'created'
    assert payload['context']['message'] == 'audit store unavailable'


def test_store_failure_is_rendered_as_text(session, monkeypatch, audit_stream):
    stream = audit_stream(ContextFormatter())
    _fail_store(monkeypatch)

    session.add(Order(id=12, total=3))
    session.commit()

    [line] = stream.getvalue().splitlines()
    assert 'WARNING services.auditable' in line
    assert "id=12 action='created' message='audit store unavailable'" in line
    assert "model='sample_models.Order'" in line


def test_configure_logging_keeps_audit_warnings_visible():
    audit_logger = logging.getLogger(AUDIT_LOGGERS[0])
    audit_logger.setLevel(logging.ERROR)
    try:
        configure_logging(structured=False)
        assert audit_logger.isEnabledFor(logging.WARNING)
    finally:
        audit_logger.setLevel(logging.NOTSET)


def test_error_monitoring_is_off_without_dsn():
    assert configure_error_monitoring('') is False
