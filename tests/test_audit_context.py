from flask_login import login_user

from database import db
from services.audit_context import AuditContext, audit_context, bind, current
from sample_models import Order


def test_changes_without_context_are_anonymous(session, trail):
    session.add(Order(total=5))
    session.commit()

    [entry] = trail('Order')
    assert entry.user_id is None
    assert entry.ip_address is None


def test_explicit_context_for_jobs(session, trail, user):
    with audit_context(session, actor_id=user.id, ip_address='10.0.0.9'):
        session.add(Order(total=5))
        session.commit()

    session.add(Order(total=6))
    session.commit()

    first, second = trail('Order')
    assert (first.user_id, first.ip_address) == (user.id, '10.0.0.9')
    assert (second.user_id, second.ip_address) == (None, None)


def test_audit_context_restores_previous_binding(session):
    bind(session, AuditContext(actor_id=None, ip_address='198.51.100.1'))
    with audit_context(session, ip_address='198.51.100.2'):
        assert current(session).ip_address == '198.51.100.2'
    assert current(session).ip_address == '198.51.100.1'

    bind(session, None)
    assert current(session) == AuditContext()


def test_request_binds_actor_and_remote_address(app, trail, user):
    with app.test_request_context('/', environ_base={'REMOTE_ADDR': '203.0.113.7'}):
        login_user(user)
        app.preprocess_request()

        db.session.add(Order(total=9))
        db.session.commit()

    [entry] = trail('Order')
    assert entry.user_id == user.id
    assert entry.ip_address == '203.0.113.7'


def test_anonymous_request_records_address_only(app):
    with app.test_request_context('/', environ_base={'REMOTE_ADDR': '203.0.113.8'}):
        context = AuditContext.from_request()

    assert context == AuditContext(actor_id=None, ip_address='203.0.113.8')


def test_forwarded_for_is_used_only_when_trusted(app):
    headers = {'X-Forwarded-For': '198.51.100.4, 10.0.0.1'}
    environ = {'REMOTE_ADDR': '10.0.0.1'}

    with app.test_request_context('/', headers=headers, environ_base=environ):
        assert AuditContext.from_request().ip_address == '10.0.0.1'

    app.config['AUDIT_TRUST_FORWARDED_FOR'] = True
    with app.test_request_context('/', headers=headers, environ_base=environ):
        assert AuditContext.from_request().ip_address == '198.51.100.4'


def test_outside_a_request_the_context_is_empty(app):
    assert AuditContext.from_request() == AuditContext()
