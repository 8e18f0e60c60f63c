import pytest

from app import create_app
from config import TestingConfig
from database import db
from models import AuditTrail, User

import sample_models


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def trail(app):
    """Return audit entries written so far, optionally for one entity type."""
    def entries(entity_name=None):
        query = AuditTrail.query
        if entity_name:
            query = query.filter_by(entity_name=entity_name)
        return query.order_by(AuditTrail.id).all()
    return entries


@pytest.fixture
def user(session):
    user = User(username='judge', display_name='Head Judge')
    user.set_password('correct horse')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(autouse=True)
def _reset_note_events():
    sample_models.NOTE_EVENTS.clear()
    yield
    sample_models.NOTE_EVENTS.clear()
