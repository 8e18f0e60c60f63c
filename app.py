"""
Flask application entry point for the audit trail service.
"""
import os
from flask import Flask
from flask_login import LoginManager
from sqlalchemy import event as sa_event
from sqlalchemy.engine import Engine
from database import db, init_db
import config
from services.audit_context import AuditContext, bind as bind_audit_context
from services.logging_setup import configure_error_monitoring, configure_logging

login_manager = LoginManager()


@sa_event.listens_for(Engine, 'connect')
def _set_sqlite_pragma(dbapi_connection, connection_record):
    if type(dbapi_connection).__module__.startswith('sqlite3'):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def create_app(config_object=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object or config.get_config())
    config.validate_runtime(app.config)
    configure_logging(bool(app.config.get('STRUCTURED_LOGGING', True)))
    configure_error_monitoring(app.config.get('SENTRY_DSN', ''))

    # Initialize database
    init_db(app)

    login_manager.init_app(app)

    from models.user import User

    @login_manager.user_loader
    def load_user(user_id: str):
        if not user_id:
            return None
        return db.session.get(User, int(user_id))

    @app.before_request
    def bind_request_audit_context():
        """Attribute changes made while handling this request."""
        bind_audit_context(db.session, AuditContext.from_request())
        return None

    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app = create_app()
    app.run(host='0.0.0.0', port=port, debug=False)
