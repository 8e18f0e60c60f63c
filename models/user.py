"""
User model for the acting principal recorded on audit entries.
"""
from datetime import datetime
from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash
from database import db
from services.auditable import auditable


@auditable(ignore={'password_hash', 'remember_token', 'created_at', 'updated_at'})
class User(UserMixin, db.Model):
    """Application user; changes to users are audited like any other entity."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), nullable=False, unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    remember_token = db.Column(db.String(100), nullable=True)
    display_name = db.Column(db.String(200), nullable=True)
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<User {self.username}>'

    @property
    def is_active(self):
        return bool(self.is_active_user)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)
