import pytest

import config


def test_postgres_urls_are_normalized(monkeypatch):
    monkeypatch.setenv('DATABASE_URL', 'postgres://u:p@db/audit')
    assert config._normalized_database_url() == 'postgresql://u:p@db/audit'


def test_production_profile_selected_from_env(monkeypatch):
    monkeypatch.setenv('FLASK_ENV', 'production')
    assert config.get_config() is config.ProductionConfig
    monkeypatch.setenv('FLASK_ENV', 'development')
    assert config.get_config() is config.DevelopmentConfig


def test_weak_production_secret_is_rejected():
    with pytest.raises(RuntimeError):
        config.validate_runtime({'ENV_NAME': 'production', 'SECRET_KEY': 'changeme'})
    config.validate_runtime({'ENV_NAME': 'production', 'SECRET_KEY': 'x' * 32})
    config.validate_runtime({'ENV_NAME': 'development', 'SECRET_KEY': ''})
