import importlib.util
from pathlib import Path

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

VERSIONS = Path(__file__).resolve().parent.parent / 'migrations' / 'versions'


def _load(name):
    path = VERSIONS / f'{name}.py'
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_upgrade_and_downgrade_audit_trails():
    migration = _load('4c1e9a7d2b30_create_users_and_audit_trails')
    engine = sa.create_engine('sqlite://')

    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            migration.upgrade()
        inspector = sa.inspect(connection)
        assert {'users', 'audit_trails'} <= set(inspector.get_table_names())
        columns = {c['name'] for c in inspector.get_columns('audit_trails')}
        assert columns == {'id', 'entity_name', 'entity_id', 'action', 'user_id',
                           'changes', 'ip_address', 'created_at'}
        indexes = {i['name'] for i in inspector.get_indexes('audit_trails')}
        assert 'ix_audit_trails_entity' in indexes
        assert inspector.get_foreign_keys('audit_trails') == []

    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            migration.downgrade()
        assert 'audit_trails' not in sa.inspect(connection).get_table_names()
