"""create users and audit trails

Revision ID: 4c1e9a7d2b30
Revises:
Create Date: 2026-10-18 09:40:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e9a7d2b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=80), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('remember_token', sa.String(length=100), nullable=True),
        sa.Column('display_name', sa.String(length=200), nullable=True),
        sa.Column('is_active_user', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
    )
    op.create_table(
        'audit_trails',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entity_name', sa.String(length=120), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('audit_trails', schema=None) as batch_op:
        batch_op.create_index('ix_audit_trails_entity', ['entity_name', 'entity_id'], unique=False)
        batch_op.create_index('ix_audit_trails_user', ['user_id'], unique=False)
        batch_op.create_index('ix_audit_trails_created_at', ['created_at'], unique=False)


def downgrade():
    with op.batch_alter_table('audit_trails', schema=None) as batch_op:
        batch_op.drop_index('ix_audit_trails_created_at')
        batch_op.drop_index('ix_audit_trails_user')
        batch_op.drop_index('ix_audit_trails_entity')
    op.drop_table('audit_trails')
    op.drop_table('users')
