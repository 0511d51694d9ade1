"""Identity core tables

Revision ID: 001_identity_core
Revises:
Create Date: 2026-10-18 10:00:00.000000

Adds identities (with confirmed-phone, email and external-id uniqueness)
and otp_challenges.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_identity_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'identities',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('display_name', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('email', sa.String(length=256), nullable=True),
        sa.Column('email_confirmed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('phone_confirmed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('external_provider', sa.String(length=50), nullable=True),
        sa.Column('external_id', sa.String(length=255), nullable=True),
        sa.Column('auth_provider', sa.String(length=20), nullable=False, server_default='password'),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('failed_login_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lockout_until', sa.DateTime(), nullable=True),
        sa.Column('profile_complete', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('profile_image_url', sa.String(length=500), nullable=True),
        sa.Column('occupation', sa.String(length=100), nullable=True),
        sa.Column('bio', sa.String(length=1000), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_identities_email'),
        sa.UniqueConstraint('external_provider', 'external_id', name='uq_identities_external'),
    )
    op.create_index('ix_identities_phone', 'identities', ['phone'])
    op.create_index('ix_identities_auth_provider', 'identities', ['auth_provider'])

    # Partial unique index: one identity per confirmed phone
    op.create_index(
        'uq_identities_confirmed_phone',
        'identities',
        ['phone'],
        unique=True,
        sqlite_where=sa.text('phone_confirmed = 1'),
        postgresql_where=sa.text('phone_confirmed = true'),
    )

    op.create_table(
        'otp_challenges',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('request_id', sa.String(length=64), nullable=False),
        sa.Column('otp_hash', sa.String(length=128), nullable=False),
        sa.Column('salt', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.Column('last_sent_at', sa.DateTime(), nullable=False),
        sa.Column('channel', sa.String(length=10), nullable=False, server_default='sms'),
        sa.Column('request_ip', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_id'),
    )
    op.create_index('ix_otp_challenges_phone', 'otp_challenges', ['phone'])


def downgrade() -> None:
    op.drop_index('ix_otp_challenges_phone', table_name='otp_challenges')
    op.drop_table('otp_challenges')
    op.drop_index('uq_identities_confirmed_phone', table_name='identities')
    op.drop_index('ix_identities_auth_provider', table_name='identities')
    op.drop_index('ix_identities_phone', table_name='identities')
    op.drop_table('identities')
