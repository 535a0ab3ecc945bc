"""create initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Content half of each record
    op.create_table(
        'paste_contents',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # Metadata half, co-addressed by id
    op.create_table(
        'paste_metadata',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('language', sa.String(length=64), nullable=False),
        sa.Column('redacted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('expires_at > created_at', name='ck_paste_metadata_expires_after_created'),
    )
    op.create_index(op.f('ix_paste_metadata_expires_at'), 'paste_metadata', ['expires_at'], unique=False)

    # Append-only creation log for stats
    op.create_table(
        'paste_creation_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('paste_id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_paste_creation_log_created_at'), 'paste_creation_log', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_paste_creation_log_created_at'), table_name='paste_creation_log')
    op.drop_table('paste_creation_log')
    op.drop_index(op.f('ix_paste_metadata_expires_at'), table_name='paste_metadata')
    op.drop_table('paste_metadata')
    op.drop_table('paste_contents')
