"""Create Users and Documents tables

Users carry the administrator flag checked before a fulltext reindex.
Documents carry the type, title and content sent to the search index,
the proxy/version/lifecycle columns the enumeration filters on, and the
pending fulltext job marker.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create Users and Documents."""
    op.create_table(
        'Users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_Users_email'), 'Users', ['email'], unique=True)

    op.create_table(
        'Documents',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('primary_type', sa.String(length=100), nullable=False),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('content_plain', sa.Text(), nullable=True),
        sa.Column('is_proxy', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_version', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('lifecycle_state', sa.String(length=50), nullable=False, server_default='project'),
        sa.Column('fulltext_job_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_Documents_primary_type'), 'Documents', ['primary_type'], unique=False)
    op.create_index('ix_documents_live', 'Documents', ['is_proxy', 'lifecycle_state'], unique=False)


def downgrade() -> None:
    """Drop Documents and Users."""
    op.drop_index('ix_documents_live', table_name='Documents')
    op.drop_index(op.f('ix_Documents_primary_type'), table_name='Documents')
    op.drop_table('Documents')
    op.drop_index(op.f('ix_Users_email'), table_name='Users')
    op.drop_table('Users')
