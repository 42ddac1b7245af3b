"""Create tenant and document_type tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create tenant hierarchy and document type catalog."""

    op.create_table(
        'tenant',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('parent_tenant_id', sa.Integer(), nullable=True),
        sa.Column('tenant_type', sa.Text(), nullable=False, server_default='Organization'),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('slug', sa.Text(), nullable=False),
        sa.Column('settings_json', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.Column('retention_policies_json', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),

        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['parent_tenant_id'], ['tenant.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('slug', name='uq_tenant_slug'),
    )

    op.create_table(
        'document_type',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('display_name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata_schema_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('default_tags', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('icon', sa.Text(), nullable=True),
        sa.Column('is_content_indexed', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('has_extension_table', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('extension_table_name', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),

        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_document_type_name'),
    )


def downgrade():
    """Drop document_type and tenant tables."""
    op.drop_table('document_type')
    op.drop_table('tenant')
