"""Create document and document_extension tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade():
    """Create document version chains and type-specific extension payloads."""

    op.create_table(
        'document',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('document_type_id', sa.Integer(), nullable=False),

        # Content descriptors
        sa.Column('original_file_name', sa.Text(), nullable=False),
        sa.Column('mime_type', sa.Text(), nullable=False),
        sa.Column('file_size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('content_hash', sa.Text(), nullable=False),
        sa.Column('blob_path', sa.Text(), nullable=False),

        # Presentation
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('tags', postgresql.JSONB(astext_type=sa.Text()), nullable=True),

        # Version chain
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('parent_document_id', sa.BigInteger(), nullable=True),
        sa.Column('is_current_version', sa.Boolean(), nullable=False, server_default=sa.text('true')),

        # Lifecycle
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('deleted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.Text(), nullable=True),
        sa.Column('deleted_reason', sa.Text(), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('archived_at', sa.TIMESTAMP(timezone=True), nullable=True),

        # Search linkage
        sa.Column('search_index_id', sa.Text(), nullable=True),
        sa.Column('last_indexed_at', sa.TIMESTAMP(timezone=True), nullable=True),

        # Audit
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('created_by', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('updated_by', sa.Text(), nullable=True),

        # Constraints
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenant.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['document_type_id'], ['document_type.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['parent_document_id'], ['document.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('parent_document_id', 'version', name='uq_document_parent_version'),
    )

    op.create_index('ix_document_tenant_id', 'document', ['tenant_id'])
    op.create_index('ix_document_tenant_content_hash', 'document', ['tenant_id', 'content_hash'])
    op.create_index('ix_document_parent_document_id', 'document', ['parent_document_id'])
    op.create_index('ix_document_is_deleted', 'document', ['is_deleted'])

    # At most one current version per chain (root rows have no parent)
    op.execute("""
        CREATE UNIQUE INDEX uq_document_current_version
        ON document (COALESCE(parent_document_id, id))
        WHERE is_current_version
    """)

    op.create_table(
        'document_extension',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('document_id', sa.BigInteger(), nullable=False),
        sa.Column('document_type_id', sa.Integer(), nullable=False),
        sa.Column('type_key', sa.Text(), nullable=False),
        sa.Column('payload_json', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),

        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['document_type_id'], ['document_type.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('document_id', 'document_type_id', name='uq_document_extension_document_type'),
    )


def downgrade():
    """Drop document_extension and document tables."""
    op.drop_table('document_extension')

    op.execute('DROP INDEX IF EXISTS uq_document_current_version')
    op.drop_index('ix_document_is_deleted', table_name='document')
    op.drop_index('ix_document_parent_document_id', table_name='document')
    op.drop_index('ix_document_tenant_content_hash', table_name='document')
    op.drop_index('ix_document_tenant_id', table_name='document')
    op.drop_table('document')
