"""Create tables used by service form generation.

Revision ID: 5e1a7c2b9d40
Revises:
Create Date: 2026-10-17

This migration creates bookings with their line items and workspace
reservations, versioned service forms, typed booking documents with their
file blobs, the audit log, number sequences, notifications and the facility
document configuration singleton.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '5e1a7c2b9d40'
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'))


def upgrade() -> None:
    """Create form generation tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('user_type', sa.String(), nullable=False,
                  comment='mjiit_member, utm_member, external_member, lab_administrator'),
        sa.Column('supervisor_name', sa.String(), nullable=True),
        sa.Column('faculty', sa.String(), nullable=True),
        sa.Column('department', sa.String(), nullable=True),
        sa.Column('ikohza', sa.String(), nullable=True),
        sa.Column('company', sa.String(), nullable=True),
        sa.Column('company_branch', sa.String(), nullable=True),
        _created_at(),
    )

    op.create_table(
        'services',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False,
                  comment='analysis, working_space, equipment'),
    )

    op.create_table(
        'service_pricing',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('service_id', sa.Uuid(),
                  sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_type', sa.String(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('unit', sa.String(), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('effective_to', sa.Date(), nullable=True),
    )

    op.create_table(
        'booking_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reference_number', sa.String(), unique=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('project_description', sa.Text(), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        _created_at(),
    )

    op.create_table(
        'booking_service_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('booking_id', sa.Uuid(),
                  sa.ForeignKey('booking_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', sa.Uuid(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('sample_name', sa.String(), nullable=True),
        _created_at(),
    )

    op.create_table(
        'workspace_bookings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('booking_id', sa.Uuid(),
                  sa.ForeignKey('booking_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=True),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('billing_unit', sa.String(), nullable=True),
    )

    op.create_table(
        'workspace_service_addons',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('workspace_booking_id', sa.Uuid(),
                  sa.ForeignKey('workspace_bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
    )

    op.create_table(
        'service_forms',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('booking_id', sa.Uuid(),
                  sa.ForeignKey('booking_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('form_number', sa.String(), unique=True, nullable=False,
                  comment='SF-YYYY-NNNNN, suffixed -vN on regeneration'),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('facility_lab', sa.String(), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('valid_until', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('status', sa.String(), nullable=False, comment='generated, superseded'),
        sa.Column('requires_working_area_agreement', sa.Boolean(), nullable=False),
        sa.Column('service_form_unsigned_url', sa.String(), nullable=True),
        sa.Column('service_form_signed_url', sa.String(), nullable=True),
        sa.Column('working_area_agreement_unsigned_url', sa.String(), nullable=True),
        sa.Column('working_area_agreement_signed_url', sa.String(), nullable=True),
        sa.Column('generated_by', sa.String(), nullable=False),
        sa.Column('generated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.Column('superseded_at', sa.TIMESTAMP(timezone=True), nullable=True),
        comment='Versioned service form records; superseded rows keep number and totals',
    )
    op.create_index('ix_service_forms_booking_id', 'service_forms', ['booking_id'])

    op.create_table(
        'file_blobs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('key', sa.String(), unique=True, nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('mime_type', sa.String(), nullable=False),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('uploaded_by_id', sa.String(), nullable=False),
        _created_at(),
    )

    op.create_table(
        'booking_documents',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('booking_id', sa.Uuid(),
                  sa.ForeignKey('booking_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('blob_id', sa.Uuid(),
                  sa.ForeignKey('file_blobs.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('created_by_id', sa.String(), nullable=False),
        _created_at(),
        sa.UniqueConstraint('booking_id', 'type', name='uq_booking_documents_booking_type'),
    )
    op.create_index('ix_booking_documents_booking_id', 'booking_documents', ['booking_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('actor_id', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('entity', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=False, server_default='{}'),
        _created_at(),
    )

    op.create_table(
        'number_sequences',
        sa.Column('name', sa.String(), primary_key=True,
                  comment='form-number:SF-YYYY or form-version:<base number>'),
        sa.Column('last_value', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('related_entity_type', sa.String(), nullable=False),
        sa.Column('related_entity_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    op.create_table(
        'facility_document_configs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('singleton_key', sa.String(), unique=True, nullable=False),
        sa.Column('facility_name', sa.String(), nullable=False),
        sa.Column('address_title', sa.String(), nullable=False),
        sa.Column('address_institute', sa.String(), nullable=False),
        sa.Column('address_university', sa.String(), nullable=False),
        sa.Column('address_street', sa.String(), nullable=False),
        sa.Column('address_city', sa.String(), nullable=False),
        sa.Column('address_email', sa.String(), nullable=False),
        sa.Column('staff_pic_name', sa.String(), nullable=False),
        sa.Column('staff_pic_full_name', sa.String(), nullable=False),
        sa.Column('staff_pic_email', sa.String(), nullable=False),
        sa.Column('staff_pic_phone', sa.String(), nullable=True),
        sa.Column('staff_pic_signature_url', sa.String(), nullable=True),
        sa.Column('ikohza_head_name', sa.String(), nullable=False),
        sa.Column('ikohza_head_title', sa.String(), nullable=True),
        sa.Column('ikohza_head_department', sa.String(), nullable=False),
        sa.Column('ikohza_head_institute', sa.String(), nullable=False),
        sa.Column('ikohza_head_university', sa.String(), nullable=False),
        sa.Column('ikohza_head_address', sa.String(), nullable=False),
        sa.Column('ikohza_head_signature_url', sa.String(), nullable=True),
        sa.Column('cc_recipients', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('facilities', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
    )


def downgrade() -> None:
    """Drop form generation tables."""
    op.drop_table('facility_document_configs')
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('number_sequences')
    op.drop_table('audit_logs')
    op.drop_index('ix_booking_documents_booking_id', table_name='booking_documents')
    op.drop_table('booking_documents')
    op.drop_table('file_blobs')
    op.drop_index('ix_service_forms_booking_id', table_name='service_forms')
    op.drop_table('service_forms')
    op.drop_table('workspace_service_addons')
    op.drop_table('workspace_bookings')
    op.drop_table('booking_service_items')
    op.drop_table('booking_requests')
    op.drop_table('service_pricing')
    op.drop_table('services')
    op.drop_table('users')
