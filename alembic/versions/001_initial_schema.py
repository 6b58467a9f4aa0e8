"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('patient_profile_id', sa.String(), nullable=True),
        sa.Column('patient_name', sa.String(), nullable=True),
        sa.Column('urgency', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('image_ref', sa.Text(), nullable=True),
        sa.Column('ocr_status', sa.String(), nullable=False),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('ocr_confidence', sa.Float(), nullable=True),
        sa.Column('ocr_processed_at', sa.DateTime(), nullable=True),
        sa.Column('ocr_error', sa.Text(), nullable=True),
        sa.Column('ocr_source', sa.String(), nullable=True),
        sa.Column('medication_details', sa.JSON(), nullable=True),
        sa.Column('medication_type', sa.String(), nullable=True),
        sa.Column('verification', sa.JSON(), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('review_decision', sa.String(), nullable=True),
        sa.Column('cost', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_orders_patient_profile_id'), 'orders', ['patient_profile_id'], unique=False)
    op.create_index(op.f('ix_orders_status'), 'orders', ['status'], unique=False)
    op.create_index(op.f('ix_orders_medication_type'), 'orders', ['medication_type'], unique=False)

    # Create pharmacist_reviews table
    op.create_table(
        'pharmacist_reviews',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=32), nullable=False),
        sa.Column('reviewer_id', sa.String(), nullable=False),
        sa.Column('decision', sa.String(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('cost', sa.Float(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_pharmacist_reviews_id'), 'pharmacist_reviews', ['id'], unique=False)
    op.create_index(op.f('ix_pharmacist_reviews_order_id'), 'pharmacist_reviews', ['order_id'], unique=False)

    # Create order_audit_entries table
    op.create_table(
        'order_audit_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=32), nullable=False),
        sa.Column('actor_id', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('from_status', sa.String(), nullable=True),
        sa.Column('to_status', sa.String(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_order_audit_entries_id'), 'order_audit_entries', ['id'], unique=False)
    op.create_index(op.f('ix_order_audit_entries_order_id'), 'order_audit_entries', ['order_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_order_audit_entries_order_id'), table_name='order_audit_entries')
    op.drop_index(op.f('ix_order_audit_entries_id'), table_name='order_audit_entries')
    op.drop_table('order_audit_entries')
    op.drop_index(op.f('ix_pharmacist_reviews_order_id'), table_name='pharmacist_reviews')
    op.drop_index(op.f('ix_pharmacist_reviews_id'), table_name='pharmacist_reviews')
    op.drop_table('pharmacist_reviews')
    op.drop_index(op.f('ix_orders_medication_type'), table_name='orders')
    op.drop_index(op.f('ix_orders_status'), table_name='orders')
    op.drop_index(op.f('ix_orders_patient_profile_id'), table_name='orders')
    op.drop_table('orders')
