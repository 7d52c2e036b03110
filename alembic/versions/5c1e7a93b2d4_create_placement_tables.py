"""create_placement_tables

Revision ID: 5c1e7a93b2d4
Revises: 
Create Date: 2026-10-17 09:12:44.518302

Production-safe migration: Only creates tables that do not exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '5c1e7a93b2d4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    # Create job_postings table
    if not table_exists('job_postings'):
        op.create_table('job_postings',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=300), nullable=False),
            sa.Column('company_name', sa.String(length=300), nullable=False),
            sa.Column('location', sa.String(length=255), nullable=True),
            sa.Column('job_type', sa.String(length=50), nullable=True),
            sa.Column('job_link', sa.Text(), nullable=True),
            sa.Column('level', sa.String(length=20), nullable=True),
            sa.Column('normalized_job_title', sa.String(length=300), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_job_postings_company_title', 'job_postings', ['company_name', 'title'], unique=False)
        op.create_index(op.f('ix_job_postings_id'), 'job_postings', ['id'], unique=False)
        op.create_index(op.f('ix_job_postings_title'), 'job_postings', ['title'], unique=False)
        op.create_index(op.f('ix_job_postings_company_name'), 'job_postings', ['company_name'], unique=False)
        op.create_index(op.f('ix_job_postings_status'), 'job_postings', ['status'], unique=False)
    
    # Create job_applications table
    if not table_exists('job_applications'):
        op.create_table('job_applications',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('student_id', sa.String(length=36), nullable=False),
            sa.Column('job_id', sa.Integer(), nullable=True),
            sa.Column('object_id', sa.String(length=50), nullable=True),
            sa.Column('external_job_id', sa.String(length=255), nullable=True),
            sa.Column('job_link', sa.Text(), nullable=True),
            sa.Column('job_type', sa.String(length=50), nullable=True),
            sa.Column('job_title', sa.String(length=300), nullable=True),
            sa.Column('company_name', sa.String(length=300), nullable=True),
            sa.Column('location', sa.String(length=255), nullable=True),
            sa.Column('job_categories', sa.JSON(), nullable=True),
            sa.Column('normal_job_title', sa.String(length=300), nullable=True),
            sa.Column('level', sa.String(length=20), nullable=True),
            sa.Column('application_type', sa.String(length=20), nullable=False),
            sa.Column('status', sa.String(length=30), nullable=False),
            sa.Column('assigned_mentor_id', sa.String(length=36), nullable=True),
            sa.Column('recommended_by', sa.String(length=36), nullable=True),
            sa.Column('recommended_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['job_id'], ['job_postings.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('student_id', 'job_id', name='uq_job_applications_student_job'),
            sa.UniqueConstraint('student_id', 'object_id', name='uq_job_applications_student_object')
        )
        op.create_index('idx_job_applications_type_status', 'job_applications', ['application_type', 'status'], unique=False)
        op.create_index(op.f('ix_job_applications_id'), 'job_applications', ['id'], unique=False)
        op.create_index(op.f('ix_job_applications_student_id'), 'job_applications', ['student_id'], unique=False)
        op.create_index(op.f('ix_job_applications_job_id'), 'job_applications', ['job_id'], unique=False)
        op.create_index(op.f('ix_job_applications_application_type'), 'job_applications', ['application_type'], unique=False)
        op.create_index(op.f('ix_job_applications_status'), 'job_applications', ['status'], unique=False)
        op.create_index(op.f('ix_job_applications_assigned_mentor_id'), 'job_applications', ['assigned_mentor_id'], unique=False)
        op.create_index(op.f('ix_job_applications_recommended_by'), 'job_applications', ['recommended_by'], unique=False)
        op.create_index(op.f('ix_job_applications_created_at'), 'job_applications', ['created_at'], unique=False)
    
    # Create application_history table
    if not table_exists('application_history'):
        op.create_table('application_history',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('application_id', sa.Integer(), nullable=False),
            sa.Column('previous_status', sa.String(length=30), nullable=True),
            sa.Column('new_status', sa.String(length=30), nullable=False),
            sa.Column('changed_by', sa.String(length=36), nullable=True),
            sa.Column('change_reason', sa.Text(), nullable=True),
            sa.Column('change_metadata', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['application_id'], ['job_applications.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_application_history_app_created', 'application_history', ['application_id', 'created_at'], unique=False)
        op.create_index('idx_application_history_status_change', 'application_history', ['previous_status', 'new_status'], unique=False)
        op.create_index(op.f('ix_application_history_id'), 'application_history', ['id'], unique=False)
        op.create_index(op.f('ix_application_history_application_id'), 'application_history', ['application_id'], unique=False)
        op.create_index(op.f('ix_application_history_created_at'), 'application_history', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_application_history_created_at'), table_name='application_history')
    op.drop_index(op.f('ix_application_history_application_id'), table_name='application_history')
    op.drop_index(op.f('ix_application_history_id'), table_name='application_history')
    op.drop_index('idx_application_history_status_change', table_name='application_history')
    op.drop_index('idx_application_history_app_created', table_name='application_history')
    op.drop_table('application_history')
    
    op.drop_index(op.f('ix_job_applications_created_at'), table_name='job_applications')
    op.drop_index(op.f('ix_job_applications_recommended_by'), table_name='job_applications')
    op.drop_index(op.f('ix_job_applications_assigned_mentor_id'), table_name='job_applications')
    op.drop_index(op.f('ix_job_applications_status'), table_name='job_applications')
    op.drop_index(op.f('ix_job_applications_application_type'), table_name='job_applications')
    op.drop_index(op.f('ix_job_applications_job_id'), table_name='job_applications')
    op.drop_index(op.f('ix_job_applications_student_id'), table_name='job_applications')
    op.drop_index(op.f('ix_job_applications_id'), table_name='job_applications')
    op.drop_index('idx_job_applications_type_status', table_name='job_applications')
    op.drop_table('job_applications')
    
    op.drop_index(op.f('ix_job_postings_status'), table_name='job_postings')
    op.drop_index(op.f('ix_job_postings_company_name'), table_name='job_postings')
    op.drop_index(op.f('ix_job_postings_title'), table_name='job_postings')
    op.drop_index(op.f('ix_job_postings_id'), table_name='job_postings')
    op.drop_index('idx_job_postings_company_title', table_name='job_postings')
    op.drop_table('job_postings')
