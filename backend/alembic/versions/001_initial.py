"""Initial schema

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-17 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create jobs table
    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.String(length=64), nullable=False),
        sa.Column('tenant_id', sa.String(length=255), nullable=False),
        sa.Column('repo_url', sa.String(length=2048), nullable=False),
        sa.Column('revision', sa.String(length=255)),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id')
    )
    op.create_index('idx_jobs_job_id', 'jobs', ['job_id'])
    op.create_index('idx_jobs_tenant_id', 'jobs', ['tenant_id'])
    op.create_index('idx_jobs_status', 'jobs', ['status'])

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index('idx_users_user_id', 'users', ['user_id'])


def downgrade() -> None:
    op.drop_index('idx_users_user_id', table_name='users')
    op.drop_table('users')

    op.drop_index('idx_jobs_status', table_name='jobs')
    op.drop_index('idx_jobs_tenant_id', table_name='jobs')
    op.drop_index('idx_jobs_job_id', table_name='jobs')
    op.drop_table('jobs')
