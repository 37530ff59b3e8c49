"""initial office schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19 00:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(14, 2)


def _id() -> sa.Column:
    return sa.Column('id', sa.String(length=32), primary_key=True)


def _collection() -> sa.Column:
    return sa.Column('collection', sa.String(length=255), nullable=False)


def _created() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    # identity store
    op.create_table(
        'accounts',
        _id(),
        sa.Column('username', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('full_name', sa.String(length=200), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('is_founder', sa.Boolean(), nullable=True),
        sa.Column('is_platform_admin', sa.Boolean(), nullable=True),
        sa.Column('account_type', sa.String(length=20), nullable=True),
        sa.Column('organization_id', sa.String(length=80), nullable=True),
        sa.Column('owner_id', sa.String(length=32), nullable=True),
        sa.Column('provider_uid', sa.String(length=128), nullable=True),
        sa.Column('collection', sa.String(length=255), nullable=True),
        _created(),
        sa.UniqueConstraint('provider_uid'),
    )
    op.create_index('ix_accounts_username', 'accounts', ['username'], unique=True)
    op.create_index('ix_accounts_collection', 'accounts', ['collection'])

    op.create_table(
        'auth_sessions',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('account_id', sa.String(length=32), nullable=False),
        _created(),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_auth_sessions_account_id', 'auth_sessions', ['account_id'])

    op.create_table(
        'idempotency_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=200), nullable=False),
        sa.Column('method', sa.String(length=10), nullable=False),
        sa.Column('path', sa.String(length=255), nullable=False),
        sa.Column('body_hash', sa.String(length=64), nullable=False),
        sa.Column('tenant_root', sa.String(length=255), nullable=True),
        sa.Column('status_code', sa.Integer(), nullable=True),
        sa.Column('response_json', sa.Text(), nullable=True),
        _created(),
        sa.UniqueConstraint('tenant_root', 'key', 'method', 'path', name='uq_idem_key_scope'),
    )

    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ts', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actor', sa.String(length=120), nullable=True),
        sa.Column('action', sa.String(length=80), nullable=True),
        sa.Column('resource', sa.String(length=255), nullable=True),
        sa.Column('tenant_root', sa.String(length=255), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('ua', sa.String(length=255), nullable=True),
        sa.Column('result', sa.String(length=40), nullable=True),
        sa.Column('meta_json', sa.Text(), nullable=True),
    )
    op.create_index('ix_audit_events_ts', 'audit_events', ['ts'])
    op.create_index('ix_audit_events_tenant_root', 'audit_events', ['tenant_root'])

    # projects and their breakdown
    op.create_table(
        'projects',
        _id(),
        _collection(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('client_name', sa.String(length=200), nullable=True),
        sa.Column('project_title', sa.String(length=200), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('delivery_date', sa.Date(), nullable=True),
        sa.Column('created_by', sa.String(length=32), nullable=True),
        _created(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_projects_collection', 'projects', ['collection'])

    op.create_table(
        'divisions',
        _id(),
        _collection(),
        sa.Column('project_id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('position', sa.Integer(), nullable=True),
        _created(),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
    )
    op.create_index('ix_divisions_collection', 'divisions', ['collection'])
    op.create_index('ix_divisions_project_id', 'divisions', ['project_id'])

    op.create_table(
        'items',
        _id(),
        _collection(),
        sa.Column('division_id', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('unit', sa.String(length=20), nullable=True),
        sa.Column('quantity', MONEY, nullable=True),
        sa.Column('rate', MONEY, nullable=True),
        sa.Column('priority', sa.String(length=10), nullable=True),
        sa.Column('status', sa.String(length=40), nullable=True),
        _created(),
        sa.ForeignKeyConstraint(['division_id'], ['divisions.id']),
    )
    op.create_index('ix_items_collection', 'items', ['collection'])
    op.create_index('ix_items_division_id', 'items', ['division_id'])

    op.create_table(
        'assignments',
        _id(),
        _collection(),
        sa.Column('project_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('assigned_by', sa.String(length=32), nullable=True),
        _created(),
        sa.UniqueConstraint('collection', 'project_id', 'user_id', name='uq_assignment_project_user'),
    )
    op.create_index('ix_assignments_collection', 'assignments', ['collection'])
    op.create_index('ix_assignments_project_id', 'assignments', ['project_id'])
    op.create_index('ix_assignments_user_id', 'assignments', ['user_id'])

    # people
    op.create_table(
        'employee_profiles',
        _id(),
        _collection(),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('designation', sa.String(length=120), nullable=True),
        sa.Column('id_card', sa.String(length=60), nullable=True),
        sa.Column('whatsapp', sa.String(length=40), nullable=True),
        sa.Column('home_address', sa.Text(), nullable=True),
        sa.Column('joining_date', sa.Date(), nullable=True),
        sa.Column('basic_salary', MONEY, nullable=True),
        sa.Column('traveling_allowance', MONEY, nullable=True),
        sa.Column('medical_allowance', MONEY, nullable=True),
        sa.Column('food_allowance', MONEY, nullable=True),
        sa.Column('salary_date', sa.Integer(), nullable=True),
        _created(),
        sa.UniqueConstraint('collection', 'user_id', name='uq_employee_profile_user'),
    )
    op.create_index('ix_employee_profiles_collection', 'employee_profiles', ['collection'])

    op.create_table(
        'client_profiles',
        _id(),
        _collection(),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('company_name', sa.String(length=200), nullable=True),
        sa.Column('contact_number', sa.String(length=40), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        _created(),
        sa.UniqueConstraint('collection', 'user_id', name='uq_client_profile_user'),
    )
    op.create_index('ix_client_profiles_collection', 'client_profiles', ['collection'])

    # work records
    op.create_table(
        'tasks',
        _id(),
        _collection(),
        sa.Column('project_id', sa.String(length=32), nullable=True),
        sa.Column('employee_id', sa.String(length=32), nullable=False),
        sa.Column('task_type', sa.String(length=40), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('assigned_by', sa.String(length=32), nullable=True),
        _created(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_tasks_collection', 'tasks', ['collection'])
    op.create_index('ix_tasks_project_id', 'tasks', ['project_id'])
    op.create_index('ix_tasks_employee_id', 'tasks', ['employee_id'])

    op.create_table(
        'procurement_items',
        _id(),
        _collection(),
        sa.Column('project_id', sa.String(length=32), nullable=False),
        sa.Column('item_name', sa.String(length=200), nullable=False),
        sa.Column('project_cost', MONEY, nullable=True),
        sa.Column('execution_cost', MONEY, nullable=True),
        sa.Column('is_purchased', sa.Boolean(), nullable=True),
        sa.Column('bill_number', sa.String(length=80), nullable=True),
        sa.Column('rental_details', sa.Text(), nullable=True),
        sa.Column('quantity', MONEY, nullable=True),
        sa.Column('unit', sa.String(length=20), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('purchased_by', sa.String(length=32), nullable=True),
        sa.Column('purchased_date', sa.Date(), nullable=True),
        _created(),
    )
    op.create_index('ix_procurement_items_collection', 'procurement_items', ['collection'])
    op.create_index('ix_procurement_items_project_id', 'procurement_items', ['project_id'])

    op.create_table(
        'attendance',
        _id(),
        _collection(),
        sa.Column('employee_id', sa.String(length=32), nullable=False),
        sa.Column('attendance_date', sa.Date(), nullable=False),
        sa.Column('is_present', sa.Boolean(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created(),
        sa.UniqueConstraint('collection', 'employee_id', 'attendance_date', name='uq_attendance_employee_day'),
    )
    op.create_index('ix_attendance_collection', 'attendance', ['collection'])
    op.create_index('ix_attendance_employee_date', 'attendance', ['collection', 'employee_id', 'attendance_date'])

    # payroll
    op.create_table(
        'salary_advances',
        _id(),
        _collection(),
        sa.Column('employee_id', sa.String(length=32), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('advance_date', sa.Date(), nullable=False),
        sa.Column('period', sa.String(length=7), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('paid_by', sa.String(length=32), nullable=True),
        _created(),
    )
    op.create_index('ix_salary_advances_collection', 'salary_advances', ['collection'])
    op.create_index('ix_salary_advances_employee_id', 'salary_advances', ['employee_id'])

    op.create_table(
        'salaries',
        _id(),
        _collection(),
        sa.Column('employee_id', sa.String(length=32), nullable=False),
        sa.Column('month', sa.String(length=7), nullable=False),
        sa.Column('basic_salary', MONEY, nullable=True),
        sa.Column('traveling_allowance', MONEY, nullable=True),
        sa.Column('medical_allowance', MONEY, nullable=True),
        sa.Column('food_allowance', MONEY, nullable=True),
        sa.Column('total_earnings', MONEY, nullable=True),
        sa.Column('advance_paid', MONEY, nullable=True),
        sa.Column('absent_deductions', MONEY, nullable=True),
        sa.Column('other_deductions', MONEY, nullable=True),
        sa.Column('total_deductions', MONEY, nullable=True),
        sa.Column('net_salary', MONEY, nullable=True),
        sa.Column('paid_amount', MONEY, nullable=True),
        sa.Column('remaining_amount', MONEY, nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=True),
        sa.Column('is_held', sa.Boolean(), nullable=True),
        sa.Column('paid_date', sa.Date(), nullable=True),
        sa.Column('salary_date', sa.Integer(), nullable=True),
        sa.Column('attendance_days', sa.Integer(), nullable=True),
        sa.Column('total_working_days', sa.Integer(), nullable=True),
        sa.Column('generated_by', sa.String(length=32), nullable=True),
        _created(),
        sa.UniqueConstraint('collection', 'employee_id', 'month', name='uq_salary_employee_month'),
    )
    op.create_index('ix_salaries_collection', 'salaries', ['collection'])

    op.create_table(
        'salary_payments',
        _id(),
        _collection(),
        sa.Column('salary_id', sa.String(length=32), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('payment_method', sa.String(length=40), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('paid_by', sa.String(length=32), nullable=True),
        _created(),
        sa.ForeignKeyConstraint(['salary_id'], ['salaries.id']),
    )
    op.create_index('ix_salary_payments_collection', 'salary_payments', ['collection'])
    op.create_index('ix_salary_payments_salary_id', 'salary_payments', ['salary_id'])

    # project side tables
    op.create_table(
        'comments',
        _id(),
        _collection(),
        sa.Column('project_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        _created(),
    )
    op.create_index('ix_comments_collection', 'comments', ['collection'])
    op.create_index('ix_comments_project_id', 'comments', ['project_id'])

    op.create_table(
        'project_financials',
        _id(),
        _collection(),
        sa.Column('project_id', sa.String(length=32), nullable=False),
        sa.Column('contract_value', MONEY, nullable=True),
        sa.Column('amount_received', MONEY, nullable=True),
        sa.Column('work_completed', sa.Integer(), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=True),
        sa.Column('archived_date', sa.Date(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('collection', 'project_id', name='uq_financials_project'),
    )
    op.create_index('ix_project_financials_collection', 'project_financials', ['collection'])

    op.create_table(
        'employee_documents',
        _id(),
        _collection(),
        sa.Column('employee_id', sa.String(length=32), nullable=False),
        sa.Column('document_type', sa.String(length=60), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=32), nullable=True),
        _created(),
    )
    op.create_index('ix_employee_documents_collection', 'employee_documents', ['collection'])
    op.create_index('ix_employee_documents_employee_id', 'employee_documents', ['employee_id'])


def downgrade() -> None:
    for table in (
        'employee_documents',
        'project_financials',
        'comments',
        'salary_payments',
        'salaries',
        'salary_advances',
        'attendance',
        'procurement_items',
        'tasks',
        'client_profiles',
        'employee_profiles',
        'assignments',
        'items',
        'divisions',
        'projects',
        'audit_events',
        'idempotency_records',
        'auth_sessions',
        'accounts',
    ):
        op.drop_table(table)
