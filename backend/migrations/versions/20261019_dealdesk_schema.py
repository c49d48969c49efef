"""DealDesk schema: users, sessions, master data, offers, reviews, contracts, projects

Revision ID: 20261019_dealdesk
Revises:
Create Date: 2026-10-19

This migration creates:
1. Users and session tokens
2. Partners, customers, license pricing, services catalog
3. Opportunities
4. Offers with environments/components and service sets/services
5. Review requests, reviews, review history
6. Contracts (at most one per offer)
7. Projects with payment milestones, team members and tasks
8. Document tables for every attachment owner (soft-delete flag included)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_dealdesk'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def _document_table(name, owner_column, owner_table):
    op.create_table(name,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column(owner_column, sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.String(length=1024), nullable=False),
        sa.Column('file_type', sa.String(length=128), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pending_deletion', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('uploaded_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint([owner_column], [f'{owner_table}.id'], ),
        sa.ForeignKeyConstraint(['uploaded_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table(name, schema=None) as batch_op:
        batch_op.create_index(batch_op.f(f'ix_{name}_{owner_column}'), [owner_column], unique=False)


def upgrade():
    # ==========================================================================
    # 1. USERS / SESSIONS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_human_id', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.UniqueConstraint('user_human_id', name='uq_users_human_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=False)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=128), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash', name='uq_session_tokens_hash'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)

    # ==========================================================================
    # 2. MASTER DATA
    # ==========================================================================
    op.create_table('partners',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('partner_human_id', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('partner_type', sa.String(length=32), nullable=False),
        sa.Column('country', sa.String(length=64), nullable=True),
        sa.Column('website', sa.String(length=255), nullable=True),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('partner_human_id', name='uq_partners_human_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('partners', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_partners_name'), ['name'], unique=False)

    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_human_id', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('industry', sa.String(length=128), nullable=True),
        sa.Column('country', sa.String(length=64), nullable=True),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('customer_human_id', name='uq_customers_human_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customers_name'), ['name'], unique=False)

    op.create_table('license_pricing',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pretty_name', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False),
        sa.Column('size', sa.String(length=64), nullable=False),
        sa.Column('hourly_price', sa.Float(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('manday_rate', sa.Float(), nullable=False, server_default='300'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('services', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_services_name'), ['name'], unique=False)

    # ==========================================================================
    # 3. OPPORTUNITIES
    # ==========================================================================
    op.create_table('opportunities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('opportunity_human_id', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('partner_id', sa.Integer(), nullable=True),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('stage', sa.String(length=32), nullable=False, server_default='Lead'),
        sa.Column('expected_value', sa.Float(), nullable=True),
        sa.Column('expected_close_date', sa.Date(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['partner_id'], ['partners.id'], ),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('opportunity_human_id', name='uq_opportunities_human_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('opportunities', schema=None) as batch_op:
        batch_op.create_index('ix_opportunities_stage', ['stage'], unique=False)
        batch_op.create_index(batch_op.f('ix_opportunities_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_opportunities_partner_id'), ['partner_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_opportunities_owner_id'), ['owner_id'], unique=False)

    # ==========================================================================
    # 4. OFFERS
    # ==========================================================================
    op.create_table('offer_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('offer_human_id', sa.String(length=16), nullable=False),
        sa.Column('opportunity_id', sa.Integer(), nullable=True),
        sa.Column('offer_summary', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Draft'),
        sa.Column('created_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['opportunity_id'], ['opportunities.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('offer_human_id', name='uq_offer_records_human_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('offer_records', schema=None) as batch_op:
        batch_op.create_index('ix_offer_records_status', ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_offer_records_opportunity_id'), ['opportunity_id'], unique=False)

    op.create_table('offer_environments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('offer_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['offer_id'], ['offer_records.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('offer_environments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_offer_environments_offer_id'), ['offer_id'], unique=False)

    op.create_table('offer_environment_components',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('environment_id', sa.Integer(), nullable=False),
        sa.Column('license_pricing_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('monthly_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['environment_id'], ['offer_environments.id'], ),
        sa.ForeignKeyConstraint(['license_pricing_id'], ['license_pricing.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('offer_environment_components', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_offer_environment_components_environment_id'), ['environment_id'], unique=False)

    op.create_table('offer_service_sets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('offer_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['offer_id'], ['offer_records.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('offer_service_sets', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_offer_service_sets_offer_id'), ['offer_id'], unique=False)

    op.create_table('offer_service_components',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('service_set_id', sa.Integer(), nullable=False),
        sa.Column('service_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('manday_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('number_of_mandays', sa.Float(), nullable=False, server_default='0'),
        sa.Column('profit_percentage', sa.Float(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['service_set_id'], ['offer_service_sets.id'], ),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('offer_service_components', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_offer_service_components_service_set_id'), ['service_set_id'], unique=False)

    # ==========================================================================
    # 5. REVIEWS
    # ==========================================================================
    op.create_table('offer_review_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('offer_id', sa.Integer(), nullable=False),
        sa.Column('request_details', sa.Text(), nullable=False),
        sa.Column('requested_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['offer_id'], ['offer_records.id'], ),
        sa.ForeignKeyConstraint(['requested_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('offer_review_requests', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_offer_review_requests_offer_id'), ['offer_id'], unique=False)

    op.create_table('offer_reviews',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('reviewer_id', sa.Integer(), nullable=False),
        sa.Column('review_type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('comments', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['request_id'], ['offer_review_requests.id'], ),
        sa.ForeignKeyConstraint(['reviewer_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('offer_reviews', schema=None) as batch_op:
        batch_op.create_index('ix_offer_reviews_reviewer_status', ['reviewer_id', 'status'], unique=False)
        batch_op.create_index(batch_op.f('ix_offer_reviews_request_id'), ['request_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_offer_reviews_reviewer_id'), ['reviewer_id'], unique=False)

    op.create_table('offer_review_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('review_id', sa.Integer(), nullable=False),
        sa.Column('previous_status', sa.String(length=32), nullable=False),
        sa.Column('new_status', sa.String(length=32), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('changed_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['review_id'], ['offer_reviews.id'], ),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('offer_review_history', schema=None) as batch_op:
        batch_op.create_index('ix_offer_review_history_review_created', ['review_id', 'created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_offer_review_history_review_id'), ['review_id'], unique=False)

    # ==========================================================================
    # 6. CONTRACTS
    # ==========================================================================
    op.create_table('contracts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('offer_id', sa.Integer(), nullable=False),
        sa.Column('contract_human_id', sa.String(length=16), nullable=False),
        sa.Column('contract_summary', sa.Text(), nullable=False),
        sa.Column('total_mrr', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_services_revenue', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_contract_value', sa.Float(), nullable=False, server_default='0'),
        sa.Column('payment_terms', sa.String(length=255), nullable=False),
        sa.Column('contract_start_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Draft'),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('updated_by', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['offer_id'], ['offer_records.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['updated_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('contract_human_id', name='uq_contracts_human_id'),
        sa.UniqueConstraint('offer_id', name='uq_contracts_offer'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('contracts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_contracts_offer_id'), ['offer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_contracts_status'), ['status'], unique=False)

    # ==========================================================================
    # 7. PROJECTS
    # ==========================================================================
    op.create_table('projects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_human_id', sa.String(length=16), nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Planned'),
        sa.Column('project_manager_id', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['contract_id'], ['contracts.id'], ),
        sa.ForeignKeyConstraint(['project_manager_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_human_id', name='uq_projects_human_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('projects', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_projects_contract_id'), ['contract_id'], unique=False)

    op.create_table('payment_milestones',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Pending'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('payment_milestones', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_payment_milestones_project_id'), ['project_id'], unique=False)

    op.create_table('project_team_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('allocation_percentage', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('project_team_members', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_project_team_members_project_id'), ['project_id'], unique=False)

    op.create_table('project_tasks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('parent_task_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Not Started'),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='Low'),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('completed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.ForeignKeyConstraint(['parent_task_id'], ['project_tasks.id'], ),
        sa.ForeignKeyConstraint(['assigned_to'], ['project_team_members.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ),
        sa.ForeignKeyConstraint(['updated_by'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('project_tasks', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_project_tasks_project_id'), ['project_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_project_tasks_parent_task_id'), ['parent_task_id'], unique=False)

    # ==========================================================================
    # 8. DOCUMENTS
    # ==========================================================================
    _document_table('partner_documents', 'partner_id', 'partners')
    _document_table('opportunity_documents', 'opportunity_id', 'opportunities')
    _document_table('offer_review_documents', 'request_id', 'offer_review_requests')
    _document_table('contract_documents', 'contract_id', 'contracts')


def downgrade():
    for table in (
        'contract_documents',
        'offer_review_documents',
        'opportunity_documents',
        'partner_documents',
        'project_tasks',
        'project_team_members',
        'payment_milestones',
        'projects',
        'contracts',
        'offer_review_history',
        'offer_reviews',
        'offer_review_requests',
        'offer_service_components',
        'offer_service_sets',
        'offer_environment_components',
        'offer_environments',
        'offer_records',
        'opportunities',
        'services',
        'license_pricing',
        'customers',
        'partners',
        'session_tokens',
        'users',
    ):
        op.drop_table(table)
