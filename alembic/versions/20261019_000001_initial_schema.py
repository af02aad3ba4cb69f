"""
Initial schema: users, projects, tasks, RBAC and layered settings

Revision ID: 000001_initial
Revises:
Create Date: 2026-10-19 09:00:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '000001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _base_columns():
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def _soft_delete_columns():
    return [
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.text('false')),
    ]


def upgrade() -> None:
    # users
    op.create_table(
        'users',
        *_base_columns(),
        *_soft_delete_columns(),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('full_name', sa.String(length=100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('role', sa.String(length=50), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_is_active', 'users', ['is_active'])
    op.create_index('ix_user_email_active', 'users', ['email', 'is_active'])

    # projects
    op.create_table(
        'projects',
        *_base_columns(),
        *_soft_delete_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('project_manager_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
    )
    op.create_index('ix_projects_name', 'projects', ['name'])
    op.create_index('ix_projects_created_by_id', 'projects', ['created_by_id'])
    op.create_index('ix_projects_project_manager_id', 'projects', ['project_manager_id'])

    # tasks
    op.create_table(
        'tasks',
        *_base_columns(),
        *_soft_delete_columns(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='pending'),
        sa.Column(
            'project_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False,
        ),
    )
    op.create_index('ix_tasks_project_id', 'tasks', ['project_id'])
    op.create_index('ix_tasks_status', 'tasks', ['status'])
    op.create_index('ix_task_project_status', 'tasks', ['project_id', 'status'])

    # permissions
    op.create_table(
        'permissions',
        *_base_columns(),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('module', sa.String(length=50), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
    )
    op.create_index('ix_permissions_key', 'permissions', ['key'], unique=True)
    op.create_index('ix_permissions_module', 'permissions', ['module'])

    # roles
    op.create_table(
        'roles',
        *_base_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_system_role', sa.Boolean(), nullable=False, server_default=sa.text('false')),
    )
    op.create_index('ix_roles_name', 'roles', ['name'], unique=True)

    op.create_table(
        'role_permissions',
        sa.Column(
            'role_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True,
        ),
        sa.Column(
            'permission_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True,
        ),
    )

    # user_roles
    op.create_table(
        'user_roles',
        *_base_columns(),
        sa.Column(
            'user_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column(
            'role_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('scope_type', sa.String(length=20), nullable=False, server_default='global'),
        sa.Column('scope_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.UniqueConstraint('user_id', 'role_id', 'scope_type', 'scope_id', name='uq_user_roles_assignment'),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])
    op.create_index('ix_user_roles_role_id', 'user_roles', ['role_id'])
    op.create_index('ix_user_roles_user_scope', 'user_roles', ['user_id', 'scope_type', 'scope_id'])
    # Global rows have a NULL scope_id, which the unique constraint treats as distinct
    op.create_index(
        'uq_user_roles_global_assignment', 'user_roles', ['user_id', 'role_id'],
        unique=True, postgresql_where=sa.text('scope_id IS NULL'),
    )

    # system_settings
    op.create_table(
        'system_settings',
        *_base_columns(),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('value', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
    )
    op.create_index('ix_system_settings_key', 'system_settings', ['key'], unique=True)
    op.create_index('ix_system_settings_category', 'system_settings', ['category'])

    # project_settings
    op.create_table(
        'project_settings',
        *_base_columns(),
        sa.Column(
            'project_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('value', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('updated_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.UniqueConstraint('project_id', 'key', name='uq_project_settings_project_key'),
    )
    op.create_index('ix_project_settings_project_id', 'project_settings', ['project_id'])
    op.create_index('ix_project_settings_category', 'project_settings', ['category'])

    # user_settings
    op.create_table(
        'user_settings',
        *_base_columns(),
        sa.Column(
            'user_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('value', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('updated_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.UniqueConstraint('user_id', 'key', name='uq_user_settings_user_key'),
    )
    op.create_index('ix_user_settings_user_id', 'user_settings', ['user_id'])
    op.create_index('ix_user_settings_category', 'user_settings', ['category'])

    # settings_change_logs
    op.create_table(
        'settings_change_logs',
        *_base_columns(),
        sa.Column('scope', sa.String(length=20), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('setting_key', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('old_value', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('new_value', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
    )
    op.create_index('ix_settings_change_logs_scope', 'settings_change_logs', ['scope'])
    op.create_index('ix_settings_change_logs_owner_id', 'settings_change_logs', ['owner_id'])
    op.create_index('ix_settings_change_logs_setting_key', 'settings_change_logs', ['setting_key'])
    op.create_index('ix_settings_change_logs_scope_owner', 'settings_change_logs', ['scope', 'owner_id'])

    # created_at indexes from TimestampMixin
    for table in (
        'users', 'projects', 'tasks', 'permissions', 'roles', 'user_roles',
        'system_settings', 'project_settings', 'user_settings', 'settings_change_logs',
    ):
        op.create_index(f'ix_{table}_created_at', table, ['created_at'])

    for table in ('users', 'projects', 'tasks'):
        op.create_index(f'ix_{table}_deleted_at', table, ['deleted_at'])
        op.create_index(f'ix_{table}_is_deleted', table, ['is_deleted'])


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table('settings_change_logs')
    op.drop_table('user_settings')
    op.drop_table('project_settings')
    op.drop_table('system_settings')
    op.drop_table('user_roles')
    op.drop_table('role_permissions')
    op.drop_table('roles')
    op.drop_table('permissions')
    op.drop_table('tasks')
    op.drop_table('projects')
    op.drop_table('users')
