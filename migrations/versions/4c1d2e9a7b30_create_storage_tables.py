"""create_storage_tables

Revision ID: 4c1d2e9a7b30
Revises:
Create Date: 2026-10-19 10:12:41.552310

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1d2e9a7b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
    )

    # Nested-set bounds live next to the parent link
    op.create_table(
        'folders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('lft', sa.Integer(), nullable=False),
        sa.Column('rgt', sa.Integer(), nullable=False),
        sa.Column('permission_default', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.ForeignKeyConstraint(['parent_id'], ['folders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_folders_lft', 'folders', ['lft'])
    op.create_index('ix_folders_rgt', 'folders', ['rgt'])
    op.create_index('idx_folders_bounds', 'folders', ['lft', 'rgt'])
    op.create_index('idx_folders_parent_owner', 'folders', ['parent_id', 'owner_id'])

    op.create_table(
        'files',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('path', sa.String(length=500), nullable=False),
        sa.Column('size', sa.BigInteger(), nullable=False),
        sa.Column('mime_type', sa.String(length=255), nullable=True),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('folder_id', sa.Integer(), nullable=False),
        sa.Column('permission_default', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['folder_id'], ['folders.id']),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_files_folder_owner', 'files', ['folder_id', 'owner_id'])

    op.create_table(
        'folder_user_permissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('folder_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('permission', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['folder_id'], ['folders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('folder_id', 'user_id', name='uq_folder_user_permission'),
    )
    op.create_index('idx_folder_user_permissions_user', 'folder_user_permissions', ['user_id', 'folder_id'])

    op.create_table(
        'file_user_permissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('file_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('permission', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['file_id'], ['files.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('file_id', 'user_id', name='uq_file_user_permission'),
    )
    op.create_index('idx_file_user_permissions_user', 'file_user_permissions', ['user_id', 'file_id'])

    op.create_table(
        'access_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('target', sa.String(length=255), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade():
    # Drop in reverse dependency order
    op.drop_table('access_logs')

    op.drop_index('idx_file_user_permissions_user', 'file_user_permissions')
    op.drop_table('file_user_permissions')

    op.drop_index('idx_folder_user_permissions_user', 'folder_user_permissions')
    op.drop_table('folder_user_permissions')

    op.drop_index('idx_files_folder_owner', 'files')
    op.drop_table('files')

    op.drop_index('idx_folders_parent_owner', 'folders')
    op.drop_index('idx_folders_bounds', 'folders')
    op.drop_index('ix_folders_rgt', 'folders')
    op.drop_index('ix_folders_lft', 'folders')
    op.drop_table('folders')

    op.drop_table('users')
