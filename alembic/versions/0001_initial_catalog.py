"""initial catalog schema

Revision ID: 0001_initial_catalog
Revises: 
Create Date: 2026-10-19T10:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = '0001_initial_catalog'
down_revision = None
branch_labels = None
depends_on = None


def _has_table(name: str) -> bool:
    bind = op.get_bind()
    return name in sa.inspect(bind).get_table_names()


def upgrade():
    # Guarded so databases created by metadata create_all can be stamped forward
    if not _has_table('categories'):
        op.create_table(
            'categories',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=256), nullable=False),
            sa.Column('slug', sa.String(length=128), nullable=False),
        )
        op.create_index('ix_categories_slug', 'categories', ['slug'], unique=True)

    if not _has_table('entities'):
        op.create_table(
            'entities',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id', ondelete='CASCADE'), nullable=False),
            sa.Column('name', sa.String(length=256), nullable=False),
            sa.Column('slug', sa.String(length=256), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('details', sa.Text(), nullable=True),
            sa.Column('base_image', sa.String(length=512), nullable=True),
        )
        op.create_index('ix_entities_slug', 'entities', ['slug'], unique=True)
        op.create_index('ix_entities_category_id', 'entities', ['category_id'])

    if not _has_table('assets'):
        op.create_table(
            'assets',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('entity_id', sa.Integer(), sa.ForeignKey('entities.id', ondelete='CASCADE'), nullable=False),
            sa.Column('name', sa.String(length=512), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('folder_name', sa.String(length=1024), nullable=False),
            sa.Column('image_filename', sa.String(length=512), nullable=True),
            sa.Column('author', sa.String(length=256), nullable=True),
            sa.Column('category_tag', sa.String(length=256), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_assets_folder_name', 'assets', ['folder_name'], unique=True)
        op.create_index('ix_assets_entity_id', 'assets', ['entity_id'])

    if not _has_table('presets'):
        op.create_table(
            'presets',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=256), nullable=False, unique=True),
            sa.Column('is_favorite', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )

    if not _has_table('preset_assets'):
        op.create_table(
            'preset_assets',
            sa.Column('preset_id', sa.Integer(), sa.ForeignKey('presets.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('asset_id', sa.Integer(), sa.ForeignKey('assets.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        )
        op.create_index('ix_preset_assets_asset_id', 'preset_assets', ['asset_id'])

    if not _has_table('settings'):
        op.create_table(
            'settings',
            sa.Column('key', sa.String(length=128), primary_key=True),
            sa.Column('value', sa.Text(), nullable=True),
        )


def downgrade():
    for name in ('settings', 'preset_assets', 'presets', 'assets', 'entities', 'categories'):
        if _has_table(name):
            op.drop_table(name)
