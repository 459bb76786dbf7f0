"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users mirrored from Clerk
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clerk_id', sa.String(255), nullable=False),
        sa.Column('email', sa.String(320), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_clerk_id', 'users', ['clerk_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'])

    # Reference data
    op.create_table(
        'domains',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False, unique=True),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(16), nullable=True),
        sa.Column('color', sa.String(16), nullable=True),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'badges',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('key', sa.String(50), nullable=False, unique=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(16), nullable=True),
        sa.Column('rarity', sa.String(20), nullable=False, server_default='common'),
        sa.Column('criteria', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'tags',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_tags_name', 'tags', ['name'], unique=True)

    # Items
    op.create_table(
        'items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('note', sa.String(500), nullable=True),
        sa.Column('source', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='new'),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('author', sa.String(255), nullable=True),
        sa.Column('type', sa.String(20), nullable=True),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('raw_content', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('embed_html', sa.Text(), nullable=True),
        sa.Column('domain_id', sa.Uuid(), nullable=True),
        sa.Column('import_source', sa.String(50), nullable=True),
        sa.Column('external_id', sa.String(512), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['domain_id'], ['domains.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('user_id', 'import_source', 'external_id', name='uq_items_user_import_external'),
    )
    op.create_index('ix_items_user_id', 'items', ['user_id'])
    op.create_index('ix_items_source', 'items', ['source'])
    op.create_index('ix_items_author', 'items', ['author'])
    op.create_index('ix_items_category', 'items', ['category'])
    op.create_index('ix_items_domain_id', 'items', ['domain_id'])
    op.create_index('ix_items_user_status_created', 'items', ['user_id', 'status', 'created_at'])

    op.create_table(
        'item_tags',
        sa.Column('item_id', sa.Uuid(), nullable=False),
        sa.Column('tag_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.ForeignKeyConstraint(['tag_id'], ['tags.id']),
        sa.PrimaryKeyConstraint('item_id', 'tag_id'),
    )
    op.create_index('ix_item_tags_tag_id', 'item_tags', ['tag_id'])

    # Gamification
    op.create_table(
        'user_stats',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, unique=True),
        sa.Column('total_xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('items_saved', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('items_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reflections', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quests_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'xp_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('xp', sa.Integer(), nullable=False),
        sa.Column('domain_id', sa.Uuid(), nullable=True),
        sa.Column('item_id', sa.Uuid(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['domain_id'], ['domains.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_xp_events_user_id', 'xp_events', ['user_id'])
    op.create_index('ix_xp_events_action', 'xp_events', ['action'])
    op.create_index('ix_xp_events_item_id', 'xp_events', ['item_id'])
    op.create_index('ix_xp_events_created_at', 'xp_events', ['created_at'])

    op.create_table(
        'user_badges',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('badge_id', sa.Uuid(), nullable=False),
        sa.Column('earned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['badge_id'], ['badges.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'badge_id', name='uq_user_badges_user_badge'),
    )
    op.create_index('ix_user_badges_user_id', 'user_badges', ['user_id'])

    op.create_table(
        'user_domains',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('domain_id', sa.Uuid(), nullable=False),
        sa.Column('total_xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('item_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['domain_id'], ['domains.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'domain_id', name='uq_user_domains_user_domain'),
    )
    op.create_index('ix_user_domains_user_id', 'user_domains', ['user_id'])

    op.create_table(
        'focus_areas',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('domain_id', sa.Uuid(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['domain_id'], ['domains.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'domain_id', name='uq_focus_areas_user_domain'),
    )
    op.create_index('ix_focus_areas_user_id', 'focus_areas', ['user_id'])

    # Rate limiting
    op.create_table(
        'rate_limits',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('identifier', sa.String(255), nullable=False),
        sa.Column('window', sa.String(10), nullable=False),
        sa.Column('window_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('identifier', 'window', 'window_start', name='uq_rate_limits_identifier_window'),
    )
    op.create_index('ix_rate_limits_identifier', 'rate_limits', ['identifier'])
    op.create_index('ix_rate_limits_window_start', 'rate_limits', ['window_start'])


def downgrade() -> None:
    op.drop_table('rate_limits')
    op.drop_table('focus_areas')
    op.drop_table('user_domains')
    op.drop_table('user_badges')
    op.drop_table('xp_events')
    op.drop_table('user_stats')
    op.drop_table('item_tags')
    op.drop_table('items')
    op.drop_table('tags')
    op.drop_table('badges')
    op.drop_table('domains')
    op.drop_table('users')
