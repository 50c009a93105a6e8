"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:12:31.482915

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'feed_sources',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('fetch_url', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('feed_size', sa.Integer(), nullable=False),
        sa.Column('sync', sa.Boolean(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_feed_sources_url'), 'feed_sources', ['url'], unique=True)
    op.create_index(op.f('ix_feed_sources_category_id'), 'feed_sources', ['category_id'])

    op.create_table(
        'articles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('feed_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('link', sa.String(), nullable=False),
        sa.Column('guid', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('publish_date', sa.String(), nullable=True),
        sa.Column('format', sa.String(), nullable=True),
        sa.Column('identifier', sa.String(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['feed_id'], ['feed_sources.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        # Link identifies an entry within its feed; the upsert conflicts on it
        sa.UniqueConstraint('feed_id', 'link', name='uq_articles_feed_link'),
    )
    op.create_index(op.f('ix_articles_feed_id'), 'articles', ['feed_id'])


def downgrade() -> None:
    op.drop_index(op.f('ix_articles_feed_id'), table_name='articles')
    op.drop_table('articles')

    op.drop_index(op.f('ix_feed_sources_category_id'), table_name='feed_sources')
    op.drop_index(op.f('ix_feed_sources_url'), table_name='feed_sources')
    op.drop_table('feed_sources')

    op.drop_table('categories')
