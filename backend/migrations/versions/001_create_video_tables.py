"""Create video_downloads and download_history tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    if 'video_downloads' not in existing_tables:
        op.create_table(
            'video_downloads',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('external_id', sa.String(length=64), nullable=True),
            sa.Column('source_url', sa.String(length=1024), nullable=True),
            sa.Column('canonical_url', sa.String(length=1024), nullable=True),
            sa.Column('title', sa.Text(), nullable=True),
            sa.Column('uploader', sa.String(length=255), nullable=True),
            sa.Column('duration_seconds', sa.Integer(), nullable=True),
            sa.Column('view_count', sa.BigInteger(), nullable=True),
            sa.Column('like_count', sa.BigInteger(), nullable=True),
            sa.Column('thumbnail_url', sa.String(length=1024), nullable=True),
            sa.Column('content_fingerprint', sa.String(length=32), nullable=False),
            sa.Column('binary_hash', sa.String(length=32), nullable=True),
            sa.Column('storage_key', sa.String(length=512), nullable=False),
            sa.Column('public_url', sa.String(length=1024), nullable=False),
            sa.Column('file_size_bytes', sa.BigInteger(), nullable=True),
            sa.Column('content_rating', sa.String(length=20), nullable=False),
            sa.Column('download_count', sa.Integer(), nullable=False),
            sa.Column('first_downloaded_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('last_downloaded_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('external_id', name='uq_video_downloads_external_id')
        )
        op.create_index('ix_video_downloads_id', 'video_downloads', ['id'])
        op.create_index('ix_video_downloads_content_fingerprint', 'video_downloads', ['content_fingerprint'])
        op.create_index(
            'ix_video_downloads_rating_last_downloaded', 'video_downloads',
            ['content_rating', 'last_downloaded_at']
        )

    if 'download_history' not in existing_tables:
        op.create_table(
            'download_history',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('video_id', sa.Integer(), nullable=False),
            sa.Column('downloaded_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('user_ip', sa.String(length=64), nullable=True),
            sa.Column('user_agent', sa.String(length=512), nullable=True),
            sa.ForeignKeyConstraint(['video_id'], ['video_downloads.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_download_history_id', 'download_history', ['id'])
        op.create_index('ix_download_history_video_id', 'download_history', ['video_id'])
        op.create_index('ix_download_history_downloaded_at', 'download_history', ['downloaded_at'])


def downgrade() -> None:
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    if 'download_history' in existing_tables:
        op.drop_table('download_history')
    if 'video_downloads' in existing_tables:
        op.drop_table('video_downloads')
