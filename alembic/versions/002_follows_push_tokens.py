"""Follows between users and per-user push tokens.

Revision ID: 002_follows_push_tokens
Revises: 001_glitch_schema
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_follows_push_tokens"
down_revision: str | None = "001_glitch_schema"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("ALTER TABLE users ADD COLUMN IF NOT EXISTS push_token VARCHAR(255)")

    # --- Follows ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS follows (
            follower_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            following_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (follower_id, following_id),
            CONSTRAINT ck_follows_not_self CHECK (follower_id <> following_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_follows_following
        ON follows(following_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS follows CASCADE")
    op.execute("ALTER TABLE users DROP COLUMN IF EXISTS push_token")
