"""Baseline schema: users, quests, memberships, chat and reviews.

Revision ID: 001_glitch_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_glitch_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id VARCHAR(36) PRIMARY KEY,
            username VARCHAR(50) UNIQUE NOT NULL,
            avatar_url TEXT,
            bio TEXT,
            is_premium BOOLEAN NOT NULL DEFAULT false,
            quest_count INTEGER NOT NULL DEFAULT 0,
            xp INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Quests ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quests (
            id VARCHAR(36) PRIMARY KEY,
            title VARCHAR(100) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            creator_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            latitude DOUBLE PRECISION NOT NULL,
            longitude DOUBLE PRECISION NOT NULL,
            video_url TEXT,
            category VARCHAR(50) NOT NULL DEFAULT 'general',
            max_participants INTEGER NOT NULL DEFAULT 10,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            expires_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT ck_quests_expiry_after_creation CHECK (expires_at > created_at),
            CONSTRAINT ck_quests_max_participants_positive CHECK (max_participants > 0)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quests_active
        ON quests(is_active, expires_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quests_location
        ON quests(latitude, longitude)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quests_creator
        ON quests(creator_id, created_at)
    """)

    # --- Memberships ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quest_participants (
            quest_id VARCHAR(36) NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (quest_id, user_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quest_participants_user
        ON quest_participants(user_id)
    """)

    # --- Chat ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS chat_messages (
            id SERIAL PRIMARY KEY,
            quest_id VARCHAR(36) NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
            sender_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            message TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_chat_messages_quest
        ON chat_messages(quest_id, created_at)
    """)

    # --- Reviews ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quest_reviews (
            id SERIAL PRIMARY KEY,
            quest_id VARCHAR(36) NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            score INTEGER NOT NULL,
            comment TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_quest_reviews_quest_user UNIQUE (quest_id, user_id),
            CONSTRAINT ck_quest_reviews_score_range CHECK (score BETWEEN 1 AND 5)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS quest_reviews CASCADE")
    op.execute("DROP TABLE IF EXISTS chat_messages CASCADE")
    op.execute("DROP TABLE IF EXISTS quest_participants CASCADE")
    op.execute("DROP TABLE IF EXISTS quests CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
