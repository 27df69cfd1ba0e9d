"""Tickets, XP ledger and per-user gamification stats.

Revision ID: 002_tickets_and_gamification
Revises: 001_users_and_auth
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_tickets_and_gamification"
down_revision: str | None = "001_users_and_auth"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Tickets ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS tickets (
            id VARCHAR(36) PRIMARY KEY,
            project_id VARCHAR(36) NOT NULL,
            title VARCHAR(256) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            status VARCHAR(16) NOT NULL DEFAULT 'backlog',
            priority VARCHAR(16) NOT NULL DEFAULT 'medium',
            type VARCHAR(16) NOT NULL DEFAULT 'task',
            reporter_id VARCHAR(36) NOT NULL REFERENCES users(id),
            assignee_id VARCHAR(36) REFERENCES users(id) ON DELETE SET NULL,
            due_date TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT tickets_status_check
                CHECK (status IN ('backlog', 'todo', 'in_progress', 'review', 'done')),
            CONSTRAINT tickets_priority_check
                CHECK (priority IN ('low', 'medium', 'high', 'urgent'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_tickets_project_created
        ON tickets(project_id, created_at DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_tickets_assignee_status
        ON tickets(assignee_id, status)
    """)

    # --- XP Events (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_events (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            ticket_id VARCHAR(36),
            priority VARCHAR(16) NOT NULL,
            xp_value INTEGER NOT NULL,
            note TEXT NOT NULL DEFAULT '',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_events_created
        ON xp_events(created_at DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_events_user_created
        ON xp_events(user_id, created_at DESC)
    """)

    # --- Gamification Stats ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS gamification_user_stats (
            user_id VARCHAR(36) PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            xp_total INTEGER NOT NULL DEFAULT 0 CHECK (xp_total >= 0),
            level INTEGER NOT NULL DEFAULT 1,
            next_level_threshold INTEGER NOT NULL DEFAULT 100,
            tickets_closed_count INTEGER NOT NULL DEFAULT 0 CHECK (tickets_closed_count >= 0),
            streak_days INTEGER NOT NULL DEFAULT 0 CHECK (streak_days >= 0),
            last_ticket_closed_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_gamification_stats_xp
        ON gamification_user_stats(xp_total DESC, level DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS gamification_user_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_events CASCADE")
    op.execute("DROP TABLE IF EXISTS tickets CASCADE")
