"""Ticket comments.

Revision ID: 003_ticket_comments
Revises: 002_tickets_and_gamification
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "003_ticket_comments"
down_revision: str | None = "002_tickets_and_gamification"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS ticket_comments (
            id VARCHAR(36) PRIMARY KEY,
            ticket_id VARCHAR(36) NOT NULL REFERENCES tickets(id) ON DELETE CASCADE,
            author_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            text TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_ticket_comments_ticket
        ON ticket_comments(ticket_id, created_at)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ticket_comments CASCADE")
