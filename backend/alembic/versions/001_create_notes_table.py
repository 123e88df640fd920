"""Create notes table

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates the `notes` table keyed by the lowercase note slug.
How:   Portable column types (works on PostgreSQL and SQLite).

Rollback: downgrade() drops the table and every note in it.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the notes table; see app/models/note.py for column docs."""
    op.create_table(
        "notes",
        sa.Column(
            "note_id",
            sa.String(255),
            nullable=False,
            comment="Lowercase user-chosen slug identifying the note",
        ),
        sa.Column(
            "content",
            sa.Text(),
            nullable=False,
            server_default=sa.text("''"),
            comment="Note body; empty string for a fresh note",
        ),
        sa.Column(
            "password_hash",
            sa.String(255),
            nullable=True,
            comment="bcrypt hash of the note password; NULL when unprotected",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this note was first created (UTC)",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="Last content, password or id change (UTC)",
        ),
        # The primary key doubles as the unique lookup index on note_id
        sa.PrimaryKeyConstraint("note_id"),
    )


def downgrade() -> None:
    """Drop the notes table (destructive)."""
    op.drop_table("notes")
