"""Create verification tables.

Revision ID: 001_verification_tables
Revises:
Create Date: 2026-03-01

- pending_verifications: one live attempt per (subject_id, server_id)
- verified_links: one link per (subject_id, server_id)
- server_policies: one row per server
- verification_audit_log: append-only
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_verification_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_UUID_DEFAULT = sa.text("gen_random_uuid()")


def upgrade() -> None:
    # pgcrypto provides gen_random_uuid() on PostgreSQL < 13
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "pending_verifications",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=_UUID_DEFAULT),
        sa.Column("subject_id", sa.String(32), nullable=False),
        sa.Column("server_id", sa.String(32), nullable=False),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column("username_hint", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "subject_id", "server_id", name="uq_pending_verifications_subject_server"
        ),
    )
    op.create_index("ix_pending_verifications_code", "pending_verifications", ["code"])

    op.create_table(
        "verified_links",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=_UUID_DEFAULT),
        sa.Column("subject_id", sa.String(32), nullable=False),
        sa.Column("server_id", sa.String(32), nullable=False),
        sa.Column("subject_display_name", sa.String(100), nullable=False),
        sa.Column("external_id", sa.String(32), nullable=False),
        sa.Column("external_username", sa.String(64), nullable=False),
        sa.Column("code", sa.String(16), nullable=False),
        sa.Column(
            "verified_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "subject_id", "server_id", name="uq_verified_links_subject_server"
        ),
    )

    op.create_table(
        "server_policies",
        sa.Column("server_id", sa.String(32), primary_key=True),
        sa.Column(
            "verification_role_ids",
            postgresql.ARRAY(sa.String(32)),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("unverified_role_id", sa.String(32), nullable=True),
        sa.Column("verification_channel_id", sa.String(32), nullable=True),
        sa.Column("log_channel_id", sa.String(32), nullable=True),
        sa.Column(
            "auto_kick_unverified",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "dm_on_verification",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column(
            "allow_reverification",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "verification_audit_log",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=_UUID_DEFAULT),
        sa.Column("subject_id", sa.String(32), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("external_username", sa.String(64), nullable=True),
        sa.Column("server_id", sa.String(32), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("clock_timestamp()"),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'success', 'failed')",
            name="ck_verification_audit_log_status",
        ),
    )
    op.create_index(
        "ix_verification_audit_log_server_created",
        "verification_audit_log",
        ["server_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_verification_audit_log_server_created",
        table_name="verification_audit_log",
    )
    op.drop_table("verification_audit_log")
    op.drop_table("server_policies")
    op.drop_table("verified_links")
    op.drop_index("ix_pending_verifications_code", table_name="pending_verifications")
    op.drop_table("pending_verifications")
