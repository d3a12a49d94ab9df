"""Initial key cabinet schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("expires_at", sa.DateTime, nullable=False),
        sa.Column("last_seen_at", sa.DateTime, nullable=False),
        sa.Column("revoked_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    op.create_table(
        "keys",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("holder_id", sa.String(36), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )
    op.create_index("ix_keys_name", "keys", ["name"])
    op.create_index("ix_keys_status", "keys", ["status"])
    op.create_index("ix_keys_holder_id", "keys", ["holder_id"])

    op.create_table(
        "loans",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("key_id", sa.String(36), nullable=False),
        sa.Column("key_name", sa.String(255), nullable=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("borrowed_at", sa.DateTime, nullable=False),
        sa.Column("expected_return_at", sa.DateTime, nullable=True),
        sa.Column("overdue_at", sa.DateTime, nullable=True),
        sa.Column("returned_at", sa.DateTime, nullable=True),
        sa.Column("returned_by", sa.String(36), nullable=True),
        sa.Column("force_returned", sa.Boolean, nullable=False),
        sa.Column("open_key_id", sa.String(36), nullable=True),
        sa.UniqueConstraint("open_key_id", name="uq_loans_open_key_id"),
    )
    op.create_index("ix_loans_key_id", "loans", ["key_id"])
    op.create_index("ix_loans_user_id", "loans", ["user_id"])
    op.create_index("ix_loans_status", "loans", ["status"])
    op.create_index("ix_loans_borrowed_at", "loans", ["borrowed_at"])
    op.create_index("ix_loans_expected_return_at", "loans", ["expected_return_at"])

    op.create_table(
        "favorites",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("key_id", sa.String(36), sa.ForeignKey("keys.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.UniqueConstraint("user_id", "key_id", name="uq_favorites_user_key"),
    )
    op.create_index("ix_favorites_user_id", "favorites", ["user_id"])
    op.create_index("ix_favorites_key_id", "favorites", ["key_id"])

    op.create_table(
        "system_audit_logs",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("user_role", sa.String(20), nullable=True),
        sa.Column("old_value", sa.JSON, nullable=True),
        sa.Column("new_value", sa.JSON, nullable=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        sa.Column("timestamp", sa.DateTime, nullable=False),
    )
    op.create_index("ix_system_audit_logs_entity_type", "system_audit_logs", ["entity_type"])
    op.create_index("ix_system_audit_logs_entity_id", "system_audit_logs", ["entity_id"])
    op.create_index("ix_system_audit_logs_timestamp", "system_audit_logs", ["timestamp"])


def downgrade() -> None:
    op.drop_table("system_audit_logs")
    op.drop_table("favorites")
    op.drop_table("loans")
    op.drop_table("keys")
    op.drop_table("sessions")
    op.drop_table("users")
