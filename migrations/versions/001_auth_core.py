"""Create credential tables: accounts, session_tokens, verification_codes, api_keys.

Revision ID: 001_auth_core
Revises:
Create Date: 2026-10-19

UUID primary keys are generated by the application, so no database
extension is required.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_auth_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # =========================================================================
    # accounts
    # =========================================================================
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "role", sa.String(20), server_default=sa.text("'member'"), nullable=False
        ),
        sa.Column(
            "email_verified",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "role IN ('member', 'admin')", name="ck_accounts_role_valid"
        ),
    )

    # =========================================================================
    # session_tokens: fingerprints of outstanding long-lived tokens
    # =========================================================================
    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "account_id",
            sa.Uuid(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(64), unique=True, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_session_tokens_account_id", "session_tokens", ["account_id"]
    )
    op.create_index(
        "ix_session_tokens_expires_at", "session_tokens", ["expires_at"]
    )

    # =========================================================================
    # verification_codes: keyed by email, the account may not exist yet
    # =========================================================================
    op.create_table(
        "verification_codes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("code", sa.String(6), nullable=False),
        sa.Column("purpose", sa.String(20), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "consumed", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "purpose IN ('registration', 'password_reset')",
            name="ck_verification_codes_purpose_valid",
        ),
    )
    op.create_index(
        "ix_verification_codes_email_purpose",
        "verification_codes",
        ["email", "purpose"],
    )
    op.create_index(
        "ix_verification_codes_expires_at", "verification_codes", ["expires_at"]
    )

    # =========================================================================
    # api_keys
    # =========================================================================
    op.create_table(
        "api_keys",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("key_hash", sa.String(64), unique=True, nullable=False),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column(
            "is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )


def downgrade() -> None:
    op.drop_table("api_keys")

    op.drop_index("ix_verification_codes_expires_at", table_name="verification_codes")
    op.drop_index(
        "ix_verification_codes_email_purpose", table_name="verification_codes"
    )
    op.drop_table("verification_codes")

    op.drop_index("ix_session_tokens_expires_at", table_name="session_tokens")
    op.drop_index("ix_session_tokens_account_id", table_name="session_tokens")
    op.drop_table("session_tokens")

    op.drop_table("accounts")
