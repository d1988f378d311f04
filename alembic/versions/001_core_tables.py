"""Core tables: companies, users, tokens, behavior logs, predictions and billing.

Revision ID: 001_core_tables
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_core_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    ]


def upgrade() -> None:
    """Create the account, behavior and billing tables."""
    # --- companies ---
    op.create_table(
        "companies",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("size", sa.String(16), server_default="startup", nullable=False),
        sa.Column("subscription_tier", sa.String(16), server_default="basic", nullable=False),
        sa.Column("stripe_customer_id", sa.String(64), nullable=True),
        sa.Column("total_spent", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("api_key_prefix", sa.String(16), nullable=True),
        sa.Column("api_key_hash", sa.String(256), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("preferences", postgresql.JSONB(), server_default="{}", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_companies_email"),
        sa.UniqueConstraint("api_key_prefix", name="uq_companies_api_key_prefix"),
    )
    op.execute(
        "ALTER TABLE companies ADD CONSTRAINT ck_companies_size "
        "CHECK (size IN ('startup', 'small', 'medium', 'large', 'enterprise'))"
    )
    op.execute(
        "ALTER TABLE companies ADD CONSTRAINT ck_companies_subscription_tier "
        "CHECK (subscription_tier IN ('basic', 'professional', 'enterprise'))"
    )

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("role", sa.String(16), server_default="user", nullable=False),
        sa.Column("subscription_tier", sa.String(16), server_default="free", nullable=False),
        sa.Column("stripe_customer_id", sa.String(64), nullable=True),
        sa.Column("total_earnings", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("demographics", postgresql.JSONB(), server_default="{}", nullable=False),
        sa.Column("preferences", postgresql.JSONB(), server_default="{}", nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("email_verified", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "company_id",
            sa.BigInteger(),
            sa.ForeignKey("companies.id", ondelete="SET NULL", name="fk_users_company_id_companies"),
            nullable=True,
        ),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_stripe_customer_id", "users", ["stripe_customer_id"])
    op.execute("ALTER TABLE users ADD CONSTRAINT ck_users_role CHECK (role IN ('user', 'company', 'admin'))")
    op.execute(
        "ALTER TABLE users ADD CONSTRAINT ck_users_subscription_tier "
        "CHECK (subscription_tier IN ('free', 'premium', 'enterprise'))"
    )

    # --- refresh_tokens ---
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", postgresql.INET(), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("is_revoked", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("replaced_by", sa.String(36), nullable=True),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])

    # --- behavior_logs ---
    op.create_table(
        "behavior_logs",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("subcategory", sa.String(100), nullable=True),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("mood_rating", sa.Integer(), nullable=True),
        sa.Column("energy_level", sa.Integer(), nullable=True),
        sa.Column("stress_level", sa.Integer(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), server_default="{}", nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("source", sa.String(16), server_default="manual", nullable=False),
        sa.Column("confidence", sa.Float(), server_default="1.0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("ix_behavior_logs_user_timestamp", "behavior_logs", ["user_id", "timestamp"])
    op.create_index("ix_behavior_logs_category_timestamp", "behavior_logs", ["category", "timestamp"])
    op.create_index("ix_behavior_logs_timestamp", "behavior_logs", ["timestamp"])
    op.execute(
        "ALTER TABLE behavior_logs ADD CONSTRAINT ck_behavior_logs_ratings CHECK ("
        "(mood_rating IS NULL OR mood_rating BETWEEN 1 AND 10) AND "
        "(energy_level IS NULL OR energy_level BETWEEN 1 AND 10) AND "
        "(stress_level IS NULL OR stress_level BETWEEN 1 AND 10))"
    )
    op.execute(
        "ALTER TABLE behavior_logs ADD CONSTRAINT ck_behavior_logs_source "
        "CHECK (source IN ('manual', 'wearable', 'api'))"
    )

    # --- predictions ---
    op.create_table(
        "predictions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("prediction_type", sa.String(32), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("prediction", postgresql.JSONB(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("timeframe", sa.String(16), server_default="1_day", nullable=False),
        sa.Column("target_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_outcome", postgresql.JSONB(), nullable=True),
        sa.Column("accuracy", sa.Float(), nullable=True),
        sa.Column("model_version", sa.String(16), server_default="1.0", nullable=False),
        sa.Column("features", postgresql.JSONB(), server_default="{}", nullable=False),
        sa.Column("is_verified", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("ix_predictions_user_target", "predictions", ["user_id", "target_date"])
    op.execute(
        "ALTER TABLE predictions ADD CONSTRAINT ck_predictions_confidence CHECK (confidence BETWEEN 0 AND 1)"
    )
    op.execute(
        "ALTER TABLE predictions ADD CONSTRAINT ck_predictions_accuracy "
        "CHECK (accuracy IS NULL OR accuracy BETWEEN 0 AND 1)"
    )

    # --- subscriptions ---
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tier", sa.String(16), server_default="free", nullable=False),
        sa.Column("status", sa.String(16), server_default="active", nullable=False),
        sa.Column("stripe_subscription_id", sa.String(64), nullable=True),
        sa.Column("stripe_price_id", sa.String(64), nullable=True),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("features", postgresql.JSONB(), server_default="{}", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_subscriptions_user_id"),
    )
    op.create_index("ix_subscriptions_stripe_subscription_id", "subscriptions", ["stripe_subscription_id"])

    # --- transactions ---
    op.create_table(
        "transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "company_id",
            sa.BigInteger(),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="USD", nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("stripe_payment_intent_id", sa.String(64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), server_default="{}", nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("ix_transactions_user_type", "transactions", ["user_id", "type"])
    op.create_index("ix_transactions_created_at", "transactions", ["created_at"])
    op.execute(
        "ALTER TABLE transactions ADD CONSTRAINT ck_transactions_type CHECK (type IN "
        "('data_purchase', 'subscription_payment', 'user_earning', 'marketplace_fee', 'refund'))"
    )
    op.execute(
        "ALTER TABLE transactions ADD CONSTRAINT ck_transactions_status "
        "CHECK (status IN ('pending', 'completed', 'failed', 'refunded'))"
    )


def downgrade() -> None:
    """Drop the core tables in dependency order."""
    op.drop_table("transactions")
    op.drop_table("subscriptions")
    op.drop_table("predictions")
    op.drop_table("behavior_logs")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
    op.drop_table("companies")
