"""create ledger tables

Revision ID: 3a7e5c1f9d20
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3a7e5c1f9d20"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "apps",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("app_id", sa.String(length=36), nullable=False),
        sa.Column("external_id", sa.String(length=200), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("shop_name", sa.String(length=255), nullable=True),
        sa.Column("charge_type", sa.String(length=20), nullable=False),
        sa.Column("gross_amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("net_amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("subscription_status", sa.String(length=20), nullable=True),
        sa.Column("subscription_gid", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["app_id"], ["apps.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("app_id", "external_id", name="uq_transactions_app_external"),
    )
    op.create_index("ix_transactions_app_date", "transactions", ["app_id", "transaction_date"], unique=False)

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("app_id", sa.String(length=36), nullable=False),
        sa.Column("subscription_gid", sa.String(length=200), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("shop_name", sa.String(length=255), nullable=True),
        sa.Column("base_price_cents", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("billing_interval", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("last_charge_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expected_next_charge_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("risk_state", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["app_id"], ["apps.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("app_id", "domain", name="uq_subscriptions_app_domain"),
    )
    op.create_index("ix_subscriptions_app_risk", "subscriptions", ["app_id", "risk_state"], unique=False)

    op.create_table(
        "daily_metrics_snapshots",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("app_id", sa.String(length=36), nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("active_mrr_cents", sa.BigInteger(), nullable=False),
        sa.Column("revenue_at_risk_cents", sa.BigInteger(), nullable=False),
        sa.Column("usage_revenue_cents", sa.BigInteger(), nullable=False),
        sa.Column("total_revenue_cents", sa.BigInteger(), nullable=False),
        sa.Column("renewal_success_rate", sa.Float(), nullable=False),
        sa.Column("safe_count", sa.Integer(), nullable=False),
        sa.Column("one_cycle_missed_count", sa.Integer(), nullable=False),
        sa.Column("two_cycles_missed_count", sa.Integer(), nullable=False),
        sa.Column("churned_count", sa.Integer(), nullable=False),
        sa.Column("total_subscriptions", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["app_id"], ["apps.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("app_id", "snapshot_date", name="uq_daily_metrics_snapshots_app_date"),
    )
    op.create_index(
        "ix_daily_metrics_snapshots_app_id",
        "daily_metrics_snapshots",
        ["app_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_daily_metrics_snapshots_app_id", table_name="daily_metrics_snapshots")
    op.drop_table("daily_metrics_snapshots")
    op.drop_index("ix_subscriptions_app_risk", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_transactions_app_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("apps")
