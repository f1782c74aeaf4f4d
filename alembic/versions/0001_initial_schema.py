"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "sellers",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("customer_id", sa.String(length=50), nullable=False),
        sa.Column("business_name", sa.String(length=255), nullable=False),
        sa.Column("business_email", sa.String(length=255), nullable=False),
        sa.Column("business_phone", sa.String(length=50), nullable=True),
        sa.Column(
            "verification_status",
            sa.String(length=20),
            server_default=sa.text("'pending'"),
            nullable=False,
        ),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        sa.Column("payout_method", sa.String(length=20), nullable=True),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column(
            "is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column(
            "suspension_count", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column(
            "chargeback_count", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("average_rating", sa.Float(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected', 'suspended')",
            name="valid_verification_status",
        ),
        sa.CheckConstraint(
            "commission_rate IS NULL OR (commission_rate >= 0 AND commission_rate <= 100)",
            name="seller_commission_rate_range",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_sellers_customer_id", "sellers", ["customer_id"], unique=False)

    op.create_table(
        "commissions",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("order_id", sa.String(length=100), nullable=False),
        sa.Column("line_item_id", sa.String(length=100), nullable=False),
        sa.Column("seller_id", sa.String(length=50), nullable=False),
        sa.Column("product_id", sa.String(length=100), nullable=True),
        sa.Column("product_title", sa.String(length=255), nullable=True),
        sa.Column("variant_id", sa.String(length=100), nullable=True),
        sa.Column("line_item_total_cents", sa.BigInteger(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("commission_amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("seller_payout_cents", sa.BigInteger(), nullable=False),
        sa.Column(
            "currency",
            sa.String(length=3),
            server_default=sa.text("'USD'"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.String(length=20),
            server_default=sa.text("'pending'"),
            nullable=False,
        ),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("disputed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("order_id", "line_item_id", name="uq_commission_line_item"),
        sa.CheckConstraint("line_item_total_cents >= 0", name="non_negative_line_total"),
        sa.CheckConstraint("quantity >= 1", name="positive_quantity"),
        sa.CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="commission_rate_range",
        ),
        sa.CheckConstraint(
            "commission_amount_cents + seller_payout_cents = line_item_total_cents",
            name="commission_reconciles",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'paid', 'disputed', 'cancelled')",
            name="valid_commission_status",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_commissions_seller_status",
        "commissions",
        ["seller_id", "status"],
        unique=False,
    )
    op.create_index(
        "idx_commissions_order_id", "commissions", ["order_id"], unique=False
    )

    op.create_table(
        "payouts",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("seller_id", sa.String(length=50), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column(
            "currency",
            sa.String(length=3),
            server_default=sa.text("'USD'"),
            nullable=False,
        ),
        sa.Column(
            "commission_ids", postgresql.JSONB(astext_type=sa.Text()), nullable=False
        ),
        sa.Column(
            "status",
            sa.String(length=20),
            server_default=sa.text("'requested'"),
            nullable=False,
        ),
        sa.Column("payment_method", sa.String(length=20), nullable=True),
        sa.Column("payment_reference", sa.String(length=255), nullable=True),
        sa.Column(
            "payment_metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True
        ),
        sa.Column(
            "requested_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(length=50), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column(
            "retry_count", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column(
            "requires_reconciliation",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="positive_payout_amount"),
        sa.CheckConstraint("retry_count >= 0", name="non_negative_retry_count"),
        sa.CheckConstraint(
            "status IN ('requested', 'pending_review', 'approved', 'processing', "
            "'completed', 'failed', 'cancelled')",
            name="valid_payout_status",
        ),
        sa.CheckConstraint(
            "(status = 'completed' AND completed_at IS NOT NULL) OR "
            "(status != 'completed' AND completed_at IS NULL)",
            name="completed_at_consistency",
        ),
        sa.ForeignKeyConstraint(["seller_id"], ["sellers.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_payouts_active",
        "payouts",
        ["seller_id", "status"],
        unique=False,
        postgresql_where=sa.text(
            "status IN ('requested', 'pending_review', 'approved', 'processing', 'failed')"
        ),
    )
    op.create_index(
        "idx_payouts_seller_requested_at",
        "payouts",
        ["seller_id", "requested_at"],
        unique=False,
    )

    op.create_table(
        "payout_reservations",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("payout_id", sa.String(length=50), nullable=False),
        sa.Column("commission_id", sa.String(length=50), nullable=False),
        sa.Column("seller_id", sa.String(length=50), nullable=False),
        sa.Column("seller_payout_cents", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["payout_id"], ["payouts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["commission_id"], ["commissions.id"], ondelete="RESTRICT"
        ),
        sa.UniqueConstraint("commission_id", name="uq_reservation_commission"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_payout_reservations_payout_id",
        "payout_reservations",
        ["payout_id"],
        unique=False,
    )
    op.create_index(
        "idx_payout_reservations_seller_id",
        "payout_reservations",
        ["seller_id"],
        unique=False,
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("user_id", sa.String(length=50), nullable=True),
        sa.Column("seller_id", sa.String(length=50), nullable=True),
        sa.Column("customer_id", sa.String(length=50), nullable=True),
        sa.Column("entity_type", sa.String(length=20), nullable=False),
        sa.Column("entity_id", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("old_values", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("new_values", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.String(length=10),
            server_default=sa.text("'success'"),
            nullable=False,
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint("status IN ('success', 'failure')", name="valid_audit_status"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_audit_logs_entity",
        "audit_logs",
        ["entity_type", "entity_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("idx_payout_reservations_seller_id", table_name="payout_reservations")
    op.drop_index("idx_payout_reservations_payout_id", table_name="payout_reservations")
    op.drop_table("payout_reservations")

    op.drop_index("idx_payouts_seller_requested_at", table_name="payouts")
    op.drop_index(
        "idx_payouts_active",
        table_name="payouts",
        postgresql_where=sa.text(
            "status IN ('requested', 'pending_review', 'approved', 'processing', 'failed')"
        ),
    )
    op.drop_table("payouts")

    op.drop_index("idx_commissions_order_id", table_name="commissions")
    op.drop_index("idx_commissions_seller_status", table_name="commissions")
    op.drop_table("commissions")

    op.drop_index("idx_sellers_customer_id", table_name="sellers")
    op.drop_table("sellers")
