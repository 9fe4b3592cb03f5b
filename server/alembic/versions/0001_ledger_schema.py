"""Members, receipts ledger, invoices and counters."""

from alembic import op
import sqlalchemy as sa


revision = "0001_ledger_schema"
down_revision = None
branch_labels = None
depends_on = None

member_status = sa.Enum("active", "inactive", "frozen", "partial", name="member_status")
subscription_status = sa.Enum("active", "expiring_soon", "expired", name="subscription_status")
plan_type = sa.Enum("monthly", "quarterly", "half_yearly", "yearly", name="plan_type")

DEFAULT_COUNTERS = {
    "receipt_counter": 1000,
    "invoice_counter": 1000,
    "enquiry_counter": 1000,
    "member_counter": 0,
}


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_number", sa.String(length=32), nullable=True),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("mobile_no", sa.String(length=25), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("occupation", sa.String(length=120), nullable=True),
        sa.Column("sex", sa.String(length=20), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("date_of_registration", sa.Date(), nullable=True),
        sa.Column("payment_mode", sa.String(length=50), nullable=True),
        sa.Column("plan_type", plan_type, nullable=True),
        sa.Column("membership_fees", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("registration_fee", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        sa.Column("package_fee", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("discount", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        sa.Column("paid_amount", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        sa.Column("subscription_start_date", sa.Date(), nullable=True),
        sa.Column("subscription_end_date", sa.Date(), nullable=True),
        sa.Column("subscription_status", subscription_status, nullable=False, server_default="active"),
        sa.Column("status", member_status, nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_members_member_number", "members", ["member_number"], unique=True)
    op.create_index("ix_members_subscription_end_date", "members", ["subscription_end_date"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("member_name", sa.String(length=150), nullable=False),
        sa.Column("registration_fee", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        sa.Column("package_fee", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        sa.Column("discount", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="unpaid"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_invoices_member_id", "invoices", ["member_id"])

    op.create_table(
        "receipts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("receipt_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("member_name", sa.String(length=150), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("due_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("payment_type", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("receipt_category", sa.String(length=20), nullable=True, server_default="member"),
        sa.Column("transaction_type", sa.String(length=30), nullable=False, server_default="payment"),
        sa.Column("is_initial", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("plan_type", sa.String(length=20), nullable=True),
        sa.Column("registration_fee", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("package_fee", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("discount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("subscription_start_date", sa.Date(), nullable=True),
        sa.Column("subscription_end_date", sa.Date(), nullable=True),
        sa.Column("original_receipt_id", sa.Integer(), sa.ForeignKey("receipts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("version_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_current_version", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("superseded_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("created_by", sa.String(length=120), nullable=False, server_default="System"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_receipts_member_id", "receipts", ["member_id"])
    op.create_index("ix_receipts_original_receipt_id", "receipts", ["original_receipt_id"])

    op.create_table(
        "counters",
        sa.Column("key", sa.String(length=50), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
    )
    for key, value in DEFAULT_COUNTERS.items():
        op.execute(
            sa.text("INSERT INTO counters (key, value) VALUES (:key, :value)").bindparams(key=key, value=value)
        )


def downgrade() -> None:
    op.drop_table("counters")
    op.drop_index("ix_receipts_original_receipt_id", table_name="receipts")
    op.drop_index("ix_receipts_member_id", table_name="receipts")
    op.drop_table("receipts")
    op.drop_index("ix_invoices_member_id", table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("ix_members_subscription_end_date", table_name="members")
    op.drop_index("ix_members_member_number", table_name="members")
    op.drop_table("members")
    bind = op.get_bind()
    for enum_type in (member_status, subscription_status, plan_type):
        enum_type.drop(bind, checkfirst=True)
