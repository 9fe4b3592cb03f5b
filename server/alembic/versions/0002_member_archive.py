"""Deleted member snapshots and member activity tables."""

from alembic import op
import sqlalchemy as sa


revision = "0002_member_archive"
down_revision = "0001_ledger_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "deleted_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("original_member_id", sa.Integer(), nullable=False),
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
        sa.Column("plan_type", sa.String(length=20), nullable=True),
        sa.Column("membership_fees", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("registration_fee", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("package_fee", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("discount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("paid_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("subscription_start_date", sa.Date(), nullable=True),
        sa.Column("subscription_end_date", sa.Date(), nullable=True),
        sa.Column("subscription_status", sa.String(length=20), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("receipts_snapshot", sa.JSON(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("deleted_by", sa.String(length=120), nullable=False, server_default="System"),
        sa.Column("deletion_reason", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_deleted_members_original_member_id", "deleted_members", ["original_member_id"])
    op.create_index("ix_deleted_members_member_number", "deleted_members", ["member_number"])
    op.create_index("ix_deleted_members_deleted_at", "deleted_members", ["deleted_at"])

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("check_in", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("check_out", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_attendance_member_id", "attendance", ["member_id"])

    op.create_table(
        "body_measurements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("measured_on", sa.Date(), nullable=False),
        sa.Column("weight", sa.Numeric(precision=6, scale=2), nullable=True),
        sa.Column("notes", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_body_measurements_member_id", "body_measurements", ["member_id"])


def downgrade() -> None:
    op.drop_index("ix_body_measurements_member_id", table_name="body_measurements")
    op.drop_table("body_measurements")
    op.drop_index("ix_attendance_member_id", table_name="attendance")
    op.drop_table("attendance")
    op.drop_index("ix_deleted_members_deleted_at", table_name="deleted_members")
    op.drop_index("ix_deleted_members_member_number", table_name="deleted_members")
    op.drop_index("ix_deleted_members_original_member_id", table_name="deleted_members")
    op.drop_table("deleted_members")
