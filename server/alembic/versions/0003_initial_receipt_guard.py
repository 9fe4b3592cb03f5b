"""One initial receipt per member and category."""

from alembic import op
import sqlalchemy as sa


revision = "0003_initial_receipt_guard"
down_revision = "0002_member_archive"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "uq_receipts_initial_member_category",
        "receipts",
        ["member_id", "receipt_category"],
        unique=True,
        sqlite_where=sa.text("is_initial = 1"),
        postgresql_where=sa.text("is_initial"),
    )


def downgrade() -> None:
    op.drop_index("uq_receipts_initial_member_category", table_name="receipts")
