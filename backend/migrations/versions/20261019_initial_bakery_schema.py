"""Initial bakery schema: users, products, production, batches, sales, reports

Revision ID: 20261019_initial_bakery
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial_bakery"
down_revision = None
branch_labels = None
depends_on = None


def _shift_enum():
    return sa.Enum("morning", "night", name="shift_enum", native_enum=False, create_constraint=True, length=16)


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("display_name", sa.String(120), nullable=True),
        sa.Column(
            "role",
            sa.Enum("owner", "manager", "sales_rep", name="role_enum", native_enum=False, create_constraint=True, length=16),
            nullable=False,
        ),
        sa.Column("selected_shift", _shift_enum(), nullable=False, server_default="morning"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_username", ["username"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("price_cents IS NULL OR price_cents >= 0", name="ck_products_price_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_active_name", ["is_active", "name"], unique=False)

    op.create_table(
        "batches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("batch_number", sa.String(32), nullable=False),
        sa.Column("target_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("actual_quantity", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "planning", "active", "quality_check", "completed", "cancelled", "paused",
                name="batchstatus_enum", native_enum=False, create_constraint=True, length=16,
            ),
            nullable=False,
        ),
        sa.Column("estimated_duration_minutes", sa.Integer(), nullable=False, server_default=sa.text("120")),
        sa.Column("progress", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("shift", _shift_enum(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("target_quantity >= 0", name="ck_batches_target_non_negative"),
        sa.CheckConstraint("actual_quantity IS NULL OR actual_quantity >= 0", name="ck_batches_actual_non_negative"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "batch_number", name="uq_batches_product_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("batches", schema=None) as batch_op:
        batch_op.create_index("ix_batches_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_batches_created_by_user_id", ["created_by_user_id"], unique=False)
        batch_op.create_index("ix_batches_status", ["status"], unique=False)
        batch_op.create_index("ix_batches_shift_created", ["shift", "created_at"], unique=False)

    op.create_table(
        "batch_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", name="uq_batch_sequences_product"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "production_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("shift", _shift_enum(), nullable=False),
        sa.Column("recorded_by_user_id", sa.Integer(), nullable=True),
        sa.Column("batch_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_production_events_quantity_non_negative"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["recorded_by_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["batch_id"], ["batches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("batch_id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("production_events", schema=None) as batch_op:
        batch_op.create_index("ix_production_events_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_production_events_recorded_by_user_id", ["recorded_by_user_id"], unique=False)
        batch_op.create_index("ix_production_events_shift_time", ["shift", "occurred_at"], unique=False)
        batch_op.create_index("ix_production_events_product_time", ["product_id", "occurred_at"], unique=False)

    op.create_table(
        "sales_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=True),
        sa.Column("discount_cents", sa.Integer(), nullable=True),
        sa.Column("shift", _shift_enum(), nullable=False),
        sa.Column("recorded_by_user_id", sa.Integer(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_sales_events_quantity_non_negative"),
        sa.CheckConstraint("unit_price_cents IS NULL OR unit_price_cents >= 0", name="ck_sales_events_price_non_negative"),
        sa.CheckConstraint("discount_cents IS NULL OR discount_cents >= 0", name="ck_sales_events_discount_non_negative"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["recorded_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales_events", schema=None) as batch_op:
        batch_op.create_index("ix_sales_events_product_id", ["product_id"], unique=False)
        batch_op.create_index(
            "ix_sales_events_owner_shift_time", ["recorded_by_user_id", "shift", "occurred_at"], unique=False
        )
        batch_op.create_index("ix_sales_events_shift_time", ["shift", "occurred_at"], unique=False)

    op.create_table(
        "remaining_stock_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_remaining_stock_quantity_non_negative"),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_user_id", "product_id", name="uq_remaining_stock_owner_product"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("remaining_stock_entries", schema=None) as batch_op:
        batch_op.create_index("ix_remaining_stock_entries_owner_user_id", ["owner_user_id"], unique=False)
        batch_op.create_index("ix_remaining_stock_entries_product_id", ["product_id"], unique=False)

    op.create_table(
        "shift_reports",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), nullable=False),
        sa.Column("shift", _shift_enum(), nullable=False),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("total_revenue_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_items_sold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_remaining_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sales_lines", sa.JSON(), nullable=False),
        sa.Column("remaining_lines", sa.JSON(), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_user_id", "shift", "report_date", name="uq_shift_reports_owner_shift_day"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("shift_reports", schema=None) as batch_op:
        batch_op.create_index("ix_shift_reports_owner_user_id", ["owner_user_id"], unique=False)
        batch_op.create_index("ix_shift_reports_date", ["report_date"], unique=False)


def downgrade():
    op.drop_table("shift_reports")
    op.drop_table("remaining_stock_entries")
    op.drop_table("sales_events")
    op.drop_table("production_events")
    op.drop_table("batch_sequences")
    op.drop_table("batches")
    op.drop_table("products")
    op.drop_table("users")
