"""Initial medpos schema: tenants, users, sessions, medicines, sales, bill sequences

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("store_name", sa.String(100), nullable=False),
        sa.Column("store_address", sa.String(200), nullable=True),
        sa.Column("phone", sa.String(15), nullable=True),
        sa.Column("gst_number", sa.String(32), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tenants")),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("tenants", schema=None) as batch_op:
        batch_op.create_index(op.f("ix_tenants_is_active"), ["is_active"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default="OWNER"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('OWNER', 'STAFF')", name=op.f("ck_users_role_valid")),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], name=op.f("fk_users_tenant_id_tenants")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index(op.f("ix_users_tenant_id"), ["tenant_id"], unique=False)
        batch_op.create_index(op.f("ix_users_email"), ["email"], unique=True)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(255), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name=op.f("fk_session_tokens_user_id_users")),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], name=op.f("fk_session_tokens_tenant_id_tenants")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_session_tokens")),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.create_index(op.f("ix_session_tokens_user_id"), ["user_id"], unique=False)
        batch_op.create_index(op.f("ix_session_tokens_tenant_id"), ["tenant_id"], unique=False)
        batch_op.create_index(op.f("ix_session_tokens_token_hash"), ["token_hash"], unique=True)
        batch_op.create_index(op.f("ix_session_tokens_expires_at"), ["expires_at"], unique=False)
        batch_op.create_index(op.f("ix_session_tokens_is_revoked"), ["is_revoked"], unique=False)
        batch_op.create_index("ix_session_tokens_user_active", ["user_id", "is_revoked"], unique=False)

    op.create_table(
        "medicines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=False),
        sa.Column("category", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("mrp_cents", sa.Integer(), nullable=False),
        sa.Column("discount_micros", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False, server_default=sa.text("5")),
        sa.Column("supplier", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 0", name=op.f("ck_medicines_quantity_non_negative")),
        sa.CheckConstraint("price_cents >= 0", name=op.f("ck_medicines_price_non_negative")),
        sa.CheckConstraint("mrp_cents >= 0", name=op.f("ck_medicines_mrp_non_negative")),
        sa.CheckConstraint("discount_micros >= 0 AND discount_micros <= 100000000", name=op.f("ck_medicines_discount_micros_range")),
        sa.CheckConstraint("low_stock_threshold >= 0", name=op.f("ck_medicines_low_stock_threshold_non_negative")),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], name=op.f("fk_medicines_tenant_id_tenants")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_medicines")),
        sa.UniqueConstraint("tenant_id", "batch_number", name="uq_medicines_tenant_batch"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("medicines", schema=None) as batch_op:
        batch_op.create_index(op.f("ix_medicines_tenant_id"), ["tenant_id"], unique=False)
        batch_op.create_index("ix_medicines_tenant_name", ["tenant_id", "name"], unique=False)
        batch_op.create_index("ix_medicines_tenant_category", ["tenant_id", "category"], unique=False)
        batch_op.create_index("ix_medicines_tenant_quantity", ["tenant_id", "quantity"], unique=False)
        batch_op.create_index("ix_medicines_expiry_date", ["expiry_date"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("bill_number", sa.String(32), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_mobile", sa.String(15), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(16), nullable=False, server_default="CASH"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="COMPLETED"),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("subtotal_cents >= 0", name=op.f("ck_sales_subtotal_non_negative")),
        sa.CheckConstraint("discount_cents >= 0", name=op.f("ck_sales_discount_non_negative")),
        sa.CheckConstraint("tax_cents >= 0", name=op.f("ck_sales_tax_non_negative")),
        sa.CheckConstraint("total_cents >= 0", name=op.f("ck_sales_total_non_negative")),
        sa.CheckConstraint(
            "total_cents = subtotal_cents - discount_cents + tax_cents",
            name=op.f("ck_sales_total_consistent"),
        ),
        sa.CheckConstraint(
            "payment_method IN ('CASH', 'CARD', 'UPI', 'ONLINE')",
            name=op.f("ck_sales_payment_method_valid"),
        ),
        sa.CheckConstraint(
            "payment_status IN ('PENDING', 'COMPLETED', 'FAILED')",
            name=op.f("ck_sales_payment_status_valid"),
        ),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], name=op.f("fk_sales_tenant_id_tenants")),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], name=op.f("fk_sales_created_by_user_id_users")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sales")),
        sa.UniqueConstraint("tenant_id", "bill_number", name="uq_sales_tenant_bill_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index(op.f("ix_sales_tenant_id"), ["tenant_id"], unique=False)
        batch_op.create_index(op.f("ix_sales_payment_status"), ["payment_status"], unique=False)
        batch_op.create_index("ix_sales_bill_number", ["bill_number"], unique=False)
        batch_op.create_index("ix_sales_tenant_created", ["tenant_id", "created_at"], unique=False)

    op.create_table(
        "sale_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("medicine_id", sa.Integer(), nullable=False),
        sa.Column("medicine_name", sa.String(255), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("mrp_cents", sa.Integer(), nullable=False),
        sa.Column("discount_micros", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("line_total_cents", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity >= 1", name=op.f("ck_sale_lines_quantity_positive")),
        sa.CheckConstraint("unit_price_cents >= 0", name=op.f("ck_sale_lines_unit_price_non_negative")),
        sa.CheckConstraint("mrp_cents >= 0", name=op.f("ck_sale_lines_mrp_non_negative")),
        sa.CheckConstraint("discount_micros >= 0 AND discount_micros <= 100000000", name=op.f("ck_sale_lines_discount_micros_range")),
        sa.CheckConstraint("line_total_cents >= 0", name=op.f("ck_sale_lines_line_total_non_negative")),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], name=op.f("fk_sale_lines_sale_id_sales")),
        sa.ForeignKeyConstraint(["medicine_id"], ["medicines.id"], name=op.f("fk_sale_lines_medicine_id_medicines")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sale_lines")),
        sa.UniqueConstraint("sale_id", "position", name="uq_sale_lines_sale_position"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_lines", schema=None) as batch_op:
        batch_op.create_index(op.f("ix_sale_lines_sale_id"), ["sale_id"], unique=False)
        batch_op.create_index(op.f("ix_sale_lines_medicine_id"), ["medicine_id"], unique=False)

    op.create_table(
        "bill_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint("next_number >= 1", name=op.f("ck_bill_sequences_next_number_positive")),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], name=op.f("fk_bill_sequences_tenant_id_tenants")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_bill_sequences")),
        sa.UniqueConstraint("tenant_id", name=op.f("uq_bill_sequences_tenant_id")),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("bill_sequences")
    op.drop_table("sale_lines")
    op.drop_table("sales")
    op.drop_table("medicines")
    op.drop_table("session_tokens")
    op.drop_table("users")
    op.drop_table("tenants")
