"""Initial inventory schema: catalog, operations, stock levels and ledger.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-17

Run with:
    cd backend && alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Catalog / location registry ──────────────────────────

    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "warehouses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(30), nullable=False),
        sa.Column("address", sa.Text()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_warehouses_code", "warehouses", ["code"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("unit_of_measure", sa.String(30), nullable=False),
        sa.Column("reorder_level", sa.Integer()),
        sa.Column("reorder_quantity", sa.Integer()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_products_sku", "products", ["sku"], unique=True)
    op.create_index("ix_products_category_id", "products", ["category_id"])

    # ── Operations ───────────────────────────────────────────

    op.create_table(
        "reference_counters",
        sa.Column("name", sa.String(30), primary_key=True),
        sa.Column("current_value", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "operations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("reference", sa.String(50), nullable=False, unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("warehouse_id", sa.String(36), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("destination_warehouse_id", sa.String(36), sa.ForeignKey("warehouses.id")),
        sa.Column("supplier_name", sa.String(255)),
        sa.Column("customer_name", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("scheduled_date", sa.DateTime()),
        sa.Column("completed_date", sa.DateTime()),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_operations_type", "operations", ["type"])
    op.create_index("ix_operations_status", "operations", ["status"])
    op.create_index("ix_operations_warehouse_id", "operations", ["warehouse_id"])
    op.create_index("ix_operations_user_id", "operations", ["user_id"])

    op.create_table(
        "operation_lines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "operation_id", sa.String(36),
            sa.ForeignKey("operations.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("planned_quantity", sa.Integer(), nullable=False),
        sa.Column("actual_quantity", sa.Integer()),
        sa.Column("unit_price", sa.Float()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_operation_lines_operation_id", "operation_lines", ["operation_id"])
    op.create_index("ix_operation_lines_product_id", "operation_lines", ["product_id"])

    # ── Stock levels & ledger ────────────────────────────────

    op.create_table(
        "stock_levels",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("warehouse_id", sa.String(36), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reserved_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "product_id", "warehouse_id", name="uq_stock_levels_product_warehouse"
        ),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_levels_quantity_non_negative"),
        sa.CheckConstraint(
            "reserved_quantity >= 0", name="ck_stock_levels_reserved_non_negative"
        ),
    )
    op.create_index("ix_stock_levels_product_id", "stock_levels", ["product_id"])
    op.create_index("ix_stock_levels_warehouse_id", "stock_levels", ["warehouse_id"])

    op.create_table(
        "stock_movements",
        sa.Column(
            "id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True, autoincrement=True,
        ),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("warehouse_id", sa.String(36), sa.ForeignKey("warehouses.id"), nullable=False),
        sa.Column("operation_id", sa.String(36), sa.ForeignKey("operations.id")),
        sa.Column("direction", sa.String(20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("requested_quantity", sa.Integer(), nullable=False),
        sa.Column("previous_quantity", sa.Integer(), nullable=False),
        sa.Column("new_quantity", sa.Integer(), nullable=False),
        sa.Column("reference", sa.String(50), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
    op.create_index("ix_stock_movements_warehouse_id", "stock_movements", ["warehouse_id"])
    op.create_index("ix_stock_movements_operation_id", "stock_movements", ["operation_id"])
    op.create_index("ix_stock_movements_direction", "stock_movements", ["direction"])
    op.create_index("ix_stock_movements_created_at", "stock_movements", ["created_at"])


def downgrade() -> None:
    op.drop_table("stock_movements")
    op.drop_table("stock_levels")
    op.drop_table("operation_lines")
    op.drop_table("operations")
    op.drop_table("reference_counters")
    op.drop_table("products")
    op.drop_table("warehouses")
    op.drop_table("categories")
