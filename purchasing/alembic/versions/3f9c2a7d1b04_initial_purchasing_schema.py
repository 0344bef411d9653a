"""initial purchasing schema

Revision ID: 3f9c2a7d1b04
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f9c2a7d1b04"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# item_class is shared by two tables: types are created once, up front
ROLE = postgresql.ENUM("admin", "manager", "field", name="role", create_type=False)
ITEM_CLASS = postgresql.ENUM("GOOD", "SUPPLY", name="item_class", create_type=False)
ORDER_STATUS = postgresql.ENUM(
    "PENDING", "APPROVED", "COMPLETED", "DENIED", "VOID", name="order_status", create_type=False
)
ORDER_LIFECYCLE = postgresql.ENUM("DIRECT", "DEFERRED", name="order_lifecycle", create_type=False)
MOVEMENT_TYPE = postgresql.ENUM("RECEIPT", "REVERSAL", "RETURN", name="movement_type", create_type=False)

ENUMS = (ROLE, ITEM_CLASS, ORDER_STATUS, ORDER_LIFECYCLE, MOVEMENT_TYPE)


def _ts(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False)


def _user_fk(name: str) -> sa.Column:
    return sa.Column(name, sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL"))


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    # --- MASTER DATA
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("role", ROLE, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        _ts("created_at"),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("sku", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("item_class", ITEM_CLASS, nullable=False),
        sa.Column("image", sa.String(255)),
        sa.Column("active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_products_name", "products", ["name"])
    op.create_table(
        "suppliers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("active", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "warehouses",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("active", sa.Boolean(), nullable=False),
    )
    for table in ("payment_methods", "payment_terms", "document_types"):
        op.create_table(
            table,
            sa.Column("id", sa.BigInteger(), primary_key=True),
            sa.Column("name", sa.String(120), nullable=False, unique=True),
        )

    # --- PRICE CATALOG
    op.create_table(
        "supplier_prices",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("purchase_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("sale_price", sa.Numeric(14, 2)),
        _ts("effective_at"),
        _user_fk("created_by"),
        _ts("created_at"),
        sa.CheckConstraint("purchase_price >= 0", name="ck_supplier_price_purchase_nonneg"),
        sa.CheckConstraint("sale_price IS NULL OR sale_price >= 0", name="ck_supplier_price_sale_nonneg"),
    )
    op.create_index(
        "ix_supplier_prices_product_supplier_eff",
        "supplier_prices",
        ["product_id", "supplier_id", "effective_at"],
    )

    # --- PROCUREMENT
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("warehouse_id", sa.BigInteger(), sa.ForeignKey("warehouses.id", ondelete="RESTRICT")),
        sa.Column("lifecycle", ORDER_LIFECYCLE, nullable=False),
        sa.Column("status", ORDER_STATUS, nullable=False),
        _ts("order_date"),
        sa.Column("total", sa.Numeric(14, 2), nullable=False),
        sa.Column("notes", sa.Text()),
        _user_fk("created_by"),
        _user_fk("modified_by"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("total >= 0", name="ck_po_total_nonneg"),
    )
    op.create_index("ix_purchase_orders_status", "purchase_orders", ["status"])
    op.create_table(
        "purchase_order_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "order_id",
            sa.BigInteger(),
            sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("item_class", ITEM_CLASS, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_po_line_qty_pos"),
        sa.CheckConstraint("unit_price >= 0", name="ck_po_line_unit_price_nonneg"),
    )
    op.create_index("ix_purchase_order_lines_order_id", "purchase_order_lines", ["order_id"])
    op.create_table(
        "invoices",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "order_id",
            sa.BigInteger(),
            sa.ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
            nullable=False,
            unique=True,
        ),
        sa.Column("invoice_number", sa.String(64), nullable=False),
        sa.Column("payment_method_id", sa.BigInteger(), sa.ForeignKey("payment_methods.id", ondelete="RESTRICT")),
        sa.Column("payment_terms_id", sa.BigInteger(), sa.ForeignKey("payment_terms.id", ondelete="RESTRICT")),
        sa.Column("doc_type_id", sa.BigInteger(), sa.ForeignKey("document_types.id", ondelete="RESTRICT")),
        sa.Column("attachment_ref", sa.String(512)),
        _user_fk("created_by"),
        _ts("created_at"),
    )
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"])
    op.create_table(
        "returns",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "order_id",
            sa.BigInteger(),
            sa.ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("notes", sa.Text()),
        _user_fk("created_by"),
        _ts("created_at"),
    )
    op.create_index("ix_returns_order_id", "returns", ["order_id"])
    op.create_table(
        "return_lines",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("return_id", sa.BigInteger(), sa.ForeignKey("returns.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255)),
        _ts("created_at"),
        sa.CheckConstraint("quantity > 0", name="ck_return_line_qty_pos"),
    )
    op.create_index("ix_return_lines_return_id", "return_lines", ["return_id"])

    # --- INVENTORY
    op.create_table(
        "stock_balances",
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), primary_key=True),
        sa.Column(
            "warehouse_id",
            sa.BigInteger(),
            sa.ForeignKey("warehouses.id", ondelete="RESTRICT"),
            primary_key=True,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
    )
    op.create_table(
        "supplier_inventory",
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), primary_key=True),
        sa.Column(
            "warehouse_id",
            sa.BigInteger(),
            sa.ForeignKey("warehouses.id", ondelete="RESTRICT"),
            primary_key=True,
        ),
        sa.Column(
            "supplier_id",
            sa.BigInteger(),
            sa.ForeignKey("suppliers.id", ondelete="RESTRICT"),
            primary_key=True,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_purchase_price", sa.Numeric(14, 2)),
        _ts("updated_at"),
    )
    op.create_table(
        "stock_movements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "warehouse_id",
            sa.BigInteger(),
            sa.ForeignKey("warehouses.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("movement_type", MOVEMENT_TYPE, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2)),
        sa.Column("reference_type", sa.String(32), nullable=False),
        sa.Column("reference_id", sa.BigInteger(), nullable=False),
        _user_fk("created_by"),
        _ts("created_at"),
        sa.CheckConstraint("quantity <> 0", name="ck_stock_movement_qty_nonzero"),
    )
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
    op.create_index("ix_stock_movements_product_warehouse", "stock_movements", ["product_id", "warehouse_id"])
    op.create_index("ix_stock_movements_reference", "stock_movements", ["reference_type", "reference_id"])


def downgrade() -> None:
    for table in (
        "stock_movements",
        "supplier_inventory",
        "stock_balances",
        "return_lines",
        "returns",
        "invoices",
        "purchase_order_lines",
        "purchase_orders",
        "supplier_prices",
        "document_types",
        "payment_terms",
        "payment_methods",
        "warehouses",
        "suppliers",
        "products",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
