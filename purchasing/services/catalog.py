"""
Read-only catalog lookups.

Products, suppliers, warehouses and payment catalogs are owned by the
catalog service; here we only check that references exist (before any
ledger mutation) and build the purchasing views over them.
"""

from __future__ import annotations

from typing import Iterable, TypeVar

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from purchasing.app.core.config import settings
from purchasing.app.core.errors import NotFoundError
from purchasing.app.db.base import Base
from purchasing.app.db.models.models_v1 import (
    Product,
    Supplier,
    Warehouse,
    PaymentMethod,
    PaymentTerm,
    DocumentType,
    StockBalance,
    SupplierInventory,
)
from purchasing.app.db.models.core_types import ItemClass

M = TypeVar("M", bound=Base)

NO_IMAGE = "/img/products/noimg.png"


def get_or_404(db: Session, model: type[M], pk: int | None, label: str) -> M:
    obj = db.get(model, pk) if pk is not None else None
    if obj is None:
        raise NotFoundError(f"{label} {pk} not found")
    return obj


def ensure_supplier(db: Session, supplier_id: int) -> Supplier:
    return get_or_404(db, Supplier, supplier_id, "Supplier")


def ensure_warehouse(db: Session, warehouse_id: int) -> Warehouse:
    return get_or_404(db, Warehouse, warehouse_id, "Warehouse")


def ensure_product(db: Session, product_id: int) -> Product:
    return get_or_404(db, Product, product_id, "Product")


def ensure_payment_references(
    db: Session,
    *,
    payment_method_id: int | None,
    payment_terms_id: int | None,
    doc_type_id: int | None,
) -> None:
    if payment_method_id is not None:
        get_or_404(db, PaymentMethod, payment_method_id, "Payment method")
    if payment_terms_id is not None:
        get_or_404(db, PaymentTerm, payment_terms_id, "Payment terms")
    if doc_type_id is not None:
        get_or_404(db, DocumentType, doc_type_id, "Document type")


def load_products(db: Session, product_ids: Iterable[int]) -> dict[int, Product]:
    """Fetch products in one query; NotFoundError lists every missing id."""
    ids = sorted({int(pid) for pid in product_ids})
    if not ids:
        return {}
    rows = db.execute(select(Product).where(Product.id.in_(ids))).scalars().all()
    found = {int(p.id): p for p in rows}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise NotFoundError(f"Products not found: {missing}")
    return found


def resolve_catalog_items(
    db: Session,
    *,
    search: str | None = None,
    supplier_id: int | None = None,
    warehouse_id: int | None = None,
    item_class: ItemClass = ItemClass.GOOD,
    limit: int | None = None,
) -> list[dict]:
    """
    Catalog picker for order entry.

    - price: current purchase price for the supplier (None when the supplier
      has no price for the product, or no supplier was given)
    - stock: sum of supplier_inventory for the product, per warehouse if given
    - products with zero stock are never filtered out
    - SUPPLY items carry no price and no stock
    """
    # imported here: prices imports catalog for its own existence checks
    from purchasing.services.prices import current_price_subquery

    limit = limit or settings.CATALOG_SEARCH_LIMIT

    if item_class == ItemClass.SUPPLY:
        stmt = select(Product).where(Product.item_class == ItemClass.SUPPLY)
        if search:
            stmt = stmt.where(Product.name.ilike(f"%{search.strip()}%"))
        rows = db.execute(stmt.order_by(Product.name.asc()).limit(limit)).scalars().all()
        return [
            {
                "item_id": int(p.id),
                "name": p.name,
                "image": p.image or NO_IMAGE,
                "item_class": ItemClass.SUPPLY,
                "price": None,
                "stock": 0,
            }
            for p in rows
        ]

    stock_q = select(func.coalesce(func.sum(SupplierInventory.quantity), 0)).where(
        SupplierInventory.product_id == Product.id
    )
    if warehouse_id is not None:
        stock_q = stock_q.where(SupplierInventory.warehouse_id == warehouse_id)
    stock_col = stock_q.correlate(Product).scalar_subquery()

    if supplier_id is not None:
        price_col = current_price_subquery(supplier_id)
    else:
        price_col = None

    columns = [Product, stock_col.label("stock")]
    if price_col is not None:
        columns.append(price_col.label("price"))

    stmt = select(*columns).where(Product.item_class == ItemClass.GOOD)
    if search:
        stmt = stmt.where(Product.name.ilike(f"%{search.strip()}%"))
    stmt = stmt.order_by(Product.name.asc()).limit(limit)

    items = []
    for row in db.execute(stmt).all():
        p = row[0]
        items.append(
            {
                "item_id": int(p.id),
                "name": p.name,
                "image": p.image or NO_IMAGE,
                "item_class": ItemClass.GOOD,
                "price": row.price if price_col is not None else None,
                "stock": int(row.stock or 0),
            }
        )
    return items


def product_inventory(db: Session, product_id: int) -> dict:
    """Product sheet: stock per warehouse plus price history and latest price per supplier."""
    from purchasing.services.prices import price_history, current_prices_for_product

    product = ensure_product(db, product_id)

    stock_rows = db.execute(
        select(
            Warehouse.id,
            Warehouse.name,
            func.coalesce(StockBalance.quantity, 0),
        )
        .outerjoin(
            StockBalance,
            (StockBalance.warehouse_id == Warehouse.id) & (StockBalance.product_id == product_id),
        )
        .order_by(Warehouse.name)
    ).all()

    return {
        "product_id": int(product.id),
        "name": product.name,
        "item_class": product.item_class,
        "stock": [
            {"warehouse_id": int(wid), "warehouse": name, "quantity": int(qty)}
            for wid, name, qty in stock_rows
        ],
        "price_history": price_history(db, product_id),
        "current_prices": current_prices_for_product(db, product_id),
    }
