"""
Supplier price catalog.

Prices are append-only: recording a price adds a row, and the current
price for (product, supplier) is the row with the newest effective_at.
Administrative corrections edit or drop a history row; they never touch
ledger rows already written with an older price.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from purchasing.app.core.errors import NotFoundError, ValidationError
from purchasing.app.core.identity import Actor, require_admin
from purchasing.app.db.base import utcnow
from purchasing.app.db.models.models_v1 import Product, SupplierPrice
from purchasing.services.catalog import ensure_product, ensure_supplier
from purchasing.services.money import D, money2

logger = logging.getLogger(__name__)


def _latest_first(stmt):
    # id breaks ties between rows sharing an effective_at
    return stmt.order_by(SupplierPrice.effective_at.desc(), SupplierPrice.id.desc())


def resolve_current_price(db: Session, product_id: int, supplier_id: int) -> SupplierPrice | None:
    return (
        db.execute(
            _latest_first(
                select(SupplierPrice)
                .where(SupplierPrice.product_id == product_id)
                .where(SupplierPrice.supplier_id == supplier_id)
            ).limit(1)
        )
        .scalars()
        .first()
    )


def current_price_subquery(supplier_id: int):
    """Correlated scalar subquery: current purchase price of Product for a supplier."""
    sp = aliased(SupplierPrice)
    return (
        select(sp.purchase_price)
        .where(sp.product_id == Product.id)
        .where(sp.supplier_id == supplier_id)
        .order_by(sp.effective_at.desc(), sp.id.desc())
        .limit(1)
        .correlate(Product)
        .scalar_subquery()
    )


def _check_prices(purchase_price: Decimal, sale_price: Decimal | None) -> None:
    try:
        purchase = D(purchase_price) if purchase_price is not None else None
        sale = D(sale_price) if sale_price is not None else None
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if purchase is None or purchase < 0:
        raise ValidationError("purchase_price must be >= 0")
    if sale is not None and sale < 0:
        raise ValidationError("sale_price must be >= 0")


def record_price(
    db: Session,
    actor: Actor,
    *,
    product_id: int,
    supplier_id: int,
    purchase_price: Decimal,
    sale_price: Decimal | None = None,
    effective_at: datetime | None = None,
) -> SupplierPrice:
    ensure_product(db, product_id)
    ensure_supplier(db, supplier_id)
    _check_prices(purchase_price, sale_price)

    row = SupplierPrice(
        product_id=product_id,
        supplier_id=supplier_id,
        purchase_price=money2(purchase_price),
        sale_price=money2(sale_price) if sale_price is not None else None,
        effective_at=effective_at or utcnow(),
        created_by=actor.user_id,
    )
    db.add(row)
    db.flush()
    logger.info(
        "Price recorded product=%s supplier=%s purchase=%s effective_at=%s",
        product_id,
        supplier_id,
        row.purchase_price,
        row.effective_at,
    )
    return row


def price_history(db: Session, product_id: int, supplier_id: int | None = None) -> list[SupplierPrice]:
    stmt = select(SupplierPrice).where(SupplierPrice.product_id == product_id)
    if supplier_id is not None:
        stmt = stmt.where(SupplierPrice.supplier_id == supplier_id)
    return list(db.execute(_latest_first(stmt)).scalars().all())


def current_prices_for_product(db: Session, product_id: int) -> list[SupplierPrice]:
    """Latest row per supplier for one product, ordered by supplier id."""
    latest: dict[int, SupplierPrice] = {}
    for row in price_history(db, product_id):
        latest.setdefault(int(row.supplier_id), row)
    return [latest[sid] for sid in sorted(latest)]


def _get_price(db: Session, price_id: int) -> SupplierPrice:
    row = db.get(SupplierPrice, price_id)
    if row is None:
        raise NotFoundError(f"Supplier price {price_id} not found")
    return row


def correct_price(
    db: Session,
    actor: Actor,
    price_id: int,
    *,
    purchase_price: Decimal | None = None,
    sale_price: Decimal | None = None,
    effective_at: datetime | None = None,
    clear_sale_price: bool = False,
) -> SupplierPrice:
    """
    Administrative correction of a history row. None keeps the stored value;
    clear_sale_price drops a wrong sale price back to NULL.
    """
    require_admin(actor)
    row = _get_price(db, price_id)

    new_purchase = purchase_price if purchase_price is not None else row.purchase_price
    if clear_sale_price:
        new_sale = None
    else:
        new_sale = sale_price if sale_price is not None else row.sale_price
    _check_prices(new_purchase, new_sale)

    row.purchase_price = money2(new_purchase)
    row.sale_price = money2(new_sale) if new_sale is not None else None
    if effective_at is not None:
        row.effective_at = effective_at
    db.flush()
    logger.info("Price %s corrected by user=%s", price_id, actor.user_id)
    return row


def delete_price(db: Session, actor: Actor, price_id: int) -> None:
    require_admin(actor)
    row = _get_price(db, price_id)
    db.delete(row)
    db.flush()
    logger.info("Price %s deleted by user=%s", price_id, actor.user_id)
