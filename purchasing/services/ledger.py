from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from purchasing.app.db.base import utcnow
from purchasing.app.db.models.models_v1 import (
    StockBalance,
    SupplierInventory,
    StockMovement,
)
from purchasing.app.db.models.core_types import ItemClass, MovementType

logger = logging.getLogger(__name__)


class LineLike(Protocol):
    item_id: int
    item_class: ItemClass
    quantity: int
    unit_price: Decimal | None


@dataclass(frozen=True)
class LedgerLine:
    item_id: int
    item_class: ItemClass
    quantity: int
    unit_price: Decimal | None = None


@dataclass
class ProductDelta:
    product_id: int
    quantity: int
    unit_price: Decimal | None


def snapshot(lines: Iterable[LineLike]) -> list[LedgerLine]:
    """Detach a line set from the ORM (needed before the lines get replaced)."""
    return [
        LedgerLine(
            item_id=int(ln.item_id),
            item_class=ItemClass(ln.item_class),
            quantity=int(ln.quantity),
            unit_price=ln.unit_price,
        )
        for ln in lines
    ]


def aggregate_lines(lines: Iterable[LineLike]) -> list[ProductDelta]:
    """
    Consolidate a line set per product.

    - only GOOD lines count, SUPPLY lines are ledger-exempt
    - quantities are summed per product
    - unit_price = last non-null price seen for the product in this batch
    - output keeps first-seen product order
    """
    consolidated: dict[int, ProductDelta] = {}
    for ln in lines:
        if ItemClass(ln.item_class) != ItemClass.GOOD:
            continue
        pid = int(ln.item_id)
        qty = int(ln.quantity or 0)
        if not pid or not qty:
            continue
        agg = consolidated.get(pid)
        if agg is None:
            agg = consolidated[pid] = ProductDelta(product_id=pid, quantity=0, unit_price=None)
        agg.quantity += qty
        if ln.unit_price is not None:
            agg.unit_price = Decimal(ln.unit_price)
    return list(consolidated.values())


def has_goods(lines: Iterable[LineLike]) -> bool:
    return any(ItemClass(ln.item_class) == ItemClass.GOOD for ln in lines)


def _insert_missing(db: Session, model, values: dict, keys: list[str]) -> None:
    """
    INSERT ... ON CONFLICT DO NOTHING for a ledger row.

    A concurrent first insert of the same key blocks here until the other
    transaction ends, then does nothing, so the lock that follows always
    finds the row.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(model).values(**values).on_conflict_do_nothing(index_elements=keys)
    elif dialect == "sqlite":
        stmt = sqlite_insert(model).values(**values).on_conflict_do_nothing(index_elements=keys)
    else:
        exists = db.get(model, tuple(values[k] for k in keys))
        if exists is None:
            db.add(model(**values))
            db.flush()
        return
    db.execute(stmt)


def _get_or_create_stock_balance(db: Session, product_id: int, warehouse_id: int) -> StockBalance:
    _insert_missing(
        db,
        StockBalance,
        {"product_id": product_id, "warehouse_id": warehouse_id, "quantity": 0},
        ["product_id", "warehouse_id"],
    )
    return (
        db.execute(
            select(StockBalance)
            .where(StockBalance.product_id == product_id)
            .where(StockBalance.warehouse_id == warehouse_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one()
    )


def _get_or_create_supplier_inventory(
    db: Session,
    product_id: int,
    warehouse_id: int,
    supplier_id: int,
) -> SupplierInventory:
    _insert_missing(
        db,
        SupplierInventory,
        {
            "product_id": product_id,
            "warehouse_id": warehouse_id,
            "supplier_id": supplier_id,
            "quantity": 0,
            "last_purchase_price": None,
        },
        ["product_id", "warehouse_id", "supplier_id"],
    )
    return (
        db.execute(
            select(SupplierInventory)
            .where(SupplierInventory.product_id == product_id)
            .where(SupplierInventory.warehouse_id == warehouse_id)
            .where(SupplierInventory.supplier_id == supplier_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one()
    )


def apply_delta(
    db: Session,
    *,
    warehouse_id: int,
    supplier_id: int,
    lines: Iterable[LineLike],
    sign: int,
    movement_type: MovementType,
    reference_type: str,
    reference_id: int,
    actor_id: int | None = None,
) -> list[ProductDelta]:
    """
    Apply a signed line set to the ledger.

    Runs inside the caller's transaction and never commits. Per distinct
    product: stock_balances and supplier_inventory are locked (or created),
    both get sign * quantity, the supplier row keeps the batch's last
    non-null unit price, and one journal row is written.

    Applying a line set with +1 then -1 restores every quantity.
    """
    if sign not in (1, -1):
        raise ValueError("sign must be +1 or -1")

    deltas = aggregate_lines(lines)
    if not deltas:
        return deltas

    now = utcnow()
    for d in deltas:
        delta = sign * d.quantity

        sb = _get_or_create_stock_balance(db, d.product_id, warehouse_id)
        sb.quantity += delta
        sb.updated_at = now

        si = _get_or_create_supplier_inventory(db, d.product_id, warehouse_id, supplier_id)
        si.quantity += delta
        if d.unit_price is not None:
            si.last_purchase_price = d.unit_price
        si.updated_at = now

        db.add(
            StockMovement(
                product_id=d.product_id,
                warehouse_id=warehouse_id,
                supplier_id=supplier_id,
                movement_type=movement_type,
                quantity=delta,
                unit_price=d.unit_price,
                reference_type=reference_type,
                reference_id=reference_id,
                created_by=actor_id,
            )
        )
        logger.debug(
            "Ledger %s product=%s warehouse=%s supplier=%s delta=%+d",
            movement_type.value,
            d.product_id,
            warehouse_id,
            supplier_id,
            delta,
        )

    db.flush()
    return deltas


# ---------- READS ----------
def get_balance(db: Session, product_id: int, warehouse_id: int) -> int:
    qty = db.execute(
        select(StockBalance.quantity)
        .where(StockBalance.product_id == product_id)
        .where(StockBalance.warehouse_id == warehouse_id)
    ).scalar_one_or_none()
    return int(qty or 0)


def get_supplier_inventory(
    db: Session,
    product_id: int,
    warehouse_id: int,
    supplier_id: int,
) -> SupplierInventory | None:
    return db.get(SupplierInventory, (product_id, warehouse_id, supplier_id))


def list_balances(
    db: Session,
    *,
    product_id: int | None = None,
    warehouse_id: int | None = None,
) -> list[StockBalance]:
    stmt = select(StockBalance).order_by(StockBalance.warehouse_id, StockBalance.product_id)
    if product_id is not None:
        stmt = stmt.where(StockBalance.product_id == product_id)
    if warehouse_id is not None:
        stmt = stmt.where(StockBalance.warehouse_id == warehouse_id)
    return list(db.execute(stmt).scalars().all())


def list_supplier_inventory(
    db: Session,
    *,
    product_id: int | None = None,
    warehouse_id: int | None = None,
    supplier_id: int | None = None,
) -> list[SupplierInventory]:
    stmt = select(SupplierInventory).order_by(
        SupplierInventory.warehouse_id,
        SupplierInventory.product_id,
        SupplierInventory.supplier_id,
    )
    if product_id is not None:
        stmt = stmt.where(SupplierInventory.product_id == product_id)
    if warehouse_id is not None:
        stmt = stmt.where(SupplierInventory.warehouse_id == warehouse_id)
    if supplier_id is not None:
        stmt = stmt.where(SupplierInventory.supplier_id == supplier_id)
    return list(db.execute(stmt).scalars().all())


def journal_total(db: Session, product_id: int, warehouse_id: int) -> int:
    """Fold of every journaled delta for a (product, warehouse) key."""
    total = db.execute(
        select(func.coalesce(func.sum(StockMovement.quantity), 0))
        .where(StockMovement.product_id == product_id)
        .where(StockMovement.warehouse_id == warehouse_id)
    ).scalar_one()
    return int(total)
