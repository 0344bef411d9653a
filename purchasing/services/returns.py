"""
Returns engine: partial returns against COMPLETED orders.

For every product, what has been returned so far can never exceed what
the order bought (GOOD lines only). The check and the insert both happen
under the order's row lock, so two concurrent returns cannot validate
against the same stale "already returned" total.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from purchasing.app.core.errors import (
    InvalidStateError,
    NotFoundError,
    QuantityExceededError,
    ValidationError,
)
from purchasing.app.core.identity import Actor, require_admin
from purchasing.app.db.models.models_v1 import (
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseReturn,
    ReturnLine,
)
from purchasing.app.db.models.core_types import ItemClass, MovementType, OrderStatus
from purchasing.app.schemas.returns import ReturnCreate
from purchasing.services import ledger
from purchasing.services.catalog import load_products
from purchasing.services.orders import get_order, lock_order

logger = logging.getLogger(__name__)

REFERENCE_TYPE = "return"


def _purchased_by_product(db: Session, order_id: int) -> dict[int, int]:
    rows = db.execute(
        select(PurchaseOrderLine.item_id, func.sum(PurchaseOrderLine.quantity))
        .where(PurchaseOrderLine.order_id == order_id)
        .where(PurchaseOrderLine.item_class == ItemClass.GOOD)
        .group_by(PurchaseOrderLine.item_id)
    ).all()
    return {int(pid): int(qty) for pid, qty in rows}


def _returned_by_product(db: Session, order_id: int) -> dict[int, int]:
    rows = db.execute(
        select(ReturnLine.product_id, func.coalesce(func.sum(ReturnLine.quantity), 0))
        .join(PurchaseReturn, PurchaseReturn.id == ReturnLine.return_id)
        .where(PurchaseReturn.order_id == order_id)
        .group_by(ReturnLine.product_id)
    ).all()
    return {int(pid): int(qty) for pid, qty in rows}


def returnable_quantities(db: Session, order_id: int) -> list[dict]:
    """Per product: purchased, already returned, remaining (never negative)."""
    get_order(db, order_id)
    purchased = _purchased_by_product(db, order_id)
    returned = _returned_by_product(db, order_id)
    return [
        {
            "product_id": pid,
            "purchased": qty,
            "returned": returned.get(pid, 0),
            "remaining": max(0, qty - returned.get(pid, 0)),
        }
        for pid, qty in sorted(purchased.items())
    ]


def create_return(db: Session, actor: Actor, order_id: int, payload: ReturnCreate) -> PurchaseReturn:
    require_admin(actor)
    order: PurchaseOrder = lock_order(db, order_id)
    if order.status != OrderStatus.COMPLETED:
        raise InvalidStateError("Returns are only allowed against COMPLETED orders")
    if not payload.lines:
        raise ValidationError("A return needs at least one line")

    purchased = _purchased_by_product(db, order_id)
    returned = _returned_by_product(db, order_id)

    # requested quantities are checked per product, so split lines cannot overshoot
    requested: dict[int, int] = {}
    for ln in payload.lines:
        if ln.quantity <= 0:
            raise QuantityExceededError(f"Invalid quantity {ln.quantity} for product {ln.product_id}")
        requested[ln.product_id] = requested.get(ln.product_id, 0) + ln.quantity

    # unknown products are a missing reference, not an exceeded quantity
    load_products(db, requested.keys())

    for pid, qty in requested.items():
        remaining = max(0, purchased.get(pid, 0) - returned.get(pid, 0))
        if qty > remaining:
            raise QuantityExceededError(
                f"Invalid quantity for product {pid}. Maximum allowed: {remaining}"
            )

    ret = PurchaseReturn(order_id=order.id, notes=payload.notes, created_by=actor.user_id)
    ret.lines = [
        ReturnLine(product_id=ln.product_id, quantity=ln.quantity, reason=ln.reason)
        for ln in payload.lines
    ]
    db.add(ret)
    db.flush()

    ledger.apply_delta(
        db,
        warehouse_id=int(order.warehouse_id),
        supplier_id=int(order.supplier_id),
        lines=[
            ledger.LedgerLine(item_id=ln.product_id, item_class=ItemClass.GOOD, quantity=ln.quantity)
            for ln in payload.lines
        ],
        sign=-1,
        movement_type=MovementType.RETURN,
        reference_type=REFERENCE_TYPE,
        reference_id=int(ret.id),
        actor_id=actor.user_id,
    )

    logger.info(
        "Return %s recorded for PO %s (%s) by user=%s",
        ret.id,
        order.id,
        ", ".join(f"{pid}x{qty}" for pid, qty in requested.items()),
        actor.user_id,
    )
    return ret


def list_returns(db: Session, *, order_id: int | None = None) -> list[PurchaseReturn]:
    stmt = select(PurchaseReturn).order_by(PurchaseReturn.id.desc())
    if order_id is not None:
        stmt = stmt.where(PurchaseReturn.order_id == order_id)
    return list(db.execute(stmt).scalars().all())


def get_return(db: Session, return_id: int) -> PurchaseReturn:
    ret = db.get(PurchaseReturn, return_id)
    if ret is None:
        raise NotFoundError(f"Return {return_id} not found")
    return ret
