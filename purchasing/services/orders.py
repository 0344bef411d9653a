"""
Purchase order manager.

One state machine serves both lifecycle variants; the per-order
`lifecycle` flag only selects the transition table and the status that
holds stock (the "ledger status"):

    DIRECT    stock enters on APPROVED, leaves again when the order exits APPROVED
    DEFERRED  APPROVED is a gate; stock enters once, on COMPLETED (invoice)

Every ledger delta goes through `_move`, so the two variants cannot drift.
None of these functions commit: callers wrap them in `transaction()`.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from purchasing.app.core.config import settings
from purchasing.app.core.errors import InvalidStateError, NotFoundError, ValidationError
from purchasing.app.core.identity import Actor, require_admin
from purchasing.app.db.base import utcnow
from purchasing.app.db.models.models_v1 import PurchaseOrder, PurchaseOrderLine
from purchasing.app.db.models.core_types import ItemClass, Lifecycle, MovementType, OrderStatus
from purchasing.app.schemas.purchase_order import OrderCreate, OrderLineIn, OrderWrite
from purchasing.services import ledger
from purchasing.services.catalog import ensure_supplier, ensure_warehouse, load_products
from purchasing.services.money import money2

logger = logging.getLogger(__name__)

REFERENCE_TYPE = "purchase_order"

_TRANSITIONS: dict[Lifecycle, dict[OrderStatus, set[OrderStatus]]] = {
    Lifecycle.DIRECT: {
        OrderStatus.PENDING: {OrderStatus.APPROVED, OrderStatus.DENIED, OrderStatus.VOID},
        OrderStatus.APPROVED: {OrderStatus.PENDING, OrderStatus.DENIED, OrderStatus.VOID},
        OrderStatus.DENIED: {OrderStatus.PENDING, OrderStatus.APPROVED, OrderStatus.VOID},
        OrderStatus.VOID: set(),
    },
    Lifecycle.DEFERRED: {
        OrderStatus.PENDING: {OrderStatus.APPROVED, OrderStatus.DENIED, OrderStatus.VOID},
        OrderStatus.APPROVED: {
            OrderStatus.PENDING,
            OrderStatus.DENIED,
            OrderStatus.VOID,
            OrderStatus.COMPLETED,
        },
        OrderStatus.DENIED: {OrderStatus.PENDING, OrderStatus.VOID},
        OrderStatus.COMPLETED: set(),
        OrderStatus.VOID: set(),
    },
}

LEDGER_STATUS: dict[Lifecycle, OrderStatus] = {
    Lifecycle.DIRECT: OrderStatus.APPROVED,
    Lifecycle.DEFERRED: OrderStatus.COMPLETED,
}

# no edits, no status changes
FROZEN_STATUSES = {OrderStatus.COMPLETED, OrderStatus.VOID}


def allowed_transitions(lifecycle: Lifecycle, current: OrderStatus) -> set[OrderStatus]:
    return _TRANSITIONS[Lifecycle(lifecycle)].get(OrderStatus(current), set())


def ledger_sign(lifecycle: Lifecycle, current: OrderStatus, target: OrderStatus) -> int:
    """+1 when the edge enters the ledger status, -1 when it leaves it, else 0."""
    held = LEDGER_STATUS[Lifecycle(lifecycle)]
    if current != held and target == held:
        return 1
    if current == held and target != held:
        return -1
    return 0


def holds_stock(order: PurchaseOrder) -> bool:
    return order.status == LEDGER_STATUS[Lifecycle(order.lifecycle)]


def compute_total(lines: Sequence[OrderLineIn | PurchaseOrderLine]) -> Decimal:
    return money2(sum((Decimal(ln.quantity) * Decimal(ln.unit_price) for ln in lines), Decimal("0")))


# ---------- LOOKUPS ----------
def lock_order(db: Session, order_id: int) -> PurchaseOrder:
    """Exclusive row lock on the order header; status is re-read from the database."""
    order = (
        db.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .one_or_none()
    )
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def get_order(db: Session, order_id: int) -> PurchaseOrder:
    order = db.get(PurchaseOrder, order_id)
    if order is None:
        raise NotFoundError(f"Purchase order {order_id} not found")
    return order


def list_orders(
    db: Session,
    *,
    status: OrderStatus | None = None,
    supplier_id: int | None = None,
    warehouse_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[PurchaseOrder]:
    stmt = select(PurchaseOrder).order_by(PurchaseOrder.id.desc())
    if status is not None:
        stmt = stmt.where(PurchaseOrder.status == status)
    if supplier_id is not None:
        stmt = stmt.where(PurchaseOrder.supplier_id == supplier_id)
    if warehouse_id is not None:
        stmt = stmt.where(PurchaseOrder.warehouse_id == warehouse_id)
    return list(db.execute(stmt.limit(limit).offset(offset)).scalars().all())


# ---------- VALIDATION ----------
def _validate_payload(db: Session, payload: OrderWrite) -> int | None:
    """
    Checks a create/edit payload before anything is written.
    Returns the warehouse id to store (None when no GOOD line exists).
    """
    lines = payload.lines
    if not lines:
        raise ValidationError("A purchase order needs at least one line")

    for idx, ln in enumerate(lines, start=1):
        if ln.quantity is None or ln.quantity <= 0:
            raise ValidationError(f"Line {idx}: quantity must be > 0")
        if ln.unit_price is None or Decimal(ln.unit_price) < 0:
            raise ValidationError(f"Line {idx}: unit_price must be >= 0")

    goods = ledger.has_goods(lines)
    if goods and payload.warehouse_id is None:
        raise ValidationError("warehouse_id is required when the order has GOOD lines")

    ensure_supplier(db, payload.supplier_id)
    if goods:
        ensure_warehouse(db, payload.warehouse_id)

    products = load_products(db, [ln.item_id for ln in lines])
    for ln in lines:
        actual = ItemClass(products[int(ln.item_id)].item_class)
        if actual != ln.item_class:
            raise ValidationError(
                f"Item {ln.item_id} is {actual.value}, line says {ln.item_class.value}"
            )

    return payload.warehouse_id if goods else None


def _build_lines(lines: Sequence[OrderLineIn]) -> list[PurchaseOrderLine]:
    return [
        PurchaseOrderLine(
            item_id=ln.item_id,
            item_class=ln.item_class,
            quantity=ln.quantity,
            unit_price=money2(ln.unit_price),
        )
        for ln in lines
    ]


# ---------- LEDGER EDGE ----------
def _apply_order_delta(db: Session, actor: Actor, order: PurchaseOrder, lines, sign: int) -> None:
    if order.warehouse_id is None or not ledger.has_goods(lines):
        return
    ledger.apply_delta(
        db,
        warehouse_id=int(order.warehouse_id),
        supplier_id=int(order.supplier_id),
        lines=lines,
        sign=sign,
        movement_type=MovementType.RECEIPT if sign > 0 else MovementType.REVERSAL,
        reference_type=REFERENCE_TYPE,
        reference_id=int(order.id),
        actor_id=actor.user_id,
    )


def _move(db: Session, actor: Actor, order: PurchaseOrder, target: OrderStatus) -> PurchaseOrder:
    """Cross one edge of the state machine on a locked order."""
    current = OrderStatus(order.status)
    sign = ledger_sign(order.lifecycle, current, target)
    if sign:
        _apply_order_delta(db, actor, order, list(order.lines), sign)

    order.status = target
    order.modified_by = actor.user_id
    order.updated_at = utcnow()
    db.flush()
    logger.info(
        "PO %s %s -> %s (%s, ledger %+d) by user=%s",
        order.id,
        current.value,
        target.value,
        Lifecycle(order.lifecycle).value,
        sign,
        actor.user_id,
    )
    return order


# ---------- OPERATIONS ----------
def create_order(db: Session, actor: Actor, payload: OrderCreate) -> PurchaseOrder:
    """New order in PENDING. No ledger effect."""
    warehouse_id = _validate_payload(db, payload)
    lifecycle = payload.lifecycle or Lifecycle(settings.DEFAULT_LIFECYCLE)

    order = PurchaseOrder(
        supplier_id=payload.supplier_id,
        warehouse_id=warehouse_id,
        lifecycle=lifecycle,
        status=OrderStatus.PENDING,
        order_date=payload.order_date or utcnow(),
        notes=payload.notes,
        created_by=actor.user_id,
        modified_by=actor.user_id,
    )
    order.lines = _build_lines(payload.lines)
    order.total = compute_total(order.lines)
    db.add(order)
    db.flush()

    logger.info(
        "PO %s created (%s) supplier=%s warehouse=%s total=%s by user=%s",
        order.id,
        lifecycle.value,
        order.supplier_id,
        order.warehouse_id,
        order.total,
        actor.user_id,
    )
    return order


def edit_order(db: Session, actor: Actor, order_id: int, payload: OrderWrite) -> PurchaseOrder:
    """
    Replace header fields and the whole line set.

    When the order currently holds stock the old aggregated deltas are
    reversed (against the old warehouse/supplier) before the lines are
    swapped, and the new ones applied afterwards: revert-then-reapply, so
    an edit never double counts.
    """
    order = lock_order(db, order_id)
    if order.status in FROZEN_STATUSES:
        raise InvalidStateError(f"Purchase order {order_id} is {order.status.value} and cannot be edited")

    warehouse_id = _validate_payload(db, payload)

    held = holds_stock(order)
    if held:
        _apply_order_delta(db, actor, order, ledger.snapshot(order.lines), -1)

    order.supplier_id = payload.supplier_id
    order.warehouse_id = warehouse_id
    if payload.order_date is not None:
        order.order_date = payload.order_date
    order.notes = payload.notes
    order.lines = _build_lines(payload.lines)
    order.total = compute_total(order.lines)
    order.modified_by = actor.user_id
    order.updated_at = utcnow()
    db.flush()

    if held:
        _apply_order_delta(db, actor, order, list(order.lines), +1)

    logger.info("PO %s edited (%d lines, total=%s) by user=%s", order.id, len(order.lines), order.total, actor.user_id)
    return order


def set_status(db: Session, actor: Actor, order_id: int, target: OrderStatus) -> PurchaseOrder:
    """Admin-only status change. Re-asking for the current status is a no-op."""
    require_admin(actor)
    target = OrderStatus(target)
    order = lock_order(db, order_id)

    if order.status == target:
        return order
    if target == OrderStatus.COMPLETED:
        raise InvalidStateError("Orders are completed by registering their invoice")
    if target not in allowed_transitions(order.lifecycle, order.status):
        raise InvalidStateError(
            f"Invalid status change {order.status.value} -> {target.value} "
            f"for a {Lifecycle(order.lifecycle).value} order"
        )
    return _move(db, actor, order, target)


def approve_order(db: Session, actor: Actor, order_id: int) -> PurchaseOrder:
    return set_status(db, actor, order_id, OrderStatus.APPROVED)


def complete_order(db: Session, actor: Actor, order_id: int) -> PurchaseOrder:
    """
    APPROVED -> COMPLETED for deferred orders, applying stock exactly once.

    The order row is locked and its status re-read first, so a duplicate
    or concurrent completion finds COMPLETED and does nothing.
    """
    require_admin(actor)
    order = lock_order(db, order_id)

    if order.status == OrderStatus.COMPLETED:
        logger.info("PO %s already COMPLETED, nothing to apply", order.id)
        return order
    if OrderStatus.COMPLETED not in allowed_transitions(order.lifecycle, order.status):
        raise InvalidStateError(
            f"Purchase order {order_id} cannot be completed from {order.status.value} "
            f"({Lifecycle(order.lifecycle).value} lifecycle)"
        )
    return _move(db, actor, order, OrderStatus.COMPLETED)
