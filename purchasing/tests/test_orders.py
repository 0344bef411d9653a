from decimal import Decimal

import pytest

from purchasing.app.core.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from purchasing.app.db.models.core_types import Lifecycle, OrderStatus
from purchasing.app.schemas.purchase_order import OrderUpdate
from purchasing.services import ledger, orders


def _line(product, qty, price, item_class="GOOD"):
    return {"item_id": product.id, "item_class": item_class, "quantity": qty, "unit_price": price}


def test_create_order_is_pending_with_no_ledger_effect(db_session, admin, make_order_payload, product, warehouse):
    """
    GIVEN
    - 2 unités de P à 5.00, fournisseur S, entrepôt W
    THEN
    - PENDING, total == 10, aucun solde créé
    """
    order = orders.create_order(db_session, admin, make_order_payload())

    assert order.status == OrderStatus.PENDING
    assert order.total == Decimal("10.00")
    assert order.created_by == admin.user_id
    assert len(order.lines) == 1
    assert ledger.get_balance(db_session, product.id, warehouse.id) == 0
    assert ledger.list_balances(db_session) == []


def test_total_matches_lines_after_create_and_edit(db_session, clerk, make_order_payload, product, product_q, supplier):
    order = orders.create_order(
        db_session,
        clerk,
        make_order_payload([_line(product, 3, "1.335"), _line(product_q, 2, "4.10")]),
    )
    assert order.total == sum(Decimal(ln.quantity) * ln.unit_price for ln in order.lines)

    edited = orders.edit_order(
        db_session,
        clerk,
        order.id,
        OrderUpdate.model_validate(
            {
                "supplier_id": supplier.id,
                "warehouse_id": order.warehouse_id,
                "lines": [_line(product, 7, "2.25")],
            }
        ),
    )
    assert edited.total == Decimal("15.75")
    assert [ln.quantity for ln in edited.lines] == [7]


def test_lines_keyed_by_index_are_normalized(make_order_payload, product, product_q):
    payload = make_order_payload(
        {
            "1": _line(product_q, 1, "2"),
            "0": _line(product, 2, ""),
        }
    )

    assert [ln.item_id for ln in payload.lines] == [product.id, product_q.id]
    assert payload.lines[0].unit_price == Decimal("0")


@pytest.mark.parametrize(
    "lines, message",
    [
        ([], "at least one line"),
        ([{"quantity": 0}], "quantity must be > 0"),
        ([{"quantity": -2}], "quantity must be > 0"),
        ([{"unit_price": "-1"}], "unit_price must be >= 0"),
    ],
)
def test_invalid_lines_are_rejected_before_write(db_session, clerk, make_order_payload, product, lines, message):
    built = [{**_line(product, 1, "1"), **ln} for ln in lines]

    with pytest.raises(ValidationError, match=message):
        orders.create_order(db_session, clerk, make_order_payload(built))
    assert orders.list_orders(db_session) == []


def test_good_line_requires_warehouse(db_session, clerk, make_order_payload):
    with pytest.raises(ValidationError, match="warehouse_id is required"):
        orders.create_order(db_session, clerk, make_order_payload(warehouse_id=None))


def test_supply_only_order_needs_no_warehouse(db_session, clerk, make_order_payload, supply_item):
    order = orders.create_order(
        db_session,
        clerk,
        make_order_payload([_line(supply_item, 1, "80", "SUPPLY")], warehouse_id=None),
    )
    assert order.warehouse_id is None


def test_warehouse_is_dropped_when_no_good_lines(db_session, clerk, make_order_payload, supply_item):
    order = orders.create_order(db_session, clerk, make_order_payload([_line(supply_item, 1, "80", "SUPPLY")]))
    assert order.warehouse_id is None


def test_item_class_must_match_product(db_session, clerk, make_order_payload, supply_item):
    with pytest.raises(ValidationError, match="is SUPPLY"):
        orders.create_order(db_session, clerk, make_order_payload([_line(supply_item, 1, "1", "GOOD")]))


def test_unknown_references_raise_not_found(db_session, clerk, make_order_payload, product):
    with pytest.raises(NotFoundError):
        orders.create_order(db_session, clerk, make_order_payload(supplier_id=9999))
    with pytest.raises(NotFoundError):
        orders.create_order(db_session, clerk, make_order_payload(warehouse_id=9999))
    with pytest.raises(NotFoundError, match="9999"):
        orders.create_order(db_session, clerk, make_order_payload([{"item_id": 9999, "quantity": 1}]))
    with pytest.raises(NotFoundError):
        orders.get_order(db_session, 424242)


def test_default_lifecycle_is_deferred(db_session, clerk, make_order_payload):
    order = orders.create_order(db_session, clerk, make_order_payload(lifecycle=None))
    assert order.lifecycle == Lifecycle.DEFERRED


def test_deferred_approval_is_only_a_gate(db_session, admin, make_order_payload, product, warehouse):
    order = orders.create_order(db_session, admin, make_order_payload())

    orders.approve_order(db_session, admin, order.id)

    assert order.status == OrderStatus.APPROVED
    assert ledger.get_balance(db_session, product.id, warehouse.id) == 0


def test_direct_lifecycle_applies_on_approve_and_reverses_on_leave(
    db_session, admin, make_order_payload, product, warehouse
):
    order = orders.create_order(db_session, admin, make_order_payload(lifecycle=Lifecycle.DIRECT))

    orders.approve_order(db_session, admin, order.id)
    assert ledger.get_balance(db_session, product.id, warehouse.id) == 2

    # re-asking for the current status is a no-op
    orders.set_status(db_session, admin, order.id, OrderStatus.APPROVED)
    assert ledger.get_balance(db_session, product.id, warehouse.id) == 2

    orders.set_status(db_session, admin, order.id, OrderStatus.DENIED)
    assert ledger.get_balance(db_session, product.id, warehouse.id) == 0

    orders.set_status(db_session, admin, order.id, OrderStatus.APPROVED)
    orders.set_status(db_session, admin, order.id, OrderStatus.PENDING)
    assert ledger.get_balance(db_session, product.id, warehouse.id) == 0
    assert ledger.journal_total(db_session, product.id, warehouse.id) == 0


def test_edit_approved_direct_order_reverts_then_reapplies(
    db_session, admin, make_order_payload, product, warehouse, supplier
):
    """
    GIVEN
    - un PO DIRECT approuvé de 2 unités (solde +2)
    WHEN
    - on passe la ligne à 5 unités
    THEN
    - effet net +3 (−2 annulé, +5 appliqué), jamais +7
    """
    order = orders.create_order(db_session, admin, make_order_payload(lifecycle=Lifecycle.DIRECT))
    orders.approve_order(db_session, admin, order.id)
    before = ledger.get_balance(db_session, product.id, warehouse.id)

    orders.edit_order(
        db_session,
        admin,
        order.id,
        OrderUpdate.model_validate(
            {
                "supplier_id": supplier.id,
                "warehouse_id": warehouse.id,
                "lines": [_line(product, 5, "5.00")],
            }
        ),
    )

    assert ledger.get_balance(db_session, product.id, warehouse.id) == 5
    assert ledger.get_balance(db_session, product.id, warehouse.id) - before == 3
    assert ledger.journal_total(db_session, product.id, warehouse.id) == 5


def test_edit_moves_stock_to_the_new_warehouse(db_session, admin, make_order_payload, product, warehouse, supplier):
    from purchasing.app.db.models.models_v1 import Warehouse

    other = Warehouse(name="TEST-WH-2", active=True)
    db_session.add(other)
    db_session.flush()

    order = orders.create_order(db_session, admin, make_order_payload(lifecycle=Lifecycle.DIRECT))
    orders.approve_order(db_session, admin, order.id)

    orders.edit_order(
        db_session,
        admin,
        order.id,
        OrderUpdate.model_validate(
            {"supplier_id": supplier.id, "warehouse_id": other.id, "lines": [_line(product, 2, "5")]}
        ),
    )

    assert ledger.get_balance(db_session, product.id, warehouse.id) == 0
    assert ledger.get_balance(db_session, product.id, other.id) == 2


def test_deferred_transitions_are_enforced(db_session, admin, make_order_payload):
    order = orders.create_order(db_session, admin, make_order_payload())

    orders.set_status(db_session, admin, order.id, OrderStatus.DENIED)
    with pytest.raises(InvalidStateError):
        # DENIED -> APPROVED only exists for direct orders
        orders.set_status(db_session, admin, order.id, OrderStatus.APPROVED)

    with pytest.raises(InvalidStateError, match="registering their invoice"):
        orders.set_status(db_session, admin, order.id, OrderStatus.COMPLETED)


def test_direct_order_can_never_complete(db_session, admin, make_order_payload):
    order = orders.create_order(db_session, admin, make_order_payload(lifecycle=Lifecycle.DIRECT))
    orders.approve_order(db_session, admin, order.id)

    with pytest.raises(InvalidStateError):
        orders.complete_order(db_session, admin, order.id)


def test_void_is_terminal_and_frozen(db_session, admin, make_order_payload, supplier, warehouse, product):
    order = orders.create_order(db_session, admin, make_order_payload(lifecycle=Lifecycle.DIRECT))
    orders.approve_order(db_session, admin, order.id)
    orders.set_status(db_session, admin, order.id, OrderStatus.VOID)

    assert ledger.get_balance(db_session, product.id, warehouse.id) == 0
    with pytest.raises(InvalidStateError):
        orders.set_status(db_session, admin, order.id, OrderStatus.PENDING)
    with pytest.raises(InvalidStateError, match="cannot be edited"):
        orders.edit_order(
            db_session,
            admin,
            order.id,
            OrderUpdate.model_validate(
                {"supplier_id": supplier.id, "warehouse_id": warehouse.id, "lines": [_line(product, 1, "1")]}
            ),
        )


def test_status_change_requires_admin(db_session, clerk, make_order_payload):
    order = orders.create_order(db_session, clerk, make_order_payload())

    with pytest.raises(PermissionDeniedError):
        orders.approve_order(db_session, clerk, order.id)
    assert orders.get_order(db_session, order.id).status == OrderStatus.PENDING


def test_list_orders_filters_by_status(db_session, admin, make_order_payload):
    first = orders.create_order(db_session, admin, make_order_payload())
    second = orders.create_order(db_session, admin, make_order_payload())
    orders.approve_order(db_session, admin, second.id)

    assert [o.id for o in orders.list_orders(db_session)] == [second.id, first.id]
    assert [o.id for o in orders.list_orders(db_session, status=OrderStatus.PENDING)] == [first.id]
