import os
import threading

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from purchasing.app.core.errors import QuantityExceededError, StorageError
from purchasing.app.db.models.core_types import Lifecycle, OrderStatus
from purchasing.app.db.models.models_v1 import Supplier
from purchasing.app.db.session import transaction
from purchasing.app.schemas.invoice import InvoiceCreate
from purchasing.app.schemas.returns import ReturnCreate
from purchasing.services import invoices, ledger, orders, returns

postgres_only = pytest.mark.skipif(
    not os.getenv("TEST_DATABASE_URL", "").startswith("postgresql"),
    reason="needs two real connections (TEST_DATABASE_URL=postgresql+psycopg://...)",
)


@pytest.fixture
def committed(db_session, admin, clerk, supplier, warehouse, product):
    """Master data committed, so a rollback in the test only undoes the test's own work."""
    db_session.commit()
    return db_session


def test_transaction_rolls_back_ledger_on_failure(committed, admin, make_order_payload, product, warehouse):
    """
    GIVEN
    - un PO DIRECT en PENDING
    WHEN
    - l'approbation (+2 en stock) échoue avant le commit
    THEN
    - rien n'est persisté : solde 0, statut PENDING, aucun mouvement
    """
    db = committed
    with transaction(db):
        order = orders.create_order(db, admin, make_order_payload(lifecycle=Lifecycle.DIRECT))
    order_id, pid, wid = order.id, product.id, warehouse.id

    with pytest.raises(RuntimeError):
        with transaction(db):
            orders.approve_order(db, admin, order_id)
            assert ledger.get_balance(db, pid, wid) == 2
            raise RuntimeError("crash after the ledger write")

    assert ledger.get_balance(db, pid, wid) == 0
    assert ledger.journal_total(db, pid, wid) == 0
    assert orders.get_order(db, order_id).status == OrderStatus.PENDING


def test_failed_return_batch_undoes_earlier_returns_in_the_same_transaction(
    committed, admin, make_order_payload, product, warehouse
):
    db = committed
    with transaction(db):
        order = orders.create_order(db, admin, make_order_payload())
        orders.approve_order(db, admin, order.id)
        invoices.register_invoice(db, admin, order.id, InvoiceCreate(invoice_number="INV-001"))
    order_id, pid, wid = order.id, product.id, warehouse.id

    one = ReturnCreate.model_validate({"lines": [{"product_id": pid, "quantity": 1}]})
    two = ReturnCreate.model_validate({"lines": [{"product_id": pid, "quantity": 2}]})
    with pytest.raises(QuantityExceededError):
        with transaction(db):
            returns.create_return(db, admin, order_id, one)
            returns.create_return(db, admin, order_id, two)

    assert ledger.get_balance(db, pid, wid) == 2
    assert returns.list_returns(db, order_id=order_id) == []


def test_database_error_becomes_storage_error(committed):
    db = committed

    with pytest.raises(StorageError) as excinfo:
        with transaction(db):
            db.execute(text("SELECT * FROM no_such_table"))

    assert isinstance(excinfo.value.__cause__, SQLAlchemyError)
    assert excinfo.value.status_code == 503


def test_constraint_violation_rolls_back_and_becomes_storage_error(committed, supplier):
    db = committed
    name = supplier.name

    with pytest.raises(StorageError):
        with transaction(db):
            db.add(Supplier(name="NEW-SUP", active=True))
            db.add(Supplier(name=name, active=True))
            db.flush()

    assert db.execute(select(Supplier).where(Supplier.name == "NEW-SUP")).scalar_one_or_none() is None


@postgres_only
def test_duplicate_completion_from_a_second_session_is_a_noop(
    engine, committed, admin, make_order_payload, product, warehouse
):
    """
    GIVEN
    - une facture en cours d'enregistrement (PO verrouillé, non commité)
    WHEN
    - une seconde session tente de compléter le même PO
    THEN
    - elle attend le verrou, relit COMPLETED et ne fait rien : stock +2, une seule fois
    """
    db = committed
    with transaction(db):
        order = orders.create_order(db, admin, make_order_payload())
        orders.approve_order(db, admin, order.id)
    order_id, pid, wid = order.id, product.id, warehouse.id

    first = Session(bind=engine, autoflush=False)
    second = Session(bind=engine, autoflush=False)
    errors = []

    def _second_completion():
        try:
            with transaction(second):
                orders.complete_order(second, admin, order_id)
        except Exception as exc:  # surfaced through `errors`
            errors.append(exc)

    try:
        invoices.register_invoice(first, admin, order_id, InvoiceCreate(invoice_number="INV-001"))
        worker = threading.Thread(target=_second_completion)
        worker.start()
        worker.join(timeout=0.5)
        assert worker.is_alive()  # waiting on the order row lock

        first.commit()
        worker.join(timeout=10)
    finally:
        first.close()
        second.close()

    assert errors == []
    db.expire_all()
    assert ledger.get_balance(db, pid, wid) == 2
    assert ledger.journal_total(db, pid, wid) == 2
