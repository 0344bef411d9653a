import os
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from purchasing.app.core.identity import Actor
from purchasing.app.db.base import Base
from purchasing.app.db.models import models_v1  # noqa: F401  (registers every table)
from purchasing.app.db.models.models_v1 import (
    DocumentType,
    PaymentMethod,
    PaymentTerm,
    Product,
    Supplier,
    User,
    Warehouse,
)
from purchasing.app.db.models.core_types import ItemClass, Lifecycle, Role
from purchasing.app.schemas.purchase_order import OrderCreate

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite://")


@pytest.fixture(scope="session")
def engine():
    if TEST_DATABASE_URL.startswith("sqlite"):
        eng = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        eng = create_engine(TEST_DATABASE_URL, pool_pre_ping=True)
    yield eng
    eng.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Session:
    """
    Session DB isolée par test.

    Le schéma est recréé pour chaque test : rien ne fuit d'un test à l'autre,
    même après commit().
    """
    Base.metadata.create_all(bind=engine)
    session = Session(bind=engine, autoflush=False)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# ---------- MASTER DATA ----------
@pytest.fixture
def admin_user(db_session):
    user = User(name="ADMIN", role=Role.admin, active=True)
    db_session.add(user)
    db_session.flush()
    return user


@pytest.fixture
def field_user(db_session):
    user = User(name="FIELD", role=Role.field, active=True)
    db_session.add(user)
    db_session.flush()
    return user


@pytest.fixture
def admin(admin_user):
    return Actor(user_id=admin_user.id, role=Role.admin)


@pytest.fixture
def clerk(field_user):
    return Actor(user_id=field_user.id, role=Role.field)


@pytest.fixture
def supplier(db_session):
    s = Supplier(name="TEST-SUP", active=True)
    db_session.add(s)
    db_session.flush()
    return s


@pytest.fixture
def other_supplier(db_session):
    s = Supplier(name="TEST-SUP-2", active=True)
    db_session.add(s)
    db_session.flush()
    return s


@pytest.fixture
def warehouse(db_session):
    w = Warehouse(name="TEST-WH", active=True)
    db_session.add(w)
    db_session.flush()
    return w


@pytest.fixture
def product(db_session):
    p = Product(sku="SKU-P", name="Cement bag", item_class=ItemClass.GOOD, active=True)
    db_session.add(p)
    db_session.flush()
    return p


@pytest.fixture
def product_q(db_session):
    p = Product(sku="SKU-Q", name="Steel rod", item_class=ItemClass.GOOD, active=True)
    db_session.add(p)
    db_session.flush()
    return p


@pytest.fixture
def supply_item(db_session):
    p = Product(sku="SUP-1", name="Freight service", item_class=ItemClass.SUPPLY, active=True)
    db_session.add(p)
    db_session.flush()
    return p


@pytest.fixture
def payment_refs(db_session):
    method = PaymentMethod(name="Bank transfer")
    terms = PaymentTerm(name="Net 30")
    doc = DocumentType(name="Invoice")
    db_session.add_all([method, terms, doc])
    db_session.flush()
    return {"payment_method_id": method.id, "payment_terms_id": terms.id, "doc_type_id": doc.id}


@pytest.fixture
def make_order_payload(supplier, warehouse, product):
    """Builds an OrderCreate; defaults to scenario A (2 x P at 5.00)."""

    def _make(lines=None, lifecycle=Lifecycle.DEFERRED, **overrides):
        data = {
            "supplier_id": supplier.id,
            "warehouse_id": warehouse.id,
            "lifecycle": lifecycle,
            "lines": lines
            if lines is not None
            else [{"item_id": product.id, "item_class": "GOOD", "quantity": 2, "unit_price": Decimal("5.00")}],
        }
        data.update(overrides)
        return OrderCreate.model_validate(data)

    return _make
