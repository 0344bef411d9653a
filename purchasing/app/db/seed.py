from __future__ import annotations

import logging

from sqlalchemy import select

from purchasing.app.core.log import configure_logging
from purchasing.app.db.session import SessionLocal, transaction
from purchasing.app.db.models.models_v1 import (
    DocumentType,
    PaymentMethod,
    PaymentTerm,
    Supplier,
    User,
    Warehouse,
)
from purchasing.app.db.models.core_types import Role

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ["Cash", "Bank transfer", "Check"]
PAYMENT_TERMS = ["Immediate", "Net 30", "Net 60"]
DOCUMENT_TYPES = ["Invoice", "Receipt"]


def _ensure_named(db, model, name: str):
    obj = db.scalar(select(model).where(model.name == name))
    if not obj:
        obj = model(name=name)
        db.add(obj)
    return obj


def run_seed():
    db = SessionLocal()
    try:
        with transaction(db):
            # 1) Admin user (identity itself is handled upstream)
            if not db.scalar(select(User).where(User.name == "ADMIN")):
                db.add(User(name="ADMIN", role=Role.admin, active=True))

            # 2) Default warehouse + supplier
            if not db.scalar(select(Warehouse).where(Warehouse.name == "MAIN")):
                db.add(Warehouse(name="MAIN", active=True))
            if not db.scalar(select(Supplier).where(Supplier.name == "DEFAULT SUPPLIER")):
                db.add(Supplier(name="DEFAULT SUPPLIER", active=True))

            # 3) Payment catalogs referenced by invoices
            for name in PAYMENT_METHODS:
                _ensure_named(db, PaymentMethod, name)
            for name in PAYMENT_TERMS:
                _ensure_named(db, PaymentTerm, name)
            for name in DOCUMENT_TYPES:
                _ensure_named(db, DocumentType, name)

        logger.info("SEED OK: user=ADMIN, warehouse=MAIN, payment catalogs")
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
