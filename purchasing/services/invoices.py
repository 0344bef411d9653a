"""
Invoice binder.

Registering the supplier invoice is what completes a deferred order: the
invoice row and the one-time ledger application commit together or not
at all. An order takes a single invoice.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from purchasing.app.core.errors import InvalidStateError, NotFoundError
from purchasing.app.core.identity import Actor, require_admin
from purchasing.app.db.models.models_v1 import Invoice
from purchasing.app.db.models.core_types import OrderStatus
from purchasing.app.schemas.invoice import InvoiceCreate
from purchasing.services.attachments import Attachment, LocalAttachmentStore, validate_attachment
from purchasing.services.catalog import ensure_payment_references
from purchasing.services.orders import allowed_transitions, complete_order, lock_order

logger = logging.getLogger(__name__)


def register_invoice(
    db: Session,
    actor: Actor,
    order_id: int,
    fields: InvoiceCreate,
    attachment: Attachment | None = None,
    store: LocalAttachmentStore | None = None,
) -> Invoice:
    require_admin(actor)
    if attachment is not None:
        validate_attachment(attachment)
    ensure_payment_references(
        db,
        payment_method_id=fields.payment_method_id,
        payment_terms_id=fields.payment_terms_id,
        doc_type_id=fields.doc_type_id,
    )

    order = lock_order(db, order_id)
    if order.status == OrderStatus.COMPLETED:
        raise InvalidStateError(f"Purchase order {order_id} is already COMPLETED")
    if OrderStatus.COMPLETED not in allowed_transitions(order.lifecycle, order.status):
        raise InvalidStateError(
            f"Purchase order {order_id} must be APPROVED (deferred lifecycle) to register an invoice"
        )
    existing = db.execute(select(Invoice.id).where(Invoice.order_id == order_id)).scalar_one_or_none()
    if existing is not None:
        raise InvalidStateError(f"Purchase order {order_id} already has invoice {existing}")

    attachment_ref = None
    if attachment is not None:
        attachment_ref = (store or LocalAttachmentStore()).save(attachment)

    invoice = Invoice(
        order_id=order.id,
        invoice_number=fields.invoice_number,
        payment_method_id=fields.payment_method_id,
        payment_terms_id=fields.payment_terms_id,
        doc_type_id=fields.doc_type_id,
        attachment_ref=attachment_ref,
        created_by=actor.user_id,
    )
    db.add(invoice)
    db.flush()

    complete_order(db, actor, order.id)
    logger.info("Invoice %s (%s) registered for PO %s by user=%s", invoice.id, invoice.invoice_number, order.id, actor.user_id)
    return invoice


def list_invoices(db: Session, *, order_id: int | None = None) -> list[Invoice]:
    stmt = select(Invoice).order_by(Invoice.id.desc())
    if order_id is not None:
        stmt = stmt.where(Invoice.order_id == order_id)
    return list(db.execute(stmt).scalars().all())


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice
