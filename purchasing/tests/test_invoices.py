from decimal import Decimal

import pytest

from purchasing.app.core.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from purchasing.app.db.models.core_types import Lifecycle, OrderStatus
from purchasing.app.schemas.invoice import InvoiceCreate
from purchasing.services import invoices, ledger, orders
from purchasing.services.attachments import Attachment, LocalAttachmentStore, validate_attachment

PDF = Attachment(content=b"%PDF-1.4 test", content_type="application/pdf", filename="inv.pdf")


@pytest.fixture
def store(tmp_path):
    return LocalAttachmentStore(root=tmp_path)


@pytest.fixture
def approved_order(db_session, admin, make_order_payload):
    order = orders.create_order(db_session, admin, make_order_payload())
    orders.approve_order(db_session, admin, order.id)
    return order


def test_invoice_completes_deferred_order_once(
    db_session, admin, approved_order, product, warehouse, supplier, payment_refs, store, tmp_path
):
    """
    GIVEN
    - un PO DEFERRED approuvé de 2 x P à 5.00
    WHEN
    - on enregistre la facture "INV-001" avec un PDF
    THEN
    - PO COMPLETED, solde P/W +2, dernier prix fournisseur = 5
    """
    invoice = invoices.register_invoice(
        db_session,
        admin,
        approved_order.id,
        InvoiceCreate(invoice_number="INV-001", **payment_refs),
        attachment=PDF,
        store=store,
    )

    assert invoice.order_id == approved_order.id
    assert approved_order.status == OrderStatus.COMPLETED
    assert ledger.get_balance(db_session, product.id, warehouse.id) == 2
    si = ledger.get_supplier_inventory(db_session, product.id, warehouse.id, supplier.id)
    assert si.quantity == 2
    assert si.last_purchase_price == Decimal("5.00")

    assert invoice.attachment_ref.startswith("invoices/")
    assert invoice.attachment_ref.endswith(".pdf")
    assert (tmp_path / invoice.attachment_ref).read_bytes() == PDF.content


def test_complete_twice_is_a_noop(db_session, admin, approved_order, product, warehouse):
    invoices.register_invoice(db_session, admin, approved_order.id, InvoiceCreate(invoice_number="INV-001"))

    orders.complete_order(db_session, admin, approved_order.id)

    assert ledger.get_balance(db_session, product.id, warehouse.id) == 2
    assert ledger.journal_total(db_session, product.id, warehouse.id) == 2


def test_second_invoice_is_rejected(db_session, admin, approved_order, product, warehouse):
    invoices.register_invoice(db_session, admin, approved_order.id, InvoiceCreate(invoice_number="INV-001"))

    with pytest.raises(InvalidStateError, match="already COMPLETED"):
        invoices.register_invoice(db_session, admin, approved_order.id, InvoiceCreate(invoice_number="INV-002"))

    assert len(invoices.list_invoices(db_session, order_id=approved_order.id)) == 1
    assert ledger.get_balance(db_session, product.id, warehouse.id) == 2


def test_pending_order_cannot_take_an_invoice(db_session, admin, make_order_payload, store, tmp_path):
    order = orders.create_order(db_session, admin, make_order_payload())

    with pytest.raises(InvalidStateError, match="must be APPROVED"):
        invoices.register_invoice(
            db_session, admin, order.id, InvoiceCreate(invoice_number="INV-001"), attachment=PDF, store=store
        )
    # nothing was stored for a rejected invoice
    assert list(tmp_path.iterdir()) == []


def test_direct_order_cannot_take_an_invoice(db_session, admin, make_order_payload):
    order = orders.create_order(db_session, admin, make_order_payload(lifecycle=Lifecycle.DIRECT))
    orders.approve_order(db_session, admin, order.id)

    with pytest.raises(InvalidStateError):
        invoices.register_invoice(db_session, admin, order.id, InvoiceCreate(invoice_number="INV-001"))


def test_invoice_requires_admin(db_session, clerk, approved_order):
    with pytest.raises(PermissionDeniedError):
        invoices.register_invoice(db_session, clerk, approved_order.id, InvoiceCreate(invoice_number="INV-001"))


def test_unknown_payment_reference(db_session, admin, approved_order):
    with pytest.raises(NotFoundError, match="Payment method"):
        invoices.register_invoice(
            db_session,
            admin,
            approved_order.id,
            InvoiceCreate(invoice_number="INV-001", payment_method_id=777),
        )
    assert approved_order.status == OrderStatus.APPROVED


def test_blank_payment_ids_become_none():
    fields = InvoiceCreate(invoice_number="  INV-9 ", payment_method_id="", payment_terms_id=0, doc_type_id="0")
    assert fields.invoice_number == "INV-9"
    assert fields.payment_method_id is None
    assert fields.payment_terms_id is None
    assert fields.doc_type_id is None


@pytest.mark.parametrize(
    "attachment, message",
    [
        (Attachment(content=b"MZ...", content_type="application/x-msdownload"), "not allowed"),
        (Attachment(content=b"", content_type="application/pdf"), "Empty file"),
        (Attachment(content=b"x" * 11, content_type="image/png"), "too large"),
    ],
)
def test_attachment_validation(attachment, message):
    with pytest.raises(ValidationError, match=message):
        validate_attachment(attachment, max_bytes=10)


def test_jpg_alias_is_accepted():
    assert validate_attachment(Attachment(content=b"\xff\xd8", content_type="image/jpg")) == "image/jpeg"


def test_rejected_attachment_leaves_order_untouched(db_session, admin, approved_order, product, warehouse):
    bad = Attachment(content=b"<html>", content_type="text/html")

    with pytest.raises(ValidationError):
        invoices.register_invoice(
            db_session, admin, approved_order.id, InvoiceCreate(invoice_number="INV-001"), attachment=bad
        )

    assert approved_order.status == OrderStatus.APPROVED
    assert ledger.get_balance(db_session, product.id, warehouse.id) == 0
    assert invoices.list_invoices(db_session) == []


def test_get_invoice_not_found(db_session):
    with pytest.raises(NotFoundError):
        invoices.get_invoice(db_session, 1)
