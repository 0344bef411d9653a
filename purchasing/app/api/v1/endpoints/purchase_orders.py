from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from purchasing.app.api.deps import admin_actor, current_actor, get_db
from purchasing.app.core.config import settings
from purchasing.app.core.errors import ValidationError
from purchasing.app.core.identity import Actor
from purchasing.app.db.models.core_types import OrderStatus
from purchasing.app.db.session import transaction
from purchasing.app.schemas.invoice import InvoiceCreate, InvoiceRead
from purchasing.app.schemas.purchase_order import (
    OrderCreate,
    OrderRead,
    OrderSummary,
    OrderUpdate,
    ReturnableRead,
    StatusChange,
)
from purchasing.app.schemas.returns import ReturnCreate, ReturnRead
from purchasing.services import procurement
from purchasing.services.attachments import Attachment

router = APIRouter(prefix="/purchase-orders")


@router.get("", response_model=list[OrderSummary])
def list_pos(
    status: OrderStatus | None = None,
    supplier_id: int | None = None,
    warehouse_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
):
    return procurement.list_orders(
        db,
        status=status,
        supplier_id=supplier_id,
        warehouse_id=warehouse_id,
        limit=min(max(limit, 1), 500),
        offset=max(offset, 0),
    )


@router.get("/{order_id}", response_model=OrderRead)
def get_po(order_id: int, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return procurement.get_order(db, order_id)


@router.post("", response_model=OrderRead, status_code=201)
def create_po(payload: OrderCreate, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    with transaction(db):
        order = procurement.create_order(db, actor, payload)
    return order


@router.put("/{order_id}", response_model=OrderRead)
def edit_po(
    order_id: int,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
):
    with transaction(db):
        order = procurement.edit_order(db, actor, order_id, payload)
    return order


@router.post("/{order_id}/status", response_model=OrderRead)
def change_status(
    order_id: int,
    payload: StatusChange,
    db: Session = Depends(get_db),
    actor: Actor = Depends(admin_actor),
):
    with transaction(db):
        order = procurement.set_status(db, actor, order_id, payload.status)
    return order


@router.post("/{order_id}/approve", response_model=OrderRead)
def approve_po(order_id: int, db: Session = Depends(get_db), actor: Actor = Depends(admin_actor)):
    with transaction(db):
        order = procurement.approve_order(db, actor, order_id)
    return order


@router.get("/{order_id}/returnable", response_model=list[ReturnableRead])
def returnable(order_id: int, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return procurement.returnable_quantities(db, order_id)


@router.post("/{order_id}/invoice", response_model=InvoiceRead, status_code=201)
def register_invoice(
    order_id: int,
    invoice_number: str = Form(...),
    payment_method_id: str | None = Form(None),
    payment_terms_id: str | None = Form(None),
    doc_type_id: str | None = Form(None),
    file: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(admin_actor),
):
    try:
        fields = InvoiceCreate(
            invoice_number=invoice_number,
            payment_method_id=payment_method_id,
            payment_terms_id=payment_terms_id,
            doc_type_id=doc_type_id,
        )
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid invoice fields: {exc.error_count()} error(s)") from exc
    attachment = None
    if file is not None and file.filename:
        attachment = Attachment(
            # one byte past the ceiling is enough to reject the upload
            content=file.file.read(settings.ATTACHMENT_MAX_BYTES + 1),
            content_type=file.content_type or "",
            filename=file.filename,
        )

    with transaction(db):
        invoice = procurement.register_invoice(db, actor, order_id, fields, attachment)
    return invoice


@router.post("/{order_id}/returns", response_model=ReturnRead, status_code=201)
def create_return(
    order_id: int,
    payload: ReturnCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(admin_actor),
):
    with transaction(db):
        ret = procurement.create_return(db, actor, order_id, payload)
    return ret
