from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from purchasing.app.api.deps import current_actor, get_db
from purchasing.app.core.identity import Actor
from purchasing.app.schemas.invoice import InvoiceDetail, InvoiceRead
from purchasing.services import procurement

router = APIRouter(prefix="/invoices")


@router.get("", response_model=list[InvoiceRead])
def list_invoices(
    order_id: int | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
):
    return procurement.list_invoices(db, order_id=order_id)


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(invoice_id: int, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return procurement.get_invoice(db, invoice_id)
