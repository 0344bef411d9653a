from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from purchasing.app.api.deps import admin_actor, current_actor, get_db
from purchasing.app.core.identity import Actor
from purchasing.app.db.session import transaction
from purchasing.app.schemas.catalog import SupplierPriceCreate, SupplierPriceRead, SupplierPriceUpdate
from purchasing.services import procurement

router = APIRouter(prefix="/supplier-prices")


@router.get("", response_model=list[SupplierPriceRead])
def list_prices(
    product_id: int,
    supplier_id: int | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
):
    return procurement.price_history(db, product_id, supplier_id)


@router.post("", response_model=SupplierPriceRead, status_code=201)
def record_price(payload: SupplierPriceCreate, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    with transaction(db):
        row = procurement.record_price(
            db,
            actor,
            product_id=payload.product_id,
            supplier_id=payload.supplier_id,
            purchase_price=payload.purchase_price,
            sale_price=payload.sale_price,
            effective_at=payload.effective_at,
        )
    return row


@router.put("/{price_id}", response_model=SupplierPriceRead)
def correct_price(
    price_id: int,
    payload: SupplierPriceUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(admin_actor),
):
    with transaction(db):
        row = procurement.correct_price(
            db,
            actor,
            price_id,
            purchase_price=payload.purchase_price,
            sale_price=payload.sale_price,
            effective_at=payload.effective_at,
            # an explicit "sale_price": null clears it, an absent field keeps it
            clear_sale_price="sale_price" in payload.model_fields_set and payload.sale_price is None,
        )
    return row


@router.delete("/{price_id}", status_code=204)
def delete_price(price_id: int, db: Session = Depends(get_db), actor: Actor = Depends(admin_actor)):
    with transaction(db):
        procurement.delete_price(db, actor, price_id)
    return Response(status_code=204)
