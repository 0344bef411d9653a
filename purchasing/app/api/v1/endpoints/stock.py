from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from purchasing.app.api.deps import current_actor, get_db
from purchasing.app.core.identity import Actor
from purchasing.app.schemas.stock_level import StockBalanceRead, SupplierInventoryRead
from purchasing.services import procurement

router = APIRouter(prefix="/stock")


@router.get(
    "",
    response_model=list[StockBalanceRead],
)
def get_stock(
    warehouse_id: int | None = None,
    product_id: int | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
):
    """
    Stock (READ ONLY)
    - quantities are written by the ledger only, never through this API
    """
    return procurement.list_balances(db, product_id=product_id, warehouse_id=warehouse_id)


@router.get("/supplier-inventory", response_model=list[SupplierInventoryRead])
def get_supplier_inventory(
    warehouse_id: int | None = None,
    product_id: int | None = None,
    supplier_id: int | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
):
    return procurement.list_supplier_inventory(
        db,
        product_id=product_id,
        warehouse_id=warehouse_id,
        supplier_id=supplier_id,
    )
