from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from purchasing.app.api.deps import current_actor, get_db
from purchasing.app.core.identity import Actor
from purchasing.app.db.models.core_types import ItemClass
from purchasing.app.schemas.catalog import CatalogItemRead, ProductInventoryRead
from purchasing.services import procurement

router = APIRouter(prefix="/catalog")


@router.get("/items", response_model=list[CatalogItemRead])
def catalog_items(
    search: str | None = None,
    supplier_id: int | None = None,
    warehouse_id: int | None = None,
    item_class: ItemClass = ItemClass.GOOD,
    db: Session = Depends(get_db),
    actor: Actor = Depends(current_actor),
):
    """
    Item picker for order entry (READ ONLY)
    - price = current purchase price for the supplier
    - stock = supplier inventory, per warehouse when given
    """
    return procurement.resolve_catalog_items(
        db,
        search=search,
        supplier_id=supplier_id,
        warehouse_id=warehouse_id,
        item_class=item_class,
    )


@router.get("/products/{product_id}/inventory", response_model=ProductInventoryRead)
def product_inventory(product_id: int, db: Session = Depends(get_db), actor: Actor = Depends(current_actor)):
    return procurement.product_inventory(db, product_id)
