from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from purchasing.app.db.models.core_types import ItemClass


class CatalogItemRead(BaseModel):
    item_id: int
    name: str
    image: str
    item_class: ItemClass
    price: Decimal | None = None
    stock: int = 0


class SupplierPriceCreate(BaseModel):
    product_id: int
    supplier_id: int
    purchase_price: Decimal
    sale_price: Decimal | None = None
    effective_at: datetime | None = None


class SupplierPriceUpdate(BaseModel):
    purchase_price: Decimal | None = None
    sale_price: Decimal | None = None
    effective_at: datetime | None = None


class SupplierPriceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    supplier_id: int
    purchase_price: Decimal
    sale_price: Decimal | None
    effective_at: datetime
    created_by: int | None
    created_at: datetime


class WarehouseStockRead(BaseModel):
    warehouse_id: int
    warehouse: str
    quantity: int


class ProductInventoryRead(BaseModel):
    product_id: int
    name: str
    item_class: ItemClass
    stock: list[WarehouseStockRead] = Field(default_factory=list)
    price_history: list[SupplierPriceRead] = Field(default_factory=list)
    current_prices: list[SupplierPriceRead] = Field(default_factory=list)
