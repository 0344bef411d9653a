from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class StockBalanceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    warehouse_id: int
    quantity: int  # READ ONLY, written by the ledger only
    updated_at: datetime


class SupplierInventoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    warehouse_id: int
    supplier_id: int
    quantity: int
    last_purchase_price: Decimal | None
    updated_at: datetime
