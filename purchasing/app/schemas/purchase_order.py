from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from purchasing.app.db.models.core_types import ItemClass, Lifecycle, OrderStatus


def normalize_line_payload(value: Any) -> Any:
    """
    Line sets arrive either as a JSON array or as an object keyed by position
    ({"0": {...}, "1": {...}}), as form encoders produce them. Both become a list.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        keys = list(value.keys())
        if all(str(k).isdigit() for k in keys):
            keys.sort(key=lambda k: int(k))
        return [value[k] for k in keys]
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class OrderLineIn(BaseModel):
    # quantity/price rules are enforced by the order service (ValidationError)
    item_id: int
    item_class: ItemClass = ItemClass.GOOD
    quantity: int
    unit_price: Decimal = Decimal("0")

    @field_validator("item_class", mode="before")
    @classmethod
    def _upper_class(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("unit_price", mode="before")
    @classmethod
    def _price_default(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return Decimal("0") if v is None else v

    @field_validator("quantity", mode="before")
    @classmethod
    def _qty_default(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return 0 if v is None else v


class OrderWrite(BaseModel):
    supplier_id: int
    warehouse_id: int | None = None
    order_date: datetime | None = None
    notes: str | None = None
    lines: list[OrderLineIn] = Field(
        default_factory=list,
        validation_alias=AliasChoices("lines", "items"),
    )

    @field_validator("lines", mode="before")
    @classmethod
    def _normalize_lines(cls, v: Any) -> Any:
        return normalize_line_payload(v)

    @field_validator("warehouse_id", "notes", "order_date", mode="before")
    @classmethod
    def _blanks(cls, v: Any) -> Any:
        return _blank_to_none(v)


class OrderCreate(OrderWrite):
    lifecycle: Lifecycle | None = None


class OrderUpdate(OrderWrite):
    pass


class StatusChange(BaseModel):
    status: OrderStatus


class OrderLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: int
    item_class: ItemClass
    quantity: int
    unit_price: Decimal


class OrderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    supplier_id: int
    warehouse_id: int | None
    lifecycle: Lifecycle
    status: OrderStatus
    order_date: datetime
    total: Decimal
    notes: str | None
    created_by: int | None
    modified_by: int | None
    created_at: datetime
    updated_at: datetime


class OrderRead(OrderSummary):
    lines: list[OrderLineRead] = Field(default_factory=list)


class ReturnableRead(BaseModel):
    product_id: int
    purchased: int
    returned: int
    remaining: int
