from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from purchasing.app.schemas.purchase_order import normalize_line_payload


class ReturnLineIn(BaseModel):
    product_id: int = Field(validation_alias=AliasChoices("product_id", "item_id"))
    # bounds are checked by the returns engine (QuantityExceededError)
    quantity: int
    reason: str | None = Field(default=None, max_length=255)

    @field_validator("quantity", mode="before")
    @classmethod
    def _qty_default(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return 0
        return v


class ReturnCreate(BaseModel):
    notes: str | None = None
    lines: list[ReturnLineIn] = Field(
        default_factory=list,
        validation_alias=AliasChoices("lines", "items"),
    )

    @field_validator("lines", mode="before")
    @classmethod
    def _normalize_lines(cls, v: Any) -> Any:
        return normalize_line_payload(v)


class ReturnLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    reason: str | None


class ReturnRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    notes: str | None
    created_by: int | None
    created_at: datetime
    lines: list[ReturnLineRead] = Field(default_factory=list)
