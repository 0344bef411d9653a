from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from purchasing.app.schemas.purchase_order import OrderRead


class InvoiceCreate(BaseModel):
    invoice_number: str = Field(min_length=1, max_length=64)
    payment_method_id: int | None = None
    payment_terms_id: int | None = None
    doc_type_id: int | None = None

    @field_validator("invoice_number", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("payment_method_id", "payment_terms_id", "doc_type_id", mode="before")
    @classmethod
    def _blank_ids(cls, v: Any) -> Any:
        if v in ("", 0, "0"):
            return None
        return v


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    invoice_number: str
    payment_method_id: int | None
    payment_terms_id: int | None
    doc_type_id: int | None
    attachment_ref: str | None
    created_by: int | None
    created_at: datetime


class InvoiceDetail(InvoiceRead):
    order: OrderRead
