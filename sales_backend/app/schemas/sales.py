from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from sales_backend.app.models.sale import MAX_AMOUNT, MAX_QUANTITY, SaleStatus


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ─── Request ──────────────────────────────────────────────────────────────────


class SaleProductIn(CamelModel):
    product_id: int
    name: str
    quantity: int
    price: Decimal

    @field_validator("product_id")
    @classmethod
    def product_id_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("productId must be a positive integer")
        return v

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Product name is required")
        return v

    @field_validator("quantity")
    @classmethod
    def quantity_in_range(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1")
        if v > MAX_QUANTITY:
            raise ValueError(f"Quantity must be at most {MAX_QUANTITY}")
        return v

    @field_validator("price")
    @classmethod
    def price_in_range(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Price cannot be negative")
        if v >= MAX_AMOUNT:
            raise ValueError(f"Price must be below {MAX_AMOUNT}")
        return v


class SaleCreateRequest(CamelModel):
    products: list[SaleProductIn]
    notes: str | None = Field(default=None, max_length=500)
    client: str | None = Field(default=None, max_length=255)

    @field_validator("products")
    @classmethod
    def at_least_one_product(cls, v: list[SaleProductIn]) -> list[SaleProductIn]:
        if not v:
            raise ValueError("A sale must include at least one product")
        return v


# ─── Response ─────────────────────────────────────────────────────────────────


class SaleLineItemOut(CamelModel):
    product_id: int
    name: str
    quantity: int
    price: Decimal
    purchase_price: Decimal | None
    profit: Decimal | None


class SaleOut(CamelModel):
    id: UUID
    owner_id: str
    client: str | None
    line_items: list[SaleLineItemOut]
    total: Decimal
    total_profit: Decimal
    status: SaleStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime


class StockUpdateOut(CamelModel):
    product_id: int
    success: bool
    error: str | None = None
    data: Any | None = None


class WarningOut(CamelModel):
    source: str  # "pricing" or "stock"
    product_id: int
    message: str


class SaleCreateResponse(CamelModel):
    sale: SaleOut
    stock_updates: list[StockUpdateOut]
    warnings: list[WarningOut] | None = None


class StockErrorResponse(CamelModel):
    detail: str
    sale: SaleOut
    stock_errors: list[StockUpdateOut]


class PricingErrorOut(CamelModel):
    product_id: int
    error: str


class PricingErrorResponse(CamelModel):
    detail: str
    pricing_errors: list[PricingErrorOut]
