from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sales_backend.app.core.database import Base


class SaleStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Largest values the columns below can hold: Numeric(20, 4) keeps 16 integer
# digits, quantity is a 32-bit Integer.
MAX_AMOUNT = Decimal(10) ** 16
MAX_QUANTITY = 2**31 - 1


# Status only moves forward; everything except PENDING is terminal.
ALLOWED_TRANSITIONS: dict[SaleStatus, frozenset[SaleStatus]] = {
    SaleStatus.PENDING: frozenset(
        {SaleStatus.COMPLETED, SaleStatus.FAILED, SaleStatus.CANCELLED}
    ),
    SaleStatus.COMPLETED: frozenset(),
    SaleStatus.FAILED: frozenset(),
    SaleStatus.CANCELLED: frozenset(),
}


class Sale(Base):
    """A recorded sale.

    ``total`` and ``total_profit`` are derived from the line items by the
    sale store on every write; callers never set them directly.
    """

    __tablename__ = "sales"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Opaque user id from the auth service token
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    client: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    total_profit: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    status: Mapped[SaleStatus] = mapped_column(
        Enum(SaleStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SaleStatus.PENDING,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    line_items: Mapped[list[SaleLineItem]] = relationship(
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleLineItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_sales_owner_created_at", "owner_id", "created_at"),
        Index("ix_sales_created_at", "created_at"),
        Index("ix_sales_status", "status"),
    )


class SaleLineItem(Base):
    """One product entry of a sale; name and prices are a snapshot at sale time."""

    __tablename__ = "sale_line_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sale_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("sales.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    # Product id in the inventory service
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)
    purchase_price: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=4), nullable=True
    )
    profit: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=4), nullable=True
    )

    sale: Mapped[Sale] = relationship(back_populates="line_items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_sale_line_quantity_positive"),
        CheckConstraint("price >= 0", name="ck_sale_line_price_non_negative"),
        CheckConstraint(
            "purchase_price IS NULL OR purchase_price >= 0",
            name="ck_sale_line_purchase_price_non_negative",
        ),
        Index("ix_sale_line_items_sale", "sale_id"),
        Index("ix_sale_line_items_product", "product_id"),
    )
