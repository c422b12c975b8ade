"""Persistence of sales and their line items.

This module is the only writer of ``Sale`` rows. ``status`` and ``notes``
change only through ``update_sale_status``; line items are fixed at creation.
Derived fields (line profit, ``total``, ``total_profit``) are recomputed from
the line items on every flush, so they cannot drift from them.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import desc, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sales_backend.app.core.database import SessionLocal
from sales_backend.app.core.exceptions import (
    InvalidStatusTransition,
    PersistenceError,
    SaleNotFoundError,
    SaleValidationError,
)
from sales_backend.app.models.sale import (
    ALLOWED_TRANSITIONS,
    MAX_AMOUNT,
    MAX_QUANTITY,
    Sale,
    SaleLineItem,
    SaleStatus,
)
from sales_backend.app.services.profit import SaleTotals, compute_line_profit, compute_totals

logger = logging.getLogger(__name__)

NOTE_SEPARATOR = " | "


@dataclass(frozen=True)
class LineItemData:
    product_id: int
    name: str
    quantity: int
    price: Decimal
    purchase_price: Decimal | None = None


@dataclass(frozen=True)
class SaleFilter:
    """Store-level query. Role restrictions are applied before it gets here."""

    owner_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_line_items(lines: Sequence[Any]) -> None:
    """Raise ``SaleValidationError`` naming the first offending field."""
    if not lines:
        raise SaleValidationError("A sale must include at least one product", field="products")
    total = Decimal("0")
    cost = Decimal("0")
    for idx, line in enumerate(lines):
        prefix = f"products[{idx}]"
        if not isinstance(line.product_id, int) or isinstance(line.product_id, bool) or line.product_id <= 0:
            raise SaleValidationError(
                f"Invalid productId: {line.product_id!r}", field=f"{prefix}.productId"
            )
        if not line.name or not str(line.name).strip():
            raise SaleValidationError("Product name is required", field=f"{prefix}.name")
        if line.quantity < 1:
            raise SaleValidationError(
                f"Quantity must be at least 1 (got {line.quantity})", field=f"{prefix}.quantity"
            )
        if line.quantity > MAX_QUANTITY:
            raise SaleValidationError(
                f"Quantity must be at most {MAX_QUANTITY} (got {line.quantity})",
                field=f"{prefix}.quantity",
            )
        if line.price < 0:
            raise SaleValidationError(
                f"Price cannot be negative (got {line.price})", field=f"{prefix}.price"
            )
        if line.price >= MAX_AMOUNT:
            raise SaleValidationError(
                f"Price must be below {MAX_AMOUNT} (got {line.price})", field=f"{prefix}.price"
            )
        purchase_price = getattr(line, "purchase_price", None)
        if purchase_price is not None and purchase_price < 0:
            raise SaleValidationError(
                f"Purchase price cannot be negative (got {purchase_price})",
                field=f"{prefix}.purchasePrice",
            )
        if purchase_price is not None and purchase_price >= MAX_AMOUNT:
            raise SaleValidationError(
                f"Purchase price must be below {MAX_AMOUNT} (got {purchase_price})",
                field=f"{prefix}.purchasePrice",
            )
        total += Decimal(line.price) * line.quantity
        if purchase_price is not None:
            cost += Decimal(purchase_price) * line.quantity

    # Keeps total and |total_profit| storable as well as every line.
    if total >= MAX_AMOUNT:
        raise SaleValidationError(f"Sale total must be below {MAX_AMOUNT}", field="products")
    if cost >= MAX_AMOUNT:
        raise SaleValidationError(f"Sale cost must be below {MAX_AMOUNT}", field="products")


def recompute_totals(sale: Sale) -> SaleTotals:
    """Re-derive per-line profit and sale totals from the line items."""
    for line in sale.line_items:
        line.profit = compute_line_profit(line.price, line.purchase_price, line.quantity)
    totals = compute_totals(sale.line_items)
    sale.total = totals.total
    sale.total_profit = totals.total_profit
    return totals


# Registered on SessionLocal only; a bare Session(engine) does not recompute.
@event.listens_for(SessionLocal, "before_flush")
def _sync_derived_fields(session: Session, flush_context: Any, instances: Any) -> None:
    touched: dict[int, Sale] = {}
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, Sale):
            touched[id(obj)] = obj
        elif isinstance(obj, SaleLineItem) and obj.sale is not None:
            touched[id(obj.sale)] = obj.sale
    for sale in touched.values():
        recompute_totals(sale)


def append_note(existing: str | None, note: str | None) -> str | None:
    """Append-only notes: never replaces what is already there."""
    if not note:
        return existing
    if not existing:
        return note
    return f"{existing}{NOTE_SEPARATOR}{note}"


def create_sale_record(
    db: Session,
    *,
    owner_id: str,
    lines: Sequence[LineItemData],
    notes: str | None = None,
    client: str | None = None,
) -> Sale:
    """Validate and persist a new sale with status ``pending``.

    Commits before returning: once this call succeeds the sale is durable
    even if everything afterwards fails.
    """
    validate_line_items(lines)

    now = _utcnow()
    sale = Sale(
        owner_id=owner_id,
        client=client,
        notes=notes,
        status=SaleStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    for position, line in enumerate(lines):
        sale.line_items.append(
            SaleLineItem(
                position=position,
                product_id=line.product_id,
                name=line.name.strip(),
                quantity=line.quantity,
                price=Decimal(line.price),
                purchase_price=(
                    Decimal(line.purchase_price) if line.purchase_price is not None else None
                ),
            )
        )
    recompute_totals(sale)

    db.add(sale)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist sale for owner %s", owner_id)
        raise PersistenceError(f"Could not persist sale: {exc}") from exc
    db.refresh(sale)
    return sale


def get_sale(db: Session, sale_id: UUID) -> Sale:
    sale = db.query(Sale).filter(Sale.id == sale_id).first()
    if not sale:
        raise SaleNotFoundError(f"Sale {sale_id} not found")
    return sale


def update_sale_status(
    db: Session,
    sale_id: UUID,
    status: SaleStatus,
    note: str | None = None,
) -> Sale:
    """Move a sale to ``status`` and append ``note`` to its notes.

    The row is locked for the duration of the update so concurrent status
    writes to the same sale are serialized.
    """
    sale = (
        db.query(Sale)
        .filter(Sale.id == sale_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not sale:
        raise SaleNotFoundError(f"Sale {sale_id} not found")

    current = sale.status
    if status not in ALLOWED_TRANSITIONS[current]:
        db.rollback()
        raise InvalidStatusTransition(current.value, status.value)

    sale.status = status
    sale.notes = append_note(sale.notes, note)
    sale.updated_at = _utcnow()
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to update status of sale %s", sale_id)
        raise PersistenceError(f"Could not update sale {sale_id}: {exc}") from exc
    db.refresh(sale)
    return sale


def find_sales(db: Session, filters: SaleFilter | None = None) -> list[Sale]:
    """Sales matching ``filters``, newest first. Date bounds are inclusive."""
    filters = filters or SaleFilter()
    query = db.query(Sale)
    if filters.owner_id is not None:
        query = query.filter(Sale.owner_id == filters.owner_id)
    if filters.start is not None:
        query = query.filter(Sale.created_at >= filters.start)
    if filters.end is not None:
        query = query.filter(Sale.created_at <= filters.end)
    return query.order_by(desc(Sale.created_at), desc(Sale.id)).all()
