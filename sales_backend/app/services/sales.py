"""Sale workflow: create a sale across the sales and inventory services.

``create_sale`` runs these steps in order:

    1. validate the requested products          (no side effects on failure)
    2. resolve purchase prices                  (inventory GET, 5s timeout)
    3. compute line profit and sale totals
    4. persist the sale as ``pending``          (durability checkpoint)
    5. decrement stock per line                 (inventory PATCH, 10s timeout)
    6. record the final status and notes

Steps 5 and 6 always run once step 4 has committed, even if the request is
cancelled in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from sales_backend.app.core.config import settings
from sales_backend.app.core.exceptions import SaleNotFoundError
from sales_backend.app.models.sale import Sale, SaleStatus
from sales_backend.app.services.inventory_client import InventoryClient
from sales_backend.app.services.policy import Policy
from sales_backend.app.services.pricing import resolve_line_prices
from sales_backend.app.services.profit import compute_totals
from sales_backend.app.services.sale_store import (
    LineItemData,
    SaleFilter,
    append_note,
    create_sale_record,
    find_sales,
    get_sale,
    update_sale_status,
    validate_line_items,
)
from sales_backend.app.services.stock_reconciliation import (
    StockOutcome,
    decide_final_status,
    reconcile,
)

logger = logging.getLogger(__name__)


class ProductRequest(Protocol):
    product_id: int
    name: str
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class WorkflowWarning:
    source: str
    product_id: int
    message: str


@dataclass
class SaleCreationResult:
    sale: Sale
    stock_updates: list[StockOutcome]
    warnings: list[WorkflowWarning] = field(default_factory=list)

    @property
    def stock_errors(self) -> list[StockOutcome]:
        return [o for o in self.stock_updates if not o.success]


def is_restricted_role(role: str) -> bool:
    return role in settings.RESTRICTED_SALE_ROLES


async def create_sale(
    db: Session,
    inventory: InventoryClient,
    *,
    caller_id: str,
    items: Sequence[ProductRequest],
    authorization: str | None,
    notes: str | None = None,
    client_name: str | None = None,
    pricing_policy: Policy | None = None,
    stock_policy: Policy | None = None,
) -> SaleCreationResult:
    """Record a sale and push its quantities to the inventory service.

    Raises ``SaleValidationError`` for bad input and, under the strict
    pricing policy, ``PricingUnavailableError`` before anything is
    persisted. Stock failures never raise: they are reflected in the
    returned outcomes and in the sale's status and notes.
    """
    pricing_policy = pricing_policy or Policy(settings.PRICING_POLICY)
    stock_policy = stock_policy or Policy(settings.STOCK_POLICY)

    validate_line_items(items)
    logger.info(
        "Creating sale for %s: %d line(s), pricing=%s stock=%s",
        caller_id,
        len(items),
        pricing_policy.value,
        stock_policy.value,
    )

    resolutions = await resolve_line_prices(inventory, items, policy=pricing_policy)
    lines = [
        LineItemData(
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            price=Decimal(item.price),
            purchase_price=resolution.purchase_price,
        )
        for item, resolution in zip(items, resolutions)
    ]
    warnings = [
        WorkflowWarning(source="pricing", product_id=r.product_id, message=r.warning)
        for r in resolutions
        if r.warning is not None
    ]
    # Resolved costs can push the sale past what the columns hold
    validate_line_items(lines)
    totals = compute_totals(lines)
    logger.info(
        "Priced sale for %s: total=%s profit=%s fallbacks=%d",
        caller_id,
        totals.total,
        totals.total_profit,
        len(warnings),
    )

    if warnings:
        notes = append_note(
            notes, "Pricing warnings: " + ", ".join(w.message for w in warnings)
        )
    sale = create_sale_record(
        db, owner_id=caller_id, lines=lines, notes=notes, client=client_name
    )
    logger.info("Sale %s persisted as pending", sale.id)

    # Past the checkpoint: finish even if the caller goes away.
    outcomes = await asyncio.shield(
        _reconcile_and_finalize(db, inventory, sale, authorization, stock_policy)
    )

    warnings.extend(
        WorkflowWarning(source="stock", product_id=o.product_id, message=o.error or "")
        for o in outcomes
        if not o.success
    )
    return SaleCreationResult(sale=sale, stock_updates=outcomes, warnings=warnings)


async def _reconcile_and_finalize(
    db: Session,
    inventory: InventoryClient,
    sale: Sale,
    authorization: str | None,
    stock_policy: Policy,
) -> list[StockOutcome]:
    outcomes = await reconcile(inventory, sale.line_items, authorization)
    status, note = decide_final_status(outcomes, stock_policy)
    update_sale_status(db, sale.id, status, note)
    failed = sum(1 for o in outcomes if not o.success)
    log = logger.warning if failed else logger.info
    log(
        "Sale %s finalized as %s (%d/%d stock updates failed)",
        sale.id,
        status.value,
        failed,
        len(outcomes),
    )
    return outcomes


def list_sales(
    db: Session,
    *,
    caller_id: str,
    caller_role: str,
    filters: SaleFilter | None = None,
) -> list[Sale]:
    """Sales visible to the caller, newest first.

    Restricted roles always get ``owner == caller_id`` whatever owner they
    asked for; their date range is still applied. Other roles get their
    filters as given.
    """
    filters = filters or SaleFilter()
    if is_restricted_role(caller_role):
        filters = SaleFilter(owner_id=caller_id, start=filters.start, end=filters.end)
    return find_sales(db, filters)


def get_visible_sale(
    db: Session, *, sale_id: UUID, caller_id: str, caller_role: str
) -> Sale:
    sale = get_sale(db, sale_id)
    if is_restricted_role(caller_role) and sale.owner_id != caller_id:
        # Same answer as a missing sale so ids of others' sales do not leak
        raise SaleNotFoundError(f"Sale {sale_id} not found")
    return sale


def cancel_sale(
    db: Session, *, sale_id: UUID, caller_id: str, caller_role: str
) -> Sale:
    """Cancel a sale that is still ``pending``.

    Only reachable for sales left pending by an interrupted workflow; raises
    ``InvalidStatusTransition`` for any other status.
    """
    sale = get_visible_sale(
        db, sale_id=sale_id, caller_id=caller_id, caller_role=caller_role
    )
    cancelled = update_sale_status(
        db, sale.id, SaleStatus.CANCELLED, note=f"Cancelled by {caller_id}"
    )
    logger.info("Sale %s cancelled by %s", sale_id, caller_id)
    return cancelled
