"""Propagate a sale's quantities to the inventory service as stock decrements.

Decrements already applied are never reverted when another line fails: a
``failed`` sale may have partially decremented stock and has to be
reconciled by hand. There is no compensation step.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from sales_backend.app.models.sale import SaleStatus
from sales_backend.app.services.inventory_client import InventoryApiError, InventoryClient
from sales_backend.app.services.policy import Policy

logger = logging.getLogger(__name__)


class StockLine(Protocol):
    product_id: int
    quantity: int


@dataclass(frozen=True)
class StockOutcome:
    product_id: int
    success: bool
    error: str | None = None
    data: Any | None = None


async def _decrease_one(
    client: InventoryClient, line: StockLine, authorization: str | None
) -> StockOutcome:
    try:
        data = await client.decrease_stock(line.product_id, line.quantity, authorization)
    except InventoryApiError as exc:
        logger.warning(
            "Stock decrement failed for product %s (qty %s): %s",
            line.product_id,
            line.quantity,
            exc,
        )
        return StockOutcome(product_id=line.product_id, success=False, error=str(exc))
    return StockOutcome(product_id=line.product_id, success=True, data=data)


async def reconcile(
    client: InventoryClient,
    lines: Sequence[StockLine],
    authorization: str | None,
) -> list[StockOutcome]:
    """Decrement stock for every line concurrently, one outcome per line.

    The caller's ``Authorization`` header is forwarded as-is; the inventory
    service does its own permission checks. Per-line failures are returned
    as outcomes, never raised.
    """
    return list(
        await asyncio.gather(
            *(_decrease_one(client, line, authorization) for line in lines)
        )
    )


def describe_failures(outcomes: Sequence[StockOutcome]) -> str:
    return ", ".join(
        f"Product {o.product_id}: {o.error}" for o in outcomes if not o.success
    )


def decide_final_status(
    outcomes: Sequence[StockOutcome], policy: Policy
) -> tuple[SaleStatus, str | None]:
    """Final sale status and the note to append, from all settled outcomes.

    Order of ``outcomes`` does not matter.
    """
    failed = [o for o in outcomes if not o.success]
    if not failed:
        return SaleStatus.COMPLETED, None
    if policy is Policy.STRICT:
        return SaleStatus.FAILED, f"Stock errors: {describe_failures(failed)}"
    return SaleStatus.COMPLETED, f"Stock warnings: {describe_failures(failed)}"
