"""Purchase-price resolution against the inventory service."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Protocol

from sales_backend.app.core.config import settings
from sales_backend.app.core.exceptions import PricingUnavailableError
from sales_backend.app.services.inventory_client import InventoryApiError, InventoryClient
from sales_backend.app.services.policy import Policy

logger = logging.getLogger(__name__)

Q = Decimal("0.0001")


class PricedRequest(Protocol):
    product_id: int
    price: Decimal


@dataclass(frozen=True)
class PriceResolution:
    product_id: int
    purchase_price: Decimal | None
    warning: str | None = None
    error: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.warning is not None


def fallback_purchase_price(claimed_price: Decimal, ratio: float | None = None) -> Decimal:
    """Assumed unit cost when the real one is unavailable (30% margin by default)."""
    ratio_d = Decimal(str(ratio if ratio is not None else settings.FALLBACK_COST_RATIO))
    return (Decimal(claimed_price) * ratio_d).quantize(Q, rounding=ROUND_HALF_UP)


async def resolve_purchase_price(
    client: InventoryClient,
    product_id: int,
    claimed_price: Decimal,
    *,
    policy: Policy = Policy.LENIENT,
) -> PriceResolution:
    """Look up the authoritative purchase price of one product.

    Never raises for inventory failures: under LENIENT the fallback price is
    returned with a warning, under STRICT the resolution carries ``error``
    and no price.
    """
    try:
        purchase_price = await client.get_purchase_price(product_id)
    except InventoryApiError as exc:
        if policy is Policy.STRICT:
            logger.warning("Purchase price unavailable for product %s: %s", product_id, exc)
            return PriceResolution(product_id=product_id, purchase_price=None, error=str(exc))
        fallback = fallback_purchase_price(claimed_price)
        logger.warning(
            "Purchase price unavailable for product %s, using fallback %s: %s",
            product_id,
            fallback,
            exc,
        )
        return PriceResolution(
            product_id=product_id,
            purchase_price=fallback,
            warning=f"Product {product_id}: purchase price estimated ({exc})",
        )
    return PriceResolution(product_id=product_id, purchase_price=purchase_price)


async def resolve_line_prices(
    client: InventoryClient,
    items: Sequence[PricedRequest],
    *,
    policy: Policy = Policy.LENIENT,
) -> list[PriceResolution]:
    """Resolve every item concurrently; results keep the order of ``items``.

    Under STRICT, raises ``PricingUnavailableError`` naming every product
    that could not be priced.
    """
    resolutions = await asyncio.gather(
        *(
            resolve_purchase_price(client, item.product_id, item.price, policy=policy)
            for item in items
        )
    )
    failures = [
        {"product_id": r.product_id, "error": r.error}
        for r in resolutions
        if r.error is not None
    ]
    if failures:
        raise PricingUnavailableError(failures)
    return list(resolutions)
