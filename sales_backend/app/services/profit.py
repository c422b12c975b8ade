from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Protocol

Q = Decimal("0.0001")
ZERO = Decimal("0")


class PricedLine(Protocol):
    quantity: int
    price: Decimal
    purchase_price: Decimal | None


@dataclass(frozen=True)
class SaleTotals:
    total: Decimal
    total_profit: Decimal


def compute_line_profit(
    price: Decimal, purchase_price: Decimal | None, quantity: int
) -> Decimal | None:
    """``(price - purchase_price) * quantity``.

    A loss stays negative. Returns ``None`` when the cost is unknown.
    """
    if purchase_price is None:
        return None
    return ((Decimal(price) - Decimal(purchase_price)) * quantity).quantize(
        Q, rounding=ROUND_HALF_UP
    )


def compute_totals(lines: Iterable[PricedLine]) -> SaleTotals:
    """Sale total and profit, derived from the line items alone.

    Lines with an unknown purchase price count toward ``total`` only.
    """
    total = ZERO
    total_profit = ZERO
    for line in lines:
        total += Decimal(line.price) * line.quantity
        profit = compute_line_profit(line.price, line.purchase_price, line.quantity)
        if profit is not None:
            total_profit += profit
    return SaleTotals(
        total=total.quantize(Q, rounding=ROUND_HALF_UP),
        total_profit=total_profit.quantize(Q, rounding=ROUND_HALF_UP),
    )
