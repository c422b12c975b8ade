"""Tests for the sale creation workflow and role-scoped access.

Stock decrements that succeeded are not rolled back when a sibling line
fails, under either policy. The strict-policy tests below assert that
the inventory keeps those decrements.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from sales_backend.app.core.exceptions import (
    InvalidStatusTransition,
    PricingUnavailableError,
    SaleNotFoundError,
    SaleValidationError,
)
from sales_backend.app.models.sale import Sale, SaleStatus
from sales_backend.app.schemas.auth import RoleEnum
from sales_backend.app.services.inventory_client import InventoryClient
from sales_backend.app.services.policy import Policy
from sales_backend.app.services.sale_store import SaleFilter, update_sale_status
from sales_backend.app.services.sales import (
    SaleCreationResult,
    cancel_sale,
    create_sale,
    get_visible_sale,
    is_restricted_role,
    list_sales,
)
from sales_backend.tests.conftest import (
    ADMIN_ID,
    CONSULTANT_ID,
    OTHER_SELLER_ID,
    SELLER_ID,
    FakeInventory,
    make_sale,
)


@dataclass
class _Product:
    product_id: int
    name: str
    quantity: int
    price: Decimal


BASKET = [
    _Product(1, "Keyboard", 2, Decimal("100")),
    _Product(2, "Mouse", 1, Decimal("25")),
    _Product(3, "Monitor", 1, Decimal("200")),
]


def _run(
    db: Session,
    inventory: InventoryClient,
    items: list[_Product] = BASKET,
    **kwargs: object,
) -> SaleCreationResult:
    kwargs.setdefault("pricing_policy", Policy.LENIENT)
    kwargs.setdefault("stock_policy", Policy.LENIENT)
    return asyncio.run(
        create_sale(
            db,
            inventory,
            caller_id=SELLER_ID,
            items=items,
            authorization="Bearer seller.jwt",
            **kwargs,  # type: ignore[arg-type]
        )
    )


# ─── Creation ─────────────────────────────────────────────────────────────────


class TestCreateSale:
    def test_happy_path(self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory) -> None:
        result = _run(db, inventory)

        sale = result.sale
        assert sale.status == SaleStatus.COMPLETED
        assert sale.owner_id == SELLER_ID
        assert sale.notes is None
        assert sale.total == Decimal("425")
        # (100-60)*2 + (25-15.5) + (200-120)
        assert sale.total_profit == Decimal("169.5")
        assert [o.success for o in result.stock_updates] == [True, True, True]
        assert result.warnings == []
        assert result.stock_errors == []
        assert fake_inventory.products[1]["stock"] == 48

    def test_forwards_caller_authorization(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        _run(db, inventory)
        assert {r.headers["Authorization"] for r in fake_inventory.stock_requests()} == {
            "Bearer seller.jwt"
        }

    def test_caller_notes_and_client_kept(self, db: Session, inventory: InventoryClient) -> None:
        result = _run(db, inventory, notes="gift wrap", client_name="ACME")
        assert result.sale.notes == "gift wrap"
        assert result.sale.client == "ACME"

    def test_lenient_stock_failure_completes_with_warning(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        fake_inventory.stock_errors[2] = (400, "Insufficient stock")

        result = _run(db, inventory, stock_policy=Policy.LENIENT)

        assert len(result.stock_updates) == 3
        assert [o.success for o in result.stock_updates] == [True, False, True]
        assert result.sale.status == SaleStatus.COMPLETED
        assert result.sale.notes == "Stock warnings: Product 2: Insufficient stock"
        assert [o.product_id for o in result.stock_errors] == [2]
        assert [(w.source, w.product_id) for w in result.warnings] == [("stock", 2)]

    def test_strict_stock_failure_fails_sale(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        fake_inventory.stock_errors[2] = (400, "Insufficient stock")

        result = _run(db, inventory, stock_policy=Policy.STRICT)

        persisted = db.get(Sale, result.sale.id)
        assert persisted is not None
        assert persisted.status == SaleStatus.FAILED
        assert persisted.notes == "Stock errors: Product 2: Insufficient stock"
        assert len(result.stock_updates) == 3
        assert [o.product_id for o in result.stock_errors] == [2]
        # Sibling decrements were applied and stay applied
        assert fake_inventory.products[1]["stock"] == 48
        assert fake_inventory.products[3]["stock"] == 9

    def test_strict_pricing_failure_persists_nothing(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        fake_inventory.price_timeouts.add(3)

        with pytest.raises(PricingUnavailableError) as exc_info:
            _run(db, inventory, pricing_policy=Policy.STRICT)

        assert [f["product_id"] for f in exc_info.value.failures] == [3]
        assert db.query(Sale).count() == 0
        assert fake_inventory.stock_requests() == []

    def test_lenient_pricing_uses_fallback(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        fake_inventory.price_timeouts.add(1)

        result = _run(db, inventory, items=[_Product(1, "Keyboard", 3, Decimal("100"))])

        line = result.sale.line_items[0]
        assert line.purchase_price == Decimal("70")
        assert line.profit == Decimal("90")
        assert result.sale.total_profit == Decimal("90")
        assert result.sale.status == SaleStatus.COMPLETED
        assert result.sale.notes is not None
        assert result.sale.notes.startswith("Pricing warnings: Product 1: purchase price estimated")
        assert [(w.source, w.product_id) for w in result.warnings] == [("pricing", 1)]

    def test_pricing_and_stock_notes_accumulate(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        fake_inventory.price_timeouts.add(1)
        fake_inventory.stock_errors[1] = (400, "Insufficient stock")

        result = _run(
            db, inventory, items=[_Product(1, "Keyboard", 1, Decimal("10"))], notes="walk-in"
        )

        parts = (result.sale.notes or "").split(" | ")
        assert parts[0] == "walk-in"
        assert parts[1].startswith("Pricing warnings:")
        assert parts[2] == "Stock warnings: Product 1: Insufficient stock"
        assert [w.source for w in result.warnings] == ["pricing", "stock"]

    def test_invalid_input_has_no_side_effects(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        items = [_Product(1, "Keyboard", 0, Decimal("100"))]

        with pytest.raises(SaleValidationError) as exc_info:
            _run(db, inventory, items=items)

        assert exc_info.value.field == "products[0].quantity"
        assert db.query(Sale).count() == 0
        assert fake_inventory.requests == []

    def test_oversized_amounts_rejected_before_pricing(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        items = [_Product(1, "Keyboard", 2, Decimal("9000000000000000"))]

        with pytest.raises(SaleValidationError) as exc_info:
            _run(db, inventory, items=items)

        assert exc_info.value.field == "products"
        assert db.query(Sale).count() == 0
        assert fake_inventory.requests == []

    def test_out_of_range_cost_falls_back(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        fake_inventory.products[1]["purchase_price"] = "1e30"

        result = _run(db, inventory, items=[_Product(1, "Keyboard", 1, Decimal("100"))])

        assert result.sale.line_items[0].purchase_price == Decimal("70")
        assert [w.source for w in result.warnings] == ["pricing"]

    def test_empty_basket_rejected(
        self, db: Session, inventory: InventoryClient, fake_inventory: FakeInventory
    ) -> None:
        with pytest.raises(SaleValidationError):
            _run(db, inventory, items=[])
        assert fake_inventory.requests == []


# ─── Visibility ───────────────────────────────────────────────────────────────


class TestRoles:
    def test_only_seller_is_restricted(self) -> None:
        assert is_restricted_role(RoleEnum.SELLER.value)
        for role in (RoleEnum.ADMIN, RoleEnum.CONSULTANT, RoleEnum.WAREHOUSE):
            assert not is_restricted_role(role.value)


class TestListSales:
    def test_seller_cannot_widen_owner(self, db: Session, seeded_sales: dict[str, Sale]) -> None:
        result = list_sales(
            db,
            caller_id=SELLER_ID,
            caller_role=RoleEnum.SELLER.value,
            filters=SaleFilter(owner_id=OTHER_SELLER_ID),
        )
        assert [s.id for s in result] == [
            seeded_sales["seller_new"].id,
            seeded_sales["seller_old"].id,
        ]

    def test_seller_dates_still_apply(self, db: Session, seeded_sales: dict[str, Sale]) -> None:
        result = list_sales(
            db,
            caller_id=SELLER_ID,
            caller_role=RoleEnum.SELLER.value,
            filters=SaleFilter(start=datetime(2026, 1, 15, tzinfo=timezone.utc)),
        )
        assert [s.id for s in result] == [seeded_sales["seller_new"].id]

    def test_admin_sees_everything(self, db: Session, seeded_sales: dict[str, Sale]) -> None:
        result = list_sales(db, caller_id=ADMIN_ID, caller_role=RoleEnum.ADMIN.value)
        assert len(result) == 4

    def test_consultant_filters_by_owner(self, db: Session, seeded_sales: dict[str, Sale]) -> None:
        result = list_sales(
            db,
            caller_id=CONSULTANT_ID,
            caller_role=RoleEnum.CONSULTANT.value,
            filters=SaleFilter(owner_id=OTHER_SELLER_ID),
        )
        assert [s.id for s in result] == [seeded_sales["other_seller"].id]


class TestGetVisibleSale:
    def test_seller_reads_own_sale(self, db: Session, seeded_sales: dict[str, Sale]) -> None:
        sale = get_visible_sale(
            db,
            sale_id=seeded_sales["seller_old"].id,
            caller_id=SELLER_ID,
            caller_role=RoleEnum.SELLER.value,
        )
        assert sale.id == seeded_sales["seller_old"].id

    def test_seller_cannot_read_others(self, db: Session, seeded_sales: dict[str, Sale]) -> None:
        with pytest.raises(SaleNotFoundError):
            get_visible_sale(
                db,
                sale_id=seeded_sales["other_seller"].id,
                caller_id=SELLER_ID,
                caller_role=RoleEnum.SELLER.value,
            )

    def test_warehouse_reads_any(self, db: Session, seeded_sales: dict[str, Sale]) -> None:
        sale = get_visible_sale(
            db,
            sale_id=seeded_sales["other_seller"].id,
            caller_id="warehouse-1",
            caller_role=RoleEnum.WAREHOUSE.value,
        )
        assert sale.owner_id == OTHER_SELLER_ID


class TestCancelSale:
    def test_cancel_pending(self, db: Session) -> None:
        sale = make_sale(db, SELLER_ID, datetime(2026, 2, 1, tzinfo=timezone.utc))

        cancelled = cancel_sale(
            db, sale_id=sale.id, caller_id=SELLER_ID, caller_role=RoleEnum.SELLER.value
        )

        assert cancelled.status == SaleStatus.CANCELLED
        assert cancelled.notes == f"Cancelled by {SELLER_ID}"

    def test_cannot_cancel_completed(self, db: Session) -> None:
        sale = make_sale(db, SELLER_ID, datetime(2026, 2, 1, tzinfo=timezone.utc))
        update_sale_status(db, sale.id, SaleStatus.COMPLETED)

        with pytest.raises(InvalidStatusTransition):
            cancel_sale(db, sale_id=sale.id, caller_id=ADMIN_ID, caller_role=RoleEnum.ADMIN.value)

    def test_seller_cannot_cancel_others(self, db: Session) -> None:
        sale = make_sale(db, OTHER_SELLER_ID, datetime(2026, 2, 1, tzinfo=timezone.utc))

        with pytest.raises(SaleNotFoundError):
            cancel_sale(db, sale_id=sale.id, caller_id=SELLER_ID, caller_role=RoleEnum.SELLER.value)

        assert db.get(Sale, sale.id).status == SaleStatus.PENDING  # type: ignore[union-attr]
