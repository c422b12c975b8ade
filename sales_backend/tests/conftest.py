"""Shared test fixtures.

Each test gets a fresh in-memory SQLite database, and the inventory service
is replaced by ``FakeInventory`` behind an ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Generator
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from sales_backend.app.api.deps import get_inventory_client
from sales_backend.app.core.database import Base, SessionLocal, get_db
from sales_backend.app.core.security import create_access_token
from sales_backend.app.main import app
from sales_backend.app.models.sale import Sale
from sales_backend.app.schemas.auth import RoleEnum
from sales_backend.app.services.inventory_client import InventoryClient
from sales_backend.app.services.sale_store import LineItemData, create_sale_record

INVENTORY_BASE_URL = "http://inventory.test/api"

_PRODUCT_PATH = re.compile(r"^/api/products/(\d+)(/decrease-stock)?$")


# ─── Fake inventory service ──────────────────────────────────────────────────


class FakeInventory:
    """In-memory stand-in for the products/stock service.

    Tweak the public attributes to script failures for specific products.
    """

    def __init__(self) -> None:
        self.products: dict[int, dict[str, Any]] = {
            1: {"id": 1, "name": "Keyboard", "purchase_price": 60, "stock": 50},
            2: {"id": 2, "name": "Mouse", "purchase_price": 15.5, "stock": 30},
            3: {"id": 3, "name": "Monitor", "purchase_price": 120, "stock": 10},
        }
        self.down = False
        self.price_timeouts: set[int] = set()
        self.stock_timeouts: set[int] = set()
        # product id -> (status code, message)
        self.stock_errors: dict[int, tuple[int, str]] = {}
        self.requests: list[httpx.Request] = []

    def stock_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "PATCH"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("Connection refused", request=request)

        match = _PRODUCT_PATH.match(request.url.path)
        if not match:
            return httpx.Response(404, json={"success": False, "message": "Route not found"})
        product_id = int(match.group(1))

        if match.group(2):
            if product_id in self.stock_timeouts:
                raise httpx.ReadTimeout("timed out", request=request)
            if product_id in self.stock_errors:
                code, message = self.stock_errors[product_id]
                return httpx.Response(code, json={"success": False, "message": message})
            product = self.products.get(product_id)
            if product is None:
                return httpx.Response(404, json={"success": False, "message": "Product not found"})
            quantity = json.loads(request.content)["quantity"]
            product["stock"] -= quantity
            return httpx.Response(
                200, json={"success": True, "data": {"id": product_id, "stock": product["stock"]}}
            )

        if product_id in self.price_timeouts:
            raise httpx.ReadTimeout("timed out", request=request)
        product = self.products.get(product_id)
        if product is None:
            return httpx.Response(404, json={"success": False, "message": "Product not found"})
        return httpx.Response(200, json={"success": True, "data": product})


@pytest.fixture()
def fake_inventory() -> FakeInventory:
    return FakeInventory()


@pytest.fixture()
def inventory(fake_inventory: FakeInventory) -> InventoryClient:
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(fake_inventory.handler),
        base_url=INVENTORY_BASE_URL,
    )
    return InventoryClient(http, price_timeout=5.0, stock_timeout=10.0)


# ─── Database ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Yield a session on a throwaway in-memory database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = SessionLocal(bind=engine)

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def client(db: Session, inventory: InventoryClient) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the test session and the fake inventory."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_inventory_client] = lambda: inventory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ─── Auth helpers ─────────────────────────────────────────────────────────────

SELLER_ID = "seller-1"
OTHER_SELLER_ID = "seller-2"
ADMIN_ID = "admin-1"
CONSULTANT_ID = "consultant-1"
WAREHOUSE_ID = "warehouse-1"


@pytest.fixture()
def seller_token() -> str:
    return create_access_token(subject=SELLER_ID, role=RoleEnum.SELLER.value)


@pytest.fixture()
def other_seller_token() -> str:
    return create_access_token(subject=OTHER_SELLER_ID, role=RoleEnum.SELLER.value)


@pytest.fixture()
def admin_token() -> str:
    return create_access_token(subject=ADMIN_ID, role=RoleEnum.ADMIN.value)


@pytest.fixture()
def consultant_token() -> str:
    return create_access_token(subject=CONSULTANT_ID, role=RoleEnum.CONSULTANT.value)


@pytest.fixture()
def warehouse_token() -> str:
    return create_access_token(subject=WAREHOUSE_ID, role=RoleEnum.WAREHOUSE.value)


def auth(token: str) -> dict[str, str]:
    """Return Authorization header dict."""
    return {"Authorization": f"Bearer {token}"}


# ─── Sale fixtures ────────────────────────────────────────────────────────────


def make_sale(
    db: Session,
    owner_id: str,
    created_at: datetime,
    *,
    price: str = "100",
    quantity: int = 1,
) -> Sale:
    """Persist a pending sale and pin its creation time."""
    sale = create_sale_record(
        db,
        owner_id=owner_id,
        lines=[
            LineItemData(
                product_id=1,
                name="Keyboard",
                quantity=quantity,
                price=Decimal(price),
                purchase_price=Decimal("60"),
            )
        ],
    )
    sale.created_at = created_at
    db.commit()
    return sale


@pytest.fixture()
def seeded_sales(db: Session) -> dict[str, Sale]:
    """Four sales across two sellers and an admin, on distinct days."""
    return {
        "seller_old": make_sale(db, SELLER_ID, datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)),
        "other_seller": make_sale(
            db, OTHER_SELLER_ID, datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
        ),
        "seller_new": make_sale(db, SELLER_ID, datetime(2026, 1, 20, 18, 30, tzinfo=timezone.utc)),
        "admin": make_sale(db, ADMIN_ID, datetime(2026, 1, 31, 23, 59, tzinfo=timezone.utc)),
    }
