"""HTTP client for the inventory (products / stock) service."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from sales_backend.app.core.config import settings
from sales_backend.app.models.sale import MAX_AMOUNT


class InventoryApiError(Exception):
    """Any failure talking to the inventory service.

    ``status_code`` is ``None`` for transport-level failures (timeouts,
    refused connections) where no response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class InventoryClient:
    """Thin wrapper around a long-lived ``httpx.AsyncClient``.

    The underlying client is created once per process (see ``main.lifespan``)
    and closed at shutdown; tests pass one built on ``httpx.MockTransport``.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        price_timeout: float | None = None,
        stock_timeout: float | None = None,
    ) -> None:
        self.http = http
        self.price_timeout = (
            price_timeout if price_timeout is not None else settings.PRICE_LOOKUP_TIMEOUT_SECONDS
        )
        self.stock_timeout = (
            stock_timeout if stock_timeout is not None else settings.STOCK_UPDATE_TIMEOUT_SECONDS
        )

    @classmethod
    def from_settings(cls) -> InventoryClient:
        http = httpx.AsyncClient(
            base_url=settings.INVENTORY_API_URL,
            headers={"Accept": "application/json"},
        )
        return cls(http)

    async def aclose(self) -> None:
        await self.http.aclose()

    @staticmethod
    def _handle_response(resp: httpx.Response) -> Any:
        """Return the decoded JSON body or raise ``InventoryApiError``.

        Error bodies look like ``{"message": "..."}``; that message is
        preferred over the bare status line.
        """
        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code >= 400:
            message = None
            if isinstance(data, dict):
                message = data.get("message") or data.get("detail")
            if not message:
                message = resp.text[:200] if resp.text else f"HTTP {resp.status_code}"
            raise InventoryApiError(str(message), status_code=resp.status_code)

        if data is None:
            raise InventoryApiError(
                f"Non-JSON response: {resp.text[:200] if resp.text else '(empty)'}",
                status_code=resp.status_code,
            )
        return data

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = await self.http.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise InventoryApiError(f"Timed out calling inventory service: {exc!r}") from exc
        except httpx.HTTPError as exc:
            raise InventoryApiError(f"Inventory service unreachable: {exc}") from exc
        return self._handle_response(resp)

    async def get_product(self, product_id: int) -> dict[str, Any]:
        data = await self._request(
            "GET", f"/products/{product_id}", timeout=self.price_timeout
        )
        # The inventory service wraps payloads as {"success": ..., "data": {...}}
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        if not isinstance(data, dict):
            raise InventoryApiError(f"Unexpected product payload for {product_id}")
        return data

    async def get_purchase_price(self, product_id: int) -> Decimal:
        product = await self.get_product(product_id)
        raw = product.get("purchase_price")
        if raw is None or isinstance(raw, bool):
            raise InventoryApiError(f"Product {product_id} has no purchase_price")
        try:
            price = Decimal(str(raw))
        except InvalidOperation as exc:
            raise InventoryApiError(
                f"Invalid purchase_price for product {product_id}: {raw!r}"
            ) from exc
        if not price.is_finite() or price < 0 or price >= MAX_AMOUNT:
            raise InventoryApiError(f"Invalid purchase_price for product {product_id}: {raw!r}")
        return price

    async def decrease_stock(
        self, product_id: int, quantity: int, authorization: str | None
    ) -> Any:
        headers = {"Content-Type": "application/json"}
        if authorization:
            headers["Authorization"] = authorization
        return await self._request(
            "PATCH",
            f"/products/{product_id}/decrease-stock",
            json={"quantity": quantity},
            headers=headers,
            timeout=self.stock_timeout,
        )
