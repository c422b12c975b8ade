from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sales_backend.app.api.v1.api import api_router
from sales_backend.app.api.v1.endpoints import health
from sales_backend.app.core.config import settings
from sales_backend.app.core.exceptions import PersistenceError
from sales_backend.app.core.logging_config import configure_logging
from sales_backend.app.middleware.request_id import RequestIDMiddleware
from sales_backend.app.services.inventory_client import InventoryClient

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # One HTTP connection pool to the inventory service per process
    app.state.inventory_client = InventoryClient.from_settings()
    logger.info("Inventory client ready for %s", settings.INVENTORY_API_URL)
    try:
        yield
    finally:
        await app.state.inventory_client.aclose()
        app.state.inventory_client = None


app = FastAPI(title="Sales Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Persistence error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "The sale could not be saved"},
    )


def _field_path(loc: Sequence[Any]) -> str | None:
    """``("body", "products", 0, "quantity")`` -> ``"products[0].quantity"``."""
    parts = list(loc)
    if parts and parts[0] in ("body", "query", "path", "header"):
        parts = parts[1:]
    path = ""
    for part in parts:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or None


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed input is a 400 naming the offending field, like SaleValidationError
    errors = [
        {"field": _field_path(err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": errors[0]["message"] if errors else "Invalid request",
            "field": errors[0]["field"] if errors else None,
            "errors": errors,
        },
    )


app.include_router(health.router, tags=["health"])
app.include_router(api_router)
