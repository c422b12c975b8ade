"""Domain errors raised by the sales services.

Endpoints translate these into HTTP responses; services never raise
``HTTPException`` themselves.
"""

from __future__ import annotations

from typing import Any


class SaleValidationError(ValueError):
    """Malformed sale input, rejected before any persistence or network call."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class PricingUnavailableError(Exception):
    """Strict pricing policy: at least one purchase price could not be resolved."""

    def __init__(self, failures: list[dict[str, Any]]) -> None:
        self.failures = failures
        ids = ", ".join(str(f["product_id"]) for f in failures)
        super().__init__(f"Could not resolve purchase price for product(s): {ids}")


class SaleNotFoundError(LookupError):
    pass


class InvalidStatusTransition(Exception):
    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move sale from '{current}' to '{requested}'")


class PersistenceError(Exception):
    """The database rejected a write that upstream validation should have allowed."""
