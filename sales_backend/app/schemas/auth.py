from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class RoleEnum(str, Enum):
    ADMIN = "ADMIN"
    SELLER = "SELLER"
    CONSULTANT = "CONSULTANT"
    WAREHOUSE = "WAREHOUSE"


class CurrentUser(BaseModel):
    """Caller identity taken from a verified bearer token."""

    id: str
    role: str
    email: str | None = None
    # Raw ``Authorization`` header, forwarded to the inventory service
    authorization: str
