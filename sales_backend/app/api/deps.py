from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError

from sales_backend.app.core.security import decode_access_token
from sales_backend.app.schemas.auth import CurrentUser, RoleEnum
from sales_backend.app.services.inventory_client import InventoryClient

# Tokens come from the auth service; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError:
        raise credentials_exception

    # Older tokens carry the id as "userId" or "id" instead of "sub"
    user_id = payload.get("sub") or payload.get("userId") or payload.get("id")
    role = payload.get("role")
    if not user_id or not role:
        raise credentials_exception
    if role not in {r.value for r in RoleEnum}:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail=f"Unknown role: {role}"
        )

    return CurrentUser(
        id=str(user_id),
        role=role,
        email=payload.get("email"),
        authorization=request.headers.get("Authorization", f"Bearer {token}"),
    )


def require_role(*roles: str) -> Callable[..., CurrentUser]:
    """FastAPI dependency factory: the caller's role must be one of ``roles``."""

    def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


def get_inventory_client(request: Request) -> InventoryClient:
    """The process-wide inventory client created in ``main.lifespan``."""
    client: InventoryClient | None = getattr(request.app.state, "inventory_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inventory client not initialised",
        )
    return client
