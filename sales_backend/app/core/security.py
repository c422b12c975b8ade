from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt

from sales_backend.app.core.config import settings

# Tokens are issued by the auth service; this module only needs to read them.
# ``create_access_token`` exists for local tooling and tests.


def create_access_token(
    subject: str,
    role: str,
    expires_delta: timedelta | None = None,
    **extra_claims: Any,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": subject, "role": role, "exp": expire, **extra_claims}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a bearer token.

    Raises ``jose.JWTError`` (including ``ExpiredSignatureError``) on an
    invalid, tampered or expired token.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
