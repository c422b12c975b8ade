"""Mint a bearer token for local testing against the sales API.

Tokens are normally issued by the auth service; this signs one with the
local ``SECRET_KEY`` so the API can be exercised without it.

Usage:
    python -m sales_backend.scripts.issue_token seller-1 SELLER
    python -m sales_backend.scripts.issue_token admin-1 ADMIN --minutes 30
"""

from __future__ import annotations

import argparse
from datetime import timedelta

from sales_backend.app.core.security import create_access_token
from sales_backend.app.schemas.auth import RoleEnum


def main(argv: list[str] | None = None) -> str:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("user_id")
    parser.add_argument("role", choices=[r.value for r in RoleEnum])
    parser.add_argument("--email", default=None)
    parser.add_argument("--minutes", type=int, default=None, help="Lifetime (default from settings)")
    args = parser.parse_args(argv)

    extra = {"email": args.email} if args.email else {}
    token = create_access_token(
        subject=args.user_id,
        role=args.role,
        expires_delta=timedelta(minutes=args.minutes) if args.minutes else None,
        **extra,
    )
    print(token)
    return token


if __name__ == "__main__":
    main()
