"""Mint a bearer token the paper API accepts, for poking at it locally.

    python backend/scripts/make_jwt.py --sub 7 --curl /papers
"""
from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict

import jwt  # type: ignore[import]

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

os.environ.setdefault("APP_JWT_SECRET", "dev-secret")

from backend.app import config


def build_claims(subject: str, role: str, ttl: int, email: str | None = None) -> Dict[str, Any]:
    now = int(time.time())
    claims: Dict[str, Any] = {
        "sub": subject,
        "role": role,
        "iss": config.APP_JWT_ISSUER,
        "aud": config.APP_JWT_AUDIENCE,
        "iat": now,
        "exp": now + max(1, ttl),
    }
    if email:
        claims["email"] = email
    return claims


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Mint a signed token for the paper API")
    p.add_argument("--sub", default="1", help="Researcher user id; downloads and reviews need a numeric id")
    p.add_argument("--role", default="user", choices=["user", "admin"])
    p.add_argument("--ttl", type=int, default=3600, help="Lifetime in seconds")
    p.add_argument("--email", default=None)
    p.add_argument("--curl", metavar="PATH", default=None, help="Print a curl command for PATH instead of the bare token")
    p.add_argument("--base-url", default="http://127.0.0.1:8080")
    return p.parse_args()


def main() -> int:
    args = _parse_args()
    if not config.APP_JWT_SECRET:
        print("ERROR: APP_JWT_SECRET is not set")
        return 1
    if not str(args.sub).isdigit():
        print(f"warning: subject {args.sub!r} is not numeric; download and review calls will get 403", file=sys.stderr)

    token = jwt.encode(
        build_claims(str(args.sub), args.role, args.ttl, args.email),
        config.APP_JWT_SECRET,
        algorithm=config.APP_JWT_ALGORITHM,
    )
    if args.curl:
        print(f"curl -H 'Authorization: Bearer {token}' '{args.base_url.rstrip('/')}{args.curl}'")
    else:
        print(token)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
