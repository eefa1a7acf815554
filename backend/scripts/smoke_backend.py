"""Lightweight smoke checks for the FastAPI application.

This script exercises the root endpoint and the paper listing using FastAPI's
TestClient so we can validate critical integrations without running the ASGI
server. Point DATABASE_URL at a database prepared with init_db.py first.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

os.environ.setdefault("APP_JWT_SECRET", "smoke-secret")

from backend.app.main import app  # type: ignore[import]


def main() -> None:
    with TestClient(app) as client:
        root_response = client.get("/")
        print("/ status", root_response.status_code, root_response.json())

        listing = client.get("/papers", params={"page": 1, "limit": 5})
        print("/papers status", listing.status_code)
        body = listing.json()
        print("listing message", body.get("message"))
        data = body.get("data") or {}
        print("isRecommendation", data.get("isRecommendation"), "pagination", data.get("pagination"))


if __name__ == "__main__":
    main()
