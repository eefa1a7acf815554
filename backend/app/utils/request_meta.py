from __future__ import annotations

from typing import Optional

from fastapi import Request

from backend.app.core.search_logger import SearchRequestMetadata


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def search_metadata(request: Request) -> SearchRequestMetadata:
    return SearchRequestMetadata(
        user_agent=request.headers.get("user-agent"),
        client_ip=client_ip(request),
    )
