from __future__ import annotations

import gzip
import json
from hashlib import sha256
from typing import Any, Dict, Optional

ANONYMOUS_SCOPE = "anon"


def build_fingerprint(view: str, params: Dict[str, Any]) -> str:
    payload: Dict[str, Any] = {"view": view}
    payload.update(params)
    return json.dumps(payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def build_cache_key(view: str, params: Dict[str, Any], *, schema_version: int = 1) -> str:
    digest = sha256(build_fingerprint(view, params).encode("utf-8")).hexdigest()
    return f"cache:papers:{view}:v{schema_version}:{digest}"


def build_listing_cache_key(
    *,
    page: int,
    limit: int,
    field_id: Optional[int] = None,
    search: Optional[str] = None,
    user_scope: Optional[str] = None,
) -> str:
    """Key for one listing page.

    ``user_scope`` is only set for requests eligible for the personalized feed;
    filtered and searched pages are identical for every caller and share a key.
    """

    params: Dict[str, Any] = {
        "page": int(page),
        "limit": int(limit),
        "fieldId": field_id,
        "search": search,
    }
    if user_scope is not None:
        params["user"] = user_scope
    return build_cache_key("list", params)


def build_search_cache_key(*, query: str, page: int, limit: int) -> str:
    return build_cache_key("search", {"search": query, "page": int(page), "limit": int(limit)})


def build_paper_cache_key(paper_id: int) -> str:
    return build_cache_key("detail", {"paperId": int(paper_id)})


def build_top_rated_cache_key(limit: int) -> str:
    return build_cache_key("topRated", {"limit": int(limit)})


def user_scope_for(user_id: Optional[str]) -> str:
    return str(user_id) if user_id else ANONYMOUS_SCOPE


def serialize_payload(payload: Dict[str, Any]) -> bytes:
    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return gzip.compress(data)


def deserialize_payload(blob: bytes) -> Dict[str, Any]:
    data = gzip.decompress(blob)
    return json.loads(data.decode("utf-8"))
