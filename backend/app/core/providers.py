"""Outbound capability interfaces for the recommender service.

Each provider exposes a single coroutine that raises on any failure; the
fail-open policy lives in the callers (`RecommendationFetcher`,
`SearchEventLogger`) so it can be tested against fake providers.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderError(RuntimeError):
    """Raised when an external provider answers with an unusable response."""


async def call_with_timeout(factory: Callable[[], Awaitable[T]], timeout: float) -> T:
    """Run one provider call, cancelling it once ``timeout`` seconds elapse."""

    return await asyncio.wait_for(factory(), timeout=timeout)


class RecommendationProvider:
    async def recommend(self, user_id: Optional[str], top_n: int) -> List[int]:
        raise NotImplementedError


class AnalyticsSink:
    async def send(self, event: Dict[str, Any]) -> None:
        raise NotImplementedError


class _HttpProvider:
    def __init__(self, *, url: str, timeout: float, client: Optional[httpx.AsyncClient] = None) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client

    async def _request(self, method: str, **kwargs: Any) -> httpx.Response:
        client = self._client
        owns_client = False
        if client is None:
            client = httpx.AsyncClient(timeout=self._timeout)
            owns_client = True

        try:
            response = await client.request(method, self._url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderError(f"{method} {self._url} failed: {exc}") from exc
        finally:
            if owns_client:
                await client.aclose()

        if response.status_code >= 400:
            raise ProviderError(f"{method} {self._url} responded with HTTP {response.status_code}")
        return response


class HttpRecommendationProvider(_HttpProvider, RecommendationProvider):
    """Calls ``GET <url>?user_id&top_n`` and reads ``recommendations[].paper_id``."""

    async def recommend(self, user_id: Optional[str], top_n: int) -> List[int]:
        params: Dict[str, Any] = {"top_n": top_n}
        if user_id:
            params["user_id"] = user_id

        response = await self._request("GET", params=params)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("Recommendation payload is not valid JSON") from exc

        if not isinstance(payload, dict):
            raise ProviderError("Recommendation payload is not an object")
        recommendations = payload.get("recommendations")
        if recommendations is None:
            return []
        if not isinstance(recommendations, list):
            raise ProviderError("recommendations must be a list")

        paper_ids: List[int] = []
        for item in recommendations:
            if not isinstance(item, dict):
                continue
            try:
                paper_ids.append(int(item["paper_id"]))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed recommendation entry %r", item)
        return paper_ids


class HttpAnalyticsSink(_HttpProvider, AnalyticsSink):
    """Posts search events as JSON to the recommender's interaction endpoint."""

    async def send(self, event: Dict[str, Any]) -> None:
        await self._request("POST", json=event)
