from __future__ import annotations

import json

import httpx
import pytest

from backend.app.core.providers import (
    HttpAnalyticsSink,
    HttpRecommendationProvider,
    ProviderError,
)
from backend.app.core.recommendations import RecommendationFetcher
from backend.tests.fakes import StubRecommendationProvider

RECOMMEND_URL = "http://recommender.test/api/recommend"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetcher_returns_ranked_ids() -> None:
    provider = StubRecommendationProvider([5, 8, 2, 1])
    fetcher = RecommendationFetcher(provider, timeout=1.0)

    assert await fetcher.fetch_recommendations("42", 50) == [5, 8, 2, 1]
    assert provider.calls == [("42", 50)]


@pytest.mark.asyncio
async def test_fetcher_truncates_to_limit() -> None:
    fetcher = RecommendationFetcher(StubRecommendationProvider(list(range(1, 80))), timeout=1.0)
    assert len(await fetcher.fetch_recommendations(None, 50)) == 50


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [ProviderError("HTTP 503"), RuntimeError("boom"), ValueError("bad payload")],
    ids=["provider", "runtime", "value"],
)
async def test_fetcher_fails_open_on_errors(error: Exception) -> None:
    fetcher = RecommendationFetcher(StubRecommendationProvider(error=error), timeout=1.0)
    assert await fetcher.fetch_recommendations("42", 50) == []


@pytest.mark.asyncio
async def test_fetcher_fails_open_on_timeout() -> None:
    provider = StubRecommendationProvider([1, 2, 3], delay=1.0)
    fetcher = RecommendationFetcher(provider, timeout=0.01)

    assert await fetcher.fetch_recommendations("42", 50) == []
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_http_provider_sends_user_and_top_n() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"recommendations": [{"paper_id": 3, "score": 0.9}, {"paper_id": "7"}, {"score": 0.1}]},
        )

    async with _client(handler) as client:
        provider = HttpRecommendationProvider(url=RECOMMEND_URL, timeout=1.0, client=client)
        paper_ids = await provider.recommend("42", 50)

    assert paper_ids == [3, 7]
    assert seen[0].method == "GET"
    assert seen[0].url.params["user_id"] == "42"
    assert seen[0].url.params["top_n"] == "50"


@pytest.mark.asyncio
async def test_http_provider_omits_user_for_anonymous() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"recommendations": []})

    async with _client(handler) as client:
        provider = HttpRecommendationProvider(url=RECOMMEND_URL, timeout=1.0, client=client)
        assert await provider.recommend(None, 10) == []

    assert "user_id" not in seen[0].url.params


@pytest.mark.asyncio
async def test_http_provider_missing_key_means_no_recommendations() -> None:
    async with _client(lambda request: httpx.Response(200, json={"detail": "cold start"})) as client:
        provider = HttpRecommendationProvider(url=RECOMMEND_URL, timeout=1.0, client=client)
        assert await provider.recommend("42", 10) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "down"}),
        httpx.Response(200, content=b"<html>not json</html>"),
        httpx.Response(200, json=[1, 2, 3]),
        httpx.Response(200, json={"recommendations": "nope"}),
    ],
    ids=["status", "not-json", "not-object", "not-list"],
)
async def test_http_provider_raises_on_unusable_response(response: httpx.Response) -> None:
    async with _client(lambda request: response) as client:
        provider = HttpRecommendationProvider(url=RECOMMEND_URL, timeout=1.0, client=client)
        with pytest.raises(ProviderError):
            await provider.recommend("42", 10)


@pytest.mark.asyncio
async def test_http_provider_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        provider = HttpRecommendationProvider(url=RECOMMEND_URL, timeout=1.0, client=client)
        fetcher = RecommendationFetcher(provider, timeout=1.0)
        with pytest.raises(ProviderError):
            await provider.recommend("42", 10)
        assert await fetcher.fetch_recommendations("42", 10) == []


@pytest.mark.asyncio
async def test_http_sink_posts_json_event() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"ok": True})

    event = {"user_id": "42", "query": "rag", "user_agent": None, "client_ip": None, "timestamp": "t"}
    async with _client(handler) as client:
        sink = HttpAnalyticsSink(url="http://recommender.test/api/interaction/search", timeout=1.0, client=client)
        await sink.send(event)

    assert seen[0].method == "POST"
    assert json.loads(seen[0].content) == event


@pytest.mark.asyncio
async def test_http_sink_raises_on_error_status() -> None:
    async with _client(lambda request: httpx.Response(502)) as client:
        sink = HttpAnalyticsSink(url="http://recommender.test/api/interaction/search", timeout=1.0, client=client)
        with pytest.raises(ProviderError):
            await sink.send({"query": "rag"})
