from __future__ import annotations

import pytest

from backend.app.cache import BaseCacheAdapter, CacheError, InMemoryCacheAdapter
from backend.app.core.feed_service import FeedRequest
from backend.app.utils import cache_utils
from backend.tests.fakes import FakeClock


@pytest.mark.asyncio
async def test_inmemory_cache_adapter_roundtrip() -> None:
    adapter = InMemoryCacheAdapter()

    await adapter.put("demo", b"value")
    assert await adapter.exists("demo") is True
    assert await adapter.get("demo") == b"value"

    await adapter.invalidate("demo")
    assert await adapter.get("demo") is None


@pytest.mark.asyncio
async def test_entries_expire_after_ttl_and_are_evicted_on_read() -> None:
    clock = FakeClock()
    adapter = InMemoryCacheAdapter(ttl_seconds=60, clock=clock)

    await adapter.put("page", b"payload")
    clock.advance(59.9)
    assert await adapter.get("page") == b"payload"

    clock.advance(0.1)
    assert await adapter.get("page") is None
    assert len(adapter) == 0


@pytest.mark.asyncio
async def test_exceeding_capacity_evicts_oldest_inserted_entry() -> None:
    adapter = InMemoryCacheAdapter(max_entries=200)

    for index in range(200):
        await adapter.put(f"key-{index}", str(index).encode())
    assert len(adapter) == 200

    # reading does not refresh insertion order
    assert await adapter.get("key-0") == b"0"

    await adapter.put("key-200", b"200")
    assert len(adapter) == 200
    assert await adapter.get("key-0") is None
    assert await adapter.get("key-1") == b"1"
    assert await adapter.get("key-200") == b"200"


@pytest.mark.asyncio
async def test_overwrite_keeps_original_insertion_position() -> None:
    adapter = InMemoryCacheAdapter(max_entries=2)

    await adapter.put("a", b"1")
    await adapter.put("b", b"2")
    await adapter.put("a", b"3")
    await adapter.put("c", b"4")

    assert adapter.keys() == ["b", "c"]


@pytest.mark.asyncio
async def test_invalidate_missing_key_is_noop() -> None:
    adapter = InMemoryCacheAdapter()
    await adapter.invalidate("absent")
    assert len(adapter) == 0


def test_adapter_rejects_invalid_bounds() -> None:
    with pytest.raises(CacheError):
        InMemoryCacheAdapter(ttl_seconds=0)
    with pytest.raises(CacheError):
        InMemoryCacheAdapter(max_entries=0)


@pytest.mark.asyncio
async def test_cache_adapter_contract(adapter: BaseCacheAdapter) -> None:
    await adapter.put("contract", b"data")
    assert await adapter.exists("contract") is True
    value = await adapter.get("contract")
    assert value == b"data"
    await adapter.invalidate("contract")
    assert await adapter.get("contract") is None


def pytest_generate_tests(metafunc: pytest.Metafunc) -> None:
    if "adapter" in metafunc.fixturenames:
        adapters = [InMemoryCacheAdapter()]
        metafunc.parametrize("adapter", adapters, ids=["memory"])


def test_listing_key_is_stable_and_parameter_sensitive() -> None:
    base = FeedRequest(page=1, limit=12, field_id=3, search="graph")
    assert base.cache_key() == FeedRequest(page=1, limit=12, field_id=3, search="graph").cache_key()

    variants = [
        FeedRequest(page=2, limit=12, field_id=3, search="graph"),
        FeedRequest(page=1, limit=20, field_id=3, search="graph"),
        FeedRequest(page=1, limit=12, field_id=4, search="graph"),
        FeedRequest(page=1, limit=12, field_id=3, search="Graph"),
        FeedRequest(page=1, limit=12, field_id=3),
    ]
    keys = {variant.cache_key() for variant in variants}
    assert base.cache_key() not in keys
    assert len(keys) == len(variants)


def test_listing_key_scopes_personalized_feed_by_user() -> None:
    anonymous = FeedRequest(page=1, limit=12).cache_key()
    alice = FeedRequest(page=1, limit=12, user_id="7").cache_key()
    bob = FeedRequest(page=1, limit=12, user_id="8").cache_key()
    assert len({anonymous, alice, bob}) == 3

    # filtered pages are the same for every caller
    assert (
        FeedRequest(page=1, limit=12, search="nlp", user_id="7").cache_key()
        == FeedRequest(page=1, limit=12, search="nlp", user_id="8").cache_key()
    )


def test_cache_keys_hash_parameters() -> None:
    key = cache_utils.build_search_cache_key(query="Smart Speaker", page=1, limit=12)
    assert "Smart" not in key and "Speaker" not in key
    assert key.startswith("cache:papers:search:v1:")
    assert cache_utils.build_paper_cache_key(5) == cache_utils.build_paper_cache_key(5)
    assert cache_utils.build_paper_cache_key(5) != cache_utils.build_paper_cache_key(6)


def test_payload_serialization_roundtrip() -> None:
    payload = {"papers": [{"paper_id": 1, "title": "Über"}], "isRecommendation": True}
    assert cache_utils.deserialize_payload(cache_utils.serialize_payload(payload)) == payload
