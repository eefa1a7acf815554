from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from backend.app.cache import BaseCacheAdapter
from backend.app.core.paper_store import PaperStore, Row
from backend.app.core.recommendations import RecommendationFetcher
from backend.app.core.search_logger import SearchEventLogger, SearchRequestMetadata
from backend.app.schemas.papers import Pagination, PaperListData, PaperSummary
from backend.app.utils import cache_utils
from backend.app.utils.observability import record_cache_hit, record_cache_miss, record_feed_mode

logger = logging.getLogger(__name__)

CACHE_SCOPE = "listing"


class FeedMode(str, Enum):
    STANDARD = "standard"
    PERSONALIZED = "personalized"


@dataclass(frozen=True)
class FeedRequest:
    page: int
    limit: int
    field_id: Optional[int] = None
    search: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def personalization_eligible(self) -> bool:
        return not self.search and self.field_id is None

    def cache_key(self) -> str:
        user_scope = cache_utils.user_scope_for(self.user_id) if self.personalization_eligible else None
        return cache_utils.build_listing_cache_key(
            page=self.page,
            limit=self.limit,
            field_id=self.field_id,
            search=self.search,
            user_scope=user_scope,
        )


@dataclass
class FeedPage:
    items: List[Row]
    page: int
    limit: int
    total: int
    mode: FeedMode = FeedMode.STANDARD
    ranking: List[int] = field(default_factory=list)

    @property
    def is_personalized(self) -> bool:
        return self.mode is FeedMode.PERSONALIZED

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_response(self) -> PaperListData:
        return PaperListData(
            papers=[PaperSummary(**item) for item in self.items],
            pagination=Pagination(
                page=self.page,
                limit=self.limit,
                total=self.total,
                pages=self.total_pages,
            ),
            isRecommendation=self.is_personalized,
        )


def reorder_by_ranking(ranked_ids: Sequence[int], rows: Iterable[Row]) -> List[Row]:
    """Return ``rows`` in ``ranked_ids`` order, dropping ids with no row."""

    by_id = {int(row["paper_id"]): row for row in rows}
    return [by_id[paper_id] for paper_id in ranked_ids if paper_id in by_id]


class FeedService:
    """Composes the paper listing, blending in the "for you" ranking.

    Requests without a search term or field filter try the personalized feed
    first; an empty ranking falls back to the chronological listing. Once a
    ranking exists, later pages past its end come back empty rather than
    switching to the chronological order mid-browse.
    """

    def __init__(
        self,
        store: PaperStore,
        *,
        cache: Optional[BaseCacheAdapter] = None,
        recommender: Optional[RecommendationFetcher] = None,
        search_logger: Optional[SearchEventLogger] = None,
        max_recommendations: int = 50,
    ) -> None:
        self.store = store
        self.cache = cache
        self.recommender = recommender
        self.search_logger = search_logger
        self.max_recommendations = max_recommendations

    async def list_papers(
        self,
        request: FeedRequest,
        *,
        metadata: Optional[SearchRequestMetadata] = None,
    ) -> PaperListData:
        if request.search and self.search_logger is not None:
            self.search_logger.spawn(request.user_id, request.search, metadata)

        cache_key = request.cache_key()
        cached = await self._get_cached(cache_key)
        if cached is not None:
            logger.debug("Cache hit for listing key %s", cache_key)
            return cached

        page = await self.compose(request)
        record_feed_mode(page.mode.value)
        response = page.to_response()
        await self._store_cached(cache_key, response)
        return response

    async def compose(self, request: FeedRequest) -> FeedPage:
        ranking = await self._fetch_ranking(request)

        if ranking:
            window = ranking[request.offset : request.offset + request.limit]
            if window:
                rows = await self.store.get_papers_by_ids(window)
                return FeedPage(
                    items=reorder_by_ranking(window, rows),
                    page=request.page,
                    limit=request.limit,
                    total=len(ranking),
                    mode=FeedMode.PERSONALIZED,
                    ranking=list(ranking),
                )
            if request.page > 1:
                return FeedPage(
                    items=[],
                    page=request.page,
                    limit=request.limit,
                    total=len(ranking),
                    mode=FeedMode.PERSONALIZED,
                    ranking=list(ranking),
                )
            logger.info("Ranking too sparse for a first page; serving standard feed")

        rows, total = await self.store.list_papers(
            field_id=request.field_id,
            search=request.search,
            offset=request.offset,
            limit=request.limit,
        )
        return FeedPage(items=rows, page=request.page, limit=request.limit, total=total)

    async def _fetch_ranking(self, request: FeedRequest) -> List[int]:
        if not request.personalization_eligible or self.recommender is None:
            return []
        return await self.recommender.fetch_recommendations(request.user_id, self.max_recommendations)

    async def _get_cached(self, cache_key: str) -> Optional[PaperListData]:
        if self.cache is None:
            return None
        blob = await self.cache.get(cache_key)
        if blob is None:
            record_cache_miss(CACHE_SCOPE)
            return None
        try:
            data: Dict[str, Any] = cache_utils.deserialize_payload(blob)
            response = PaperListData(**data)
        except Exception as exc:
            logger.warning("Failed to decode cached listing %s: %s", cache_key, exc)
            await self.cache.invalidate(cache_key)
            return None
        record_cache_hit(CACHE_SCOPE)
        return response

    async def _store_cached(self, cache_key: str, response: PaperListData) -> None:
        if self.cache is None:
            return
        blob = cache_utils.serialize_payload(response.model_dump(mode="json"))
        await self.cache.put(cache_key, blob)
