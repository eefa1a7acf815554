from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Dict, Optional

from backend.app.cache import BaseCacheAdapter
from backend.app.core.paper_store import PaperStore
from backend.app.core.search_logger import SearchEventLogger, SearchRequestMetadata
from backend.app.schemas.papers import (
    DownloadData,
    Pagination,
    PaperDetail,
    PaperSummary,
    SearchResultData,
    TopRatedData,
    TopRatedPaper,
)
from backend.app.utils import cache_utils
from backend.app.utils.observability import record_cache_hit, record_cache_miss

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class PaperNotFoundError(LookupError):
    def __init__(self, paper_id: int) -> None:
        super().__init__(f"Paper {paper_id} not found")
        self.paper_id = paper_id


class InvalidRatingError(ValueError):
    pass


class PaperService:
    """Keyword search, detail views and the interactions that invalidate them."""

    def __init__(
        self,
        store: PaperStore,
        *,
        cache: Optional[BaseCacheAdapter] = None,
        search_logger: Optional[SearchEventLogger] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.search_logger = search_logger

    async def search_papers(
        self,
        query: str,
        *,
        page: int,
        limit: int,
        user_id: Optional[str] = None,
        metadata: Optional[SearchRequestMetadata] = None,
    ) -> SearchResultData:
        if self.search_logger is not None:
            self.search_logger.spawn(user_id, query, metadata)

        cache_key = cache_utils.build_search_cache_key(query=query, page=page, limit=limit)
        cached = await self._get_cached(cache_key, "search")
        if cached is not None:
            return SearchResultData(**cached)

        rows, total = await self.store.search_by_keywords(query, offset=(page - 1) * limit, limit=limit)
        response = SearchResultData(
            papers=[PaperSummary(**row) for row in rows],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        )
        await self._store_cached(cache_key, response.model_dump(mode="json"))
        return response

    async def get_paper(self, paper_id: int) -> PaperDetail:
        cache_key = cache_utils.build_paper_cache_key(paper_id)
        cached = await self._get_cached(cache_key, "detail")
        if cached is not None:
            return PaperDetail(**cached)

        paper = await self.store.get_paper(paper_id)
        if paper is None:
            raise PaperNotFoundError(paper_id)

        authors, keywords, reviews = await asyncio.gather(
            self.store.get_paper_authors(paper_id),
            self.store.get_paper_keywords(paper_id),
            self.store.get_paper_reviews(paper_id),
        )
        detail = PaperDetail(**paper, authors=authors, keywords=keywords or "", reviews=reviews)
        await self._store_cached(cache_key, detail.model_dump(mode="json"))
        return detail

    async def top_rated_by_field(self, limit: int) -> TopRatedData:
        cache_key = cache_utils.build_top_rated_cache_key(limit)
        cached = await self._get_cached(cache_key, "top_rated")
        if cached is not None:
            return TopRatedData(**cached)

        rows = await self.store.top_rated_by_field(limit)
        response = TopRatedData(papers=[TopRatedPaper(**row) for row in rows])
        await self._store_cached(cache_key, response.model_dump(mode="json"))
        return response

    async def record_download(self, paper_id: int, researcher_id: int) -> DownloadData:
        paper = await self.store.get_paper_path(paper_id)
        if paper is None:
            raise PaperNotFoundError(paper_id)

        await self.store.record_download(paper_id, researcher_id)
        await self.invalidate_paper(paper_id)
        return DownloadData(path=paper.get("path"))

    async def submit_review(self, paper_id: int, researcher_id: int, rating: Optional[int]) -> bool:
        """Create or update the caller's review; returns True when a new review was created."""

        if rating is None or not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidRatingError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

        if await self.store.get_paper_path(paper_id) is None:
            raise PaperNotFoundError(paper_id)

        review_id = await self.store.find_review(paper_id, researcher_id)
        if review_id is not None:
            await self.store.update_review(review_id, rating)
            created = False
        else:
            await self.store.create_review(paper_id, researcher_id, rating)
            created = True

        await self.invalidate_paper(paper_id)
        return created

    async def invalidate_paper(self, paper_id: int) -> None:
        if self.cache is None:
            return
        await self.cache.invalidate(cache_utils.build_paper_cache_key(paper_id))

    async def _get_cached(self, cache_key: str, scope: str) -> Optional[Dict[str, Any]]:
        if self.cache is None:
            return None
        blob = await self.cache.get(cache_key)
        if blob is None:
            record_cache_miss(scope)
            return None
        record_cache_hit(scope)
        return cache_utils.deserialize_payload(blob)

    async def _store_cached(self, cache_key: str, payload: Dict[str, Any]) -> None:
        if self.cache is None:
            return
        await self.cache.put(cache_key, cache_utils.serialize_payload(payload))
