"""Dependency factories for FastAPI.

Components are plain classes wired here once per process. Factories build
instances lazily so importing the app never opens connections, and tests
replace any of them through ``app.dependency_overrides``.
"""
import logging
from typing import Optional

from backend.app import config
from backend.app.cache import BaseCacheAdapter, InMemoryCacheAdapter
from backend.app.core.feed_service import FeedService
from backend.app.core.paper_service import PaperService
from backend.app.core.paper_store import PaperStore, SqlPaperStore
from backend.app.core.providers import HttpAnalyticsSink, HttpRecommendationProvider
from backend.app.core.recommendations import RecommendationFetcher
from backend.app.core.search_logger import SearchEventLogger


_paper_store: Optional[PaperStore] = None
_cache: Optional[BaseCacheAdapter] = None
_recommendation_fetcher: Optional[RecommendationFetcher] = None
_search_logger: Optional[SearchEventLogger] = None
_feed_service: Optional[FeedService] = None
_paper_service: Optional[PaperService] = None

logger = logging.getLogger("dependencies")


def get_paper_store() -> PaperStore:
    global _paper_store
    if _paper_store is None:
        _paper_store = SqlPaperStore.from_url(config.DATABASE_URL, echo=config.DATABASE_ECHO)
    return _paper_store


def get_cache_dep() -> BaseCacheAdapter:
    global _cache
    if _cache is None:
        logger.info(
            "Initializing in-memory response cache (ttl=%ss, max_entries=%s)",
            config.RESULT_CACHE_TTL_SECONDS,
            config.RESULT_CACHE_MAX_ENTRIES,
        )
        _cache = InMemoryCacheAdapter(
            ttl_seconds=config.RESULT_CACHE_TTL_SECONDS,
            max_entries=config.RESULT_CACHE_MAX_ENTRIES,
        )
    return _cache


def get_recommendation_fetcher() -> RecommendationFetcher:
    global _recommendation_fetcher
    if _recommendation_fetcher is None:
        provider = HttpRecommendationProvider(
            url=config.RECOMMENDER_RECOMMEND_URL,
            timeout=config.RECOMMENDATION_TIMEOUT_SECONDS,
        )
        _recommendation_fetcher = RecommendationFetcher(provider, timeout=config.RECOMMENDATION_TIMEOUT_SECONDS)
    return _recommendation_fetcher


def get_search_logger() -> SearchEventLogger:
    global _search_logger
    if _search_logger is None:
        sink = HttpAnalyticsSink(
            url=config.RECOMMENDER_SEARCH_LOG_URL,
            timeout=config.SEARCH_LOG_TIMEOUT_SECONDS,
        )
        _search_logger = SearchEventLogger(
            sink,
            dedupe_seconds=config.SEARCH_LOG_DEDUPE_SECONDS,
            timeout=config.SEARCH_LOG_TIMEOUT_SECONDS,
        )
    return _search_logger


def get_feed_service_dep() -> FeedService:
    global _feed_service
    if _feed_service is None:
        _feed_service = FeedService(
            get_paper_store(),
            cache=get_cache_dep(),
            recommender=get_recommendation_fetcher(),
            search_logger=get_search_logger(),
            max_recommendations=config.RECOMMENDATION_MAX_RESULTS,
        )
    return _feed_service


def get_paper_service_dep() -> PaperService:
    global _paper_service
    if _paper_service is None:
        _paper_service = PaperService(
            get_paper_store(),
            cache=get_cache_dep(),
            search_logger=get_search_logger(),
        )
    return _paper_service


async def initialize_on_startup() -> None:
    get_feed_service_dep()
    get_paper_service_dep()


async def shutdown_dependencies() -> None:
    global _paper_store, _cache, _recommendation_fetcher, _search_logger, _feed_service, _paper_service
    if _search_logger is not None:
        await _search_logger.drain()
    if isinstance(_paper_store, SqlPaperStore):
        await _paper_store.dispose()
    _paper_store = None
    _cache = None
    _recommendation_fetcher = None
    _search_logger = None
    _feed_service = None
    _paper_service = None
