from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from backend.app.core.providers import ProviderError, RecommendationProvider, call_with_timeout
from backend.app.utils.observability import record_recommendation_fallback

logger = logging.getLogger(__name__)


class RecommendationFetcher:
    """Best-effort access to the external ranking for the "for you" feed.

    Every failure mode collapses to an empty ranking so the caller falls back
    to the standard feed. There is no retry.
    """

    def __init__(self, provider: RecommendationProvider, *, timeout: float = 5.0) -> None:
        self.provider = provider
        self.timeout = timeout

    async def fetch_recommendations(self, user_id: Optional[str], limit: int) -> List[int]:
        try:
            paper_ids = await call_with_timeout(
                lambda: self.provider.recommend(user_id, limit),
                self.timeout,
            )
        except asyncio.TimeoutError:
            record_recommendation_fallback("timeout")
            logger.warning("Recommendation request timed out after %.1fs", self.timeout)
            return []
        except ProviderError as exc:
            record_recommendation_fallback("provider")
            logger.warning("Recommendation request failed: %s", exc)
            return []
        except Exception as exc:
            record_recommendation_fallback("unexpected")
            logger.warning("Unexpected recommendation failure: %s", exc)
            return []

        if not paper_ids:
            record_recommendation_fallback("empty")
            return []
        return list(paper_ids)[:limit]
