"""In-memory collaborators shared by the service and endpoint tests."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

from backend.app.core.paper_store import PaperStore, Row
from backend.app.core.providers import AnalyticsSink, ProviderError, RecommendationProvider


def make_paper(paper_id: int, *, field_id: int = 1, day: int = 1, title: Optional[str] = None) -> Row:
    return {
        "paper_id": paper_id,
        "title": title or f"Paper {paper_id}",
        "abstract": f"Abstract for paper {paper_id}",
        "publication_date": f"2024-01-{day:02d}",
        "path": f"/papers/{paper_id}.pdf",
        "field_id": field_id,
        "field_name": f"Field {field_id}",
        "author_count": 1,
        "download_count": 0,
        "average_rating": 0.0,
    }


class StubPaperStore(PaperStore):
    """Dictionary-backed store; batch lookups come back in ascending id order."""

    def __init__(self, papers: Sequence[Row] = (), *, fail: bool = False) -> None:
        self.papers: Dict[int, Row] = {int(p["paper_id"]): dict(p) for p in papers}
        self.fail = fail
        self.calls: List[Tuple[str, Any]] = []
        self.downloads: List[Tuple[int, int]] = []
        self.reviews: Dict[Tuple[int, int], Dict[str, Any]] = {}
        self.keywords: Dict[int, str] = {}

    def _check(self) -> None:
        if self.fail:
            raise RuntimeError("database unavailable")

    async def list_papers(
        self,
        *,
        field_id: Optional[int],
        search: Optional[str],
        offset: int,
        limit: int,
    ) -> Tuple[List[Row], int]:
        self.calls.append(("list_papers", (field_id, search, offset, limit)))
        self._check()
        rows = [
            row
            for row in self.papers.values()
            if (field_id is None or row["field_id"] == field_id)
            and (not search or search.lower() in (row["title"] + row["abstract"]).lower())
        ]
        rows.sort(key=lambda row: (row["publication_date"], row["paper_id"]), reverse=True)
        return rows[offset : offset + limit], len(rows)

    async def get_papers_by_ids(self, paper_ids: Sequence[int]) -> List[Row]:
        self.calls.append(("get_papers_by_ids", list(paper_ids)))
        self._check()
        return [self.papers[pid] for pid in sorted(paper_ids) if pid in self.papers]

    async def search_by_keywords(self, query: str, *, offset: int, limit: int) -> Tuple[List[Row], int]:
        self.calls.append(("search_by_keywords", (query, offset, limit)))
        self._check()
        rows = [self.papers[pid] for pid, words in self.keywords.items() if query.lower() in words.lower()]
        return rows[offset : offset + limit], len(rows)

    async def get_paper(self, paper_id: int) -> Optional[Row]:
        self.calls.append(("get_paper", paper_id))
        self._check()
        row = self.papers.get(paper_id)
        if row is None:
            return None
        detail = {key: value for key, value in row.items() if key != "author_count"}
        ratings = [review["rating"] for (pid, _), review in self.reviews.items() if pid == paper_id]
        detail["review_count"] = len(ratings)
        detail["average_rating"] = sum(ratings) / len(ratings) if ratings else 0.0
        detail["download_count"] = sum(1 for pid, _ in self.downloads if pid == paper_id)
        return detail

    async def get_paper_authors(self, paper_id: int) -> List[Row]:
        return [{"author_id": 1, "first_name": "Ada", "last_name": "Lovelace", "email": None, "country": "UK"}]

    async def get_paper_keywords(self, paper_id: int) -> str:
        return self.keywords.get(paper_id, "")

    async def get_paper_reviews(self, paper_id: int) -> List[Row]:
        return [
            {
                "review_id": review["review_id"],
                "rating": review["rating"],
                "review_date": None,
                "researcher_id": researcher_id,
                "user_name": f"User {researcher_id}",
            }
            for (pid, researcher_id), review in self.reviews.items()
            if pid == paper_id
        ]

    async def get_paper_path(self, paper_id: int) -> Optional[Row]:
        self._check()
        row = self.papers.get(paper_id)
        return {"paper_id": paper_id, "path": row["path"]} if row else None

    async def record_download(self, paper_id: int, researcher_id: int) -> None:
        self.downloads.append((paper_id, researcher_id))

    async def find_review(self, paper_id: int, researcher_id: int) -> Optional[int]:
        review = self.reviews.get((paper_id, researcher_id))
        return review["review_id"] if review else None

    async def update_review(self, review_id: int, rating: int) -> None:
        for review in self.reviews.values():
            if review["review_id"] == review_id:
                review["rating"] = rating

    async def create_review(self, paper_id: int, researcher_id: int, rating: int) -> None:
        self.reviews[(paper_id, researcher_id)] = {"review_id": len(self.reviews) + 1, "rating": rating}

    async def top_rated_by_field(self, limit: int) -> List[Row]:
        self._check()
        return []

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)


class StubRecommendationProvider(RecommendationProvider):
    def __init__(self, paper_ids: Sequence[int] = (), *, error: Optional[Exception] = None, delay: float = 0.0) -> None:
        self.paper_ids = list(paper_ids)
        self.error = error
        self.delay = delay
        self.calls: List[Tuple[Optional[str], int]] = []

    async def recommend(self, user_id: Optional[str], top_n: int) -> List[int]:
        self.calls.append((user_id, top_n))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.paper_ids)


class RecordingSink(AnalyticsSink):
    """Fails the first ``failures`` deliveries, optionally after a delay."""

    def __init__(self, *, failures: int = 0, delay: float = 0.0, gate: Optional[asyncio.Event] = None) -> None:
        self.failures = failures
        self.delay = delay
        self.gate = gate
        self.events: List[Dict[str, Any]] = []

    async def send(self, event: Dict[str, Any]) -> None:
        self.events.append(event)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if len(self.events) <= self.failures:
            raise ProviderError("sink unavailable")


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
