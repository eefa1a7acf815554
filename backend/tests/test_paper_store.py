from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy import text

from backend.app.core.paper_store import SqlPaperStore

_SEED = (
    "INSERT INTO Field (Field_ID, Field_Name) VALUES (1, 'Machine Learning'), (2, 'Databases')",
    """
    INSERT INTO Paper (Paper_ID, Title, Abstract, Publication_Date, Path, Field_ID) VALUES
        (1, 'Attention Is Enough', 'Transformers everywhere.', '2023-05-01', '/papers/1.pdf', 1),
        (2, 'Query Optimization Revisited', 'Cost models.', '2022-11-12', '/papers/2.pdf', 2),
        (3, 'Contrastive Pretraining', 'Self-supervised attention.', '2024-02-20', '/papers/3.pdf', 1),
        (4, 'Index Tuning', 'Learned indexes.', '2024-03-01', '/papers/4.pdf', 2)
    """,
    """
    INSERT INTO Paper_Keywords (Paper_ID, Keywords) VALUES
        (1, 'transformers, attention'), (2, 'databases, optimizer'),
        (3, 'contrastive, attention'), (4, 'databases, indexing')
    """,
    "INSERT INTO Author (Author_ID, First_Name, Last_Name, Email, Country) VALUES (1, 'Ada', 'Lovelace', NULL, 'UK')",
    "INSERT INTO Author_Paper (Author_ID, Paper_ID) VALUES (1, 1), (1, 3)",
    "INSERT INTO \"User\" (User_ID, Name) VALUES (7, 'Grace'), (8, 'Alan')",
)


@pytest_asyncio.fixture
async def store(tmp_path) -> AsyncIterator[SqlPaperStore]:
    paper_store = SqlPaperStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'papers.db'}")
    await paper_store.create_schema()
    async with paper_store.engine.begin() as conn:
        for statement in _SEED:
            await conn.execute(text(statement))
    yield paper_store
    await paper_store.dispose()


@pytest.mark.asyncio
async def test_list_papers_newest_first_with_total(store: SqlPaperStore) -> None:
    rows, total = await store.list_papers(field_id=None, search=None, offset=0, limit=2)

    assert total == 4
    assert [row["paper_id"] for row in rows] == [4, 3]
    assert rows[1]["author_count"] == 1
    assert rows[1]["field_name"] == "Machine Learning"


@pytest.mark.asyncio
async def test_list_papers_filters(store: SqlPaperStore) -> None:
    by_field, field_total = await store.list_papers(field_id=2, search=None, offset=0, limit=10)
    by_text, text_total = await store.list_papers(field_id=None, search="attention", offset=0, limit=10)

    assert field_total == 2
    assert {row["paper_id"] for row in by_field} == {2, 4}
    assert text_total == 2
    assert [row["paper_id"] for row in by_text] == [3, 1]


@pytest.mark.asyncio
async def test_get_papers_by_ids_ignores_unknown(store: SqlPaperStore) -> None:
    rows = await store.get_papers_by_ids([3, 99, 1])

    assert {row["paper_id"] for row in rows} == {1, 3}
    assert await store.get_papers_by_ids([]) == []


@pytest.mark.asyncio
async def test_keyword_search(store: SqlPaperStore) -> None:
    rows, total = await store.search_by_keywords("attention", offset=0, limit=10)

    assert total == 2
    assert {row["paper_id"] for row in rows} == {1, 3}


@pytest.mark.asyncio
async def test_paper_detail_parts(store: SqlPaperStore) -> None:
    paper = await store.get_paper(1)

    assert paper is not None
    assert paper["title"] == "Attention Is Enough"
    assert paper["review_count"] == 0
    assert await store.get_paper(99) is None
    assert await store.get_paper_keywords(1) == "transformers, attention"
    assert await store.get_paper_keywords(99) == ""
    authors = await store.get_paper_authors(1)
    assert [author["last_name"] for author in authors] == ["Lovelace"]


@pytest.mark.asyncio
async def test_downloads_and_reviews(store: SqlPaperStore) -> None:
    await store.record_download(1, 7)
    await store.record_download(1, 8)
    assert await store.find_review(1, 7) is None
    await store.create_review(1, 7, 3)
    review_id = await store.find_review(1, 7)
    assert review_id is not None
    await store.update_review(review_id, 5)
    await store.create_review(1, 8, 4)

    paper = await store.get_paper(1)
    reviews = await store.get_paper_reviews(1)

    assert paper["download_count"] == 2
    assert paper["review_count"] == 2
    assert paper["average_rating"] == pytest.approx(4.5)
    assert {(review["researcher_id"], review["rating"]) for review in reviews} == {(7, 5), (8, 4)}


@pytest.mark.asyncio
async def test_top_rated_per_field(store: SqlPaperStore) -> None:
    await store.create_review(1, 7, 5)
    await store.create_review(3, 7, 3)
    await store.create_review(2, 7, 4)

    rows = await store.top_rated_by_field(1)

    assert [(row["field_name"], row["paper_id"]) for row in rows] == [("Databases", 2), ("Machine Learning", 1)]
    assert (await store.get_paper_path(4))["path"] == "/papers/4.pdf"
    assert await store.get_paper_path(99) is None
