"""Paper catalog queries.

`PaperStore` is the access interface the services depend on; `SqlPaperStore`
implements it on SQLAlchemy's asyncio engine with parameterized statements.
Errors are not caught here: a failing query is a hard failure for the caller.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

_SUMMARY_COLUMNS = """
    p.Paper_ID AS paper_id,
    p.Title AS title,
    p.Abstract AS abstract,
    p.Publication_Date AS publication_date,
    p.Path AS path,
    f.Field_ID AS field_id,
    f.Field_Name AS field_name,
    COALESCE((SELECT COUNT(*) FROM Author_Paper ap WHERE ap.Paper_ID = p.Paper_ID), 0) AS author_count,
    COALESCE((SELECT COUNT(*) FROM "Download" d WHERE d.Paper_ID = p.Paper_ID), 0) AS download_count,
    COALESCE((SELECT AVG(CAST(r.Rating AS FLOAT)) FROM Review r WHERE r.Paper_ID = p.Paper_ID), 0) AS average_rating
"""

_KEYWORD_MATCH = """
    EXISTS (
        SELECT 1 FROM Paper_Keywords pk
        WHERE pk.Paper_ID = p.Paper_ID AND pk.Keywords LIKE :search
    )
"""

_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS Field (
        Field_ID INTEGER PRIMARY KEY,
        Field_Name VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Paper (
        Paper_ID INTEGER PRIMARY KEY,
        Title VARCHAR(500) NOT NULL,
        Abstract TEXT,
        Publication_Date DATE,
        Path VARCHAR(1000),
        Field_ID INTEGER REFERENCES Field (Field_ID)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Author (
        Author_ID INTEGER PRIMARY KEY,
        First_Name VARCHAR(255),
        Last_Name VARCHAR(255),
        Email VARCHAR(255),
        Country VARCHAR(255)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Author_Paper (
        Author_ID INTEGER NOT NULL REFERENCES Author (Author_ID),
        Paper_ID INTEGER NOT NULL REFERENCES Paper (Paper_ID),
        PRIMARY KEY (Author_ID, Paper_ID)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Paper_Keywords (
        Paper_ID INTEGER NOT NULL REFERENCES Paper (Paper_ID),
        Keywords VARCHAR(1000) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS "User" (
        User_ID INTEGER PRIMARY KEY,
        Name VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS "Download" (
        Download_ID INTEGER PRIMARY KEY,
        Paper_ID INTEGER NOT NULL REFERENCES Paper (Paper_ID),
        Researcher_ID INTEGER NOT NULL,
        Download_Date TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Review (
        Review_ID INTEGER PRIMARY KEY,
        Paper_ID INTEGER NOT NULL REFERENCES Paper (Paper_ID),
        Researcher_ID INTEGER NOT NULL,
        Rating INTEGER NOT NULL,
        Review_Date TIMESTAMP
    )
    """,
)


def _filter_clause(field_id: Optional[int], search: Optional[str]) -> Tuple[str, Dict[str, Any]]:
    conditions = ["1=1"]
    params: Dict[str, Any] = {}
    if field_id is not None:
        conditions.append("p.Field_ID = :field_id")
        params["field_id"] = field_id
    if search:
        conditions.append("(p.Title LIKE :search OR p.Abstract LIKE :search)")
        params["search"] = f"%{search}%"
    return " AND ".join(conditions), params


class PaperStore:
    async def list_papers(
        self,
        *,
        field_id: Optional[int],
        search: Optional[str],
        offset: int,
        limit: int,
    ) -> Tuple[List[Row], int]:
        raise NotImplementedError

    async def get_papers_by_ids(self, paper_ids: Sequence[int]) -> List[Row]:
        raise NotImplementedError

    async def search_by_keywords(self, query: str, *, offset: int, limit: int) -> Tuple[List[Row], int]:
        raise NotImplementedError

    async def get_paper(self, paper_id: int) -> Optional[Row]:
        raise NotImplementedError

    async def get_paper_authors(self, paper_id: int) -> List[Row]:
        raise NotImplementedError

    async def get_paper_keywords(self, paper_id: int) -> str:
        raise NotImplementedError

    async def get_paper_reviews(self, paper_id: int) -> List[Row]:
        raise NotImplementedError

    async def get_paper_path(self, paper_id: int) -> Optional[Row]:
        raise NotImplementedError

    async def record_download(self, paper_id: int, researcher_id: int) -> None:
        raise NotImplementedError

    async def find_review(self, paper_id: int, researcher_id: int) -> Optional[int]:
        raise NotImplementedError

    async def update_review(self, review_id: int, rating: int) -> None:
        raise NotImplementedError

    async def create_review(self, paper_id: int, researcher_id: int, rating: int) -> None:
        raise NotImplementedError

    async def top_rated_by_field(self, limit: int) -> List[Row]:
        raise NotImplementedError


class SqlPaperStore(PaperStore):
    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False) -> "SqlPaperStore":
        logger.info("Creating paper store engine for %s", url.split("://", 1)[0])
        return cls(create_async_engine(url, echo=echo, pool_pre_ping=True))

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            for statement in _SCHEMA_STATEMENTS:
                await conn.execute(text(statement))

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def _fetch_all(self, statement: Any, params: Optional[Dict[str, Any]] = None) -> List[Row]:
        async with self.engine.connect() as conn:
            result = await conn.execute(statement, params or {})
            return [dict(row._mapping) for row in result]

    async def _fetch_scalar(self, statement: Any, params: Optional[Dict[str, Any]] = None) -> Any:
        async with self.engine.connect() as conn:
            result = await conn.execute(statement, params or {})
            return result.scalar()

    async def _execute(self, statement: Any, params: Dict[str, Any]) -> None:
        async with self.engine.begin() as conn:
            await conn.execute(statement, params)

    async def list_papers(
        self,
        *,
        field_id: Optional[int],
        search: Optional[str],
        offset: int,
        limit: int,
    ) -> Tuple[List[Row], int]:
        where, params = _filter_clause(field_id, search)
        rows = await self._fetch_all(
            text(
                f"""
                SELECT {_SUMMARY_COLUMNS}
                FROM Paper p
                LEFT JOIN Field f ON p.Field_ID = f.Field_ID
                WHERE {where}
                ORDER BY p.Publication_Date DESC, p.Paper_ID DESC
                LIMIT :limit OFFSET :offset
                """
            ),
            {**params, "limit": limit, "offset": offset},
        )
        total = await self._fetch_scalar(
            text(f"SELECT COUNT(*) FROM Paper p WHERE {where}"),
            params,
        )
        return rows, int(total or 0)

    async def get_papers_by_ids(self, paper_ids: Sequence[int]) -> List[Row]:
        if not paper_ids:
            return []
        statement = text(
            f"""
            SELECT {_SUMMARY_COLUMNS}
            FROM Paper p
            LEFT JOIN Field f ON p.Field_ID = f.Field_ID
            WHERE p.Paper_ID IN :ids
            """
        ).bindparams(bindparam("ids", expanding=True))
        return await self._fetch_all(statement, {"ids": list(paper_ids)})

    async def search_by_keywords(self, query: str, *, offset: int, limit: int) -> Tuple[List[Row], int]:
        params = {"search": f"%{query}%"}
        rows = await self._fetch_all(
            text(
                f"""
                SELECT {_SUMMARY_COLUMNS}
                FROM Paper p
                LEFT JOIN Field f ON p.Field_ID = f.Field_ID
                WHERE {_KEYWORD_MATCH}
                ORDER BY average_rating DESC, download_count DESC, publication_date DESC
                LIMIT :limit OFFSET :offset
                """
            ),
            {**params, "limit": limit, "offset": offset},
        )
        total = await self._fetch_scalar(
            text(f"SELECT COUNT(*) FROM Paper p WHERE {_KEYWORD_MATCH}"),
            params,
        )
        return rows, int(total or 0)

    async def get_paper(self, paper_id: int) -> Optional[Row]:
        rows = await self._fetch_all(
            text(
                """
                SELECT
                    p.Paper_ID AS paper_id,
                    p.Title AS title,
                    p.Abstract AS abstract,
                    p.Publication_Date AS publication_date,
                    p.Path AS path,
                    p.Field_ID AS field_id,
                    f.Field_Name AS field_name,
                    COALESCE((SELECT COUNT(*) FROM "Download" d WHERE d.Paper_ID = p.Paper_ID), 0) AS download_count,
                    COALESCE((SELECT AVG(CAST(r.Rating AS FLOAT)) FROM Review r WHERE r.Paper_ID = p.Paper_ID), 0) AS average_rating,
                    COALESCE((SELECT COUNT(*) FROM Review r WHERE r.Paper_ID = p.Paper_ID), 0) AS review_count
                FROM Paper p
                LEFT JOIN Field f ON p.Field_ID = f.Field_ID
                WHERE p.Paper_ID = :paper_id
                """
            ),
            {"paper_id": paper_id},
        )
        return rows[0] if rows else None

    async def get_paper_authors(self, paper_id: int) -> List[Row]:
        return await self._fetch_all(
            text(
                """
                SELECT
                    a.Author_ID AS author_id,
                    a.First_Name AS first_name,
                    a.Last_Name AS last_name,
                    a.Email AS email,
                    a.Country AS country
                FROM Author a
                INNER JOIN Author_Paper ap ON a.Author_ID = ap.Author_ID
                WHERE ap.Paper_ID = :paper_id
                """
            ),
            {"paper_id": paper_id},
        )

    async def get_paper_keywords(self, paper_id: int) -> str:
        rows = await self._fetch_all(
            text("SELECT Keywords AS keywords FROM Paper_Keywords WHERE Paper_ID = :paper_id"),
            {"paper_id": paper_id},
        )
        return rows[0]["keywords"] if rows else ""

    async def get_paper_reviews(self, paper_id: int) -> List[Row]:
        return await self._fetch_all(
            text(
                """
                SELECT
                    r.Review_ID AS review_id,
                    r.Rating AS rating,
                    r.Review_Date AS review_date,
                    r.Researcher_ID AS researcher_id,
                    u.Name AS user_name
                FROM Review r
                INNER JOIN "User" u ON r.Researcher_ID = u.User_ID
                WHERE r.Paper_ID = :paper_id
                ORDER BY r.Review_Date DESC
                """
            ),
            {"paper_id": paper_id},
        )

    async def get_paper_path(self, paper_id: int) -> Optional[Row]:
        rows = await self._fetch_all(
            text("SELECT Paper_ID AS paper_id, Path AS path FROM Paper WHERE Paper_ID = :paper_id"),
            {"paper_id": paper_id},
        )
        return rows[0] if rows else None

    async def record_download(self, paper_id: int, researcher_id: int) -> None:
        await self._execute(
            text(
                """
                INSERT INTO "Download" (Paper_ID, Researcher_ID, Download_Date)
                VALUES (:paper_id, :researcher_id, CURRENT_TIMESTAMP)
                """
            ),
            {"paper_id": paper_id, "researcher_id": researcher_id},
        )

    async def find_review(self, paper_id: int, researcher_id: int) -> Optional[int]:
        review_id = await self._fetch_scalar(
            text(
                "SELECT Review_ID FROM Review WHERE Paper_ID = :paper_id AND Researcher_ID = :researcher_id"
            ),
            {"paper_id": paper_id, "researcher_id": researcher_id},
        )
        return int(review_id) if review_id is not None else None

    async def update_review(self, review_id: int, rating: int) -> None:
        await self._execute(
            text(
                "UPDATE Review SET Rating = :rating, Review_Date = CURRENT_TIMESTAMP WHERE Review_ID = :review_id"
            ),
            {"review_id": review_id, "rating": rating},
        )

    async def create_review(self, paper_id: int, researcher_id: int, rating: int) -> None:
        await self._execute(
            text(
                """
                INSERT INTO Review (Paper_ID, Researcher_ID, Rating, Review_Date)
                VALUES (:paper_id, :researcher_id, :rating, CURRENT_TIMESTAMP)
                """
            ),
            {"paper_id": paper_id, "researcher_id": researcher_id, "rating": rating},
        )

    async def top_rated_by_field(self, limit: int) -> List[Row]:
        return await self._fetch_all(
            text(
                """
                WITH Scored AS (
                    SELECT
                        p.Paper_ID AS paper_id,
                        p.Title AS title,
                        p.Abstract AS abstract,
                        p.Publication_Date AS publication_date,
                        p.Path AS path,
                        f.Field_ID AS field_id,
                        f.Field_Name AS field_name,
                        COALESCE((SELECT AVG(CAST(r.Rating AS FLOAT)) FROM Review r WHERE r.Paper_ID = p.Paper_ID), 0) AS average_rating,
                        COALESCE((SELECT COUNT(*) FROM "Download" d WHERE d.Paper_ID = p.Paper_ID), 0) AS download_count,
                        COALESCE((SELECT COUNT(*) FROM Review r WHERE r.Paper_ID = p.Paper_ID), 0) AS review_count
                    FROM Paper p
                    INNER JOIN Field f ON p.Field_ID = f.Field_ID
                    WHERE EXISTS (SELECT 1 FROM Review r WHERE r.Paper_ID = p.Paper_ID)
                ),
                Ranked AS (
                    SELECT
                        Scored.*,
                        ROW_NUMBER() OVER (
                            PARTITION BY field_id
                            ORDER BY average_rating DESC, review_count DESC, publication_date DESC
                        ) AS row_num
                    FROM Scored
                )
                SELECT
                    paper_id, title, abstract, publication_date, path, field_id, field_name,
                    average_rating, download_count, review_count
                FROM Ranked
                WHERE row_num <= :limit
                ORDER BY field_name, average_rating DESC
                """
            ),
            {"limit": limit},
        )
