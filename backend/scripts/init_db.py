"""Create the catalog tables and optionally load a few demo rows.

Intended for local development against the default SQLite database:

    python backend/scripts/init_db.py --seed
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from sqlalchemy import text

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from backend.app import config
from backend.app.core.paper_store import SqlPaperStore

_DEMO_ROWS = (
    "INSERT INTO Field (Field_ID, Field_Name) VALUES (1, 'Machine Learning'), (2, 'Databases')",
    """
    INSERT INTO Paper (Paper_ID, Title, Abstract, Publication_Date, Path, Field_ID) VALUES
        (1, 'Attention Is Enough', 'Transformers for everything.', '2023-05-01', '/papers/1.pdf', 1),
        (2, 'Query Optimization Revisited', 'Cost models and cardinality.', '2022-11-12', '/papers/2.pdf', 2),
        (3, 'Contrastive Pretraining', 'Self-supervised representations.', '2024-02-20', '/papers/3.pdf', 1)
    """,
    """
    INSERT INTO Paper_Keywords (Paper_ID, Keywords) VALUES
        (1, 'transformers, attention'), (2, 'databases, optimizer'), (3, 'contrastive, representation learning')
    """,
    "INSERT INTO \"User\" (User_ID, Name) VALUES (1, 'Ada Researcher')",
)


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create catalog tables")
    p.add_argument("--url", default=config.DATABASE_URL, help="SQLAlchemy async database URL")
    p.add_argument("--seed", action="store_true", help="Insert demo fields, papers and a user")
    return p.parse_args()


async def _run(url: str, seed: bool) -> None:
    store = SqlPaperStore.from_url(url)
    try:
        await store.create_schema()
        if seed:
            async with store.engine.begin() as conn:
                for statement in _DEMO_ROWS:
                    await conn.execute(text(statement))
    finally:
        await store.dispose()


def main() -> int:
    args = _parse_args()
    asyncio.run(_run(args.url, args.seed))
    print(f"Schema ready at {args.url}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
