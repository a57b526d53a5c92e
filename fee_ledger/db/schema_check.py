"""
Create any missing ledger tables in the connected database.

Run once against a new database (safe to re-run):
  python -m fee_ledger.db.schema_check
"""
import asyncio
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

import fee_ledger.core.models  # noqa: F401  registers every table on Base.metadata
from fee_ledger.core.app_logger import get_logger, setup_logging
from fee_ledger.db.session import Base, engine

logger = get_logger(__name__)


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """Create tables that do not exist yet. Returns the names of the created tables."""
    async with db_engine.begin() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        missing = [t.name for t in Base.metadata.sorted_tables if t.name not in existing]
        await conn.run_sync(Base.metadata.create_all)

    if missing:
        logger.info("Created missing tables: %s", ", ".join(missing))
    else:
        logger.info("All ledger tables already exist in the database.")
    return missing


async def main() -> None:
    setup_logging()
    await ensure_tables(engine)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
