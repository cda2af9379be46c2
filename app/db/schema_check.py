import asyncio
import logging
from typing import List

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine

import app.core.models  # noqa: F401  registers every table on Base.metadata
from app.db.session import SCHEMAS, Base, engine

logger = logging.getLogger(__name__)


def _missing_tables(sync_conn) -> List[str]:
    inspector = inspect(sync_conn)
    schema_map = sync_conn.get_execution_options().get("schema_translate_map") or {}
    missing = []
    for table in Base.metadata.sorted_tables:
        if not inspector.has_table(table.name, schema=schema_map.get(table.schema, table.schema)):
            missing.append(table.fullname)
    return missing


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """
    Ensure that the core/school schemas and every mapped table exist.
    Existing tables are left untouched. Returns the names of tables that were created.
    """
    async with db_engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            for schema in SCHEMAS:
                await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        missing = await conn.run_sync(_missing_tables)
        await conn.run_sync(Base.metadata.create_all)

    if missing:
        logger.info("Created missing tables: %s", ", ".join(missing))
    else:
        logger.info("All required core/school tables already exist in the database.")
    return missing


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    await ensure_tables(engine)


if __name__ == "__main__":
    asyncio.run(main())
