from typing import Any, AsyncIterator, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

# Postgres schemas the models live in: "core" holds the roster tables owned by the
# surrounding platform, "school" holds timetable data owned by this service.
SCHEMAS = ("core", "school")


def _engine_options(database_url: str) -> Dict[str, Any]:
    if make_url(database_url).get_backend_name() == "sqlite":
        # SQLite has no schemas; map every table into the main database.
        return {"execution_options": {"schema_translate_map": {s: None for s in SCHEMAS}}}
    # pool_pre_ping: check connection is alive before use (avoids "connection is closed" errors
    # when DB or network closed idle connections).
    # pool_recycle: discard connections after this many seconds to avoid stale connections.
    return {"pool_pre_ping": True, "pool_recycle": 300}


engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    **_engine_options(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session
