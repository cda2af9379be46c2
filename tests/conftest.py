import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from typing import AsyncGenerator, Dict, Optional  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.auth.security import create_access_token  # noqa: E402
from app.core.models import SchoolClass, SchoolSubject, Teacher  # noqa: E402
from app.db.schema_check import ensure_tables  # noqa: E402
from app.db.session import _engine_options, get_db  # noqa: E402
from app.main import app  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
SCHOOL_ID = "school-1"
OTHER_SCHOOL_ID = "school-2"


@pytest.fixture()
async def engine():
    """Fresh in-memory database per test, tables created by the same bootstrap the app runs."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        **_engine_options(TEST_DATABASE_URL),
    )
    await ensure_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def roster(db_session: AsyncSession) -> Dict[str, str]:
    """
    Classes 6A/6B/7A/7B, teachers T1/T2/T3 and subjects Math/Science/English in SCHOOL_ID,
    plus an inactive teacher and a class belonging to another school.
    """
    db_session.add_all(
        [
            SchoolClass(id="6A", school_id=SCHOOL_ID, name="Grade 6A"),
            SchoolClass(id="6B", school_id=SCHOOL_ID, name="Grade 6B"),
            SchoolClass(id="7A", school_id=SCHOOL_ID, name="Grade 7A"),
            SchoolClass(id="7B", school_id=SCHOOL_ID, name="Grade 7B"),
            SchoolClass(id="X1", school_id=OTHER_SCHOOL_ID, name="Other 1"),
            Teacher(id="T1", school_id=SCHOOL_ID, full_name="Asha Rao"),
            Teacher(id="T2", school_id=SCHOOL_ID, full_name="Ben Okafor"),
            Teacher(id="T3", school_id=SCHOOL_ID, full_name="Chen Li"),
            Teacher(id="T-OLD", school_id=SCHOOL_ID, full_name="Retired", is_active=False),
            SchoolSubject(id="MATH", school_id=SCHOOL_ID, name="Mathematics", code="MA"),
            SchoolSubject(id="SCI", school_id=SCHOOL_ID, name="Science", code="SC"),
            SchoolSubject(id="ENG", school_id=SCHOOL_ID, name="English", code="EN"),
        ]
    )
    await db_session.commit()
    return {"school_id": SCHOOL_ID}


@pytest.fixture()
def make_headers():
    """Build Authorization headers for a token issued by the identity service."""

    def _make(
        role: str = "ADMIN",
        school_id: str = SCHOOL_ID,
        user_id: str = "admin-1",
        permissions: Optional[Dict[str, Dict[str, bool]]] = None,
    ) -> Dict[str, str]:
        token = create_access_token(
            subject={
                "user_id": user_id,
                "school_id": school_id,
                "role": role,
                "permissions": permissions or {},
            }
        )
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def admin_headers(make_headers) -> Dict[str, str]:
    return make_headers()
