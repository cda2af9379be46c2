import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.timetable_assignments.router import router as timetable_assignments_router
from app.api.v1.timetable_templates.router import router as timetable_templates_router
from app.api.v1.timetables.router import router as timetables_router
from app.core.config import settings
from app.db.schema_check import ensure_tables
from app.db.session import engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    await ensure_tables(engine)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title="School Timetable Service", lifespan=lifespan)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(timetables_router)
    app.include_router(timetable_assignments_router)
    app.include_router(timetable_templates_router)

    return app


app = create_app()
