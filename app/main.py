from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import cron_router, router
from logging_config import configure_logging
from services.jobs import build_default_jobs


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    jobs = build_default_jobs()
    try:
        yield
    finally:
        jobs.shutdown()
        build_default_jobs.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Pond Report Aggregator",
        description="Hourly, daily, weekly and monthly rollups of pond sensor data.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(cron_router)
    app.include_router(router)
    return app

app = create_app()
