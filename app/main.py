from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from app.users import router as users_router
from logging_config import configure_logging
from services.pipeline import build_default_pipeline
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # FatalStartupError propagates and aborts startup.
    pipeline = build_default_pipeline()
    if get_settings().poller_enabled:
        pipeline.poller.start()
    else:
        logger.info("Poller disabled by configuration", extra={"status": "disabled"})
    try:
        yield
    finally:
        await pipeline.aclose()
        build_default_pipeline.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Airwatch",
        description="Air-quality station polling, storage and alerting service.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(users_router)
    return app

app = create_app()
