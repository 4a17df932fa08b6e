"""
FastAPI Production Application

Main entry point for the Commerce Analytics API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from src.config import get_settings
from src.config.logging import configure_logging
from src.database.connection import close_database, init_database
from src.serving.api.main import create_api_app
from src.serving.cache import close_redis, init_redis

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    configure_logging()

    logger.info("Starting Commerce Analytics API", environment=settings.app_env, version=settings.version)

    await init_database()

    if settings.analytics.cache_enabled:
        try:
            await init_redis()
        except Exception as e:
            logger.warning("Analytics cache disabled, Redis unavailable", error=str(e))

    yield

    logger.info("Shutting down")
    await close_database()
    await close_redis()


app = create_api_app(lifespan=lifespan)


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("src.main:app", host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
