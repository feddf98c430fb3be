"""
FastAPI Production Application

Main entry point for the Sales Metrics API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
import structlog

from src.config import get_settings
from src.config.logging import configure_logging
from src.database.connection import init_database, close_database
from src.serving.cache import init_redis, close_redis
from src.serving.api.main import create_api_app

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Sales Metrics API", environment=settings.app_env, version=settings.version)

    try:
        await init_database()
        logger.info("Database initialized")
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database init failed", error=str(e))

    # Metrics are computed directly while Redis is down
    try:
        await init_redis()
        logger.info("Redis initialized")
    except (RedisError, OSError) as e:
        logger.warning("Redis init failed", error=str(e))

    yield

    logger.info("Shutting down...")
    await close_database()
    await close_redis()


app = create_api_app(lifespan=lifespan)


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Sales Metrics API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
