"""Main application module for the Hippius tus upload service."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from typing import Optional

import redis.asyncio as async_redis
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi import Response
from fastapi.responses import JSONResponse

from hippius_tus.api.middlewares import ray_id_middleware
from hippius_tus.api.middlewares import tus_resumable_middleware
from hippius_tus.api.tus import register_exception_handlers
from hippius_tus.api.tus import router as tus_router
from hippius_tus.config import Config
from hippius_tus.config import get_config
from hippius_tus.logging_config import setup_loki_logging
from hippius_tus.protocol.engine import UploadProtocolEngine
from hippius_tus.repositories import RedisSessionStore
from hippius_tus.services.notifications import RedisEventPublisher
from hippius_tus.storage import FileSystemUploadSink


logger = logging.getLogger(__name__)


def build_engine(config: Config, redis_client: async_redis.Redis) -> UploadProtocolEngine:
    """Wire the sink, session store and completion publisher into an engine."""
    sink = FileSystemUploadSink(config.upload_dir)
    return UploadProtocolEngine(
        store=RedisSessionStore(redis_client, sink),
        sink=sink,
        publisher=RedisEventPublisher(redis_client, config.completed_queue_name),
        max_size=config.max_upload_size,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """FastAPI application lifespan handler."""
    try:
        config = app.state.config

        app.state.redis_client = async_redis.from_url(config.redis_url)
        logger.info("Redis client initialized")

        app.state.engine = build_engine(config, app.state.redis_client)
        logger.info(f"Upload engine initialized upload_dir={config.upload_dir} max_size={config.max_upload_size}")

        yield

    finally:
        try:
            if hasattr(app.state, "redis_client"):
                await app.state.redis_client.close()
                logger.info("Redis client closed")
        except Exception:
            logger.exception("Error shutting down Redis client")


def factory(config: Optional[Config] = None) -> FastAPI:
    """Factory function to create and configure the FastAPI application."""
    load_dotenv()
    config = config or get_config()
    setup_loki_logging(config, "api")

    app = FastAPI(
        title="Hippius tus",
        description="Resumable upload gateway (tus 1.0.0)",
        docs_url="/docs" if config.enable_api_docs else None,
        redoc_url="/redoc" if config.enable_api_docs else None,
        lifespan=lifespan,
        debug=config.debug,
        default_response_class=Response,
    )
    app.state.config = config

    # middleware("http") executes in REVERSE order: ray_id runs first
    app.middleware("http")(tus_resumable_middleware)
    app.middleware("http")(ray_id_middleware)

    register_exception_handlers(app)

    @app.get("/health", include_in_schema=False, response_class=JSONResponse)
    async def health():
        """Health check endpoint for monitoring."""
        return JSONResponse(content={"status": "healthy"})

    app.include_router(tus_router, prefix=config.tus_base_path)

    return app


if __name__ == "__main__":
    import uvicorn

    cfg = get_config()
    uvicorn.run(factory(cfg), host=cfg.host, port=cfg.port, access_log=True)
