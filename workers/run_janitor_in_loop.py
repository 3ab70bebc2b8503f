#!/usr/bin/env python3
"""Janitor loop that removes upload files of expired tus sessions."""

import asyncio
import logging
import sys
from pathlib import Path

import redis.asyncio as async_redis


sys.path.insert(0, str(Path(__file__).parent.parent))

from hippius_tus.config import get_config
from hippius_tus.logging_config import setup_loki_logging
from hippius_tus.storage import FileSystemUploadSink
from hippius_tus.workers.janitor import cleanup_stale_uploads


config = get_config()
setup_loki_logging(config, "janitor")
logger = logging.getLogger(__name__)


async def run_janitor_loop() -> None:
    redis_client = async_redis.from_url(config.redis_url)
    sink = FileSystemUploadSink(config.upload_dir)
    logger.info(f"Janitor started upload_dir={config.upload_dir} max_age={config.gc_max_age_seconds}s")

    try:
        while True:
            try:
                await cleanup_stale_uploads(sink, redis_client, config.gc_max_age_seconds)
            except Exception:
                logger.exception("Janitor pass failed")
            await asyncio.sleep(config.janitor_sleep_seconds)
    finally:
        await redis_client.close()


if __name__ == "__main__":
    asyncio.run(run_janitor_loop())
