"""Garbage collection for upload files left behind by expired sessions.

Session records disappear through Redis expiry, but their backing files stay on
disk. A file is removed only when no live session references it and it has
not been written for longer than the GC age, so completed artifacts remain
available to completion consumers for that window.
"""

import logging
import time
from typing import Any
from typing import Optional

from pydantic import ValidationError

from hippius_tus.models import SessionRecord
from hippius_tus.storage import FileSystemUploadSink


logger = logging.getLogger(__name__)


async def live_storage_paths(redis_client: Any) -> set[str]:
    """Collect storage paths of all sessions still present in Redis."""
    paths: set[str] = set()
    async for name in redis_client.scan_iter(match="tus:*", count=500):
        raw = await redis_client.get(name)
        if not raw:
            continue
        try:
            paths.add(SessionRecord.model_validate_json(raw).storage_path)
        except ValidationError:
            logger.warning(f"Skipping undecodable session record {name!r}")
    return paths


async def cleanup_stale_uploads(
    sink: FileSystemUploadSink,
    redis_client: Any,
    max_age_seconds: int,
    *,
    now_ts: Optional[float] = None,
) -> int:
    """Delete unreferenced upload files older than ``max_age_seconds``. Returns number removed."""
    now_ts = time.time() if now_ts is None else now_ts
    live = await live_storage_paths(redis_client)

    removed = 0
    for path in sink.list_files():
        try:
            mtime = path.stat().st_mtime
        except OSError:
            continue

        if mtime > now_ts - max_age_seconds:
            continue
        if str(path) in live:
            continue

        await sink.delete(str(path))
        removed += 1

    logger.info(f"Janitor removed {removed} stale upload files")
    return removed
