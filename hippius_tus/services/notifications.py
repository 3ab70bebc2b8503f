import base64
import json
import logging
from datetime import datetime
from typing import Any
from typing import Optional
from typing import Protocol

from pydantic import BaseModel

from hippius_tus.models import Metadata


logger = logging.getLogger(__name__)


class UploadComplete(BaseModel):
    """Announces a finished upload: where the artifact lives and its metadata."""

    key: str
    storage_path: str
    size: int
    # base64 values; None where the client sent undecodable metadata
    metadata: dict[str, Optional[str]]
    completed_at: datetime

    @classmethod
    def build(
        cls, *, key: str, storage_path: str, size: int, metadata: Metadata, completed_at: datetime
    ) -> "UploadComplete":
        return cls(
            key=key,
            storage_path=storage_path,
            size=size,
            metadata={k: None if v is None else base64.b64encode(v).decode("ascii") for k, v in metadata.items()},
            completed_at=completed_at,
        )

    def decoded_metadata(self) -> Metadata:
        return {k: None if v is None else base64.b64decode(v) for k, v in self.metadata.items()}

    @property
    def name(self) -> str:
        return f"complete::{self.key}"


class EventPublisher(Protocol):
    async def emit(self, event: UploadComplete) -> None: ...


class RedisEventPublisher:
    """Pushes completion events onto a Redis list for downstream consumers."""

    def __init__(self, redis_client: Any, queue_name: str = "tus_upload_completed") -> None:
        self.redis = redis_client
        self.queue_name = queue_name

    async def emit(self, event: UploadComplete) -> None:
        await self.redis.lpush(self.queue_name, event.model_dump_json())
        logger.info(f"Enqueued upload completion {event.name=} queue={self.queue_name}")


async def dequeue_upload_complete(
    redis_client: Any, queue_name: str = "tus_upload_completed", timeout: float = 0.5
) -> UploadComplete | None:
    """Get the next completion event from the Redis queue."""
    result = await redis_client.brpop(queue_name, timeout=timeout)
    if result:
        _, queue_data = result
        return UploadComplete.model_validate(json.loads(queue_data))
    return None
