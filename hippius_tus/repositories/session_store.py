from __future__ import annotations

import logging
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Protocol

from pydantic import ValidationError

from hippius_tus.errors import SessionNotFound
from hippius_tus.models import Metadata
from hippius_tus.models import SessionRecord
from hippius_tus.models import UploadSession
from hippius_tus.storage import ChunkSink


logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    async def load(self, key: str) -> UploadSession: ...
    async def save(self, session: UploadSession) -> None: ...
    async def create(
        self,
        key: str,
        total_size: int,
        metadata: Metadata,
        checksum: bytes,
        expires_at: datetime,
        *,
        checksum_algorithm: str = "sha256",
    ) -> UploadSession: ...


class RedisSessionStore:
    """Upload session records kept as JSON strings with a Redis-level expiry."""

    def __init__(self, redis_client: Any, sink: ChunkSink) -> None:
        self.redis = redis_client
        self.sink = sink

    def build_key(self, key: str) -> str:
        return f"tus:{key}"

    async def load(self, key: str) -> UploadSession:
        raw = await self.redis.get(self.build_key(key))
        if not raw:
            raise SessionNotFound(key)

        try:
            session = SessionRecord.model_validate_json(raw).to_session()
        except (ValidationError, ValueError) as e:
            logger.warning(f"Discarding undecodable session record {key=}: {e}")
            raise SessionNotFound(key) from e

        # Redis expiry has one-second resolution; never hand out a session past its deadline
        if session.expires_at <= datetime.now(timezone.utc):
            raise SessionNotFound(key)

        return session

    async def save(self, session: UploadSession) -> None:
        await self.redis.set(
            self.build_key(session.key),
            session.to_record().model_dump_json(),
            exat=session.expires_at,
        )

    async def create(
        self,
        key: str,
        total_size: int,
        metadata: Metadata,
        checksum: bytes,
        expires_at: datetime,
        *,
        checksum_algorithm: str = "sha256",
    ) -> UploadSession:
        storage_path = await self.sink.allocate(key)
        session = UploadSession(
            key=key,
            storage_path=storage_path,
            total_size=total_size,
            offset=0,
            metadata=metadata,
            checksum=checksum,
            checksum_algorithm=checksum_algorithm,
            expires_at=expires_at,
        )
        await self.save(session)
        logger.info(f"Created upload session {key=} size={total_size} path={storage_path}")
        return session
