"""Upload session state machine.

A session moves Created (offset 0) -> InProgress -> Completed (offset ==
total_size) and never back. Each operation takes the request fields it needs as
arguments and either returns a result or raises a ``TusError``.

Chunk application follows a commit-then-check order: the bytes are appended and
the new offset persisted before the range check runs, so a chunk that overflows
the declared length is still recorded as received and then rejected with
``RangeExceeded``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Awaitable
from typing import Callable
from typing import Optional

from hippius_tus.errors import IntegrityFailure
from hippius_tus.errors import InvalidUploadLength
from hippius_tus.errors import OffsetConflict
from hippius_tus.errors import PayloadTooLarge
from hippius_tus.errors import RangeExceeded
from hippius_tus.errors import UnprocessableChunk
from hippius_tus.errors import UnsupportedMediaType
from hippius_tus.errors import WriteFailed
from hippius_tus.models import Metadata
from hippius_tus.models import UploadSession
from hippius_tus.protocol.locks import KeyedLocks
from hippius_tus.protocol.metadata import DEFAULT_CHECKSUM_ALGORITHM
from hippius_tus.protocol.metadata import parse_checksum_header
from hippius_tus.protocol.metadata import parse_metadata
from hippius_tus.repositories import SessionStore
from hippius_tus.services.integrity import IntegrityVerifier
from hippius_tus.services.notifications import EventPublisher
from hippius_tus.services.notifications import UploadComplete
from hippius_tus.storage import ChunkSink


logger = logging.getLogger(__name__)

OFFSET_CONTENT_TYPE = "application/offset+octet-stream"

# Fixed window, refreshed on every accepted chunk
SESSION_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CreateResult:
    key: str
    location: str
    expires_at: datetime


@dataclass
class StatusResult:
    key: str
    total_size: int
    offset: int
    metadata: Metadata
    expires_at: datetime


@dataclass
class ChunkResult:
    offset: int
    expires_at: datetime


class UploadProtocolEngine:
    def __init__(
        self,
        store: SessionStore,
        sink: ChunkSink,
        publisher: EventPublisher,
        *,
        max_size: int = 0,
        verifier: Optional[IntegrityVerifier] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.sink = sink
        self.publisher = publisher
        self.max_size = max_size
        self.verifier = verifier or IntegrityVerifier(sink)
        self.clock = clock
        self.locks = KeyedLocks()

    def _next_expiry(self) -> datetime:
        return self.clock() + SESSION_TTL

    def _parse_length(self, declared_size: Optional[str]) -> int:
        try:
            size = int((declared_size or "").strip())
        except ValueError as e:
            raise InvalidUploadLength() from e
        if size < 0:
            raise InvalidUploadLength()
        return size

    async def create_session(
        self,
        declared_size: Optional[str],
        metadata_header: Optional[str],
        checksum_header: Optional[str],
        base_url: str,
        upload_key: Optional[str] = None,
    ) -> CreateResult:
        """Open a new upload session.

        Args:
            declared_size: Raw Upload-Length value
            metadata_header: Raw Upload-Metadata value
            checksum_header: Raw Upload-Checksum value
            base_url: URL of the collection resource, used to build Location
            upload_key: Client-chosen key (Upload-Key); a UUID4 is generated when absent

        Returns:
            CreateResult with the key, resource location and expiry

        Raises:
            InvalidUploadLength: Upload-Length missing or not a non-negative integer
            PayloadTooLarge: Declared size exceeds the configured ceiling
            InvalidChecksumHeader: Malformed Upload-Checksum
            StorageAllocationFailed: Backing file could not be created
        """
        total_size = self._parse_length(declared_size)
        if self.max_size > 0 and total_size > self.max_size:
            raise PayloadTooLarge(f"Upload-Length {total_size} exceeds maximum {self.max_size}")

        key = upload_key.strip() if upload_key and upload_key.strip() else str(uuid.uuid4())

        algorithm, checksum = DEFAULT_CHECKSUM_ALGORITHM, b""
        if checksum_header and checksum_header.strip():
            algorithm, checksum = parse_checksum_header(checksum_header)

        expires_at = self._next_expiry()
        await self.store.create(
            key,
            total_size,
            parse_metadata(metadata_header),
            checksum,
            expires_at,
            checksum_algorithm=algorithm,
        )

        return CreateResult(key=key, location=f"{base_url.rstrip('/')}/{key}", expires_at=expires_at)

    async def get_status(self, key: str) -> StatusResult:
        """Report size and progress of a session. Raises SessionNotFound."""
        session = await self.store.load(key)
        return StatusResult(
            key=session.key,
            total_size=session.total_size,
            offset=session.offset,
            metadata=session.metadata,
            expires_at=session.expires_at,
        )

    def _check_chunk_preconditions(
        self, session: UploadSession, claimed_offset: Optional[str], content_type: Optional[str]
    ) -> None:
        # Textual comparison: "05" does not match offset 5
        if claimed_offset and claimed_offset != str(session.offset):
            raise OffsetConflict(claimed_offset, session.offset)

        if content_type != OFFSET_CONTENT_TYPE:
            raise UnsupportedMediaType()

    async def apply_chunk(
        self,
        key: str,
        claimed_offset: Optional[str],
        content_type: Optional[str],
        body: bytes,
    ) -> ChunkResult:
        """Append one chunk to a session.

        Args:
            key: Upload session key
            claimed_offset: Raw Upload-Offset value, checked only when non-empty
            content_type: Raw Content-Type value
            body: Chunk bytes

        Returns:
            ChunkResult with the authoritative offset and refreshed expiry

        Raises:
            SessionNotFound: Unknown or expired key
            OffsetConflict: Upload-Offset does not match the stored offset
            UnsupportedMediaType: Wrong Content-Type
            RangeExceeded: The chunk pushed the offset past total_size (offset is still persisted)
            IntegrityFailure: Completed content does not match the declared checksum
            UnprocessableChunk: Any other failure while appending, persisting or completing
        """
        async with self.locks.hold(key):
            session = await self.store.load(key)
            self._check_chunk_preconditions(session, claimed_offset, content_type)

            try:
                await self._run_to_completion(self._commit_chunk(session, body))

                if session.offset > session.total_size:
                    raise RangeExceeded(f"Offset {session.offset} exceeds Upload-Length {session.total_size}")

                if session.is_complete and session.completed_at is None:
                    await self._complete(session)
            except (RangeExceeded, IntegrityFailure):
                raise
            except Exception as e:
                logger.exception(f"Failed to apply chunk {key=} size={len(body)}")
                raise UnprocessableChunk() from e

            logger.debug(f"Applied chunk {key=} size={len(body)} offset={session.offset}/{session.total_size}")
            return ChunkResult(offset=session.offset, expires_at=session.expires_at)

    @staticmethod
    async def _run_to_completion(coro: Awaitable[None]) -> None:
        """Await ``coro`` without letting a cancelled request abandon it halfway.

        On cancellation the work still finishes before the CancelledError
        propagates, so the per-key lock is never released mid-commit.
        """
        task = asyncio.ensure_future(coro)
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                logger.error(f"Chunk commit failed after request was cancelled: {task.exception()!r}")
            raise

    async def _commit_chunk(self, session: UploadSession, body: bytes) -> None:
        """Append ``body`` and persist the new offset, or leave both as they were.

        The file length must equal the stored offset after every commit. Any
        failure after bytes reached the file cuts it back to the previous offset.
        """
        start = session.offset
        expected = start + len(body)

        new_length = await self.sink.append(session.storage_path, body)
        if new_length != expected:
            await self._rollback(session, start)
            raise WriteFailed(f"Sink length {new_length} diverged from offset {expected} key={session.key}")

        session.offset = expected
        session.expires_at = self._next_expiry()
        try:
            await self.store.save(session)
        except Exception:
            session.offset = start
            await self._rollback(session, start)
            raise

    async def _rollback(self, session: UploadSession, length: int) -> None:
        try:
            await self.sink.truncate(session.storage_path, length)
        except WriteFailed:
            logger.exception(f"Rollback failed key={session.key} path={session.storage_path} length={length}")

    async def _complete(self, session: UploadSession) -> None:
        if session.checksum:
            computed = await self.verifier.digest(session.storage_path, session.checksum_algorithm)
            self.verifier.verify(session.checksum, computed)

        completed_at = self.clock()
        await self.publisher.emit(
            UploadComplete.build(
                key=session.key,
                storage_path=session.storage_path,
                size=session.offset,
                metadata=session.metadata,
                completed_at=completed_at,
            )
        )

        # Marks the notification as sent so a repeated empty PATCH does not re-announce
        session.completed_at = completed_at
        await self.store.save(session)
        logger.info(f"Upload complete key={session.key} size={session.offset} path={session.storage_path}")
