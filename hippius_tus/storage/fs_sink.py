"""Filesystem-backed append-only sink for upload payloads.

Each upload session owns exactly one file under the upload directory. Bytes are
only ever appended; an append either lands completely or the file is truncated
back to its previous length.
"""

from __future__ import annotations

import asyncio
import contextlib
import fcntl
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Iterator
from typing import Protocol

from hippius_tus.errors import StorageAllocationFailed
from hippius_tus.errors import WriteFailed


logger = logging.getLogger(__name__)

DEFAULT_READ_CHUNK_SIZE = 4 * 1024 * 1024

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class ChunkSink(Protocol):
    async def allocate(self, key: str) -> str: ...
    async def append(self, storage_path: str, data: bytes) -> int: ...
    async def truncate(self, storage_path: str, length: int) -> int: ...
    async def size(self, storage_path: str) -> int: ...
    def iter_chunks(self, storage_path: str, chunk_size: int = DEFAULT_READ_CHUNK_SIZE) -> Iterator[bytes]: ...


class FileSystemUploadSink:
    """Append-only upload files with an exclusive lock per append.

    Layout: <root>/tus-<sanitized key>-<random>.bin
    """

    def __init__(self, root_dir: str) -> None:
        """Initialize the sink with a root directory path.

        Args:
            root_dir: Directory that holds upload files
        """
        self.root = Path(root_dir).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _safe_prefix(self, key: str) -> str:
        """Reduce a client-supplied key to a path-safe file name prefix."""
        return _UNSAFE_KEY_CHARS.sub("_", key)[:64]

    def _resolve(self, storage_path: str) -> Path:
        """Reject paths outside the upload directory."""
        path = Path(storage_path).resolve()
        if path.parent != self.root:
            raise ValueError(f"Storage path outside upload dir: {storage_path}")
        return path

    async def allocate(self, key: str) -> str:
        """Create a fresh empty file for a new session.

        Args:
            key: Upload session key

        Returns:
            Absolute path of the new file

        Raises:
            StorageAllocationFailed: If the file cannot be created
        """

        def _create() -> str:
            fd, path = tempfile.mkstemp(prefix=f"tus-{self._safe_prefix(key)}-", suffix=".bin", dir=self.root)
            os.close(fd)
            return path

        try:
            path = await asyncio.to_thread(_create)
        except OSError as e:
            logger.error(f"FS: allocation failed key={key}: {e}")
            raise StorageAllocationFailed(f"Could not allocate storage for {key!r}") from e

        logger.debug(f"FS: allocated key={key} path={path}")
        return path

    async def append(self, storage_path: str, data: bytes) -> int:
        """Append bytes to the end of the file under an exclusive lock.

        The lock is held only for this call. On any failure the file is truncated
        back to the length it had before the call.

        Args:
            storage_path: File returned by ``allocate``
            data: Chunk bytes

        Returns:
            New total length of the file

        Raises:
            WriteFailed: If the append could not be completed
        """
        path = self._resolve(storage_path)

        def _append() -> int:
            with path.open("ab") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    f.seek(0, os.SEEK_END)
                    start = f.tell()
                    try:
                        f.write(data)
                        f.flush()
                        os.fsync(f.fileno())
                    except OSError:
                        with contextlib.suppress(OSError):
                            f.truncate(start)
                        raise
                    return start + len(data)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)

        try:
            new_length = await asyncio.to_thread(_append)
        except OSError as e:
            logger.error(f"FS append failed: path={storage_path} size={len(data)}: {e}")
            raise WriteFailed(f"Could not append to {storage_path}") from e

        logger.debug(f"FS: appended path={storage_path} size={len(data)} length={new_length}")
        return new_length

    async def truncate(self, storage_path: str, length: int) -> int:
        """Cut the file back to ``length`` bytes under the append lock.

        Only ever shrinks; a file already at or below ``length`` is left alone.

        Returns:
            Length of the file after the call

        Raises:
            WriteFailed: If the file could not be truncated
        """
        path = self._resolve(storage_path)

        def _truncate() -> int:
            with path.open("r+b") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    current = os.fstat(f.fileno()).st_size
                    if current <= length:
                        return current
                    f.truncate(length)
                    os.fsync(f.fileno())
                    return length
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)

        try:
            new_length = await asyncio.to_thread(_truncate)
        except OSError as e:
            logger.error(f"FS truncate failed: path={storage_path} length={length}: {e}")
            raise WriteFailed(f"Could not truncate {storage_path}") from e

        logger.info(f"FS: truncated path={storage_path} length={new_length}")
        return new_length

    async def size(self, storage_path: str) -> int:
        path = self._resolve(storage_path)
        return (await asyncio.to_thread(path.stat)).st_size

    def iter_chunks(self, storage_path: str, chunk_size: int = DEFAULT_READ_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the stored content in blocks. Blocking; call off the event loop."""
        path = self._resolve(storage_path)
        with path.open("rb") as f:
            while True:
                block = f.read(chunk_size)
                if not block:
                    return
                yield block

    def list_files(self) -> list[Path]:
        return [p for p in self.root.iterdir() if p.is_file() and p.name.startswith("tus-")]

    async def delete(self, storage_path: str) -> None:
        """Remove an upload file. Idempotent."""
        path = self._resolve(storage_path)
        try:
            await asyncio.to_thread(path.unlink, True)
            logger.info(f"FS: deleted upload file {storage_path}")
        except OSError as e:
            logger.warning(f"FS: failed to delete upload file {storage_path}: {e}")
