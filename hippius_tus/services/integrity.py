import asyncio
import hashlib
import hmac
import logging

from hippius_tus.errors import ChecksumMismatch
from hippius_tus.storage import ChunkSink


logger = logging.getLogger(__name__)


class IntegrityVerifier:
    """Computes whole-upload digests and compares them with the client's declaration."""

    def __init__(self, sink: ChunkSink) -> None:
        self.sink = sink

    async def digest(self, storage_path: str, algorithm: str) -> bytes:
        """Stream the stored content through ``algorithm`` and return the raw digest."""

        def _digest() -> bytes:
            h = hashlib.new(algorithm)
            for block in self.sink.iter_chunks(storage_path):
                h.update(block)
            return h.digest()

        return await asyncio.to_thread(_digest)

    @staticmethod
    def verify(declared: bytes, computed: bytes) -> None:
        """Raise ChecksumMismatch if a checksum was declared and it differs.

        An empty declaration means no verification was requested.
        """
        if not declared:
            return
        if not hmac.compare_digest(declared, computed):
            logger.warning(f"Checksum mismatch declared={declared.hex()} computed={computed.hex()}")
            raise ChecksumMismatch()
