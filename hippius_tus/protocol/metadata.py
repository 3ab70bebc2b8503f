"""Codec for the Upload-Metadata and Upload-Checksum headers.

Metadata parsing is deliberately permissive: a value that is not valid base64
decodes to ``None`` instead of failing the request. The checksum header is the
opposite, any malformed value is rejected with ``InvalidChecksumHeader``.
"""

import base64
import binascii
import hashlib
import logging
from typing import Optional

from hippius_tus.errors import InvalidChecksumHeader
from hippius_tus.models import Metadata


logger = logging.getLogger(__name__)

# XOFs (shake_*) need an explicit output length, so they cannot verify a fixed digest
SUPPORTED_CHECKSUM_ALGORITHMS: tuple[str, ...] = tuple(
    sorted(name for name in hashlib.algorithms_guaranteed if not name.startswith("shake_"))
)

DEFAULT_CHECKSUM_ALGORITHM = "sha256"


def _decode_value(raw: str) -> Optional[bytes]:
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        return None


def parse_metadata(header_value: Optional[str]) -> Metadata:
    """Parse ``key base64(value)`` pairs separated by commas.

    A pair without a value maps to ``b""``; a value that fails base64 decoding
    maps to ``None``. Later duplicates overwrite earlier ones.
    """
    result: Metadata = {}
    if not header_value or not header_value.strip():
        return result

    for chunk in header_value.split(","):
        pieces = chunk.strip().split(" ")
        key = pieces[0]
        value = pieces[1] if len(pieces) > 1 else ""
        decoded = _decode_value(value)
        if decoded is None:
            logger.debug(f"Upload-Metadata value for {key=} is not valid base64")
        result[key] = decoded

    return result


def serialize_metadata(metadata: Metadata) -> str:
    """Render metadata back into Upload-Metadata form.

    Empty and undecodable values are written as a bare key.
    """
    pairs = []
    for key, value in metadata.items():
        if value:
            pairs.append(f"{key} {base64.b64encode(value).decode('ascii')}")
        else:
            pairs.append(key)
    return ",".join(pairs)


def parse_checksum_header(header_value: str) -> tuple[str, bytes]:
    """Split ``algorithm base64(digest)`` into the algorithm name and raw digest bytes."""
    algorithm, _, encoded = header_value.strip().partition(" ")

    if algorithm not in SUPPORTED_CHECKSUM_ALGORITHMS:
        raise InvalidChecksumHeader(f"Unsupported checksum algorithm {algorithm!r}")

    encoded = encoded.strip()
    if not encoded:
        raise InvalidChecksumHeader("Upload-Checksum is missing the digest")

    try:
        digest = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidChecksumHeader("Upload-Checksum digest is not valid base64") from e

    return algorithm, digest
