"""Error taxonomy for the tus upload protocol.

Every failure the protocol engine can report is a ``TusError`` subclass carrying
the HTTP status code it maps to and the category that tells the client whether
(and how) it may retry.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """How a client should react to a failed request."""

    # Client must correct the request and may retry
    PROTOCOL_PRECONDITION = "protocol_precondition"
    # Not retryable with the same parameters
    RESOURCE_BOUNDARY = "resource_boundary"
    # Session unknown or expired, client must restart the upload
    NOT_FOUND = "not_found"
    # Completed content does not match the declared checksum, upload must restart
    INTEGRITY_FAILURE = "integrity_failure"
    # Store/sink failures narrowed at the boundary
    TRANSIENT_IO = "transient_io"


class TusError(Exception):
    """Base class for protocol-visible errors."""

    status_code: int = 422
    category: ErrorCategory = ErrorCategory.TRANSIENT_IO
    default_message: str = "Upload request failed"

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        if status_code is not None:
            self.status_code = status_code
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidChecksumHeader(TusError):
    status_code = 400
    category = ErrorCategory.PROTOCOL_PRECONDITION
    default_message = "Invalid Upload-Checksum header"


class InvalidUploadLength(TusError):
    status_code = 400
    category = ErrorCategory.PROTOCOL_PRECONDITION
    default_message = "Upload-Length must be a non-negative integer"


class VersionMismatch(TusError):
    status_code = 412
    category = ErrorCategory.PROTOCOL_PRECONDITION
    default_message = "Unsupported Tus-Resumable version"


class OffsetConflict(TusError):
    status_code = 409
    category = ErrorCategory.PROTOCOL_PRECONDITION
    default_message = "Upload-Offset does not match the current offset"

    def __init__(self, claimed: str, actual: int):
        self.claimed = claimed
        self.actual = actual
        super().__init__(f"Upload-Offset {claimed!r} does not match current offset {actual}")


class UnsupportedMediaType(TusError):
    status_code = 415
    category = ErrorCategory.PROTOCOL_PRECONDITION
    default_message = "Content-Type must be application/offset+octet-stream"


class PayloadTooLarge(TusError):
    status_code = 413
    category = ErrorCategory.RESOURCE_BOUNDARY
    default_message = "Upload-Length exceeds the maximum upload size"


class RangeExceeded(TusError):
    status_code = 416
    category = ErrorCategory.RESOURCE_BOUNDARY
    default_message = "Upload offset exceeds the declared Upload-Length"


class SessionNotFound(TusError):
    status_code = 404
    category = ErrorCategory.NOT_FOUND
    default_message = "Upload session not found or expired"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Upload session {key!r} not found or expired")


class IntegrityFailure(TusError):
    # 460 is the checksum extension's "Checksum Mismatch"
    status_code = 460
    category = ErrorCategory.INTEGRITY_FAILURE
    default_message = "Checksum mismatch"


class ChecksumMismatch(IntegrityFailure):
    """Declared and computed digests differ."""


class StorageAllocationFailed(TusError):
    status_code = 422
    category = ErrorCategory.TRANSIENT_IO
    default_message = "Could not allocate upload storage"


class WriteFailed(TusError):
    status_code = 422
    category = ErrorCategory.TRANSIENT_IO
    default_message = "Could not append chunk to upload storage"


class UnprocessableChunk(TusError):
    status_code = 422
    category = ErrorCategory.TRANSIENT_IO
    default_message = "Unprocessable chunk"
