from __future__ import annotations

import base64
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
from typing import Optional

from pydantic import BaseModel

from hippius_tus.models.enums import UploadState


Metadata = dict[str, Optional[bytes]]


def _b64(value: Optional[bytes]) -> Optional[str]:
    if value is None:
        return None
    return base64.b64encode(value).decode("ascii")


def _unb64(value: Optional[str]) -> Optional[bytes]:
    if value is None:
        return None
    return base64.b64decode(value)


@dataclass
class UploadSession:
    """In-memory working copy of one upload's bookkeeping record."""

    key: str
    storage_path: str
    total_size: int
    expires_at: datetime
    offset: int = 0
    metadata: Metadata = field(default_factory=dict)
    checksum: bytes = b""
    checksum_algorithm: str = "sha256"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def state(self) -> UploadState:
        if self.is_complete:
            return UploadState.COMPLETED
        if self.offset == 0:
            return UploadState.CREATED
        return UploadState.IN_PROGRESS

    @property
    def is_complete(self) -> bool:
        return self.offset == self.total_size

    def to_record(self) -> SessionRecord:
        return SessionRecord(
            key=self.key,
            storage_path=self.storage_path,
            total_size=self.total_size,
            offset=self.offset,
            metadata={k: _b64(v) for k, v in self.metadata.items()},
            checksum=_b64(self.checksum) or "",
            checksum_algorithm=self.checksum_algorithm,
            expires_at=self.expires_at,
            created_at=self.created_at,
            completed_at=self.completed_at,
        )


class SessionRecord(BaseModel):
    """Persisted representation: bytes as base64 so the record is plain JSON."""

    key: str
    storage_path: str
    total_size: int
    offset: int
    metadata: dict[str, Optional[str]]
    checksum: str
    checksum_algorithm: str
    expires_at: datetime
    created_at: datetime
    completed_at: Optional[datetime] = None

    def to_session(self) -> UploadSession:
        return UploadSession(
            key=self.key,
            storage_path=self.storage_path,
            total_size=self.total_size,
            offset=self.offset,
            metadata={k: _unb64(v) for k, v in self.metadata.items()},
            checksum=_unb64(self.checksum) or b"",
            checksum_algorithm=self.checksum_algorithm,
            expires_at=self.expires_at,
            created_at=self.created_at,
            completed_at=self.completed_at,
        )
