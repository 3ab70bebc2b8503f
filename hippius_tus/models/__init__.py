from hippius_tus.models.enums import UploadState
from hippius_tus.models.session import Metadata
from hippius_tus.models.session import SessionRecord
from hippius_tus.models.session import UploadSession


__all__ = [
    "Metadata",
    "SessionRecord",
    "UploadSession",
    "UploadState",
]
