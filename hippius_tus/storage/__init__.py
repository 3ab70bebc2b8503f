from .fs_sink import ChunkSink
from .fs_sink import FileSystemUploadSink


__all__ = [
    "ChunkSink",
    "FileSystemUploadSink",
]
