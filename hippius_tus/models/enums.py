from enum import Enum


class UploadState(str, Enum):
    """Upload session lifecycle. Transitions only move forward."""

    CREATED = "created"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
