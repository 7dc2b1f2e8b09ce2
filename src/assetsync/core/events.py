"""Structured events and results reported by the sync coordinator."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..models import StoreLocation


class CoordinatorState(str, Enum):
    """What the coordinator is currently doing."""
    IDLE = "idle"
    SYNCING = "syncing"
    UPLOADING = "uploading"


class SyncEventType(str, Enum):
    """Kinds of events emitted on the reporting side-channel."""
    DIRECTORY_READY = "directory_ready"
    DIRECTORY_UNAVAILABLE = "directory_unavailable"
    SAVED = "saved"
    SAVE_FAILED = "save_failed"
    DELETED = "deleted"
    DELETE_FAILED = "delete_failed"
    LISTING_FAILED = "listing_failed"
    QUERY_TIMEOUT = "query_timeout"
    UPLOADED = "uploaded"
    UPLOAD_SKIPPED = "upload_skipped"
    UPLOAD_FAILED = "upload_failed"
    READ_FAILED = "read_failed"


@dataclass(frozen=True)
class SyncEvent:
    """One reported occurrence; failures carry the error text."""

    event_type: SyncEventType
    file_name: Optional[str] = None
    location: Optional[StoreLocation] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "file_name": self.file_name,
            "location": self.location.value if self.location else None,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class RefreshResult:
    """Outcome of one catalog refresh."""

    remote_count: int = 0
    local_count: int = 0
    remote_ok: bool = True
    local_ok: bool = True
    duration: Optional[float] = None

    @property
    def total(self) -> int:
        return self.remote_count + self.local_count

    @property
    def success(self) -> bool:
        return self.remote_ok and self.local_ok


@dataclass
class DrainResult:
    """Outcome of one local-to-remote upload drain."""

    files_processed: int = 0
    files_uploaded: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    duration: Optional[float] = None

    @property
    def success_rate(self) -> float:
        """Uploaded share of processed files as a percentage."""
        if self.files_processed == 0:
            return 0.0
        return (self.files_uploaded / self.files_processed) * 100
