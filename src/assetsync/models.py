"""Value types shared by the stores, the coordinator and the catalog."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class StoreLocation(str, Enum):
    """Where an asset physically lives."""
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class AssetRecord:
    """One stored file as observed by a store.

    Records are rebuilt on every listing, so ``created_at`` is the time the
    file was observed rather than its filesystem creation time.
    """

    file_name: str
    location: StoreLocation
    path: Optional[Path] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def observed(cls, path: Path, location: StoreLocation) -> "AssetRecord":
        """Build a fresh record for a file seen during a listing."""
        return cls(file_name=path.name, location=location, path=path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary for event payloads and logs."""
        return {
            "id": self.id,
            "file_name": self.file_name,
            "location": self.location.value,
            "path": str(self.path) if self.path else None,
            "created_at": self.created_at.isoformat(),
        }
