"""Base store interface and the store error taxonomy."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from ..models import AssetRecord, StoreLocation
from ..utils.logging import get_logger


class AssetStoreError(Exception):
    """Base exception for store failures."""
    pass


class DirectoryUnavailable(AssetStoreError):
    """Raised when a store's root container cannot be resolved."""
    pass


class StoreIOError(AssetStoreError):
    """Raised when a create/write/read/remove/copy/replace step fails."""

    def __init__(self, message: str, operation: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.file_name = file_name


class QueryTimeout(AssetStoreError):
    """Raised when a remote listing query never reports completion."""

    def __init__(self, message: str, timeout: float):
        super().__init__(message)
        self.timeout = timeout


class BaseAssetStore(ABC):
    """Abstract base class for a directory-backed asset store.

    Stores are synchronous; the coordinator runs them off the event loop.
    """

    location: StoreLocation

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    @property
    @abstractmethod
    def root(self) -> Path:
        """Resolved root directory of the store.

        Raises:
            DirectoryUnavailable: If the root cannot be resolved
        """
        pass

    @abstractmethod
    def write(self, name: str, data: bytes) -> AssetRecord:
        """Write ``data`` under ``name``, replacing any existing file."""
        pass

    @abstractmethod
    def list(self) -> List[AssetRecord]:
        """Enumerate the assets currently in the store."""
        pass

    @abstractmethod
    def remove(self, name: str) -> bool:
        """Remove ``name`` if present.

        Returns:
            True if a file was removed, False if there was nothing to remove
        """
        pass

    def read(self, name: str) -> bytes:
        """Return the raw content of ``name``."""
        path = self.path_for(name)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StoreIOError(f"Failed to read {name}: {e}", "read", name) from e

    def exists(self, name: str) -> bool:
        """Check whether ``name`` exists in the store."""
        return self.path_for(name).is_file()

    def path_for(self, name: str) -> Path:
        """Resolve ``name`` inside the store root."""
        validate_file_name(name)
        return self.root / name

    def _scan(self, directory: Path) -> List[AssetRecord]:
        records = []
        for entry in sorted(directory.iterdir()):
            if entry.name.startswith(".") or not entry.is_file():
                continue
            records.append(AssetRecord.observed(entry, self.location))
        return records


def validate_file_name(name: str) -> None:
    """Reject names that would escape the store directory."""
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise StoreIOError(f"Invalid file name: {name!r}", "resolve", name)
