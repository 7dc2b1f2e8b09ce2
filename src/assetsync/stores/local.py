"""Local-only store backed by a private, non-replicated directory."""

import os
import tempfile
from pathlib import Path
from typing import List

from .base import BaseAssetStore, StoreIOError
from ..models import AssetRecord, StoreLocation
from ..utils.logging import log_operation_time


class LocalStore(BaseAssetStore):
    """Private directory holding assets that have not been replicated."""

    location = StoreLocation.LOCAL

    def __init__(self, root: Path):
        super().__init__()
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def ensure_directory(self) -> None:
        """Create the store directory if it does not exist yet."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"Failed to create {self._root}: {e}", "create") from e

    @log_operation_time("write")
    def write(self, name: str, data: bytes) -> AssetRecord:
        """Write ``data`` to ``name``; an existing file is overwritten."""
        path = self.path_for(name)
        self.ensure_directory()

        # Hidden temp sibling, then rename over the real name
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=".", suffix=".part", dir=self._root)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreIOError(f"Failed to write {name}: {e}", "write", name) from e

        self.logger.info("Saved asset to local store", file_name=name, size=len(data))
        return AssetRecord.observed(path, self.location)

    def list(self) -> List[AssetRecord]:
        """Enumerate local assets; an unreadable directory lists as empty."""
        try:
            self.ensure_directory()
            records = self._scan(self._root)
        except (OSError, StoreIOError) as e:
            self.logger.warning("Local store directory unavailable", root=str(self._root), error=str(e))
            return []

        self.logger.debug("Listed local store", count=len(records))
        return records

    def remove(self, name: str) -> bool:
        """Delete ``name``; a missing file is not an error."""
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            self.logger.debug("Local asset already absent", file_name=name)
            return False
        except OSError as e:
            raise StoreIOError(f"Failed to remove {name}: {e}", "remove", name) from e

        self.logger.info("Removed asset from local store", file_name=name)
        return True
