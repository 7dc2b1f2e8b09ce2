"""Replicated store backed by a directory mirrored by an external sync service."""

import asyncio
import os
import shutil
import stat
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional

from .base import AssetStoreError, BaseAssetStore, DirectoryUnavailable, QueryTimeout, StoreIOError
from ..models import AssetRecord, StoreLocation
from ..utils.logging import get_logger, log_operation_time


GatherCallback = Callable[[List[Path]], None]
ErrorCallback = Callable[[BaseException], None]


class MetadataQuery(ABC):
    """One-shot enumeration of a replicated directory.

    The query reports completion exactly once, from any thread, through
    either ``on_gathered`` or ``on_error``. After ``stop`` no callback fires.
    """

    @abstractmethod
    def start(self, on_gathered: GatherCallback, on_error: ErrorCallback) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass


class DirectoryMetadataQuery(MetadataQuery):
    """Gathers the files of a mounted replicated folder on a worker thread."""

    def __init__(self, root: Path):
        self.root = root
        self.logger = get_logger(self.__class__.__name__)
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._on_gathered: Optional[GatherCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    def start(self, on_gathered: GatherCallback, on_error: ErrorCallback) -> None:
        if self._thread is not None:
            raise RuntimeError("Metadata query already started")

        self._on_gathered = on_gathered
        self._on_error = on_error
        self._thread = threading.Thread(
            target=self._gather,
            name="assetsync-metadata-query",
            daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        self._on_gathered = None
        self._on_error = None

    def _gather(self) -> None:
        try:
            paths = [
                entry for entry in sorted(self.root.iterdir())
                if entry.is_file() and not entry.name.startswith(".")
            ]
        except OSError as e:
            callback = self._on_error
            if not self._stopped.is_set() and callback is not None:
                callback(e)
            return

        callback = self._on_gathered
        if not self._stopped.is_set() and callback is not None:
            callback(paths)


class RemoteStore(BaseAssetStore):
    """Store whose directory is replicated across devices."""

    location = StoreLocation.REMOTE

    def __init__(
        self,
        root: Optional[Path],
        scratch_dir: Path,
        query_factory: Optional[Callable[[Path], MetadataQuery]] = None
    ):
        """Initialize the remote store.

        Args:
            root: Replicated root directory, None if replication is not configured
            scratch_dir: Directory used to stage bytes before placing them remotely
            query_factory: Builds the metadata query used by ``refresh_listing``
        """
        super().__init__()
        self._root = Path(root) if root is not None else None
        self.scratch_dir = Path(scratch_dir)
        self.query_factory = query_factory or DirectoryMetadataQuery

    @property
    def root(self) -> Path:
        if self._root is None:
            raise DirectoryUnavailable("Replicated container is not configured")
        return self._root

    @property
    def is_available(self) -> bool:
        return self._root is not None

    @log_operation_time("ensure_directory")
    def ensure_directory(self) -> None:
        """Create the replicated root (and parents) if it is missing."""
        root = self.root

        if root.is_dir():
            self.logger.info("Remote directory already exists", path=str(root))
            return

        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"Failed to create remote directory {root}: {e}", "create") from e

        self.logger.info("Remote directory created", path=str(root))

    @log_operation_time("write")
    def write(self, name: str, data: bytes) -> AssetRecord:
        """Stage ``data`` locally, place it at the remote path and unprotect it."""
        destination = self.path_for(name)
        staged = self._stage(name, data)
        try:
            self._place(staged, destination, name)
            self._clear_protection(destination, name)
        finally:
            staged.unlink(missing_ok=True)

        self.logger.info("Saved asset to remote store", file_name=name, size=len(data))
        return AssetRecord.observed(destination, self.location)

    @log_operation_time("upload")
    def upload(self, source: Path, name: Optional[str] = None) -> AssetRecord:
        """Copy an existing file into the remote store."""
        name = name or source.name
        destination = self.path_for(name)
        self._place(source, destination, name)
        self._clear_protection(destination, name)

        self.logger.info("Uploaded asset to remote store", file_name=name)
        return AssetRecord.observed(destination, self.location)

    def list(self) -> List[AssetRecord]:
        """Synchronous enumeration; an unavailable directory lists as empty."""
        try:
            records = self._scan(self.root)
        except (OSError, AssetStoreError) as e:
            self.logger.warning("Remote store directory unavailable", error=str(e))
            return []
        return records

    def remove(self, name: str) -> bool:
        """Delete ``name`` from the replicated directory if present."""
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            self.logger.info("Remote asset already absent", file_name=name)
            return False
        except OSError as e:
            raise StoreIOError(f"Failed to remove {name}: {e}", "remove", name) from e

        self.logger.info("Removed asset from remote store", file_name=name)
        return True

    async def refresh_listing(self, timeout: Optional[float] = None) -> List[AssetRecord]:
        """Run one metadata query and return what it gathered.

        The query is stopped once it settles, fails or times out.

        Raises:
            DirectoryUnavailable: If the replicated root is not configured
            StoreIOError: If the query reports a failure
            QueryTimeout: If the query does not settle within ``timeout``
        """
        root = self.root
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def settle(paths: Optional[List[Path]], error: Optional[BaseException]) -> None:
            if future.done():
                return
            if error is not None:
                failure = StoreIOError(f"Remote listing failed: {error}", "list")
                failure.__cause__ = error
                future.set_exception(failure)
            else:
                future.set_result(paths or [])

        def on_gathered(paths: List[Path]) -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(settle, list(paths), None)

        def on_error(error: BaseException) -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(settle, None, error)

        query = self.query_factory(root)
        self.logger.debug("Starting remote metadata query", root=str(root), timeout=timeout)
        try:
            query.start(on_gathered, on_error)
            paths = await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError as e:
            raise QueryTimeout(f"Remote listing did not settle within {timeout}s", timeout) from e
        finally:
            query.stop()

        records = [AssetRecord.observed(path, self.location) for path in paths]
        self.logger.debug("Remote metadata query gathered", count=len(records))
        return records

    def _stage(self, name: str, data: bytes) -> Path:
        staged = self.scratch_dir / f".{uuid.uuid4().hex}-{name}"
        try:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            staged.write_bytes(data)
        except OSError as e:
            raise StoreIOError(f"Failed to stage {name}: {e}", "stage", name) from e
        return staged

    def _place(self, source: Path, destination: Path, name: str) -> None:
        """Copy ``source`` to ``destination`` through a hidden sibling.

        The destination only ever holds a complete file: either the previous
        one or the new one.
        """
        operation = "replace" if destination.exists() else "copy"
        sibling = destination.with_name(f".{uuid.uuid4().hex}.part")
        try:
            shutil.copyfile(source, sibling)
            os.replace(sibling, destination)
        except OSError as e:
            sibling.unlink(missing_ok=True)
            raise StoreIOError(f"Failed to {operation} {name}: {e}", operation, name) from e

    def _clear_protection(self, path: Path, name: str) -> None:
        try:
            os.chmod(path, 0o644)
            if hasattr(os, "chflags") and hasattr(stat, "UF_HIDDEN"):
                flags = os.stat(path).st_flags
                if flags & stat.UF_HIDDEN:
                    os.chflags(path, flags & ~stat.UF_HIDDEN)
        except OSError as e:
            raise StoreIOError(f"Failed to clear protection on {name}: {e}", "protect", name) from e
