"""Shared fixtures for the asset sync tests."""

import threading
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from assetsync.codec import ImageCodec
from assetsync.connectivity import ManualConnectivityMonitor
from assetsync.core import SyncCoordinator
from assetsync.stores import LocalStore, RemoteStore
from assetsync.stores.remote import DirectoryMetadataQuery, MetadataQuery


class BytesCodec(ImageCodec):
    """Treats raw bytes as the image, so tests can compare content directly."""

    extension = "jpg"

    def encode(self, image):
        if not isinstance(image, bytes):
            raise TypeError("BytesCodec only encodes bytes")
        return image

    def decode(self, data):
        return data or None


class NeverSettlingQuery(MetadataQuery):
    """Metadata query that never reports completion."""

    instances: List["NeverSettlingQuery"] = []

    def __init__(self, root: Path):
        self.root = root
        self.started = 0
        self.stopped = 0
        NeverSettlingQuery.instances.append(self)

    def start(self, on_gathered, on_error):
        self.started += 1

    def stop(self):
        self.stopped += 1


class FailingQuery(MetadataQuery):
    """Metadata query that reports an I/O failure from a worker thread."""

    def __init__(self, root: Path):
        self.root = root
        self.stopped = False

    def start(self, on_gathered, on_error):
        threading.Thread(target=on_error, args=(OSError("index unavailable"),)).start()

    def stop(self):
        self.stopped = True


class RefusingQuery(NeverSettlingQuery):
    """Metadata query that registers its observers and then fails to start."""

    def start(self, on_gathered, on_error):
        super().start(on_gathered, on_error)
        raise RuntimeError("metadata index refused the query")


class CountingQuery(DirectoryMetadataQuery):
    """Directory query that records how many times it ran."""

    runs = 0

    def start(self, on_gathered, on_error):
        CountingQuery.runs += 1
        super().start(on_gathered, on_error)


class DelayedQuery(DirectoryMetadataQuery):
    """Directory query that settles only after a delay."""

    delay = 0.2

    def _gather(self):
        self._stopped.wait(self.delay)
        super()._gather()


@pytest.fixture
def local_root(tmp_path) -> Path:
    return tmp_path / "local"


@pytest.fixture
def remote_root(tmp_path) -> Path:
    return tmp_path / "replicated" / "Documents"


@pytest.fixture
def scratch_dir(tmp_path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def local_store(local_root) -> LocalStore:
    return LocalStore(local_root)


@pytest.fixture
def remote_store(remote_root, scratch_dir) -> RemoteStore:
    return RemoteStore(remote_root, scratch_dir)


@pytest.fixture
def codec() -> BytesCodec:
    return BytesCodec()


@pytest.fixture
def offline() -> ManualConnectivityMonitor:
    return ManualConnectivityMonitor(connected=False)


@pytest.fixture
def online() -> ManualConnectivityMonitor:
    return ManualConnectivityMonitor(connected=True)


@pytest.fixture
def make_coordinator(local_root, remote_root, scratch_dir, codec) -> Callable[..., SyncCoordinator]:
    """Build a coordinator over temporary directories."""

    def factory(
        connectivity,
        query_factory=None,
        remote: Optional[Path] = remote_root,
        **kwargs
    ) -> SyncCoordinator:
        kwargs.setdefault("listing_timeout", 2.0)
        kwargs.setdefault("connectivity_grace", 0)
        return SyncCoordinator(
            local_store=LocalStore(local_root),
            remote_store=RemoteStore(remote, scratch_dir, query_factory=query_factory),
            connectivity=connectivity,
            codec=codec,
            **kwargs
        )

    return factory


def file_names(directory: Path) -> List[str]:
    """Visible file names in ``directory``; empty if it does not exist."""
    if not directory.is_dir():
        return []
    return sorted(p.name for p in directory.iterdir() if p.is_file() and not p.name.startswith("."))
