"""Asset Sync - keeps a local-only and a replicated image store in one catalog."""

from .catalog import AssetCatalog
from .codec import ImageCodec, JpegCodec
from .connectivity import ConnectivityMonitor, ManualConnectivityMonitor, ReachabilityMonitor
from .core import SyncCoordinator, SyncEvent, SyncEventType
from .models import AssetRecord, StoreLocation
from .stores import (
    AssetStoreError,
    DirectoryUnavailable,
    LocalStore,
    QueryTimeout,
    RemoteStore,
    StoreIOError
)

__version__ = "1.0.0"

__all__ = [
    "AssetCatalog",
    "AssetRecord",
    "StoreLocation",
    "ImageCodec",
    "JpegCodec",
    "ConnectivityMonitor",
    "ManualConnectivityMonitor",
    "ReachabilityMonitor",
    "SyncCoordinator",
    "SyncEvent",
    "SyncEventType",
    "LocalStore",
    "RemoteStore",
    "AssetStoreError",
    "DirectoryUnavailable",
    "QueryTimeout",
    "StoreIOError",
]
