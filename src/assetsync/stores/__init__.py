"""Local and replicated asset stores."""

from .base import (
    BaseAssetStore,
    AssetStoreError,
    DirectoryUnavailable,
    StoreIOError,
    QueryTimeout
)

from .local import LocalStore
from .remote import RemoteStore, MetadataQuery, DirectoryMetadataQuery

__all__ = [
    # Base classes and exceptions
    "BaseAssetStore",
    "AssetStoreError",
    "DirectoryUnavailable",
    "StoreIOError",
    "QueryTimeout",

    # Store implementations
    "LocalStore",
    "RemoteStore",

    # Remote listing
    "MetadataQuery",
    "DirectoryMetadataQuery"
]
