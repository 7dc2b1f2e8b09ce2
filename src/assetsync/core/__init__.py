"""Core synchronization logic package."""

from .coordinator import SyncCoordinator
from .events import (
    CoordinatorState,
    DrainResult,
    RefreshResult,
    SyncEvent,
    SyncEventType
)

__all__ = [
    "SyncCoordinator",
    "CoordinatorState",
    "DrainResult",
    "RefreshResult",
    "SyncEvent",
    "SyncEventType"
]
