"""Sync coordinator: write routing, upload drain and merged listings."""

import asyncio
import functools
import time
import uuid
from typing import Any, Callable, List, Optional

from .events import CoordinatorState, DrainResult, RefreshResult, SyncEvent, SyncEventType
from ..catalog import AssetCatalog
from ..codec import ImageCodec, JpegCodec
from ..config.settings import AppSettings
from ..connectivity import ConnectivityMonitor
from ..models import AssetRecord, StoreLocation
from ..stores import (
    AssetStoreError,
    BaseAssetStore,
    DirectoryUnavailable,
    LocalStore,
    QueryTimeout,
    RemoteStore
)
from ..stores.remote import MetadataQuery
from ..utils.logging import get_logger, log_operation_time


EventListener = Callable[[SyncEvent], None]


class SyncCoordinator:
    """Orchestrates the local-only and replicated stores behind one catalog.

    All catalog mutation happens on the event loop that called ``start``;
    store I/O runs in the loop's default executor. Store failures never
    propagate to callers. They are logged, reported to event listeners, and
    the affected operation degrades to an empty or no-op result.
    """

    def __init__(
        self,
        local_store: LocalStore,
        remote_store: RemoteStore,
        connectivity: ConnectivityMonitor,
        codec: ImageCodec,
        catalog: Optional[AssetCatalog] = None,
        listing_timeout: Optional[float] = 5.0,
        connectivity_grace: float = 3.0,
        drain_on_reconnect: bool = True
    ):
        """Initialize the coordinator.

        Args:
            local_store: Private, non-replicated store
            remote_store: Replicated store
            connectivity: Source of the current reachability state
            codec: Encodes images on save and decodes them on select
            catalog: Catalog to publish into, a new one if omitted
            listing_timeout: Seconds to wait for the remote listing to settle
            connectivity_grace: Seconds startup waits for connectivity before
                skipping the upload drain
            drain_on_reconnect: Drain local assets on every reconnect
        """
        self.local_store = local_store
        self.remote_store = remote_store
        self.connectivity = connectivity
        self.codec = codec
        self.catalog = catalog if catalog is not None else AssetCatalog()
        self.listing_timeout = listing_timeout
        self.connectivity_grace = connectivity_grace
        self.drain_on_reconnect = drain_on_reconnect
        self.logger = get_logger(self.__class__.__name__)

        self._event_listeners: List[EventListener] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connected: Optional[asyncio.Event] = None
        self._unsubscribe_connectivity: Optional[Callable[[], None]] = None
        self._started = False

        self._refresh_task: Optional[asyncio.Future] = None
        self._refresh_requested = False
        self._drain_task: Optional[asyncio.Future] = None
        self._refreshing = False
        self._draining = False

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        connectivity: ConnectivityMonitor,
        codec: Optional[ImageCodec] = None,
        query_factory: Optional[Callable[..., MetadataQuery]] = None
    ) -> "SyncCoordinator":
        """Build a coordinator and its stores from application settings."""
        storage = settings.storage
        return cls(
            local_store=LocalStore(storage.local_root),
            remote_store=RemoteStore(
                storage.remote_root,
                storage.resolve_scratch_dir(),
                query_factory=query_factory
            ),
            connectivity=connectivity,
            codec=codec or JpegCodec(quality=settings.codec.jpeg_quality),
            catalog=AssetCatalog(deduplicate=settings.sync.deduplicate_catalog),
            listing_timeout=settings.sync.listing_timeout_seconds,
            connectivity_grace=settings.sync.connectivity_grace_seconds,
            drain_on_reconnect=settings.sync.drain_on_reconnect
        )

    @property
    def state(self) -> CoordinatorState:
        if self._refreshing:
            return CoordinatorState.SYNCING
        if self._draining:
            return CoordinatorState.UPLOADING
        return CoordinatorState.IDLE

    def on_event(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener for reported events; returns an unsubscribe callable."""
        self._event_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._event_listeners:
                self._event_listeners.remove(listener)

        return unsubscribe

    # Lifecycle

    async def start(self) -> None:
        """Bootstrap directories, refresh, then drain local assets if online."""
        self._loop = asyncio.get_running_loop()
        self._connected = asyncio.Event()
        if self.connectivity.is_connected():
            self._connected.set()
        self._unsubscribe_connectivity = self.connectivity.on_change(self._handle_connectivity_change)

        self.logger.info("Starting sync coordinator", connected=self.connectivity.is_connected())

        await self.bootstrap()
        await self.refresh()

        if await self._wait_for_connectivity(self.connectivity_grace):
            await self._ensure_drain()
        else:
            self.logger.info("Offline at startup, local assets stay local")

        self._started = True
        self.logger.info("Sync coordinator started", assets=len(self.catalog))

    async def close(self) -> None:
        """Stop observing connectivity and wait for background work."""
        if self._unsubscribe_connectivity is not None:
            self._unsubscribe_connectivity()
            self._unsubscribe_connectivity = None
        self._started = False

        for task in (self._drain_task, self._refresh_task):
            if task is not None and not task.done():
                await task

        self.logger.info("Sync coordinator closed")

    async def bootstrap(self) -> bool:
        """Create both store directories.

        Returns:
            True if the replicated directory is ready
        """
        try:
            await self._run_blocking(self.local_store.ensure_directory)
        except AssetStoreError as e:
            self._report(SyncEventType.DIRECTORY_UNAVAILABLE, location=StoreLocation.LOCAL, error=e)

        try:
            await self._run_blocking(self.remote_store.ensure_directory)
        except AssetStoreError as e:
            self._report(SyncEventType.DIRECTORY_UNAVAILABLE, location=StoreLocation.REMOTE, error=e)
            return False

        self._report(SyncEventType.DIRECTORY_READY, location=StoreLocation.REMOTE)
        return True

    # Operations exposed to the presentation layer

    async def save(self, image: Any) -> Optional[AssetRecord]:
        """Encode ``image`` and write it where connectivity allows.

        Online writes go to the replicated store. Offline writes, and online
        writes the replicated store rejects, go to the local store. A rejected
        remote write is cleaned up first so the asset never lands in both.
        """
        file_name = self._new_file_name()

        try:
            data = await self._run_blocking(self.codec.encode, image)
        except Exception as e:
            self._report(SyncEventType.SAVE_FAILED, file_name=file_name, error=e)
            await self.refresh()
            return None

        record = None
        if self.connectivity.is_connected():
            record = await self._write(self.remote_store, file_name, data)
            if record is None and not await self._run_blocking(self._discard_remote_copy, file_name):
                await self.refresh()
                return None

        if record is None:
            record = await self._write(self.local_store, file_name, data)

        await self.refresh()
        return record

    async def delete(self, file_name: str) -> bool:
        """Remove ``file_name`` from both stores; absent files are a no-op."""
        removed = False

        for store in (self.remote_store, self.local_store):
            try:
                removed = await self._run_blocking(store.remove, file_name) or removed
            except DirectoryUnavailable:
                self.logger.debug("Skipping delete in unavailable store", location=store.location.value)
            except AssetStoreError as e:
                self._report(SyncEventType.DELETE_FAILED, file_name=file_name, location=store.location, error=e)

        if removed:
            self._report(SyncEventType.DELETED, file_name=file_name)

        if self.catalog.selected_name == file_name:
            self.catalog.set_selected(None, None)

        await self.refresh()
        return removed

    async def refresh(self) -> RefreshResult:
        """Rebuild the catalog from both stores.

        At most one refresh runs at a time; requests made while one is in
        flight are folded into a single follow-up pass.
        """
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_requested = True
        else:
            self._refresh_task = asyncio.ensure_future(self._refresh_loop())
        return await asyncio.shield(self._refresh_task)

    async def select(self, file_name: Optional[str]) -> Optional[Any]:
        """Load and decode ``file_name`` and publish it as the selection."""
        if file_name is None:
            self.catalog.set_selected(None, None)
            return None

        data = None
        error: Optional[Exception] = None
        for store in self._stores_for(file_name):
            try:
                data = await self._run_blocking(store.read, file_name)
                break
            except AssetStoreError as e:
                error = e

        if data is None:
            self._report(SyncEventType.READ_FAILED, file_name=file_name, error=error)
            self.catalog.set_selected(None, None)
            return None

        image = await self._run_blocking(self.codec.decode, data)
        self.catalog.set_selected(file_name, image)
        return image

    @log_operation_time("drain")
    async def drain(self) -> DrainResult:
        """Move every local-only asset into the replicated store.

        Assets whose name already exists remotely are left untouched in the
        local store. Per-file failures are reported and the file stays local.
        """
        result = DrainResult()
        start_time = time.monotonic()

        if not self.remote_store.is_available:
            self.logger.info("Replicated store not configured, skipping upload drain")
            return result

        self._draining = True
        try:
            try:
                local_records = await self._run_blocking(self.local_store.list)
            except Exception as e:
                self._report(SyncEventType.LISTING_FAILED, location=StoreLocation.LOCAL, error=e)
                return result

            for record in local_records:
                result.files_processed += 1
                try:
                    outcome = await self._run_blocking(self._upload_one, record.file_name)
                except Exception as e:
                    result.files_failed += 1
                    self._report(SyncEventType.UPLOAD_FAILED, file_name=record.file_name,
                                 location=StoreLocation.REMOTE, error=e)
                    continue

                if outcome == SyncEventType.UPLOADED:
                    result.files_uploaded += 1
                else:
                    result.files_skipped += 1
                self._report(outcome, file_name=record.file_name, location=StoreLocation.REMOTE)
        finally:
            self._draining = False
            result.duration = time.monotonic() - start_time

        self.logger.info(
            "Upload drain completed",
            files_processed=result.files_processed,
            files_uploaded=result.files_uploaded,
            files_skipped=result.files_skipped,
            files_failed=result.files_failed,
            duration=f"{result.duration:.2f}s"
        )
        return result

    # Internals

    def _upload_one(self, file_name: str) -> SyncEventType:
        if self.remote_store.exists(file_name):
            return SyncEventType.UPLOAD_SKIPPED

        try:
            self.remote_store.upload(self.local_store.path_for(file_name), file_name)
            self.local_store.remove(file_name)
        except AssetStoreError:
            # The local file is the copy that gets retried
            self._discard_remote_copy(file_name)
            raise
        return SyncEventType.UPLOADED

    def _discard_remote_copy(self, file_name: str) -> bool:
        """Remove a remote copy left by a failed write or upload.

        Returns:
            True if nothing of ``file_name`` remains in the replicated store
        """
        try:
            self.remote_store.remove(file_name)
        except DirectoryUnavailable:
            return True
        except AssetStoreError as e:
            self.logger.error("Failed to discard remote copy", file_name=file_name, error=str(e))
            return False
        return True

    async def _write(self, store: BaseAssetStore, file_name: str, data: bytes) -> Optional[AssetRecord]:
        try:
            record = await self._run_blocking(store.write, file_name, data)
        except AssetStoreError as e:
            self._report(SyncEventType.SAVE_FAILED, file_name=file_name, location=store.location, error=e)
            return None

        self._report(SyncEventType.SAVED, file_name=file_name, location=store.location)
        return record

    async def _refresh_loop(self) -> RefreshResult:
        self._refreshing = True
        try:
            while True:
                self._refresh_requested = False
                result = await self._refresh_once()
                if not self._refresh_requested:
                    return result
        finally:
            self._refreshing = False

    @log_operation_time("refresh")
    async def _refresh_once(self) -> RefreshResult:
        result = RefreshResult()
        start_time = time.monotonic()

        remote_records, local_records = await asyncio.gather(
            self._gather_remote(result),
            self._gather_local(result)
        )
        self.catalog.publish(remote_records, local_records)

        result.remote_count = len(remote_records)
        result.local_count = len(local_records)
        result.duration = time.monotonic() - start_time

        self.logger.info(
            "Catalog refreshed",
            remote=result.remote_count,
            local=result.local_count,
            success=result.success
        )
        return result

    async def _gather_remote(self, result: RefreshResult) -> List[AssetRecord]:
        try:
            return await self.remote_store.refresh_listing(timeout=self.listing_timeout)
        except QueryTimeout as e:
            self._report(SyncEventType.QUERY_TIMEOUT, location=StoreLocation.REMOTE, error=e)
        except DirectoryUnavailable as e:
            self._report(SyncEventType.DIRECTORY_UNAVAILABLE, location=StoreLocation.REMOTE, error=e)
        except Exception as e:
            self._report(SyncEventType.LISTING_FAILED, location=StoreLocation.REMOTE, error=e)

        result.remote_ok = False
        return []

    async def _gather_local(self, result: RefreshResult) -> List[AssetRecord]:
        try:
            return await self._run_blocking(self.local_store.list)
        except Exception as e:
            self._report(SyncEventType.LISTING_FAILED, location=StoreLocation.LOCAL, error=e)

        result.local_ok = False
        return []

    def _schedule_drain(self) -> asyncio.Future:
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.ensure_future(self._drain_and_refresh())
        return self._drain_task

    async def _ensure_drain(self) -> DrainResult:
        return await asyncio.shield(self._schedule_drain())

    async def _drain_and_refresh(self) -> DrainResult:
        result = await self.drain()
        if result.files_processed:
            await self.refresh()
        return result

    async def _wait_for_connectivity(self, grace: float) -> bool:
        if self.connectivity.is_connected():
            return True
        if grace <= 0:
            return False
        try:
            await asyncio.wait_for(self._connected.wait(), grace)
        except asyncio.TimeoutError:
            return False
        return True

    def _handle_connectivity_change(self, connected: bool) -> None:
        # Called from whichever thread observed the change
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._apply_connectivity, connected)

    def _apply_connectivity(self, connected: bool) -> None:
        if connected:
            self._connected.set()
        else:
            self._connected.clear()

        if connected and self._started and self.drain_on_reconnect:
            self.logger.info("Connectivity restored, draining local assets")
            self._schedule_drain()

    def _stores_for(self, file_name: str) -> List[BaseAssetStore]:
        stores: List[BaseAssetStore] = [self.remote_store, self.local_store]
        record = self.catalog.find(file_name)
        if record is not None and record.location == StoreLocation.LOCAL:
            stores.reverse()
        return stores

    def _new_file_name(self) -> str:
        return f"image_{uuid.uuid4()}.{self.codec.extension}"

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    def _report(
        self,
        event_type: SyncEventType,
        file_name: Optional[str] = None,
        location: Optional[StoreLocation] = None,
        error: Optional[BaseException] = None
    ) -> SyncEvent:
        event = SyncEvent(
            event_type=event_type,
            file_name=file_name,
            location=location,
            error=str(error) if error is not None else None
        )

        log_context = {key: value for key, value in event.to_dict().items() if value is not None}
        log_context.pop("timestamp", None)
        if event.is_failure:
            self.logger.warning("Sync operation failed", **log_context)
        else:
            self.logger.info("Sync operation completed", **log_context)

        for listener in list(self._event_listeners):
            try:
                listener(event)
            except Exception as e:
                self.logger.error("Event listener failed", error=str(e))

        return event
