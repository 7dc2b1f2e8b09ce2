"""Network reachability observation."""

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import aiohttp
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .utils.logging import get_logger


ConnectivityListener = Callable[[bool], None]


class ConnectivityMonitor(ABC):
    """Current reachability plus change notifications.

    Until the first signal arrives the state is unknown and reported as
    not connected.
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)
        self._state: Optional[bool] = None
        self._listeners: List[ConnectivityListener] = []
        self._lock = threading.Lock()

    def is_connected(self) -> bool:
        return bool(self._state)

    @property
    def is_known(self) -> bool:
        return self._state is not None

    def on_change(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, connected: bool) -> None:
        with self._lock:
            if self._state == connected:
                return
            self._state = connected
            listeners = list(self._listeners)

        self.logger.info("Network status changed", connected=connected)

        for listener in listeners:
            try:
                listener(connected)
            except Exception as e:
                self.logger.error("Connectivity listener failed", error=str(e))


class ManualConnectivityMonitor(ConnectivityMonitor):
    """Connectivity driven by the host application (or a test)."""

    def __init__(self, connected: Optional[bool] = None):
        super().__init__()
        if connected is not None:
            self._state = connected

    def set_connected(self, connected: bool) -> None:
        self._publish(connected)


class ReachabilityMonitor(ConnectivityMonitor):
    """Polls a probe URL on an interval and publishes the result."""

    def __init__(
        self,
        probe_url: str,
        interval_seconds: int = 15,
        timeout_seconds: float = 3.0
    ):
        """Initialize reachability monitor.

        Args:
            probe_url: URL that answers with a 2xx/3xx status when online
            interval_seconds: Seconds between probes
            timeout_seconds: Per-probe timeout
        """
        super().__init__()
        self.probe_url = probe_url
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': interval_seconds
            }
        )

    async def start(self) -> None:
        """Probe once immediately, then keep probing in the background."""
        if self.scheduler.running:
            self.logger.warning("Reachability monitor is already running")
            return

        self.scheduler.start()
        self.scheduler.add_job(
            self.probe,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id="reachability_probe",
            replace_existing=True
        )
        await self.probe()

        self.logger.info(
            "Reachability monitor started",
            probe_url=self.probe_url,
            interval_seconds=self.interval_seconds
        )

    async def stop(self) -> None:
        if not self.scheduler.running:
            return
        self.scheduler.shutdown(wait=False)
        self.logger.info("Reachability monitor stopped")

    async def probe(self) -> bool:
        """Run one reachability check and publish it."""
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.head(self.probe_url, allow_redirects=True) as response:
                    connected = response.status < 400
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.debug("Reachability probe failed", probe_url=self.probe_url, error=str(e))
            connected = False

        self._publish(connected)
        return connected
