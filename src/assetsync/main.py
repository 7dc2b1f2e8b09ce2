"""Main application entry point."""

import asyncio
import signal
import sys
from typing import Optional

from .config import ConfigLoader, load_config_from_env, set_settings
from .config.settings import AppSettings
from .connectivity import ReachabilityMonitor
from .core import SyncCoordinator, SyncEvent
from .utils.logging import setup_logging, get_logger


class AssetSyncApp:
    """Runs the reachability probe and the sync coordinator for one process."""

    def __init__(self, settings: AppSettings):
        """Initialize the application."""
        self.settings = settings
        self.logger = get_logger("AssetSync")
        self.running = False
        self.monitor: Optional[ReachabilityMonitor] = None
        self.coordinator: Optional[SyncCoordinator] = None

    async def startup(self):
        """Application startup."""
        self.logger.info(
            "Starting Asset Sync",
            version=self.settings.version,
            environment=self.settings.environment
        )

        for warning in ConfigLoader().validate_config(self.settings):
            self.logger.warning("Configuration warning", warning=warning)

        connectivity = self.settings.connectivity
        self.monitor = ReachabilityMonitor(
            probe_url=connectivity.probe_url,
            interval_seconds=connectivity.probe_interval_seconds,
            timeout_seconds=connectivity.probe_timeout_seconds
        )
        await self.monitor.start()

        self.coordinator = SyncCoordinator.from_settings(self.settings, self.monitor)
        self.coordinator.on_event(self._log_event)
        await self.coordinator.start()

        self.running = True
        self.logger.info("Asset Sync started", assets=len(self.coordinator.catalog))

    async def shutdown(self):
        """Application shutdown."""
        self.logger.info("Shutting down Asset Sync")
        self.running = False

        if self.coordinator:
            await self.coordinator.close()

        if self.monitor:
            await self.monitor.stop()

        self.logger.info("Asset Sync stopped")

    async def run(self):
        """Run until a shutdown signal arrives."""
        await self.startup()

        try:
            while self.running:
                await asyncio.sleep(1)
        finally:
            await self.shutdown()

    def _log_event(self, event: SyncEvent):
        if event.is_failure:
            self.logger.debug("Reported sync failure", **event.to_dict())


def setup_signal_handlers(app: AssetSyncApp):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        app.logger.info("Received signal", signal=signum)
        app.running = False

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def main():
    """Main entry point."""
    settings = set_settings(load_config_from_env())
    setup_logging(settings.logging)

    logger = get_logger("main")
    logger.info("Initializing Asset Sync application")

    app = AssetSyncApp(settings)
    setup_signal_handlers(app)

    await app.run()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)
    except Exception as e:
        print(f"Application failed with error: {e}")
        sys.exit(1)
