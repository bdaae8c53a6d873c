"""Main application entry-point for yolink-exporter."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional

from . import constants
from .client import YoLinkClient
from .collector import YoLinkCollector
from .config import ExporterConfig, load_config
from .logging import configure_logging
from .server import ExporterServer

LOGGER = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 30.0


class ExporterApp:
    """Coordinates exporter startup and shutdown.

    Builds the API client, the collector and the HTTP server from
    configuration, serves until SIGINT or SIGTERM arrives, then shuts the
    server down gracefully and releases the client's HTTP session.
    """

    def __init__(
        self,
        config: Optional[ExporterConfig] = None,
        *,
        client: Optional[YoLinkClient] = None,
    ) -> None:
        self._config = config or load_config()
        api = self._config.api
        self._client = client or YoLinkClient(
            api.key or "",
            api.secret or "",
            api.endpoint,
            request_timeout=api.request_timeout_seconds,
            safety_buffer_seconds=api.token_safety_buffer_seconds,
        )
        self._collector = YoLinkCollector(
            self._client, interval_seconds=self._config.scrape.interval_seconds
        )
        self._server = ExporterServer(
            self._collector, self._config.server.host, self._config.server.port
        )
        self._shutdown_event: Optional[asyncio.Event] = None

    @property
    def collector(self) -> YoLinkCollector:
        return self._collector

    async def run(self) -> None:
        """Serve metrics until :meth:`request_shutdown` or a signal."""

        loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.request_shutdown)

        LOGGER.info(
            "%s scraping %s every %ss",
            constants.APP_NAME,
            self._config.api.endpoint,
            self._config.scrape.interval_seconds,
        )

        await self._server.start()
        try:
            await self._shutdown_event.wait()
            LOGGER.info("Shutting down server...")
        finally:
            await self._stop_services()
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError, RuntimeError):
                    loop.remove_signal_handler(sig)

        LOGGER.info("Server exited")

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @classmethod
    def start(cls, config: Optional[ExporterConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("%s received shutdown signal", constants.APP_NAME)

    async def _stop_services(self) -> None:
        try:
            await asyncio.wait_for(self._server.stop(), SHUTDOWN_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Server did not stop within %.0f seconds", SHUTDOWN_TIMEOUT_SECONDS
            )
        finally:
            await self._client.aclose()
