"""HTTP endpoints serving Prometheus metrics and a liveness check."""

from __future__ import annotations

import contextlib
import logging
from typing import Optional

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .collector import MetricSnapshot, YoLinkCollector

LOGGER = logging.getLogger(__name__)


class ExporterServer:
    """Minimal HTTP server exposing `/metrics` and `/health`."""

    def __init__(self, collector: YoLinkCollector, host: str, port: int) -> None:
        self._collector = collector
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/health", self._handle_health)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info("Starting YoLink exporter on http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        families = await self._collector.collect()
        body = generate_latest(MetricSnapshot(families))
        return web.Response(body=body, headers={"Content-Type": CONTENT_TYPE_LATEST})

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.Response(text="OK")
