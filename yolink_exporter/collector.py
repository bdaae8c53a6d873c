"""Scrape-driven cache and Prometheus metric rendering for YoLink sensors."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Mapping, Optional, Protocol

from prometheus_client.core import GaugeMetricFamily, Metric

from .exceptions import ParseError, YoLinkError
from .models import Device, DeviceState

LOGGER = logging.getLogger(__name__)

METRIC_PREFIX = "yolink"
DEVICE_LABELS = ["device_id", "device_name", "model"]


class DeviceSource(Protocol):
    """Subset of :class:`~yolink_exporter.client.YoLinkClient` the collector uses."""

    async def list_devices(self) -> list[Device]:
        ...

    async def fetch_device_state(self, device: Device) -> DeviceState:
        ...


@dataclass(frozen=True, slots=True)
class CacheSnapshot:
    """Device list and state mapping captured by one refresh cycle."""

    devices: tuple[Device, ...] = ()
    states: Mapping[str, DeviceState] = field(default_factory=dict)

    def reporting_devices(self) -> Iterator[tuple[Device, DeviceState]]:
        for device in self.devices:
            state = self.states.get(device.device_id)
            if state is not None:
                yield device, state


class MetricSnapshot:
    """Expose an already collected family list through ``collect()``.

    ``prometheus_client.generate_latest`` only needs an object with a
    ``collect`` method, so a scrape result can be rendered without
    registering it globally.
    """

    def __init__(self, families: Iterable[Metric]) -> None:
        self._families = list(families)

    def collect(self) -> Iterator[Metric]:
        return iter(self._families)


class YoLinkCollector:
    """Serve device metrics from a cache that refreshes lazily on scrape.

    The cache is Fresh while younger than ``interval_seconds`` and Stale
    otherwise. A stale cache is refreshed synchronously inside :meth:`collect`.
    Only a successful refresh resets the staleness clock; after a failure the
    previous snapshot is kept and the next scrape retries straight away.
    """

    def __init__(
        self,
        client: DeviceSource,
        *,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._snapshot = CacheSnapshot()
        self._last_refresh: Optional[float] = None

    @property
    def snapshot(self) -> CacheSnapshot:
        return self._snapshot

    @property
    def last_refresh(self) -> Optional[float]:
        return self._last_refresh

    def is_stale(self) -> bool:
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh >= self.interval_seconds

    async def collect(self) -> list[Metric]:
        """Return the metric families for one scrape."""

        async with self._lock:
            up = GaugeMetricFamily(
                f"{METRIC_PREFIX}_up",
                "Whether the YoLink exporter is working (1) or not (0)",
            )

            if self.is_stale():
                try:
                    await self.refresh()
                except YoLinkError as exc:
                    LOGGER.error("Failed to refresh device data: %s", exc)
                    up.add_metric([], 0)
                    return [up]
                self._last_refresh = self._clock()

            up.add_metric([], 1)
            return [up, *self._render(self._snapshot)]

    async def refresh(self) -> None:
        """Run one refresh cycle and replace the cached snapshot.

        A device-list failure propagates and leaves the cache untouched. A
        failed state fetch only drops that device from this cycle.
        """

        devices = await self._client.list_devices()
        states = await self._fetch_states(devices)
        self._snapshot = CacheSnapshot(devices=tuple(devices), states=states)
        LOGGER.debug(
            "Refreshed %d devices (%d with state)", len(devices), len(states)
        )

    async def _fetch_states(
        self, devices: Iterable[Device]
    ) -> dict[str, DeviceState]:
        states: dict[str, DeviceState] = {}
        for device in devices:
            try:
                states[device.device_id] = await self._client.fetch_device_state(
                    device
                )
            except YoLinkError as exc:
                LOGGER.warning(
                    "Failed to get state for device %s (%s): %s",
                    device.name,
                    device.device_id,
                    exc,
                )
        return states

    def _render(self, snapshot: CacheSnapshot) -> list[Metric]:
        online = _device_family(
            "device_online", "Device online status (1=online, 0=offline)"
        )
        last_updated = _device_family(
            "last_updated_timestamp",
            "Unix timestamp of when the device last reported data",
        )
        temperature = _device_family("temperature_celsius", "Temperature in Celsius")
        humidity = _device_family("humidity_percent", "Humidity percentage")
        battery = _device_family("battery_level", "Battery level (1-4)")

        for device, state in snapshot.reporting_devices():
            labels = list(device.labels)
            online.add_metric(labels, 1 if state.online else 0)

            try:
                last_updated.add_metric(labels, state.report_timestamp())
            except ParseError as exc:
                LOGGER.warning(
                    "Failed to parse reportAt time for device %s: %s",
                    device.device_id,
                    exc,
                )

            # Readings from a disconnected sensor are not current.
            if state.online:
                temperature.add_metric(labels, state.temperature)
                humidity.add_metric(labels, state.humidity)
                battery.add_metric(labels, state.battery)

        families = [online, last_updated, temperature, humidity, battery]
        return [family for family in families if family.samples]


def _device_family(name: str, documentation: str) -> GaugeMetricFamily:
    return GaugeMetricFamily(
        f"{METRIC_PREFIX}_{name}", documentation, labels=DEVICE_LABELS
    )
