from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from yolink_exporter.exceptions import APIError
from yolink_exporter.models import Device, DeviceState


def make_device(device_id: str, name: Optional[str] = None, **overrides: Any) -> Device:
    values: dict[str, Any] = {
        "device_id": device_id,
        "name": name or f"Sensor {device_id}",
        "token": f"token-{device_id}",
        "model": "YS8007-UC",
        "type": "THSensor",
    }
    values.update(overrides)
    return Device(**values)


def make_state(device_id: str, **overrides: Any) -> DeviceState:
    values: dict[str, Any] = {
        "device_id": device_id,
        "online": True,
        "temperature": 21.5,
        "humidity": 45.0,
        "battery": 4,
        "report_at": "2024-05-01T10:00:00.000Z",
    }
    values.update(overrides)
    return DeviceState(**values)


class FakeDeviceSource:
    """In-memory stand-in for ``YoLinkClient`` used by collector tests."""

    def __init__(self) -> None:
        self.devices: list[Device] = []
        self.states: dict[str, DeviceState] = {}
        self.list_error: Optional[Exception] = None
        self.state_errors: dict[str, Exception] = {}
        self.list_calls = 0
        self.state_calls: list[str] = []
        self.delay = 0.0

    async def list_devices(self) -> list[Device]:
        self.list_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.list_error is not None:
            raise self.list_error
        return list(self.devices)

    async def fetch_device_state(self, device: Device) -> DeviceState:
        self.state_calls.append(device.device_id)
        error = self.state_errors.get(device.device_id)
        if error is not None:
            raise error
        state = self.states.get(device.device_id)
        if state is None:
            raise APIError(f"no state for {device.device_id}")
        return state


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def source() -> FakeDeviceSource:
    return FakeDeviceSource()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def device_payload(device_id: str, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "deviceId": device_id,
        "deviceUDID": f"udid-{device_id}",
        "name": f"Sensor {device_id}",
        "token": f"token-{device_id}",
        "type": "THSensor",
        "modelName": "YS8007-UC",
        "serviceZone": "us_west_1",
    }
    payload.update(overrides)
    return payload


def state_payload(device_id: str, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "online": True,
        "state": {
            "battery": 4,
            "humidity": 45.0,
            "temperature": 21.5,
            "state": "normal",
        },
        "deviceId": device_id,
        "reportAt": "2024-05-01T10:00:00.000Z",
    }
    payload.update(overrides)
    return payload


@dataclass
class FakeYoLinkCloud:
    """Scriptable fake of the YoLink token and RPC endpoints."""

    devices: list[dict[str, Any]] = field(default_factory=list)
    states: dict[str, dict[str, Any]] = field(default_factory=dict)
    token_status: int = 200
    refresh_status: int = 200
    api_status: int = 200
    expires_in: int = 7200
    list_code: str = "000000"
    failing_devices: set[str] = field(default_factory=set)
    # Raw response text served verbatim in place of the JSON payload.
    token_body: Optional[str] = None
    list_body: Optional[str] = None
    raw_states: dict[str, str] = field(default_factory=dict)
    token_requests: list[dict[str, str]] = field(default_factory=list)
    api_requests: list[dict[str, Any]] = field(default_factory=list)
    api_headers: list[dict[str, str]] = field(default_factory=list)

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/open/yolink/token", self._handle_token)
        app.router.add_post("/open/yolink/v2/api", self._handle_api)
        return app

    async def _handle_token(self, request: web.Request) -> web.StreamResponse:
        form = dict(await request.post())
        self.token_requests.append(form)
        grant = form.get("grant_type")
        status = self.refresh_status if grant == "refresh_token" else self.token_status
        if status != 200:
            return web.Response(status=status, text="invalid client")
        if self.token_body is not None:
            return web.Response(text=self.token_body, content_type="application/json")
        count = len(self.token_requests)
        return web.json_response(
            {
                "access_token": f"access-{count}",
                "token_type": "bearer",
                "expires_in": self.expires_in,
                "refresh_token": f"refresh-{count}",
                "scope": ["create"],
            }
        )

    async def _handle_api(self, request: web.Request) -> web.StreamResponse:
        body = await request.json()
        self.api_requests.append(body)
        self.api_headers.append(dict(request.headers))
        if self.api_status != 200:
            return web.Response(status=self.api_status, text="upstream failure")

        if body["method"] == "Home.getDeviceList":
            if self.list_body is not None:
                return web.Response(text=self.list_body, content_type="application/json")
            return web.json_response(
                {
                    "code": self.list_code,
                    "time": body["time"],
                    "msgid": body["time"],
                    "method": body["method"],
                    "desc": "Success" if self.list_code == "000000" else "Failed",
                    "data": {"devices": self.devices},
                }
            )

        target = body.get("targetDevice")
        if target in self.raw_states:
            return web.Response(
                text=self.raw_states[target], content_type="application/json"
            )
        if target in self.failing_devices or target not in self.states:
            return web.json_response(
                {"code": "000201", "time": body["time"], "desc": "Cannot connect to Device"}
            )
        return web.json_response(
            {"code": "000000", "time": body["time"], "data": self.states[target]}
        )


@pytest.fixture
def cloud() -> FakeYoLinkCloud:
    return FakeYoLinkCloud()


@pytest_asyncio.fixture
async def cloud_server(cloud: FakeYoLinkCloud):
    async with TestServer(cloud.build_app()) as server:
        yield server
