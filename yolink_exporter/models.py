"""Domain models for YoLink devices and their reported state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from .exceptions import ParseError


@dataclass(frozen=True, slots=True)
class Device:
    """Identity and metadata for one YoLink device."""

    device_id: str
    name: str
    token: str
    model: str
    type: str
    parent_device_id: Optional[str] = None
    udid: Optional[str] = None
    service_zone: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Device":
        try:
            device_id = str(payload["deviceId"])
            token = str(payload["token"])
        except KeyError as exc:
            raise ParseError(f"Device entry missing field: {exc.args[0]}") from exc

        return cls(
            device_id=device_id,
            name=str(payload.get("name", "")),
            token=token,
            model=str(payload.get("modelName", "")),
            type=str(payload.get("type", "")),
            parent_device_id=payload.get("parentDeviceId") or None,
            udid=payload.get("deviceUDID") or None,
            service_zone=payload.get("serviceZone") or None,
        )

    @property
    def labels(self) -> tuple[str, str, str]:
        """Label values shared by every metric of this device."""
        return (self.device_id, self.name, self.model)


@dataclass(frozen=True, slots=True)
class DeviceState:
    """Most recent telemetry reported by a device."""

    device_id: str
    online: bool
    temperature: float
    humidity: float
    battery: int
    report_at: str

    @classmethod
    def from_payload(
        cls, data: Mapping[str, Any], *, device_id: Optional[str] = None
    ) -> "DeviceState":
        """Build a state from the ``data`` object of a ``getState`` response.

        ``device_id`` is used when the payload does not echo it back.
        """

        state = data.get("state")
        if not isinstance(state, Mapping):
            raise ParseError("State payload missing 'state' object")

        try:
            temperature = float(state["temperature"])
            humidity = float(state["humidity"])
            battery = int(state["battery"])
        except KeyError as exc:
            raise ParseError(f"State payload missing field: {exc.args[0]}") from exc
        except (TypeError, ValueError, OverflowError) as exc:
            raise ParseError(f"State payload has invalid reading: {exc}") from exc

        online = data.get("online", False)
        if not isinstance(online, bool):
            raise ParseError(f"State payload has non-boolean online flag: {online!r}")

        resolved_id = data.get("deviceId") or device_id
        if not resolved_id:
            raise ParseError("State payload missing device identifier")

        return cls(
            device_id=str(resolved_id),
            online=online,
            temperature=temperature,
            humidity=humidity,
            battery=battery,
            report_at=str(data.get("reportAt") or ""),
        )

    def report_timestamp(self) -> float:
        """Return ``report_at`` as POSIX seconds."""

        return parse_timestamp(self.report_at)


def parse_timestamp(value: str) -> float:
    """Parse an RFC 3339 timestamp such as ``2024-05-01T10:00:00.000Z``."""

    if not value:
        raise ParseError("Empty timestamp")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ParseError(f"Invalid timestamp {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()
