"""YoLink cloud API client with OAuth2 session management."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import aiohttp

from . import constants
from .exceptions import APIError, AuthError, ParseError
from .models import Device, DeviceState

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class AuthSession:
    """OAuth2 access/refresh token pair and its effective expiry."""

    access_token: str
    refresh_token: Optional[str]
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return bool(self.access_token) and now < self.expires_at


class YoLinkClient:
    """Stateful wrapper around the YoLink open API.

    Every authenticated call first runs :meth:`ensure_valid_session`, so callers
    never sequence token acquisition themselves. The client holds no lock; it is
    driven by a single collector that serializes access.
    """

    def __init__(
        self,
        api_key: str,
        secret: str,
        endpoint: str = constants.DEFAULT_API_ENDPOINT,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        request_timeout: float = constants.DEFAULT_REQUEST_TIMEOUT_SECONDS,
        safety_buffer_seconds: int = constants.DEFAULT_TOKEN_SAFETY_BUFFER_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        self.api_key = api_key
        self.secret = secret
        self.endpoint = endpoint.rstrip("/")
        self.request_timeout = request_timeout
        self.safety_buffer_seconds = safety_buffer_seconds

        self._clock = clock
        self._http: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None
        self._auth: Optional[AuthSession] = None

    @property
    def auth_session(self) -> Optional[AuthSession]:
        return self._auth

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def list_devices(self) -> list[Device]:
        """Return the temperature/humidity sensors registered to the account."""

        await self.ensure_valid_session()
        payload = await self._call_api({"method": "Home.getDeviceList"})

        data = payload.get("data")
        devices = data.get("devices") if isinstance(data, dict) else None
        if not isinstance(devices, list):
            raise APIError("Device list response missing 'data.devices'")

        sensors: list[Device] = []
        for entry in devices:
            if not isinstance(entry, dict):
                raise APIError("Device list contains a non-object entry")
            if (
                entry.get("type") != constants.SENSOR_DEVICE_TYPE
                or entry.get("modelName") != constants.SENSOR_MODEL
            ):
                continue
            try:
                sensors.append(Device.from_payload(entry))
            except ParseError as exc:
                raise APIError(f"Malformed device entry: {exc}") from exc

        LOGGER.debug(
            "Device list returned %d entries, %d matching sensors",
            len(devices),
            len(sensors),
        )
        return sensors

    async def fetch_device_state(self, device: Device) -> DeviceState:
        """Fetch the latest reported state of ``device``."""

        await self.ensure_valid_session()
        payload = await self._call_api(
            {
                "method": f"{constants.SENSOR_DEVICE_TYPE}.getState",
                "targetDevice": device.device_id,
                "token": device.token,
            }
        )

        data = payload.get("data")
        if not isinstance(data, dict):
            raise APIError(
                f"State response for {device.device_id} missing 'data' object"
            )
        return DeviceState.from_payload(data, device_id=device.device_id)

    async def ensure_valid_session(self) -> AuthSession:
        """Return a usable session, acquiring or refreshing it when expired.

        Raises:
            AuthError: If the token endpoint rejects the exchange.
        """

        auth = self._auth
        if auth is not None and auth.is_valid(self._clock()):
            return auth

        if auth is not None and auth.refresh_token:
            LOGGER.info("Access token expired; refreshing")
            try:
                self._auth = await self._request_token(
                    {
                        "grant_type": "refresh_token",
                        "client_id": self.api_key,
                        "refresh_token": auth.refresh_token,
                    }
                )
            except AuthError:
                # Next attempt starts over with client credentials.
                self._auth = None
                raise
        else:
            LOGGER.info("Requesting access token")
            self._auth = await self._request_token(
                {
                    "grant_type": "client_credentials",
                    "client_id": self.api_key,
                    "client_secret": self.secret,
                }
            )

        LOGGER.debug("Access token valid until %s", self._auth.expires_at)
        return self._auth

    async def aclose(self) -> None:
        if self._owns_session and self._http is not None:
            await self._http.close()
            self._http = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _ensure_http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession()
            self._owns_session = True
        return self._http

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.request_timeout)

    async def _request_token(self, form: dict[str, str]) -> AuthSession:
        http = await self._ensure_http()
        url = f"{self.endpoint}{constants.TOKEN_PATH}"

        try:
            async with http.post(
                url,
                data=form,
                headers={"User-Agent": constants.USER_AGENT},
                timeout=self._timeout(),
            ) as response:
                if response.status != 200:
                    text = await response.text()
                    raise AuthError(
                        f"Token request ({form['grant_type']}) failed with status "
                        f"{response.status}: {text.strip()}"
                    )
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise AuthError(f"Token request failed: {exc}") from exc
        except ValueError as exc:
            raise AuthError(f"Failed to parse token response: {exc}") from exc

        if not isinstance(body, dict):
            raise AuthError("Token response is not a JSON object")

        try:
            access_token = str(body["access_token"])
            expires_in = int(body["expires_in"])
        except KeyError as exc:
            raise AuthError(f"Token response missing field: {exc.args[0]}") from exc
        except (TypeError, ValueError, OverflowError) as exc:
            raise AuthError(f"Token response has invalid expires_in: {exc}") from exc

        try:
            lifetime = timedelta(seconds=expires_in - self.safety_buffer_seconds)
            expires_at = self._clock() + lifetime
        except OverflowError as exc:
            raise AuthError(f"Token lifetime out of range: {expires_in}") from exc

        return AuthSession(
            access_token=access_token,
            refresh_token=body.get("refresh_token") or None,
            expires_at=expires_at,
        )

    async def _call_api(self, request: dict[str, Any]) -> dict[str, Any]:
        assert self._auth is not None  # ensured by ensure_valid_session
        http = await self._ensure_http()
        url = f"{self.endpoint}{constants.API_PATH}"
        method = request["method"]
        payload = {**request, "time": int(self._clock().timestamp())}
        headers = {
            "Authorization": f"Bearer {self._auth.access_token}",
            "User-Agent": constants.USER_AGENT,
        }

        try:
            async with http.post(
                url, json=payload, headers=headers, timeout=self._timeout()
            ) as response:
                if response.status != 200:
                    text = await response.text()
                    raise APIError(
                        f"{method} failed with status {response.status}: {text.strip()}"
                    )
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise APIError(f"{method} request failed: {exc}") from exc
        except ValueError as exc:
            raise APIError(f"Failed to parse {method} response: {exc}") from exc

        if not isinstance(body, dict):
            raise APIError(f"{method} response is not a JSON object")

        code = body.get("code")
        if code != constants.API_SUCCESS_CODE:
            message = f"{method} returned error code {code}"
            detail = body.get("desc") or body.get("msg")
            if detail:
                message = f"{message}: {detail}"
            raise APIError(message)

        return body
