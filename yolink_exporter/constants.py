"""Constants used across the yolink-exporter package."""

from __future__ import annotations

from pathlib import Path

from .version import __version__

APP_NAME = "yolink-exporter"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path(DEFAULT_CONFIG_FILENAME)

USER_AGENT = f"{APP_NAME}/{__version__}"

DEFAULT_SERVER_HOST = "0.0.0.0"
DEFAULT_SERVER_PORT = 8080

DEFAULT_API_ENDPOINT = "https://api.yosmart.com"
TOKEN_PATH = "/open/yolink/token"
API_PATH = "/open/yolink/v2/api"

DEFAULT_SCRAPE_INTERVAL_SECONDS = 60
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_TOKEN_SAFETY_BUFFER_SECONDS = 60

API_SUCCESS_CODE = "000000"

SENSOR_DEVICE_TYPE = "THSensor"
SENSOR_MODEL = "YS8007-UC"
