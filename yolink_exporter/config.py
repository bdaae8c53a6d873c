"""Configuration loader for yolink-exporter.

Values resolve with the precedence command-line flag > environment variable >
configuration file > built-in default.
"""

from __future__ import annotations

import logging
import os
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from . import constants

LOGGER = logging.getLogger(__name__)

# Environment variable -> (section, option)
ENVIRONMENT_OVERRIDES: dict[str, tuple[str, str]] = {
    "YOLINK_API_KEY": ("api", "key"),
    "YOLINK_SECRET": ("api", "secret"),
    "YOLINK_API_ENDPOINT": ("api", "endpoint"),
    "YOLINK_SERVER_HOST": ("server", "host"),
    "YOLINK_SERVER_PORT": ("server", "port"),
    "YOLINK_SCRAPE_INTERVAL": ("scrape", "interval"),
    "YOLINK_LOG_LEVEL": ("logging", "level"),
}


@dataclass(slots=True)
class ServerConfig:
    host: str = constants.DEFAULT_SERVER_HOST
    port: int = constants.DEFAULT_SERVER_PORT


@dataclass(slots=True)
class ApiConfig:
    endpoint: str = constants.DEFAULT_API_ENDPOINT
    key: Optional[str] = None
    secret: Optional[str] = None
    request_timeout_seconds: float = constants.DEFAULT_REQUEST_TIMEOUT_SECONDS
    token_safety_buffer_seconds: int = constants.DEFAULT_TOKEN_SAFETY_BUFFER_SECONDS

    @property
    def has_credentials(self) -> bool:
        return bool(self.key) and bool(self.secret)


@dataclass(slots=True)
class ScrapeConfig:
    interval_seconds: int = constants.DEFAULT_SCRAPE_INTERVAL_SECONDS


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class ExporterConfig:
    server: ServerConfig
    api: ApiConfig
    scrape: ScrapeConfig
    logging: LoggingConfig
    raw: ConfigParser
    path: Path


def load_config(
    path: Optional[Path] = None,
    *,
    overrides: Optional[Mapping[str, Mapping[str, Optional[str]]]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ExporterConfig:
    """Load configuration from disk, applying defaults where necessary.

    ``overrides`` holds command-line values keyed by section and option; a
    ``None`` value means the flag was not given. ``environ`` defaults to
    ``os.environ``.
    """

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser(interpolation=None)
    parser.read_dict(
        {
            "server": {
                "host": constants.DEFAULT_SERVER_HOST,
                "port": str(constants.DEFAULT_SERVER_PORT),
            },
            "api": {
                "endpoint": constants.DEFAULT_API_ENDPOINT,
                "key": "",
                "secret": "",
                "request_timeout_seconds": str(
                    constants.DEFAULT_REQUEST_TIMEOUT_SECONDS
                ),
                "token_safety_buffer_seconds": str(
                    constants.DEFAULT_TOKEN_SAFETY_BUFFER_SECONDS
                ),
            },
            "scrape": {
                "interval": str(constants.DEFAULT_SCRAPE_INTERVAL_SECONDS),
            },
            "logging": {
                "level": "INFO",
                "path": "",
                "log_network": "false",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)
    else:
        LOGGER.debug("No config file found at %s, using defaults", config_path)

    env = os.environ if environ is None else environ
    for variable, (section, option) in ENVIRONMENT_OVERRIDES.items():
        value = env.get(variable)
        if value:
            parser.set(section, option, value)

    for section, options in (overrides or {}).items():
        if not parser.has_section(section):
            parser.add_section(section)
        for option, value in options.items():
            if value is not None and value != "":
                parser.set(section, option, str(value))

    server = ServerConfig(
        host=parser.get("server", "host"),
        port=parser.getint("server", "port", fallback=constants.DEFAULT_SERVER_PORT),
    )

    api = ApiConfig(
        endpoint=parser.get("api", "endpoint"),
        key=parser.get("api", "key", fallback="") or None,
        secret=parser.get("api", "secret", fallback="") or None,
        request_timeout_seconds=max(
            1.0,
            parser.getfloat(
                "api",
                "request_timeout_seconds",
                fallback=constants.DEFAULT_REQUEST_TIMEOUT_SECONDS,
            ),
        ),
        token_safety_buffer_seconds=max(
            0,
            parser.getint(
                "api",
                "token_safety_buffer_seconds",
                fallback=constants.DEFAULT_TOKEN_SAFETY_BUFFER_SECONDS,
            ),
        ),
    )

    scrape = ScrapeConfig(
        interval_seconds=max(
            1,
            parser.getint(
                "scrape",
                "interval",
                fallback=constants.DEFAULT_SCRAPE_INTERVAL_SECONDS,
            ),
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="")
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    return ExporterConfig(
        server=server,
        api=api,
        scrape=scrape,
        logging=logging_config,
        raw=parser,
        path=config_path,
    )
