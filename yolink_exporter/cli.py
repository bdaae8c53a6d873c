"""Command-line interface for yolink-exporter."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import ExporterApp
from .config import ExporterConfig, load_config

LOGGER = logging.getLogger(__name__)

SECRET_OPTIONS = {("api", "key"), ("api", "secret")}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.APP_NAME,
        description="Prometheus exporter for YoLink thermometer/hygrometer devices",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: ./{constants.DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--api-key", help="YoLink API key (UAC client id)")
    parser.add_argument("--secret", help="YoLink API secret")
    parser.add_argument("--endpoint", help="YoLink API base URL")
    parser.add_argument("--host", help="Address to bind the HTTP server to")
    parser.add_argument("--port", type=int, help="Port to bind the HTTP server to")
    parser.add_argument(
        "--interval", type=int, help="Minimum seconds between upstream refreshes"
    )
    parser.add_argument("--log-level", help="Log level name, e.g. DEBUG")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("start", help="Start the exporter (default)")
    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


def _overrides(args: argparse.Namespace) -> dict[str, dict[str, Optional[str]]]:
    def _text(value: object) -> Optional[str]:
        return None if value is None else str(value)

    return {
        "api": {
            "key": args.api_key,
            "secret": args.secret,
            "endpoint": args.endpoint,
        },
        "server": {"host": args.host, "port": _text(args.port)},
        "scrape": {"interval": _text(args.interval)},
        "logging": {"level": args.log_level},
    }


def _print_config(config: ExporterConfig) -> None:
    print(f"Configuration loaded from {config.path!s}\n")
    for section in config.raw.sections():
        print(f"[{section}]")
        for key, value in config.raw[section].items():
            if (section, key) in SECRET_OPTIONS and value:
                value = "********"
            print(f"{key} = {value}")
        print()


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config, overrides=_overrides(args))
    command = args.command or "start"

    if command == "show-config":
        _print_config(config)
        return 0

    if command == "start":
        if not config.api.has_credentials:
            LOGGER.error(
                "API key and secret are required. Use --api-key and --secret flags, "
                "or set YOLINK_API_KEY and YOLINK_SECRET environment variables"
            )
            return 1
        ExporterApp.start(config)
        return 0

    LOGGER.error("Unknown command: %s", command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
