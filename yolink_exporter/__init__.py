"""Prometheus exporter for YoLink temperature/humidity sensors."""

from .version import __version__

__all__ = ["__version__"]
