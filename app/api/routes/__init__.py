"""Root router exports."""

from . import config, connectors, health, runs

__all__ = ["config", "connectors", "health", "runs"]
