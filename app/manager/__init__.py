"""Connector manager orchestration layer."""

from .production import ConnectorStatus, ProductionManager
from .schedule import Schedule

__all__ = ["ConnectorStatus", "ProductionManager", "Schedule"]
