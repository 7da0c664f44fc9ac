"""SQLAlchemy models, session utilities and stores."""

from .base import Base
from .session import SessionLocal, engine, get_session
from .stores import (
    ConnectorConfigStore,
    ScheduleRecord,
    ScheduleStore,
    StateStore,
)
from .tables import ConnectorInstance, Run, Schedule, TraversalState

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_session",
    "ConnectorConfigStore",
    "ConnectorInstance",
    "Run",
    "Schedule",
    "ScheduleRecord",
    "ScheduleStore",
    "StateStore",
    "TraversalState",
]
