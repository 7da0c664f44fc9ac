"""Persistent stores for connector configuration, schedules and traversal state.

Each call runs in its own session and transaction, so readers never observe a
partially written row.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from connectors.errors import PersistentStoreError

from .session import get_session
from .tables import ConnectorInstance, Schedule, TraversalState


@dataclass(frozen=True)
class ScheduleRecord:
    connector: str
    schedule: str
    last_run_at: datetime | None = None
    next_due_at: datetime | None = None


@dataclass(frozen=True)
class ConnectorRecord:
    name: str
    type_name: str
    config: dict[str, str]


@dataclass(frozen=True)
class TraversalSnapshot:
    checkpoint: str | None = None
    generation: int = 0


class _SessionStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with get_session(self._session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            raise PersistentStoreError(f"Failed to {action}") from exc


class ConnectorConfigStore(_SessionStore):
    def get(self, name: str) -> ConnectorRecord | None:
        with self._session(f"read connector {name}") as session:
            row = session.get(ConnectorInstance, name)
            if row is None:
                return None
            return ConnectorRecord(name=row.name, type_name=row.type_name, config=dict(row.config or {}))

    def names(self) -> list[str]:
        with self._session("list connectors") as session:
            return list(session.scalars(select(ConnectorInstance.name).order_by(ConnectorInstance.name)))

    def store(self, name: str, type_name: str, config: dict[str, str]) -> None:
        with self._session(f"store connector {name}") as session:
            row = session.get(ConnectorInstance, name)
            if row is None:
                session.add(ConnectorInstance(name=name, type_name=type_name, config=dict(config)))
            else:
                row.type_name = type_name
                row.config = dict(config)

    def remove(self, name: str) -> None:
        """Delete the connector together with its schedule and traversal state."""
        with self._session(f"remove connector {name}") as session:
            session.execute(delete(Schedule).where(Schedule.connector == name))
            session.execute(delete(TraversalState).where(TraversalState.connector == name))
            session.execute(delete(ConnectorInstance).where(ConnectorInstance.name == name))


class ScheduleStore(_SessionStore):
    def get_schedule(self, name: str) -> str | None:
        record = self.get_record(name)
        return record.schedule if record else None

    def get_record(self, name: str) -> ScheduleRecord | None:
        with self._session(f"read schedule for {name}") as session:
            row = session.get(Schedule, name)
            return _schedule_record(row) if row is not None else None

    def list_records(self) -> list[ScheduleRecord]:
        with self._session("list schedules") as session:
            rows = session.scalars(select(Schedule).order_by(Schedule.connector)).all()
            return [_schedule_record(row) for row in rows]

    def store_schedule(self, name: str, schedule: str) -> None:
        with self._session(f"store schedule for {name}") as session:
            row = session.get(Schedule, name)
            if row is None:
                session.add(Schedule(connector=name, schedule=schedule))
            else:
                row.schedule = schedule

    def mark_run(self, name: str, last_run_at: datetime | None, next_due_at: datetime | None) -> None:
        with self._session(f"update run times for {name}") as session:
            row = session.get(Schedule, name)
            if row is None:
                return
            row.last_run_at = last_run_at
            row.next_due_at = next_due_at


class StateStore(_SessionStore):
    def get_state(self, name: str) -> str | None:
        with self._session(f"read traversal state for {name}") as session:
            row = session.get(TraversalState, name)
            return row.checkpoint if row is not None else None

    def store_state(self, name: str, checkpoint: str | None) -> None:
        with self._session(f"store traversal state for {name}") as session:
            row = session.get(TraversalState, name)
            if row is None:
                session.add(TraversalState(connector=name, checkpoint=checkpoint))
            else:
                row.checkpoint = checkpoint

    def get_snapshot(self, name: str) -> TraversalSnapshot:
        with self._session(f"read traversal state for {name}") as session:
            row = session.get(TraversalState, name)
            if row is None:
                return TraversalSnapshot()
            return TraversalSnapshot(checkpoint=row.checkpoint, generation=row.generation)

    def store_state_if_current(self, name: str, checkpoint: str | None, generation: int) -> bool:
        """Store ``checkpoint`` unless the state was reset after ``generation`` was read."""
        with self._session(f"store traversal state for {name}") as session:
            result = session.execute(
                update(TraversalState)
                .where(TraversalState.connector == name, TraversalState.generation == generation)
                .values(checkpoint=checkpoint)
            )
            if result.rowcount:
                return True
            if generation == 0 and session.get(TraversalState, name) is None:
                session.add(TraversalState(connector=name, checkpoint=checkpoint, generation=0))
                return True
            return False

    def reset_state(self, name: str) -> None:
        """Clear the checkpoint and start a new generation."""
        with self._session(f"reset traversal state for {name}") as session:
            row = session.get(TraversalState, name)
            if row is None:
                session.add(TraversalState(connector=name, checkpoint=None, generation=1))
            else:
                row.checkpoint = None
                row.generation = row.generation + 1


def _schedule_record(row: Schedule) -> ScheduleRecord:
    return ScheduleRecord(
        connector=row.connector,
        schedule=row.schedule,
        last_run_at=row.last_run_at,
        next_due_at=row.next_due_at,
    )
