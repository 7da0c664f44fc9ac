"""Scheduler that enqueues due connector traversals."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any

from redis import Redis
from rq import Queue

from manager.config import Settings
from manager.schedule import Schedule
from models.stores import ScheduleRecord, ScheduleStore


logger = logging.getLogger(__name__)

TRAVERSAL_TASK = "workers.tasks.run_traversal"
QUEUE_NAME = "traversals"


def lock_key(connector_name: str) -> str:
    return f"connector:{connector_name}:lock"


def job_id(connector_name: str) -> str:
    return f"traversal:{connector_name}"


def calculate_next_due(schedule: Schedule, item_count: int, finished_at: datetime) -> datetime | None:
    """Return when the connector should next traverse.

    A batch that produced documents is followed straight away; an empty or
    failed batch waits for the retry delay. The result is pushed forward to
    the next open time window.
    """
    if finished_at.tzinfo is None:
        finished_at = finished_at.replace(tzinfo=timezone.utc)
    base = finished_at
    if item_count <= 0:
        base = finished_at + timedelta(milliseconds=schedule.retry_delay_millis)
    return schedule.next_window_start(base)


class TraversalScheduler:
    """Tracks scheduled connectors and hands due traversals to rq.

    The persisted schedule is the ground truth: every pass re-reads the
    schedule store, so a dropped connector whose schedule still exists is
    picked up again with fresh timing on the next pass.
    """

    def __init__(
        self,
        schedule_store: ScheduleStore,
        redis: Any,
        queue: Any,
        lock_ttl: int = 1800,
    ) -> None:
        self._schedule_store = schedule_store
        self._redis = redis
        self._queue = queue
        self._lock_ttl = lock_ttl
        self._tracked: dict[str, ScheduleRecord] = {}
        self._lock = threading.Lock()

    def tracked_connectors(self) -> list[str]:
        with self._lock:
            return sorted(self._tracked)

    def remove_connector(self, name: str) -> None:
        with self._lock:
            known = self._tracked.pop(name, None) is not None
        if not known:
            return
        # A running job still holds the lock and releases it when it finishes.
        if self._queue.remove(job_id(name)):
            self._redis.delete(lock_key(name))
        logger.info("Dropped connector %s from the scheduler", name)

    def sync(self) -> None:
        records = {record.connector: record for record in self._schedule_store.list_records()}
        with self._lock:
            for name in list(self._tracked):
                if name not in records:
                    del self._tracked[name]
                    logger.info("Connector %s no longer has a schedule", name)
            for name, record in records.items():
                if name not in self._tracked:
                    logger.info("Scheduling connector %s", name)
                self._tracked[name] = record

    def enqueue_due_jobs(self, now: datetime | None = None) -> list[str]:
        """Enqueue every tracked connector that is due and not already running."""
        current_time = now or datetime.now(timezone.utc)
        if current_time.tzinfo is None:
            current_time = current_time.replace(tzinfo=timezone.utc)
        self.sync()

        with self._lock:
            due = [record for record in self._tracked.values() if self._is_due(record, current_time)]

        enqueued: list[str] = []
        for record in due:
            name = record.connector
            if not self._redis.set(lock_key(name), str(current_time.timestamp()), nx=True, ex=self._lock_ttl):
                logger.debug("Connector %s already locked", name)
                continue
            logger.info("Enqueuing traversal for %s", name)
            self._queue.enqueue(TRAVERSAL_TASK, name, job_id=job_id(name), job_timeout="30m")
            enqueued.append(name)
        return enqueued

    @staticmethod
    def _is_due(record: ScheduleRecord, now: datetime) -> bool:
        try:
            schedule = Schedule.parse(record.schedule)
        except ValueError:
            logger.warning("Ignoring malformed schedule %r for %s", record.schedule, record.connector)
            return False
        if schedule.is_disabled() or not schedule.in_window(now):
            return False
        due_at = record.next_due_at
        if due_at is None:
            return True
        if due_at.tzinfo is None:
            due_at = due_at.replace(tzinfo=timezone.utc)
        return due_at <= now


def build_scheduler(schedule_store: ScheduleStore, settings: Settings) -> TraversalScheduler:
    redis = Redis.from_url(settings.redis_url)
    queue = Queue(QUEUE_NAME, connection=redis)
    return TraversalScheduler(schedule_store, redis, queue, lock_ttl=settings.lock_ttl)
