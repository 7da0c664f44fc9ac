"""Structured traversal schedules and their canonical string form.

A schedule is persisted as ``name:load:retry_delay_millis:intervals`` where
``intervals`` is a ``:`` separated list of ``start-end`` hour windows, for
example ``alpha:200:300000:0-6:18-24``. Business logic only ever handles the
:class:`Schedule` record; the string form exists at the persistence boundary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone

from croniter import croniter

INTERVAL_RE = re.compile(r"^(\d{1,2})-(\d{1,2})$")


def parse_intervals(intervals: str) -> list[tuple[int, int]]:
    """Split an interval string into ``(start_hour, end_hour)`` pairs."""
    if not intervals:
        return []
    windows: list[tuple[int, int]] = []
    for chunk in intervals.split(":"):
        match = INTERVAL_RE.match(chunk.strip())
        if not match:
            raise ValueError(f"Invalid time interval {chunk!r}")
        start, end = int(match.group(1)), int(match.group(2))
        if start > 23 or end > 24:
            raise ValueError(f"Time interval {chunk!r} is out of range")
        windows.append((start, end))
    return windows


@dataclass(frozen=True)
class Schedule:
    connector_name: str
    load: int
    retry_delay_millis: int
    time_intervals: str

    def __post_init__(self) -> None:
        if not self.connector_name or ":" in self.connector_name:
            raise ValueError(f"Invalid connector name {self.connector_name!r}")
        if self.load <= 0:
            raise ValueError("load must be a positive integer")
        if self.retry_delay_millis < 0:
            raise ValueError("retry_delay_millis must not be negative")
        parse_intervals(self.time_intervals)

    @classmethod
    def parse(cls, text: str) -> "Schedule":
        parts = text.split(":", 3)
        if len(parts) != 4:
            raise ValueError(f"Malformed schedule {text!r}")
        name, load, retry_delay, intervals = parts
        try:
            return cls(name, int(load), int(retry_delay), intervals)
        except ValueError as exc:
            raise ValueError(f"Malformed schedule {text!r}: {exc}") from exc

    def format(self) -> str:
        return f"{self.connector_name}:{self.load}:{self.retry_delay_millis}:{self.time_intervals}"

    __str__ = format

    def windows(self) -> list[tuple[int, int]]:
        return parse_intervals(self.time_intervals)

    def is_disabled(self) -> bool:
        return all(start == end for start, end in self.windows())

    def in_window(self, when: datetime) -> bool:
        hour = _as_utc(when).hour
        for start, end in self.windows():
            if start < end and start <= hour < end:
                return True
            if start > end and (hour >= start or hour < end):
                return True
        return False

    def next_window_start(self, when: datetime) -> datetime | None:
        """Return ``when`` if it falls inside a window, else the next window opening."""
        when = _as_utc(when)
        if self.in_window(when):
            return when
        candidates = [
            croniter(f"0 {start} * * *", when).get_next(datetime)
            for start, end in self.windows()
            if start != end
        ]
        if not candidates:
            return None
        return min(_as_utc(candidate) for candidate in candidates)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
