"""Sources of the current time, fixed or real."""

from __future__ import annotations

import abc
from datetime import datetime, timedelta, timezone

# S3 reports times in "GMT", which is UTC under another name.
_GMT = timezone(timedelta(0), "GMT")


class TimeSource(abc.ABC):
    """Something that tells the time."""

    @abc.abstractmethod
    def now(self) -> datetime:
        """Return the current time."""

    @abc.abstractmethod
    def since(self, moment: datetime) -> timedelta:
        """Return the time elapsed since ``moment``."""


class _LocatedTimeSource(TimeSource):
    def __init__(self, zone: timezone) -> None:
        self._zone = zone

    def now(self) -> datetime:
        return datetime.now(self._zone)

    def since(self, moment: datetime) -> timedelta:
        return datetime.now(self._zone) - moment


class FixedTimeSource(TimeSource):
    """A time source that stands still until it is advanced."""

    def __init__(self, at: datetime) -> None:
        self._time = at

    def now(self) -> datetime:
        return self._time

    def since(self, moment: datetime) -> timedelta:
        return self._time - moment

    def advance(self, by: timedelta) -> None:
        self._time = self._time + by


def default_time_source() -> TimeSource:
    """Return a time source giving the real time in the GMT zone."""
    return _LocatedTimeSource(_GMT)