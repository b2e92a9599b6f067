"""
Half-open time window value type.

Every interval comparison in the engine goes through TimeWindow.overlaps so
that touching boundaries never count as a conflict.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from utils.datetime_helpers import parse_datetime, to_db_datetime
from utils.messages import get_message


def intervals_overlap(start_1, end_1, start_2, end_2) -> bool:
    """[s1, e1) and [s2, e2) conflict iff s1 < e2 and s2 < e1."""
    return start_1 < end_2 and start_2 < end_1


def as_window(value) -> 'TimeWindow':
    """
    Accept a TimeWindow, a (start, end) pair or a {'start', 'end'} mapping.

    Raises:
        ValueError: If the value cannot be turned into a valid window
    """
    if isinstance(value, TimeWindow):
        return value
    if isinstance(value, dict):
        return TimeWindow.from_values(value['start'], value['end'])
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return TimeWindow.from_values(value[0], value[1])
    raise ValueError(f"Invalid time window: {value!r}")


@dataclass(frozen=True)
class TimeWindow:
    """
    A range including its start instant and excluding its end instant.

    Bounds are stored the way the ledger stores them: naive local time in
    the configured timezone, whole seconds.
    """

    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, 'start', parse_datetime(self.start))
        object.__setattr__(self, 'end', parse_datetime(self.end))
        if not self.start < self.end:
            raise ValueError(get_message('invalid_window'))

    @classmethod
    def from_values(cls, start, end) -> 'TimeWindow':
        """Build a window from datetimes or datetime strings."""
        return cls(start, end)

    @classmethod
    def from_row(cls, row) -> 'TimeWindow':
        """Build a window from a reservation row."""
        return cls(row['reserved_from'], row['reserved_until'])

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    def overlaps(self, other: 'TimeWindow') -> bool:
        return intervals_overlap(self.start, self.end, other.start, other.end)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def shifted_to(self, start: datetime) -> 'TimeWindow':
        """Same duration, new start."""
        return TimeWindow(start, start + self.duration)

    def to_db(self) -> tuple:
        """(reserved_from, reserved_until) as stored strings."""
        return to_db_datetime(self.start), to_db_datetime(self.end)

    def to_dict(self) -> dict:
        return {
            'start': self.start.isoformat(sep=' '),
            'end': self.end.isoformat(sep=' '),
            'duration_minutes': self.duration_minutes,
        }
