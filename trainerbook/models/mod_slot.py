from pydantic import BaseModel, model_validator
from typing import Iterator, List, Tuple
from datetime import date, time, timedelta

MINUTES_PER_DAY = 24 * 60

# day_of_week is Sunday-based: 0 = Sunday ... 6 = Saturday
WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

class TimeWindow(BaseModel):
    """A half-open [start_time, end_time) window on a naive local clock."""
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def end_time_must_be_after_start_time(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def duration_minutes(self) -> int:
        return to_minutes(self.end_time) - to_minutes(self.start_time)

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start_time < other.end_time and other.start_time < self.end_time

    def contains(self, other: "TimeWindow") -> bool:
        return self.start_time <= other.start_time and other.end_time <= self.end_time

def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute

def from_minutes(minutes: int) -> time:
    minutes %= MINUTES_PER_DAY
    return time(minutes // 60, minutes % 60)

def add_minutes(value: time, minutes: int) -> time:
    """Shift a clock time, wrapping around midnight without touching any date."""
    return from_minutes(to_minutes(value) + minutes)

def is_whole_minute(value: time) -> bool:
    return value.second == 0 and value.microsecond == 0

def ensure_whole_minute(value: time) -> time:
    """Stored times are HH:MM, so seconds would be silently lost."""
    if not is_whole_minute(value):
        raise ValueError("times must be whole minutes (HH:MM)")
    return value

def format_time(value: time) -> str:
    return value.strftime("%H:%M")

def parse_time(value: str) -> time:
    # Stored values are HH:MM; tolerate HH:MM:SS from older documents
    return time.fromisoformat(value).replace(second=0, microsecond=0)

class SlotRange:
    """
    Equal-width sub-slots tiling [start_time, end_time).

    Iterating yields (slot_start, slot_end) pairs lazily and can be repeated.
    A trailing remainder shorter than the slot duration is not emitted.
    """

    def __init__(self, start_time: time, end_time: time, slot_duration_minutes: int):
        if slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be positive")
        self.start_time = start_time
        self.end_time = end_time
        self.slot_duration_minutes = slot_duration_minutes

    def __iter__(self) -> Iterator[Tuple[time, time]]:
        cursor = to_minutes(self.start_time)
        end = to_minutes(self.end_time)
        while cursor + self.slot_duration_minutes <= end:
            yield from_minutes(cursor), from_minutes(cursor + self.slot_duration_minutes)
            cursor += self.slot_duration_minutes

    def __len__(self) -> int:
        span = to_minutes(self.end_time) - to_minutes(self.start_time)
        return max(0, span // self.slot_duration_minutes)

def range_to_slots(start_time: time, end_time: time, slot_duration_minutes: int) -> SlotRange:
    return SlotRange(start_time, end_time, slot_duration_minutes)

def weekday_index(day: date) -> int:
    """Sunday-based weekday number of a date."""
    return (day.weekday() + 1) % 7

def iter_dates(start_date: date, end_date: date) -> Iterator[date]:
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)

def week_dates(week_start: date) -> List[date]:
    return [week_start + timedelta(days=offset) for offset in range(7)]
