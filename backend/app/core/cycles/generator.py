"""Cycle generator.

Partitions ``[start_date, as_of]`` into contiguous billing cycles:

- weekly:   7 days starting at the start date
- biweekly: 14 days starting at the start date
- monthly:  through the last day of the start date's calendar month

Month-end clamping uses ``dateutil.relativedelta`` (``day=31`` lands on the
last day of any month, so February yields 28 or 29 days).
"""
import enum
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from dateutil.relativedelta import relativedelta


class Frequency(str, enum.Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


CYCLE_ID_PREFIX = "cycle-"


def cycle_id(start_date: date) -> str:
    return f"{CYCLE_ID_PREFIX}{start_date.isoformat()}"


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


@dataclass(frozen=True)
class CycleSkeleton:
    id: str
    start_date: date
    end_date: date

    @property
    def ends_at(self) -> datetime:
        return end_of_day(self.end_date)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


def cycle_end(start_date: date, frequency: Frequency) -> date:
    if frequency == Frequency.WEEKLY:
        return start_date + timedelta(days=6)
    if frequency == Frequency.BIWEEKLY:
        return start_date + timedelta(days=13)
    if frequency == Frequency.MONTHLY:
        return start_date + relativedelta(day=31)
    raise ValueError(f"Unsupported frequency: {frequency!r}")


def generate(start_date: date, frequency: Frequency, as_of: date) -> list[CycleSkeleton]:
    """Return cycles oldest first, up to and including the one containing ``as_of``."""
    frequency = Frequency(frequency)
    skeletons: list[CycleSkeleton] = []
    current = start_date
    while current <= as_of:
        end = cycle_end(current, frequency)
        skeletons.append(CycleSkeleton(id=cycle_id(current), start_date=current, end_date=end))
        current = end + timedelta(days=1)
    return skeletons
