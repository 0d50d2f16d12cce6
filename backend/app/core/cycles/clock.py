from datetime import date
from typing import Protocol


class Clock(Protocol):
    def today(self) -> date: ...


class SystemClock:
    def today(self) -> date:
        return date.today()


class FixedClock:
    """Clock pinned to one day. Tests move it with ``advance_to``."""

    def __init__(self, day: date):
        self.day = day

    def today(self) -> date:
        return self.day

    def advance_to(self, day: date) -> None:
        self.day = day
