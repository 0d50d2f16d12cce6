"""Calendar rules for timesheet reminders.

Three reminders exist:

- timesheet_due: today is the last workday of an editable cycle that has no
  hours recorded yet.
- timesheet_cycle_started: today is the first workday after a cycle ended.
- timesheet_overdue: raised together with timesheet_cycle_started.

Locked cycles raise nothing. Workdays are Monday to Friday. Nothing here
deduplicates: running the check twice on the same day yields the same
reminders twice.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from app.core.cycles.schemas import Cycle

DUE = "timesheet_due"
CYCLE_STARTED = "timesheet_cycle_started"
OVERDUE = "timesheet_overdue"

_SATURDAY = 5


@dataclass(frozen=True)
class Reminder:
    kind: str
    title: str
    message: str
    cycle_id: str
    day: date


def is_workday(day: date) -> bool:
    return day.weekday() < _SATURDAY


def last_workday_on_or_before(day: date) -> date:
    while not is_workday(day):
        day -= timedelta(days=1)
    return day


def first_workday_on_or_after(day: date) -> date:
    while not is_workday(day):
        day += timedelta(days=1)
    return day


def _span(cycle: Cycle) -> str:
    return f"{cycle.start_date:%b} {cycle.start_date.day} - {cycle.end_date:%b} {cycle.end_date.day}"


def due_reminders(cycles: Iterable[Cycle], today: date) -> list[Reminder]:
    reminders: list[Reminder] = []
    for cycle in sorted(cycles, key=lambda c: c.start_date):
        if not cycle.is_editable:
            continue

        if not cycle.hours and last_workday_on_or_before(cycle.end_date) == today:
            reminders.append(Reminder(
                kind=DUE,
                title="Timesheet Due Today",
                message=(
                    f"Today is the last working day of your current cycle ({_span(cycle)}). "
                    "Please fill and submit your timesheet before the weekend."
                ),
                cycle_id=cycle.id,
                day=today,
            ))

        if first_workday_on_or_after(cycle.end_date + timedelta(days=1)) == today:
            reminders.append(Reminder(
                kind=CYCLE_STARTED,
                title="New Timesheet Cycle Started",
                message="A new timesheet cycle has started today. Remember to log your hours daily.",
                cycle_id=cycle.id,
                day=today,
            ))
            reminders.append(Reminder(
                kind=OVERDUE,
                title="Previous Timesheet Incomplete",
                message=(
                    f"Your previous timesheet cycle ({_span(cycle)}) is still pending submission. "
                    "Please complete it as soon as possible."
                ),
                cycle_id=cycle.id,
                day=today,
            ))
    return reminders
