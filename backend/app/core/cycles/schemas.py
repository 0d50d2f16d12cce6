import base64
from datetime import date, datetime
from typing import Annotated, Literal
from pydantic import BaseModel, Field, computed_field, field_serializer, field_validator, model_validator

from app.core.cycles.generator import CycleSkeleton, Frequency, end_of_day

MAX_HOURS_PER_DAY = 24

HourValue = Annotated[float, Field(ge=0, le=MAX_HOURS_PER_DAY)]


# ── Evidence ──────────────────────────────────────────────────────────────────

class Evidence(BaseModel):
    """Attached proof of approved hours. ``data`` travels as base64 in JSON."""
    filename: str = Field(..., min_length=1, max_length=500)
    content_type: str | None = None
    data: bytes

    @field_validator("data", mode="before")
    @classmethod
    def decode_base64(cls, value):
        if isinstance(value, str):
            return base64.b64decode(value, validate=True)
        return value

    @field_serializer("data", when_used="json")
    def encode_base64(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class EvidenceRead(BaseModel):
    filename: str
    content_type: str | None
    size_bytes: int


# ── Cycle ─────────────────────────────────────────────────────────────────────

class Cycle(BaseModel):
    """
    One billing cycle with the work recorded against it.
    Also the persisted record shape: unknown keys are ignored and derived
    fields (total_hours, is_editable) are recomputed on every read.
    """
    id: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    hours: dict[date, HourValue] = Field(default_factory=dict)
    evidence: list[Evidence] = Field(default_factory=list)
    submitted: bool = False

    @model_validator(mode="after")
    def validate_interval(self) -> "Cycle":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    @computed_field
    @property
    def total_hours(self) -> float:
        return sum(self.hours.values())

    @computed_field
    @property
    def is_editable(self) -> bool:
        return not self.submitted

    @property
    def ends_at(self) -> datetime:
        return end_of_day(self.end_date)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @classmethod
    def blank(cls, skeleton: CycleSkeleton) -> "Cycle":
        return cls(id=skeleton.id, start_date=skeleton.start_date, end_date=skeleton.end_date)


class CycleRead(BaseModel):
    id: str
    start_date: date
    end_date: date
    hours: dict[date, float]
    total_hours: float
    evidence: list[EvidenceRead]
    submitted: bool
    is_editable: bool
    is_current: bool

    @classmethod
    def from_cycle(cls, cycle: Cycle, today: date) -> "CycleRead":
        return cls(
            id=cycle.id,
            start_date=cycle.start_date,
            end_date=cycle.end_date,
            hours=dict(sorted(cycle.hours.items())),
            total_hours=cycle.total_hours,
            evidence=[
                EvidenceRead(filename=e.filename, content_type=e.content_type, size_bytes=e.size_bytes)
                for e in cycle.evidence
            ],
            submitted=cycle.submitted,
            is_editable=cycle.is_editable,
            is_current=cycle.contains(today),
        )


# ── Configuration ─────────────────────────────────────────────────────────────

class TimesheetConfig(BaseModel):
    start_date: date
    frequency: Frequency = Frequency.WEEKLY


# ── Requests / responses ──────────────────────────────────────────────────────

class HoursUpdate(BaseModel):
    hours: float = Field(..., ge=0, le=MAX_HOURS_PER_DAY)


class CycleSummary(BaseModel):
    frequency: Frequency
    start_date: date
    total_cycles: int
    submitted_cycles: int
    pending_cycles: int
    total_hours: float
    submitted_hours: float
    current_cycle_id: str | None


class ReminderRead(BaseModel):
    model_config = {"from_attributes": True}
    kind: Literal["timesheet_due", "timesheet_cycle_started", "timesheet_overdue"]
    title: str
    message: str
    cycle_id: str
    day: date
