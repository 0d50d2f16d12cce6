"""Submission hand-off: payload building, evidence re-encoding and the SMTP mailer."""
import asyncio
import base64
import logging
import smtplib
from datetime import date
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email import encoders
from io import BytesIO
from pathlib import PurePath
from typing import Awaitable, Callable

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field, field_serializer

from app.core.cycles.errors import EvidenceEncodingError
from app.core.cycles.generator import Frequency
from app.core.cycles.schemas import Cycle, Evidence
from app.settings import Settings

logger = logging.getLogger(__name__)

MAX_FORWARDED_EVIDENCE = 3


# ── Payload ───────────────────────────────────────────────────────────────────

class DayHours(BaseModel):
    day: date
    hours: float


class EncodedEvidence(BaseModel):
    filename: str
    content_type: str = "image/jpeg"
    data: bytes

    @field_serializer("data", when_used="json")
    def encode_base64(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")


def _long_date(day: date) -> str:
    return f"{day:%B} {day.day}, {day.year}"


class SubmissionPayload(BaseModel):
    cycle_id: str
    period_start: date
    period_end: date
    total_hours: float
    frequency: Frequency
    per_day: list[DayHours]
    evidence: list[EncodedEvidence] = Field(default_factory=list, max_length=MAX_FORWARDED_EVIDENCE)

    @property
    def cycle_period(self) -> str:
        return f"{_long_date(self.period_start)} - {_long_date(self.period_end)}"

    @property
    def subject(self) -> str:
        return f"Timesheet submission: {self.cycle_period}"

    def hours_breakdown(self) -> str:
        return "\n".join(f"{d.day:%b} {d.day.day}: {d.hours:g}hrs" for d in self.per_day)

    def message(self) -> str:
        return (
            f"Timesheet submission for cycle: {self.cycle_period}\n"
            f"Total Hours: {self.total_hours:g}\n"
            f"Frequency: {self.frequency.value.capitalize()}\n"
            f"Evidence attached: {len(self.evidence)}\n\n"
            f"Hours Breakdown:\n{self.hours_breakdown()}"
        )


Encoder = Callable[[Evidence], EncodedEvidence]
Dispatcher = Callable[[SubmissionPayload], Awaitable[bool]]


def build_payload(
    cycle: Cycle,
    frequency: Frequency,
    encoder: Encoder,
    limit: int = MAX_FORWARDED_EVIDENCE,
) -> SubmissionPayload:
    return SubmissionPayload(
        cycle_id=cycle.id,
        period_start=cycle.start_date,
        period_end=cycle.end_date,
        total_hours=cycle.total_hours,
        frequency=frequency,
        per_day=[DayHours(day=d, hours=h) for d, h in sorted(cycle.hours.items())],
        evidence=[encoder(e) for e in cycle.evidence[:min(limit, MAX_FORWARDED_EVIDENCE)]],
    )


# ── Evidence encoding ─────────────────────────────────────────────────────────

class EvidenceEncoder:
    """Shrinks evidence images to fit a bounding box and re-compresses as JPEG."""

    def __init__(self, max_width: int = 800, max_height: int = 600, quality: int = 50):
        self.max_width = max_width
        self.max_height = max_height
        self.quality = quality

    @classmethod
    def from_settings(cls, settings: Settings) -> "EvidenceEncoder":
        return cls(settings.EVIDENCE_MAX_WIDTH, settings.EVIDENCE_MAX_HEIGHT, settings.EVIDENCE_JPEG_QUALITY)

    def __call__(self, evidence: Evidence) -> EncodedEvidence:
        try:
            with Image.open(BytesIO(evidence.data)) as source:
                image = source.convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise EvidenceEncodingError(evidence.filename) from exc

        image.thumbnail((self.max_width, self.max_height), Image.Resampling.LANCZOS)
        out = BytesIO()
        image.save(out, format="JPEG", quality=self.quality, optimize=True)
        return EncodedEvidence(
            filename=f"{PurePath(evidence.filename).stem}.jpg",
            data=out.getvalue(),
        )


# ── SMTP ──────────────────────────────────────────────────────────────────────

class SmtpSubmissionMailer:
    """Sends a submission payload as one email. Reports failure instead of raising."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        recipient: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: int = 30,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.recipient = recipient
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpSubmissionMailer":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.TIMESHEET_MAIL_FROM,
            recipient=settings.TIMESHEET_MAIL_TO,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )

    def build_message(self, payload: SubmissionPayload) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = self.sender
        msg["To"] = self.recipient
        msg["Subject"] = payload.subject
        msg.attach(MIMEText(payload.message(), "plain"))
        for item in payload.evidence:
            maintype, _, subtype = item.content_type.partition("/")
            part = MIMEBase(maintype, subtype or "octet-stream")
            part.set_payload(item.data)
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", f'attachment; filename="{item.filename}"')
            msg.attach(part)
        return msg

    def _send(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password or "")
            server.send_message(msg)

    async def __call__(self, payload: SubmissionPayload) -> bool:
        msg = self.build_message(payload)
        try:
            await asyncio.to_thread(self._send, msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("Sending timesheet submission for %s failed", payload.cycle_id)
            return False
        logger.info("Timesheet submission for %s sent to %s", payload.cycle_id, self.recipient)
        return True
