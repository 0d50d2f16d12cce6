import asyncio
from datetime import date
from io import BytesIO

import pytest
from PIL import Image

from app.core.cycles.clock import FixedClock
from app.core.cycles.dispatch import EncodedEvidence
from app.core.cycles.generator import Frequency
from app.core.cycles.manager import CycleManager
from app.core.cycles.schemas import Evidence
from app.core.cycles.store import CycleRepository
from app.core.storage.service import InMemoryKeyValueStore


def run(coro):
    return asyncio.run(coro)


def png_bytes(width: int = 40, height: int = 30, color: str = "navy") -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def screenshot(name: str = "approved.png") -> Evidence:
    return Evidence(filename=name, content_type="image/png", data=png_bytes())


def passthrough_encoder(evidence: Evidence) -> EncodedEvidence:
    return EncodedEvidence(filename=evidence.filename, content_type=evidence.content_type or "image/png", data=evidence.data)


class RecordingDispatcher:
    def __init__(self, result: bool = True, error: Exception | None = None):
        self.result = result
        self.error = error
        self.payloads = []

    async def __call__(self, payload) -> bool:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return self.result


class RecordingSink:
    def __init__(self):
        self.reminders = []

    async def __call__(self, reminder) -> None:
        self.reminders.append(reminder)


class FailingStore(InMemoryKeyValueStore):
    """Accepts reads; writes fail once ``fail_writes`` is set."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("storage unavailable")
        await super().set(key, value)


def make_manager(
    store=None,
    today: date = date(2024, 1, 10),
    dispatcher=None,
    sink=None,
    encoder=passthrough_encoder,
) -> CycleManager:
    return CycleManager(
        repository=CycleRepository(store if store is not None else InMemoryKeyValueStore()),
        dispatcher=dispatcher or RecordingDispatcher(),
        encoder=encoder,
        clock=FixedClock(today),
        reminder_sink=sink,
    )


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def weekly_manager(store):
    """Weekly cycles from Monday 2024-01-01, today 2024-01-10."""
    manager = make_manager(store)
    run(manager.regenerate(date(2024, 1, 1), Frequency.WEEKLY))
    return manager
