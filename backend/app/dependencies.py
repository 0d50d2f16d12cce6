from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cycles.clock import Clock, SystemClock
from app.core.cycles.dispatch import Dispatcher, Encoder, EvidenceEncoder, SmtpSubmissionMailer
from app.core.cycles.manager import CycleManager
from app.core.cycles.store import CycleRepository
from app.core.notifications.service import NotificationInbox
from app.core.storage.service import SqlKeyValueStore
from app.db.session import AsyncSessionLocal
from app.settings import get_settings


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        async with session.begin():
            yield session


def get_clock() -> Clock:
    return SystemClock()


def get_dispatcher() -> Dispatcher:
    return SmtpSubmissionMailer.from_settings(get_settings())


def get_encoder() -> Encoder:
    return EvidenceEncoder.from_settings(get_settings())


def build_cycle_manager(
    db: AsyncSession,
    clock: Clock,
    dispatcher: Dispatcher,
    encoder: Encoder,
) -> CycleManager:
    return CycleManager(
        repository=CycleRepository(SqlKeyValueStore(db)),
        dispatcher=dispatcher,
        encoder=encoder,
        clock=clock,
        reminder_sink=NotificationInbox(db),
        max_forwarded_evidence=get_settings().EVIDENCE_MAX_FORWARDED,
    )


async def get_cycle_manager(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    dispatcher: Dispatcher = Depends(get_dispatcher),
    encoder: Encoder = Depends(get_encoder),
) -> CycleManager:
    manager = build_cycle_manager(db, clock, dispatcher, encoder)
    await manager.load()
    return manager
