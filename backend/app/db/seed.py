import asyncio
import os
from datetime import date

from app.core.cycles.clock import SystemClock
from app.core.cycles.dispatch import EvidenceEncoder, SmtpSubmissionMailer
from app.core.cycles.generator import Frequency
from app.core.cycles.manager import CycleManager
from app.core.cycles.store import CycleRepository
from app.core.storage.service import SqlKeyValueStore
from app.db.session import get_session
from app.settings import get_settings


async def seed() -> None:
    start_date = date.fromisoformat(os.getenv("SEED_TIMESHEET_START_DATE", "2024-03-01"))
    frequency = Frequency(os.getenv("SEED_TIMESHEET_FREQUENCY", "weekly"))
    settings = get_settings()

    async with get_session() as db:
        manager = CycleManager(
            repository=CycleRepository(SqlKeyValueStore(db)),
            dispatcher=SmtpSubmissionMailer.from_settings(settings),
            encoder=EvidenceEncoder.from_settings(settings),
            clock=SystemClock(),
        )
        await manager.load()
        if manager.config is None:
            cycles = await manager.regenerate(start_date, frequency)
            print(f"✅  Timesheet configured: {frequency.value} from {start_date} ({len(cycles)} cycles)")
        else:
            print(f"⏭️   Timesheet already configured: {manager.config.frequency.value} from {manager.config.start_date}")


if __name__ == "__main__":
    asyncio.run(seed())
