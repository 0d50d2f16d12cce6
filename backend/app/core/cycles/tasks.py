"""Periodic reminder check.

The cycle engine never owns a timer; the application lifespan starts
``run_periodic_checks`` and cancels it on shutdown.
"""
import asyncio
import logging

from app.core.cycles.clock import Clock
from app.core.cycles.reminders import Reminder
from app.db.session import get_session
from app.dependencies import build_cycle_manager, get_clock, get_dispatcher, get_encoder

logger = logging.getLogger(__name__)


async def check_once(clock: Clock | None = None) -> list[Reminder]:
    async with get_session() as db:
        manager = build_cycle_manager(db, clock or get_clock(), get_dispatcher(), get_encoder())
        await manager.load()
        return await manager.check_due_notifications()


async def run_periodic_checks(interval_hours: float, clock: Clock | None = None) -> None:
    interval = interval_hours * 3600
    while True:
        try:
            await check_once(clock)
        except Exception:
            logger.exception("Timesheet reminder check failed; retrying in %.0f seconds", interval)
        await asyncio.sleep(interval)
