"""Cycle lifecycle manager.

Owns the in-memory cycle collection for one timesheet. Every mutation first
re-reads the stored collection under a row lock, then applies its change to
a copy that is written through the repository as the whole collection and
only then swapped in. A failed write leaves the manager showing what is
stored.

Per cycle there are two states, editable and locked. ``submit`` is the only
transition and it cannot be undone.
"""
import logging
from datetime import date
from typing import Awaitable, Callable

from app.core.cycles import generator
from app.core.cycles.clock import Clock, SystemClock
from app.core.cycles.dispatch import Dispatcher, Encoder, build_payload
from app.core.cycles.errors import (
    CycleLockedError, CycleNotFoundError, DateOutsideCycleError, DispatchError,
    EvidenceNotFoundError, EvidenceRequiredError, InvalidHoursError, NotConfiguredError,
)
from app.core.cycles.generator import Frequency
from app.core.cycles.reminders import Reminder, due_reminders
from app.core.cycles.schemas import MAX_HOURS_PER_DAY, Cycle, CycleSummary, Evidence, TimesheetConfig
from app.core.cycles.store import CycleRepository, find_current, merge

logger = logging.getLogger(__name__)

ReminderSink = Callable[[Reminder], Awaitable[None]]


class CycleManager:
    def __init__(
        self,
        repository: CycleRepository,
        dispatcher: Dispatcher,
        encoder: Encoder,
        clock: Clock | None = None,
        reminder_sink: ReminderSink | None = None,
        max_forwarded_evidence: int = 3,
    ):
        self.repository = repository
        self.dispatcher = dispatcher
        self.encoder = encoder
        self.clock = clock or SystemClock()
        self.reminder_sink = reminder_sink
        self.max_forwarded_evidence = max_forwarded_evidence
        self.config: TimesheetConfig | None = None
        # Persisted records whose ids the current configuration does not generate.
        self._orphans: list[Cycle] = []
        self._cycles: list[Cycle] = []

    # ── Loading / regeneration ────────────────────────────────────────────────

    async def load(self) -> list[Cycle]:
        """Read configuration and saved cycles, then regenerate up to today."""
        self.config = await self.repository.load_config()
        if self.config is None:
            self._cycles, self._orphans = [], []
            return []
        persisted = await self.repository.load_cycles()
        self._apply(self.config, persisted)
        return self.cycles()

    async def regenerate(self, start_date: date, frequency: Frequency) -> list[Cycle]:
        """Reconfigure and rebuild the cycle collection.

        Saved data for ids that no longer regenerate is kept in storage but
        is not part of the result.
        """
        config = TimesheetConfig(start_date=start_date, frequency=frequency)
        persisted = await self.repository.load_cycles()
        await self.repository.save_config(config)
        self.config = config
        self._apply(config, persisted)
        logger.info(
            "Regenerated %d %s cycle(s) from %s",
            len(self._cycles), config.frequency.value, config.start_date,
        )
        return self.cycles()

    def _apply(self, config: TimesheetConfig, persisted: list[Cycle]) -> None:
        skeletons = generator.generate(config.start_date, config.frequency, self.clock.today())
        generated_ids = {s.id for s in skeletons}
        self._cycles = merge(skeletons, persisted)
        self._orphans = [c for c in persisted if c.id not in generated_ids]

    # ── Reads ─────────────────────────────────────────────────────────────────

    def _require_config(self) -> TimesheetConfig:
        if self.config is None:
            raise NotConfiguredError()
        return self.config

    def cycles(self) -> list[Cycle]:
        """Newest first."""
        return [c.model_copy(deep=True) for c in self._cycles]

    def current_cycle(self) -> Cycle | None:
        current = find_current(self._cycles, self.clock.today())
        return current.model_copy(deep=True) if current else None

    def get_cycle(self, cycle_id: str) -> Cycle:
        return self._find(cycle_id).model_copy(deep=True)

    def _find(self, cycle_id: str) -> Cycle:
        self._require_config()
        for cycle in self._cycles:
            if cycle.id == cycle_id:
                return cycle
        raise CycleNotFoundError(cycle_id)

    def _find_editable(self, cycle_id: str) -> Cycle:
        cycle = self._find(cycle_id)
        if not cycle.is_editable:
            raise CycleLockedError(cycle_id)
        return cycle

    def summary(self) -> CycleSummary:
        config = self._require_config()
        submitted = [c for c in self._cycles if c.submitted]
        current = find_current(self._cycles, self.clock.today())
        return CycleSummary(
            frequency=config.frequency,
            start_date=config.start_date,
            total_cycles=len(self._cycles),
            submitted_cycles=len(submitted),
            pending_cycles=len(self._cycles) - len(submitted),
            total_hours=sum(c.total_hours for c in self._cycles),
            submitted_hours=sum(c.total_hours for c in submitted),
            current_cycle_id=current.id if current else None,
        )

    # ── Mutations ─────────────────────────────────────────────────────────────

    async def _refresh_for_update(self) -> TimesheetConfig:
        """Re-read the stored collection under a row lock before changing it.

        Another request may have written since ``load``. Mutations apply to
        the fresh copy so they never write back a stale collection.
        """
        persisted = await self.repository.load_cycles(for_update=True)
        config = await self.repository.load_config()
        self.config = config
        if config is None:
            self._cycles, self._orphans = [], []
            raise NotConfiguredError()
        self._apply(config, persisted)
        return config

    async def _commit(self, updated: Cycle) -> Cycle:
        cycles = [updated if c.id == updated.id else c for c in self._cycles]
        await self.repository.save_cycles([*cycles, *self._orphans])
        self._cycles = cycles
        return updated.model_copy(deep=True)

    async def record_hours(self, cycle_id: str, day: date, value: float) -> Cycle:
        await self._refresh_for_update()
        cycle = self._find_editable(cycle_id)
        if not cycle.contains(day):
            raise DateOutsideCycleError(cycle_id, day)
        if not 0 <= value <= MAX_HOURS_PER_DAY:
            raise InvalidHoursError(value)
        hours = {**cycle.hours, day: float(value)}
        return await self._commit(cycle.model_copy(update={"hours": hours}, deep=True))

    async def attach_evidence(self, cycle_id: str, evidence: Evidence) -> Cycle:
        await self._refresh_for_update()
        cycle = self._find_editable(cycle_id)
        updated = cycle.model_copy(deep=True)
        updated.evidence.append(evidence.model_copy())
        return await self._commit(updated)

    async def remove_evidence(self, cycle_id: str, index: int) -> Cycle:
        await self._refresh_for_update()
        cycle = self._find_editable(cycle_id)
        if not 0 <= index < len(cycle.evidence):
            raise EvidenceNotFoundError(cycle_id, index)
        updated = cycle.model_copy(deep=True)
        del updated.evidence[index]
        return await self._commit(updated)

    async def submit(self, cycle_id: str) -> Cycle:
        """Hand the cycle to the dispatcher and lock it once delivery succeeds.

        The collection stays row-locked from the re-read through the final
        write, so a concurrent submit of the same cycle waits and then sees
        it locked instead of dispatching it again.
        """
        config = await self._refresh_for_update()
        cycle = self._find_editable(cycle_id)
        if not cycle.evidence:
            raise EvidenceRequiredError(cycle_id)

        payload = build_payload(cycle, config.frequency, self.encoder, self.max_forwarded_evidence)
        try:
            delivered = await self.dispatcher(payload)
        except Exception as exc:
            logger.exception("Dispatcher raised while submitting %s", cycle_id)
            raise DispatchError(cycle_id, str(exc) or type(exc).__name__) from exc
        if not delivered:
            raise DispatchError(cycle_id)

        locked = await self._commit(cycle.model_copy(update={"submitted": True}, deep=True))
        logger.info("Cycle %s submitted with %g hour(s)", cycle_id, locked.total_hours)
        return locked

    # ── Scheduled check ───────────────────────────────────────────────────────

    async def check_due_notifications(self, today: date | None = None) -> list[Reminder]:
        """Compute today's reminders and pass each to the reminder sink."""
        if self.config is None:
            return []
        reminders = due_reminders(self._cycles, today or self.clock.today())
        if self.reminder_sink is not None:
            for reminder in reminders:
                await self.reminder_sink(reminder)
        if reminders:
            logger.info("Raised %d timesheet reminder(s)", len(reminders))
        return reminders
