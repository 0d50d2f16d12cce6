"""Cycle store: merging generated skeletons with saved state, and persistence.

The cycle collection and the configuration are each kept under one key of a
key-value store as JSON. Loading validates every record against the
``Cycle`` schema; records that fail validation are dropped and logged.
"""
import json
import logging
from datetime import date
from typing import Iterable, Sequence

from pydantic import ValidationError

from app.core.cycles.generator import CycleSkeleton
from app.core.cycles.schemas import Cycle, TimesheetConfig
from app.core.storage.service import KeyValueStore

logger = logging.getLogger(__name__)

CYCLES_KEY = "timesheet.cycles"
CONFIG_KEY = "timesheet.config"


def newest_first(cycles: Iterable[Cycle]) -> list[Cycle]:
    return sorted(cycles, key=lambda c: c.start_date, reverse=True)


def oldest_first(cycles: Iterable[Cycle]) -> list[Cycle]:
    return sorted(cycles, key=lambda c: c.start_date)


def merge(skeletons: Sequence[CycleSkeleton], persisted: Sequence[Cycle]) -> list[Cycle]:
    """
    Overlay saved user data onto freshly generated skeletons.
    Dates come from the skeleton, hours/evidence/submitted from the saved
    cycle with the same id. Persisted cycles with no matching skeleton are
    left out of the result. Returned newest first.
    """
    saved_by_id = {c.id: c for c in persisted}
    merged: list[Cycle] = []
    for skeleton in skeletons:
        saved = saved_by_id.get(skeleton.id)
        if saved is None:
            merged.append(Cycle.blank(skeleton))
        else:
            merged.append(saved.model_copy(
                update={"start_date": skeleton.start_date, "end_date": skeleton.end_date},
                deep=True,
            ))
    return newest_first(merged)


def find_current(cycles: Iterable[Cycle], today: date) -> Cycle | None:
    for cycle in cycles:
        if cycle.contains(today):
            return cycle
    return None


class CycleRepository:
    def __init__(self, kv: KeyValueStore, namespace: str = ""):
        self.kv = kv
        self.cycles_key = f"{namespace}{CYCLES_KEY}"
        self.config_key = f"{namespace}{CONFIG_KEY}"

    async def load_config(self) -> TimesheetConfig | None:
        raw = await self.kv.get(self.config_key)
        if raw is None:
            return None
        try:
            return TimesheetConfig.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding malformed timesheet configuration under %s", self.config_key)
            return None

    async def save_config(self, config: TimesheetConfig) -> None:
        await self.kv.set(self.config_key, config.model_dump_json())

    async def load_cycles(self, for_update: bool = False) -> list[Cycle]:
        raw = await self.kv.get(self.cycles_key, for_update=for_update)
        if raw is None:
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unparseable cycle collection under %s", self.cycles_key)
            return []
        if not isinstance(records, list):
            logger.warning("Discarding cycle collection under %s: expected a list", self.cycles_key)
            return []

        cycles: list[Cycle] = []
        for position, record in enumerate(records):
            try:
                cycles.append(Cycle.model_validate(record))
            except ValidationError as exc:
                logger.warning(
                    "Dropping malformed cycle record #%d under %s: %d validation error(s)",
                    position, self.cycles_key, exc.error_count(),
                )
        return cycles

    async def save_cycles(self, cycles: Sequence[Cycle]) -> None:
        payload = json.dumps([c.model_dump(mode="json") for c in newest_first(cycles)])
        await self.kv.set(self.cycles_key, payload)
