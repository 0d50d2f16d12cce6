from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit.service import audit, request_ip
from app.core.cycles.clock import Clock
from app.core.cycles.manager import CycleManager
from app.core.cycles.schemas import (
    CycleRead, CycleSummary, Evidence, HoursUpdate, ReminderRead, TimesheetConfig,
)
from app.dependencies import get_clock, get_cycle_manager, get_db

router = APIRouter(prefix="/timesheet", tags=["timesheet"])


# ── Configuration ─────────────────────────────────────────────────────────────

@router.get("/config", response_model=TimesheetConfig)
async def get_config(manager: CycleManager = Depends(get_cycle_manager)):
    if manager.config is None:
        raise HTTPException(404, "Timesheet has not been configured")
    return manager.config


@router.put("/config", response_model=list[CycleRead])
async def set_config(
    data: TimesheetConfig,
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: CycleManager = Depends(get_cycle_manager),
    clock: Clock = Depends(get_clock),
):
    cycles = await manager.regenerate(data.start_date, data.frequency)
    await audit(db, action="timesheet.configure", resource_type="timesheet_config",
        detail={"start_date": str(data.start_date), "frequency": data.frequency.value},
        ip_address=request_ip(request),
    )
    today = clock.today()
    return [CycleRead.from_cycle(c, today) for c in cycles]


# ── Cycles ────────────────────────────────────────────────────────────────────

@router.get("/cycles", response_model=list[CycleRead])
async def list_cycles(
    manager: CycleManager = Depends(get_cycle_manager),
    clock: Clock = Depends(get_clock),
):
    today = clock.today()
    return [CycleRead.from_cycle(c, today) for c in manager.cycles()]


@router.get("/cycles/current", response_model=CycleRead)
async def get_current_cycle(
    manager: CycleManager = Depends(get_cycle_manager),
    clock: Clock = Depends(get_clock),
):
    cycle = manager.current_cycle()
    if not cycle:
        raise HTTPException(404, "No cycle contains today")
    return CycleRead.from_cycle(cycle, clock.today())


@router.get("/summary", response_model=CycleSummary)
async def get_summary(manager: CycleManager = Depends(get_cycle_manager)):
    return manager.summary()


@router.get("/cycles/{cycle_id}", response_model=CycleRead)
async def get_cycle(
    cycle_id: str,
    manager: CycleManager = Depends(get_cycle_manager),
    clock: Clock = Depends(get_clock),
):
    return CycleRead.from_cycle(manager.get_cycle(cycle_id), clock.today())


@router.put("/cycles/{cycle_id}/hours/{work_date}", response_model=CycleRead)
async def record_hours(
    cycle_id: str,
    work_date: date,
    data: HoursUpdate,
    manager: CycleManager = Depends(get_cycle_manager),
    clock: Clock = Depends(get_clock),
):
    cycle = await manager.record_hours(cycle_id, work_date, data.hours)
    return CycleRead.from_cycle(cycle, clock.today())


@router.post("/cycles/{cycle_id}/evidence", response_model=CycleRead, status_code=201)
async def attach_evidence(
    cycle_id: str,
    data: Evidence,
    manager: CycleManager = Depends(get_cycle_manager),
    clock: Clock = Depends(get_clock),
):
    cycle = await manager.attach_evidence(cycle_id, data)
    return CycleRead.from_cycle(cycle, clock.today())


@router.delete("/cycles/{cycle_id}/evidence/{index}", response_model=CycleRead)
async def remove_evidence(
    cycle_id: str,
    index: int,
    manager: CycleManager = Depends(get_cycle_manager),
    clock: Clock = Depends(get_clock),
):
    cycle = await manager.remove_evidence(cycle_id, index)
    return CycleRead.from_cycle(cycle, clock.today())


@router.post("/cycles/{cycle_id}/submit", response_model=CycleRead)
async def submit_cycle(
    cycle_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: CycleManager = Depends(get_cycle_manager),
    clock: Clock = Depends(get_clock),
):
    cycle = await manager.submit(cycle_id)
    await audit(db, action="timesheet.submit", resource_type="timesheet_cycle",
        resource_id=cycle.id,
        detail={"total_hours": cycle.total_hours, "evidence_count": len(cycle.evidence)},
        ip_address=request_ip(request),
    )
    return CycleRead.from_cycle(cycle, clock.today())


# ── Reminders ─────────────────────────────────────────────────────────────────

@router.post("/notifications/check", response_model=list[ReminderRead])
async def check_notifications(manager: CycleManager = Depends(get_cycle_manager)):
    return await manager.check_due_notifications()
