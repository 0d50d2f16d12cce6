import uuid
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.notifications import service
from app.core.notifications.schemas import NotificationRead
from app.dependencies import get_db

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRead])
async def list_notifications(
    unread_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_notifications(db, unread_only=unread_only)


@router.post("/read-all")
async def mark_all_read(db: AsyncSession = Depends(get_db)):
    updated = await service.mark_all_read(db)
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(notification_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await service.mark_read(db, notification_id)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(notification_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await service.delete_notification(db, notification_id)
