import uuid
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cycles.reminders import Reminder
from app.core.notifications.models import Notification
from app.core.notifications.schemas import NotificationCreate


async def create_notification(db: AsyncSession, data: NotificationCreate) -> Notification:
    n = Notification(**data.model_dump())
    db.add(n)
    await db.flush()
    await db.refresh(n)
    return n


async def get_notification(db: AsyncSession, notification_id: uuid.UUID) -> Notification | None:
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.is_deleted == False)
    )
    return result.scalar_one_or_none()


async def list_notifications(db: AsyncSession, unread_only: bool = False) -> list[Notification]:
    q = select(Notification).where(Notification.is_deleted == False)
    if unread_only:
        q = q.where(Notification.is_read == False)
    q = q.order_by(Notification.created_at.desc())
    result = await db.execute(q)
    return list(result.scalars().all())


async def mark_read(db: AsyncSession, notification_id: uuid.UUID) -> Notification:
    from fastapi import HTTPException
    n = await get_notification(db, notification_id)
    if not n:
        raise HTTPException(404, "Notification not found")
    n.is_read = True
    await db.flush()
    await db.refresh(n)
    return n


async def mark_all_read(db: AsyncSession) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.is_deleted == False, Notification.is_read == False)
        .values(is_read=True)
    )
    await db.flush()
    return result.rowcount or 0


async def delete_notification(db: AsyncSession, notification_id: uuid.UUID) -> None:
    from fastapi import HTTPException
    n = await get_notification(db, notification_id)
    if not n:
        raise HTTPException(404, "Notification not found")
    n.is_deleted = True
    await db.flush()


class NotificationInbox:
    """Reminder sink that stores each reminder as a timesheet notification."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def __call__(self, reminder: Reminder) -> None:
        await create_notification(self.db, NotificationCreate(
            type="timesheet",
            kind=reminder.kind,
            title=reminder.title,
            message=reminder.message,
            related_cycle_id=reminder.cycle_id,
        ))
