import uuid
from sqlalchemy import Boolean, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, TimestampMixin, SoftDeleteMixin


class Notification(Base, TimestampMixin, SoftDeleteMixin):
    """
    In-app notification.
    type: timesheet | system
    kind: reminder kind for timesheet notifications (timesheet_due, ...)
    related_cycle_id: cycle the reminder refers to, if any.
    Identical reminders raised by repeated checks are stored as separate rows.
    """
    __tablename__ = "notifications"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="timesheet")
    kind: Mapped[str | None] = mapped_column(String(100), nullable=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_cycle_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
