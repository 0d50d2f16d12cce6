from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, TimestampMixin


class KeyValueEntry(Base, TimestampMixin):
    """
    Opaque string value under a string key.
    The whole timesheet cycle collection lives in one row, so a write
    to it is atomic.
    """
    __tablename__ = "kv_entries"
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
