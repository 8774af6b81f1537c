import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from portal.db.base import Base


class AnnouncementPriority(str, Enum):
    normal = "normal"
    high = "high"
    urgent = "urgent"


class AnnouncementAudience(str, Enum):
    all = "all"
    teachers = "teachers"
    students = "students"


class Announcement(Base):
    """A notice board entry; ``department`` is NULL for institution-wide posts."""

    __tablename__ = "announcements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_by_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    department: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[AnnouncementPriority] = mapped_column(
        SAEnum(AnnouncementPriority, name="announcement_priority"),
        nullable=False,
        default=AnnouncementPriority.normal,
    )
    target_audience: Mapped[AnnouncementAudience] = mapped_column(
        SAEnum(AnnouncementAudience, name="announcement_audience"),
        nullable=False,
        default=AnnouncementAudience.all,
    )
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
