import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from portal.db.base import Base


class DayOfWeek(str, Enum):
    Sunday = "Sunday"
    Monday = "Monday"
    Tuesday = "Tuesday"
    Wednesday = "Wednesday"
    Thursday = "Thursday"
    Friday = "Friday"
    Saturday = "Saturday"


class LectureStatus(str, Enum):
    scheduled = "scheduled"
    cancelled = "cancelled"


class Lecture(Base):
    """A standing weekly slot, not a dated calendar event."""

    __tablename__ = "lectures"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    class_year: Mapped[str] = mapped_column(String(50), nullable=False)
    division: Mapped[str | None] = mapped_column(String(20), nullable=True)
    day_of_week: Mapped[DayOfWeek] = mapped_column(SAEnum(DayOfWeek, name="day_of_week"), nullable=False)
    time_slot: Mapped[str] = mapped_column(String(50), nullable=False)
    start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    room: Mapped[str | None] = mapped_column(String(100), nullable=True)
    department: Mapped[str | None] = mapped_column(String(200), nullable=True)
    scheduled_teacher_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[LectureStatus] = mapped_column(
        SAEnum(LectureStatus, name="lecture_status"),
        nullable=False,
        default=LectureStatus.scheduled,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
