import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from portal.db.base import Base


class SubstituteAssignmentStatus(str, Enum):
    assigned = "assigned"
    cancelled = "cancelled"


class SubstituteAssignment(Base):
    __tablename__ = "substitute_assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    leave_request_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    lecture_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    lecture_date: Mapped[date] = mapped_column(Date, nullable=False)
    original_teacher_id: Mapped[str] = mapped_column(String(36), nullable=False)
    substitute_teacher_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    assigned_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[SubstituteAssignmentStatus] = mapped_column(
        SAEnum(SubstituteAssignmentStatus, name="substitute_assignment_status"),
        nullable=False,
        default=SubstituteAssignmentStatus.assigned,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
