from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from portal.models.leave_request import LeaveReason, LeaveStatus, LeaveType
from portal.models.substitute_assignment import SubstituteAssignmentStatus
from portal.schemas.lecture import LectureOccurrenceOut


class LeaveRequestCreate(BaseModel):
    start_date: date
    end_date: date
    reason: LeaveReason
    leave_type: LeaveType = LeaveType.casual
    affected_lectures: list[str] | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=2000)
    teacher_id: str | None = Field(default=None, max_length=36)
    is_hod: bool | None = None
    delegate_responsibilities: str | None = Field(default=None, max_length=2000)

    @field_validator("notes", "delegate_responsibilities")
    @classmethod
    def normalize_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None


class LeaveReview(BaseModel):
    status: LeaveStatus
    comments: str | None = Field(default=None, max_length=1000)

    @field_validator("status")
    @classmethod
    def require_decision(cls, value: LeaveStatus) -> LeaveStatus:
        if value == LeaveStatus.pending:
            raise ValueError("Review status must be approved or rejected")
        return value

    @field_validator("comments")
    @classmethod
    def normalize_comments(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None


class LeaveRequestOut(BaseModel):
    id: str
    teacher_id: str
    teacher_name: str | None = None
    department: str | None = None
    start_date: date
    end_date: date
    total_days: int
    reason: LeaveReason
    leave_type: LeaveType
    affected_lectures: list[str]
    notes: str | None = None
    is_hod_request: bool
    delegate_responsibilities: str | None = None
    status: LeaveStatus
    review_comments: str | None = None
    reviewed_by_id: str | None = None
    reviewer_name: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None


class LeaveSubmitOut(BaseModel):
    success: bool = True
    message: str
    leave_id: str
    request: LeaveRequestOut


class LeaveReviewOut(BaseModel):
    success: bool = True
    message: str
    request: LeaveRequestOut


class LeaveRequestListOut(BaseModel):
    success: bool = True
    requests: list[LeaveRequestOut]


class LeaveCalendarOut(BaseModel):
    success: bool = True
    leaves: list[LeaveRequestOut]


class LeaveTypeOut(BaseModel):
    id: LeaveType
    name: str
    max_days: int
    default_days: int


class LeaveTypeListOut(BaseModel):
    success: bool = True
    leaveTypes: list[LeaveTypeOut]


ScheduleDate = date


class TeacherScheduleOut(BaseModel):
    success: bool = True
    date: ScheduleDate
    day_of_week: str
    lectures: list[LectureOccurrenceOut]


class SubstituteNeedOut(LectureOccurrenceOut):
    leave_id: str
    leave_reason: str
    original_teacher_name: str | None = None


class SubstituteNeedListOut(BaseModel):
    success: bool = True
    lectures: list[SubstituteNeedOut]


class AvailableTeacherOut(BaseModel):
    id: str
    name: str
    email: str
    department: str | None = None
    designation: str | None = None
    daily_load: int


class AvailableTeacherListOut(BaseModel):
    success: bool = True
    available: list[AvailableTeacherOut]
    lecture: LectureOccurrenceOut


class SubstituteAssignmentCreate(BaseModel):
    leave_request_id: str = Field(min_length=1, max_length=36)
    lecture_id: str = Field(min_length=1, max_length=36)
    lecture_date: date
    substitute_teacher_id: str = Field(min_length=1, max_length=36)
    notes: str | None = Field(default=None, max_length=1000)


class SubstituteAssignmentOut(BaseModel):
    id: str
    leave_request_id: str
    lecture_id: str
    lecture_date: date
    original_teacher_id: str
    substitute_teacher_id: str
    assigned_by_id: str
    notes: str | None = None
    status: SubstituteAssignmentStatus
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class SubstituteAssignmentEnvelope(BaseModel):
    success: bool = True
    message: str
    assignment: SubstituteAssignmentOut


class SubstituteRequestCreate(BaseModel):
    """A one-off cover request for a single dated lecture."""

    lecture_date: date
    time_slot: str = Field(min_length=1, max_length=50)
    subject: str = Field(min_length=1, max_length=200)
    class_year: str = Field(min_length=1, max_length=50)
    division: str | None = Field(default=None, max_length=20)
    reason: LeaveReason = LeaveReason.Other
    notes: str | None = Field(default=None, max_length=1000)
    teacher_id: str | None = Field(default=None, max_length=36)

    @field_validator("subject", "class_year", "time_slot")
    @classmethod
    def strip_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Field cannot be blank")
        return value.strip()


class SubstituteRequestOut(BaseModel):
    success: bool = True
    message: str
    request_id: str
    lecture_id: str


class SubstituteSummaryOut(BaseModel):
    substitute_teacher_id: str
    substitute_name: str | None = None
    department: str | None = None
    lecture_count: int
    subjects: list[str]


class SubstituteDetailOut(SubstituteAssignmentOut):
    subject: str | None = None
    class_year: str | None = None
    time_slot: str | None = None
    original_teacher_name: str | None = None
    substitute_teacher_name: str | None = None
    leave_reason: str | None = None


class SubstituteReportOut(BaseModel):
    success: bool = True
    summary: list[SubstituteSummaryOut]
    details: list[SubstituteDetailOut]
