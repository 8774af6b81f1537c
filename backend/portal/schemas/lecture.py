from __future__ import annotations

from datetime import date, datetime
import re

from pydantic import BaseModel, Field, field_validator, model_validator

from portal.models.lecture import DayOfWeek, LectureStatus
from portal.services.affected_lectures import normalize_day_name

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def split_time_slot(value: str) -> tuple[str | None, str | None]:
    """Split ``"09:00-10:00"`` or ``"09:00 - 10:00"`` into its two ends."""
    separator = " - " if " - " in value else "-"
    parts = [part.strip() for part in value.split(separator, 1)]
    start = parts[0] if parts and TIME_PATTERN.match(parts[0]) else None
    end = parts[1] if len(parts) > 1 and TIME_PATTERN.match(parts[1]) else None
    return start, end


def _coerce_day(value):
    if value is None:
        return value
    normalized = normalize_day_name(value)
    if normalized is None:
        raise ValueError("day_of_week must be a weekday name such as 'Monday'")
    return normalized


class LectureBase(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    class_year: str = Field(min_length=1, max_length=50)
    division: str | None = Field(default=None, max_length=20)
    day_of_week: DayOfWeek
    time_slot: str | None = Field(default=None, max_length=50)
    start_time: str | None = None
    end_time: str | None = None
    room: str | None = Field(default=None, max_length=100)

    @field_validator("day_of_week", mode="before")
    @classmethod
    def normalize_day(cls, value):
        return _coerce_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is not None and not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def fill_time_fields(self) -> "LectureBase":
        if self.time_slot and (self.start_time is None or self.end_time is None):
            start, end = split_time_slot(self.time_slot)
            self.start_time = self.start_time or start
            self.end_time = self.end_time or end
        if not self.time_slot:
            if not (self.start_time and self.end_time):
                raise ValueError("Provide time_slot or both start_time and end_time")
            self.time_slot = f"{self.start_time} - {self.end_time}"
        if self.start_time and self.end_time:
            if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
                raise ValueError("End time must be after start time")
        return self


class LectureCreate(LectureBase):
    scheduled_teacher_id: str = Field(min_length=1, max_length=36)


class LectureUpdate(BaseModel):
    subject: str | None = Field(default=None, min_length=1, max_length=200)
    class_year: str | None = Field(default=None, min_length=1, max_length=50)
    division: str | None = Field(default=None, max_length=20)
    day_of_week: DayOfWeek | None = None
    time_slot: str | None = Field(default=None, max_length=50)
    start_time: str | None = None
    end_time: str | None = None
    room: str | None = Field(default=None, max_length=100)
    scheduled_teacher_id: str | None = Field(default=None, min_length=1, max_length=36)
    status: LectureStatus | None = None

    @field_validator("day_of_week", mode="before")
    @classmethod
    def normalize_day(cls, value):
        return _coerce_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is not None and not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value


class LectureOut(BaseModel):
    id: str
    subject: str
    class_year: str
    division: str | None = None
    day_of_week: DayOfWeek
    time_slot: str
    start_time: str | None = None
    end_time: str | None = None
    room: str | None = None
    department: str | None = None
    scheduled_teacher_id: str
    status: LectureStatus
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class LectureListOut(BaseModel):
    success: bool = True
    lectures: list[LectureOut]


class LectureEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    lecture: LectureOut


class LectureOccurrenceOut(LectureOut):
    specific_date: date


class AffectedLecturesOut(BaseModel):
    success: bool = True
    teacher_id: str
    start_date: date
    end_date: date
    lectures: list[LectureOccurrenceOut]
    lecture_ids: list[str]


class LectureConflictOut(BaseModel):
    kind: str
    day_of_week: DayOfWeek
    lecture_ids: list[str]
    description: str


class LectureConflictListOut(BaseModel):
    success: bool = True
    conflicts: list[LectureConflictOut]
