from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from portal.models.assignment import SubmissionStatus


class AssignmentCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    class_year: str = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    due_date: date | None = None
    max_marks: int = Field(default=100, ge=1, le=1000)

    @field_validator("subject", "class_year", "title")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Subject, class and title are required")
        return value.strip()


class AssignmentUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    due_date: date | None = None
    max_marks: int | None = Field(default=None, ge=1, le=1000)


class AssignmentOut(BaseModel):
    id: str
    teacher_id: str
    subject: str
    class_year: str
    title: str
    description: str | None = None
    due_date: date | None = None
    max_marks: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AssignmentListOut(BaseModel):
    success: bool = True
    assignments: list[AssignmentOut]


class SubmissionCreate(BaseModel):
    student_id: str = Field(min_length=1, max_length=36)
    notes: str | None = Field(default=None, max_length=2000)


class SubmissionGrade(BaseModel):
    marks: int = Field(ge=0)
    feedback: str | None = Field(default=None, max_length=2000)


class SubmissionOut(BaseModel):
    id: str
    assignment_id: str
    student_id: str
    student_name: str | None = None
    roll_no: str | None = None
    notes: str | None = None
    submitted_at: datetime | None = None
    marks: int | None = None
    feedback: str | None = None
    status: SubmissionStatus

    model_config = {"from_attributes": True}


class AssignmentDetailOut(BaseModel):
    success: bool = True
    assignment: AssignmentOut
    submissions: list[SubmissionOut]
