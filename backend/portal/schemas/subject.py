from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class SubjectBase(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    department: str | None = Field(default=None, max_length=200)
    class_year: str | None = Field(default=None, max_length=50)
    semester: int | None = Field(default=None, ge=1, le=12)
    credits: int = Field(default=3, ge=0, le=30)
    syllabus: str | None = Field(default=None, max_length=20000)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        code = value.strip().upper()
        if not code:
            raise ValueError("Subject code cannot be empty")
        return code


class SubjectCreate(SubjectBase):
    pass


class SubjectUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=50)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    department: str | None = Field(default=None, max_length=200)
    class_year: str | None = Field(default=None, max_length=50)
    semester: int | None = Field(default=None, ge=1, le=12)
    credits: int | None = Field(default=None, ge=0, le=30)
    syllabus: str | None = Field(default=None, max_length=20000)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str | None) -> str | None:
        return value.strip().upper() if value is not None else None


class SubjectOut(SubjectBase):
    id: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
