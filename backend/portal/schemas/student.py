from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class StudentBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    roll_no: str = Field(min_length=1, max_length=50)
    email: EmailStr | None = None
    class_year: str = Field(min_length=1, max_length=50)
    division: str | None = Field(default=None, max_length=20)
    department: str | None = Field(default=None, max_length=200)
    photo_url: str | None = Field(default=None, max_length=500)

    @field_validator("name", "roll_no", "class_year")
    @classmethod
    def strip_required(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Value cannot be empty")
        return trimmed

    @field_validator("division")
    @classmethod
    def normalize_division(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip().upper()
        return trimmed or None


class StudentCreate(StudentBase):
    pass


class StudentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    roll_no: str | None = Field(default=None, min_length=1, max_length=50)
    email: EmailStr | None = None
    class_year: str | None = Field(default=None, min_length=1, max_length=50)
    division: str | None = Field(default=None, max_length=20)
    department: str | None = Field(default=None, max_length=200)
    photo_url: str | None = Field(default=None, max_length=500)


class StudentOut(StudentBase):
    id: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
