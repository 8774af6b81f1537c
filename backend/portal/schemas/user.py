from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from portal.models.user import UserRole


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class UserBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    role: UserRole
    department: str | None = Field(default=None, max_length=200)
    designation: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=30)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Name cannot be empty")
        return value.strip()

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("department", "designation", "phone")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        return _clean_optional(value)


class UserCreate(UserBase):
    role: UserRole = UserRole.teacher
    password: str = Field(min_length=8, max_length=128)

    @model_validator(mode="after")
    def hod_needs_department(self) -> "UserCreate":
        # Leave routing and review rights for an HOD are scoped by department.
        if self.role == UserRole.hod and not self.department:
            raise ValueError("department is required for HOD accounts")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    role: UserRole | None = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=8, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


class UserOut(UserBase):
    id: str
    is_active: bool = True
    is_acting_hod: bool = False
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class TeacherUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    department: str | None = Field(default=None, max_length=200)
    designation: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=30)
    role: UserRole | None = None
    is_active: bool | None = None


class TeacherListOut(BaseModel):
    success: bool = True
    teachers: list[UserOut]


class DelegationRequest(BaseModel):
    # None revokes the current delegation.
    target_teacher_id: str | None = None


class DelegationOut(BaseModel):
    success: bool = True
    message: str
    acting_hod: UserOut | None = None


class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserOut
