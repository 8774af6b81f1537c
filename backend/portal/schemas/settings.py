from datetime import datetime

from pydantic import BaseModel, Field

DEFAULT_SETTINGS: dict[str, tuple[str, str]] = {
    "institution_name": ("Lecture Portal", "Name shown in the console header"),
    "institution_logo_url": ("", "Logo used for institution branding"),
    "academic_year": ("2026-2027", "Current academic year"),
    "primary_color": ("#4A90D9", "Branding accent colour"),
    "max_leave_days_per_request": ("30", "Upper bound on a single leave request"),
}


class SettingOut(BaseModel):
    key: str
    value: str
    description: str | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class SettingsOut(BaseModel):
    success: bool = True
    settings: dict[str, str]
    raw: list[SettingOut]


class SettingsUpdate(BaseModel):
    settings: dict[str, str] = Field(min_length=1)


class SettingUpdateError(BaseModel):
    key: str
    error: str


class SettingsUpdateOut(BaseModel):
    success: bool
    updated: list[str]
    errors: list[SettingUpdateError]
