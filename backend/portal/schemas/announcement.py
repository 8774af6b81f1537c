from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from portal.models.announcement import AnnouncementAudience, AnnouncementPriority


class AnnouncementCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=5000)
    priority: AnnouncementPriority = AnnouncementPriority.normal
    target_audience: AnnouncementAudience = AnnouncementAudience.all
    expires_at: datetime | None = None

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title and content are required")
        return value.strip()


class AnnouncementUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    content: str | None = Field(default=None, min_length=1, max_length=5000)
    priority: AnnouncementPriority | None = None
    is_pinned: bool | None = None


class AnnouncementOut(BaseModel):
    id: str
    created_by_id: str
    creator_name: str | None = None
    department: str | None = None
    title: str
    message: str
    priority: AnnouncementPriority
    target_audience: AnnouncementAudience
    is_pinned: bool
    expires_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AnnouncementListOut(BaseModel):
    success: bool = True
    announcements: list[AnnouncementOut]
