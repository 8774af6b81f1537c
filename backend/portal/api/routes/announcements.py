from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, require_roles
from portal.core.exceptions import ResourceNotFoundError
from portal.models.announcement import Announcement, AnnouncementPriority
from portal.models.notification import NotificationPriority, NotificationType
from portal.models.user import User, UserRole
from portal.schemas.announcement import (
    AnnouncementCreate,
    AnnouncementListOut,
    AnnouncementOut,
    AnnouncementUpdate,
)
from portal.services.audit import log_activity
from portal.services.notifications import Notice, notify_roles

router = APIRouter()

PREVIEW_LENGTH = 100

NOTICE_PRIORITY = {
    AnnouncementPriority.normal: NotificationPriority.normal,
    AnnouncementPriority.high: NotificationPriority.high,
    AnnouncementPriority.urgent: NotificationPriority.high,
}


def preview(text: str) -> str:
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH] + "..."


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _hydrate(db: Session, items: list[Announcement]) -> list[AnnouncementOut]:
    creator_ids = {item.created_by_id for item in items}
    names = {}
    if creator_ids:
        names = dict(db.execute(select(User.id, User.name).where(User.id.in_(creator_ids))).all())
    return [
        AnnouncementOut.model_validate(item).model_copy(update={"creator_name": names.get(item.created_by_id)})
        for item in items
    ]


def _load_own(db: Session, announcement_id: str, current_user: User) -> Announcement:
    announcement = db.get(Announcement, announcement_id)
    # Other users' announcements are reported as missing.
    if announcement is None or announcement.created_by_id != current_user.id:
        raise ResourceNotFoundError("Announcement", announcement_id)
    return announcement


@router.get("", response_model=AnnouncementListOut)
def list_announcements(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AnnouncementListOut:
    visible = Announcement.department.is_(None)
    if current_user.department:
        visible = or_(visible, Announcement.department == current_user.department)
    query = (
        select(Announcement)
        .where(visible)
        .where(or_(Announcement.expires_at.is_(None), Announcement.expires_at > datetime.now(timezone.utc)))
        .order_by(Announcement.is_pinned.desc(), Announcement.created_at.desc())
    )
    return AnnouncementListOut(announcements=_hydrate(db, list(db.execute(query).scalars())))


@router.post("", response_model=AnnouncementOut, status_code=status.HTTP_201_CREATED)
def create_announcement(
    payload: AnnouncementCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> AnnouncementOut:
    # Administrators post institution-wide; everyone else posts to their department.
    department = None if current_user.role == UserRole.admin else current_user.department
    announcement = Announcement(
        created_by_id=current_user.id,
        department=department,
        title=payload.title,
        message=payload.content,
        priority=payload.priority,
        target_audience=payload.target_audience,
        is_pinned=False,
        expires_at=_as_utc(payload.expires_at),
    )
    db.add(announcement)
    db.flush()

    notify_roles(
        db,
        list(UserRole),
        Notice(
            title=f"New Announcement: {payload.title}",
            message=preview(payload.content),
            notification_type=NotificationType.system,
            priority=NOTICE_PRIORITY[payload.priority],
            action_url="/announcements",
        ),
        department=department,
        exclude_user_id=current_user.id,
    )
    log_activity(
        db,
        user=current_user,
        action="announcement.create",
        entity_type="announcement",
        entity_id=announcement.id,
        details={"department": department, "priority": payload.priority.value},
    )
    db.commit()
    db.refresh(announcement)
    return _hydrate(db, [announcement])[0]


@router.put("/{announcement_id}", response_model=AnnouncementOut)
def update_announcement(
    announcement_id: str,
    payload: AnnouncementUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AnnouncementOut:
    announcement = _load_own(db, announcement_id, current_user)
    data = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    if "content" in data:
        data["message"] = data.pop("content")
    for key, value in data.items():
        setattr(announcement, key, value)
    log_activity(
        db,
        user=current_user,
        action="announcement.update",
        entity_type="announcement",
        entity_id=announcement.id,
        details={"fields": sorted(data.keys())},
    )
    db.commit()
    db.refresh(announcement)
    return _hydrate(db, [announcement])[0]


@router.delete("/{announcement_id}")
def delete_announcement(
    announcement_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    announcement = _load_own(db, announcement_id, current_user)
    db.delete(announcement)
    log_activity(db, user=current_user, action="announcement.delete", entity_type="announcement", entity_id=announcement_id)
    db.commit()
    return {"success": True, "message": "Announcement deleted"}
