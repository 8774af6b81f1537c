from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Iterable

from anyio import from_thread
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from portal.models.notification import Notification, NotificationPriority, NotificationType
from portal.models.user import User, UserRole
from portal.services.email import EmailDeliveryError, send_email, smtp_configured
from portal.services.notification_hub import notification_hub

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    """Content of an in-app notification, shared by every recipient."""

    title: str
    message: str
    notification_type: NotificationType = NotificationType.system
    priority: NotificationPriority = NotificationPriority.normal
    action_url: str | None = None
    deliver_email: bool = False


def _utc_iso(value: datetime | None) -> str:
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def event_payload(notification: Notification, *, event: str) -> dict:
    return {
        "event": event,
        "notification": {
            "id": notification.id,
            "user_id": notification.user_id,
            "title": notification.title,
            "message": notification.message,
            "notification_type": notification.notification_type.value,
            "priority": notification.priority.value,
            "action_url": notification.action_url,
            "is_read": notification.is_read,
            "created_at": _utc_iso(notification.created_at),
        },
    }


def publish_realtime_notification(notification: Notification, *, event: str = "notification.created") -> None:
    # Sync routes run in anyio worker threads; the hub lives on the event loop.
    try:
        from_thread.run(notification_hub.publish, notification.user_id, event_payload(notification, event=event))
    except Exception:  # pragma: no cover - only reachable outside an anyio worker thread
        logger.debug("Realtime push skipped for user %s", notification.user_id, exc_info=True)


def _email_notice(recipient: User, notice: Notice) -> None:
    if not recipient.email or not smtp_configured():
        return
    try:
        send_email(
            to_email=recipient.email,
            subject=f"Lecture Portal: {notice.title}",
            text_content=f"{notice.title}\n\n{notice.message}",
        )
    except EmailDeliveryError:  # pragma: no cover - transport behavior
        logger.warning("Notification email to %s failed", recipient.email, exc_info=True)


def create_notification(db: Session, recipient: User, notice: Notice) -> Notification:
    record = Notification(
        user_id=recipient.id,
        title=notice.title,
        message=notice.message,
        notification_type=notice.notification_type,
        priority=notice.priority,
        action_url=notice.action_url,
        is_read=False,
    )
    db.add(record)
    db.flush()

    if notice.deliver_email:
        _email_notice(recipient, notice)
    publish_realtime_notification(record)
    return record


def deliver(
    db: Session,
    recipients: Iterable[User],
    notice: Notice,
    *,
    exclude_user_id: str | None = None,
) -> list[Notification]:
    return [
        create_notification(db, recipient, notice)
        for recipient in recipients
        if recipient.id != exclude_user_id
    ]


def notify_users(db: Session, user_ids: Iterable[str], notice: Notice) -> list[Notification]:
    wanted = [item for item in dict.fromkeys(user_ids) if item]
    if not wanted:
        return []
    recipients = db.execute(select(User).where(User.id.in_(wanted), User.is_active.is_(True))).scalars()
    return deliver(db, recipients, notice)


def notify_roles(
    db: Session,
    roles: Iterable[UserRole],
    notice: Notice,
    *,
    department: str | None = None,
    exclude_user_id: str | None = None,
) -> list[Notification]:
    """Notify every active user holding one of ``roles``, optionally within a department.

    Acting HODs are reached whenever ``UserRole.hod`` is among the roles.
    """
    roles = list(roles)
    held = User.role.in_(roles)
    if UserRole.hod in roles:
        held = or_(held, User.is_acting_hod.is_(True))
    query = select(User).where(held, User.is_active.is_(True))
    if department is not None:
        query = query.where(User.department == department)
    return deliver(db, db.execute(query).scalars(), notice, exclude_user_id=exclude_user_id)
