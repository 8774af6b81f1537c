import asyncio
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, resolve_user_from_token
from portal.core.config import get_settings
from portal.core.exceptions import ResourceNotFoundError
from portal.models.notification import Notification, NotificationType
from portal.models.user import User
from portal.schemas.notification import NotificationOut
from portal.services.audit import log_activity
from portal.services.notification_hub import format_sse, notification_hub
from portal.services.notifications import publish_realtime_notification

settings = get_settings()
router = APIRouter()


def _inbox(user: User):
    return select(Notification).where(Notification.user_id == user.id)


@router.get("/notifications", response_model=list[NotificationOut])
def list_notifications(
    notification_type: NotificationType | None = Query(default=None),
    is_read: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[NotificationOut]:
    query = _inbox(current_user)
    if notification_type is not None:
        query = query.where(Notification.notification_type == notification_type)
    if is_read is not None:
        query = query.where(Notification.is_read.is_(is_read))
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(offset).limit(limit)
    return list(db.execute(query).scalars())


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationOut:
    notification = db.execute(_inbox(current_user).where(Notification.id == notification_id)).scalar_one_or_none()
    if notification is None:
        raise ResourceNotFoundError("Notification", notification_id)
    if not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
        publish_realtime_notification(notification, event="notification.read")
    return notification


@router.post("/notifications/read-all")
def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    unread = list(db.execute(_inbox(current_user).where(Notification.is_read.is_(False))).scalars())
    if not unread:
        return {"success": True, "updated": 0}

    for notification in unread:
        notification.is_read = True
    log_activity(
        db,
        user=current_user,
        action="notification.read_all",
        entity_type="notification",
        details={"count": len(unread)},
    )
    db.commit()
    for notification in unread:
        publish_realtime_notification(notification, event="notification.read")
    return {"success": True, "updated": len(unread)}


def _stream_token(request: Request, token: str | None) -> str | None:
    if token:
        return token
    scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None


async def _events(request: Request, user_id: str) -> AsyncIterator[str]:
    queue = await notification_hub.subscribe(user_id)
    try:
        yield format_sse({"event": "connected", "user_id": user_id}, event="connected", retry_ms=settings.sse_retry_ms)
        while not await request.is_disconnected():
            try:
                payload = await asyncio.wait_for(queue.get(), timeout=settings.sse_heartbeat_seconds)
            except asyncio.TimeoutError:
                yield ": heartbeat\n\n"
                continue
            yield format_sse(payload, event=payload.get("event"))
    finally:
        await notification_hub.unsubscribe(user_id, queue)


@router.get("/notifications/stream")
async def notifications_stream(
    request: Request,
    token: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    # EventSource cannot set headers, so browsers pass the token as a query parameter.
    raw_token = _stream_token(request, token)
    user = resolve_user_from_token(db, raw_token) if raw_token else None
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return StreamingResponse(
        _events(request, user.id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
