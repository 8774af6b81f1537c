from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.api.deps import get_db, require_roles
from portal.models.activity_log import ActivityLog
from portal.models.user import User, UserRole
from portal.schemas.activity import ActivityLogOut

router = APIRouter()


@router.get("/activity/logs", response_model=list[ActivityLogOut])
def list_activity_logs(
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=500),
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> list[ActivityLogOut]:
    query = select(ActivityLog, User.name).outerjoin(User, User.id == ActivityLog.user_id)
    if entity_type:
        query = query.where(ActivityLog.entity_type == entity_type)
    if entity_id:
        query = query.where(ActivityLog.entity_id == entity_id)
    if user_id:
        query = query.where(ActivityLog.user_id == user_id)
    query = query.order_by(ActivityLog.created_at.desc()).limit(limit)
    return [
        ActivityLogOut.model_validate(entry).model_copy(update={"actor_name": actor_name})
        for entry, actor_name in db.execute(query).all()
    ]
