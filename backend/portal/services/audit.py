from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from portal.models.activity_log import ActivityLog
from portal.models.user import User

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    *,
    user: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> ActivityLog:
    """Stage an audit row in the caller's transaction; it is written only if the caller commits."""
    entry = ActivityLog(
        user_id=getattr(user, "id", None),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=dict(details or {}),
    )
    db.add(entry)
    logger.debug("%s %s:%s by %s", action, entity_type or "-", entity_id or "-", entry.user_id or "system")
    return entry
