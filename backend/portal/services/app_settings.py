from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.models.app_setting import AppSetting
from portal.schemas.settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


def ensure_default_settings(db: Session) -> list[AppSetting]:
    """Insert any missing default keys and return every stored row."""
    existing = {item.key: item for item in db.execute(select(AppSetting)).scalars()}
    missing = [key for key in DEFAULT_SETTINGS if key not in existing]
    for key in missing:
        value, description = DEFAULT_SETTINGS[key]
        record = AppSetting(key=key, value=value, description=description)
        db.add(record)
        existing[key] = record
    if missing:
        db.flush()
        logger.info("Seeded default settings: %s", ", ".join(missing))
    return sorted(existing.values(), key=lambda item: item.key)


def get_setting(db: Session, key: str) -> str | None:
    record = db.get(AppSetting, key)
    if record is not None:
        return record.value
    default = DEFAULT_SETTINGS.get(key)
    return default[0] if default else None


def get_int_setting(db: Session, key: str, fallback: int) -> int:
    value = get_setting(db, key)
    try:
        return int(value) if value is not None else fallback
    except ValueError:
        logger.warning("Setting %s has non-integer value %r; using %s", key, value, fallback)
        return fallback


def validate_setting_value(key: str, value: str) -> str | None:
    """Return an error message for an unacceptable value, otherwise ``None``."""
    if key not in DEFAULT_SETTINGS:
        return "Unknown setting"
    if key == "max_leave_days_per_request":
        if not value.strip().isdigit() or int(value) < 1:
            return "Must be a positive whole number"
    if key == "primary_color":
        stripped = value.strip()
        if not (stripped.startswith("#") and len(stripped) in (4, 7)):
            return "Must be a hex colour such as #4A90D9"
    return None
