from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, require_roles
from portal.core.exceptions import ValidationFailedError
from portal.models.app_setting import AppSetting
from portal.models.user import User, UserRole
from portal.schemas.settings import (
    SettingOut,
    SettingsOut,
    SettingsUpdate,
    SettingsUpdateOut,
    SettingUpdateError,
)
from portal.services.app_settings import ensure_default_settings, validate_setting_value
from portal.services.audit import log_activity

router = APIRouter()


def _settings_out(records: list[AppSetting]) -> SettingsOut:
    return SettingsOut(
        settings={item.key: item.value for item in records},
        raw=[SettingOut.model_validate(item) for item in records],
    )


@router.get("/settings", response_model=SettingsOut)
def get_portal_settings(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SettingsOut:
    records = ensure_default_settings(db)
    db.commit()
    return _settings_out(records)


@router.put("/settings", response_model=SettingsUpdateOut)
def update_portal_settings(
    payload: SettingsUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> SettingsUpdateOut:
    records = {item.key: item for item in ensure_default_settings(db)}

    updated: list[str] = []
    errors: list[SettingUpdateError] = []
    for key, value in payload.settings.items():
        error = validate_setting_value(key, value)
        if error is not None:
            errors.append(SettingUpdateError(key=key, error=error))
            continue
        records[key].value = value.strip()
        updated.append(key)

    if not updated:
        db.rollback()
        raise ValidationFailedError(
            "No settings were updated",
            details={"errors": [item.model_dump() for item in errors]},
        )

    log_activity(
        db,
        user=current_user,
        action="settings.update",
        entity_type="settings",
        details={"updated": updated, "rejected": [item.key for item in errors]},
    )
    db.commit()
    return SettingsUpdateOut(success=not errors, updated=updated, errors=errors)
