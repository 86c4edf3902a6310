"""
Settings API endpoints for the key/value store (branding values shown in emails).
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from retailhub.api.deps import require_admin
from retailhub.api.errors import api_error
from retailhub.audit import AuditAction, log
from retailhub.db import schemas
from retailhub.db.database import get_db
from retailhub.db.repositories import settings as settings_repo

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("")
def get_settings(key: Optional[str] = None, db: Session = Depends(get_db)):
    if key:
        setting = settings_repo.get_setting(db, key)
        if not setting:
            raise api_error(status.HTTP_404_NOT_FOUND, f"Setting '{key}' not found")
        return {"key": setting.key, "value": setting.value}
    return settings_repo.all_settings(db)


@router.post("")
def upsert_setting(
    payload: schemas.SettingUpsert,
    db: Session = Depends(get_db),
    admin_context=Depends(require_admin),
):
    admin, _ctx = admin_context
    if not payload.key:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Setting key is required")
    setting = settings_repo.upsert_setting(db, payload.key, payload.value)
    log(
        db,
        action=AuditAction.SETTING_UPDATE,
        target_type="setting",
        actor_profile_id=admin.id,
        metadata={"key": setting.key},
    )
    return {"success": True, "key": setting.key, "value": setting.value}
