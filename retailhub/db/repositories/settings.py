"""
Key/value settings store.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from retailhub.db import models


def get_setting(db: Session, key: str) -> Optional[models.Setting]:
    return db.query(models.Setting).filter(models.Setting.key == key).first()


def get_value(db: Session, key: str, default: Any = None) -> Any:
    setting = get_setting(db, key)
    return setting.value if setting and setting.value is not None else default


def all_settings(db: Session) -> Dict[str, Any]:
    return {s.key: s.value for s in db.query(models.Setting).order_by(models.Setting.key).all()}


def upsert_setting(db: Session, key: str, value: Any) -> models.Setting:
    setting = get_setting(db, key)
    if setting:
        setting.value = value
    else:
        setting = models.Setting(key=key, value=value)
        db.add(setting)
    db.commit()
    db.refresh(setting)
    return setting
