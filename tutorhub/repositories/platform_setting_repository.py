"""Repository for platform setting records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, cast

from sqlalchemy.orm import Session

from ..models.platform_setting import PlatformSetting


class PlatformSettingRepository:
    """Data access helper for platform setting key/value records."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_key(self, key: str) -> Optional[PlatformSetting]:
        result = self.db.query(PlatformSetting).filter(PlatformSetting.key == key).first()
        return cast(Optional[PlatformSetting], result)

    def upsert(
        self,
        *,
        key: str,
        value: Any,
        updated_at: datetime,
        updated_by_id: Optional[str] = None,
    ) -> PlatformSetting:
        record = self.get_by_key(key)
        if record is None:
            record = PlatformSetting(
                key=key, value_json=value, updated_at=updated_at, updated_by_id=updated_by_id
            )
            self.db.add(record)
        else:
            record.value_json = value
            record.updated_at = updated_at
            record.updated_by_id = updated_by_id
        self.db.flush()
        return record


__all__ = ["PlatformSettingRepository"]
