"""Service helpers for platform settings."""

from __future__ import annotations

from copy import deepcopy
from decimal import Decimal, InvalidOperation
import logging
import threading
from time import monotonic
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, ValidationException
from ..core.time_utils import utc_now
from ..repositories.platform_setting_repository import PlatformSettingRepository

logger = logging.getLogger(__name__)

SETTING_DEFAULTS: Dict[str, Any] = {
    "min_payout_amount": "5000",
    "max_pending_payouts": 3,
    "auto_payout_threshold": "50000",
    "platform_commission_percent": "0",
    "reschedule_expiry_days": 3,
    "rebook_expiry_days": 5,
}

_CACHE_TTL_SECONDS = 60.0
_cache: Dict[str, Tuple[float, Any]] = {}
_cache_lock = threading.Lock()


def _to_json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value


class ConfigService:
    """
    Business logic for reading/writing platform settings.

    Reads are served from a process-wide cache; ``set`` and ``invalidate``
    drop cached entries so the next read goes back to the database.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = PlatformSettingRepository(db)

    def get(self, key: str, default: Any = None) -> Any:
        now = monotonic()
        with _cache_lock:
            cached = _cache.get(key)
            if cached is not None and (now - cached[0]) <= _CACHE_TTL_SECONDS:
                return deepcopy(cached[1])

        record = self.repo.get_by_key(key)
        if record is not None:
            value = record.value_json
        elif default is not None:
            return default
        else:
            value = SETTING_DEFAULTS.get(key)

        with _cache_lock:
            _cache[key] = (now, deepcopy(value))
        return deepcopy(value)

    def get_decimal(self, key: str, default: Optional[Decimal] = None) -> Decimal:
        raw = self.get(key, default)
        try:
            return Decimal(str(raw))
        except (InvalidOperation, TypeError) as exc:
            raise ValidationException(
                f"Setting '{key}' is not a number", details={"key": key, "value": raw}
            ) from exc

    def get_int(self, key: str, default: Optional[int] = None) -> int:
        raw = self.get(key, default)
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise ValidationException(
                f"Setting '{key}' is not an integer", details={"key": key, "value": raw}
            ) from exc

    def set(self, key: str, value: Any, updated_by: Optional[str] = None) -> Dict[str, Any]:
        if not key or not key.strip():
            raise ValidationException("Setting key is required")
        try:
            record = self.repo.upsert(
                key=key,
                value=_to_json_value(value),
                updated_at=utc_now(),
                updated_by_id=updated_by,
            )
            self.commit()
        except Exception:
            self.rollback()
            raise
        finally:
            self.invalidate(key)
        logger.info("Platform setting updated", extra={"key": key, "updated_by": updated_by})
        return self._describe_record(record)

    @staticmethod
    def _describe_record(record) -> Dict[str, Any]:
        return {
            "key": record.key,
            "value": deepcopy(record.value_json),
            "is_default": False,
            "updated_at": record.updated_at,
            "updated_by_id": record.updated_by_id,
        }

    def describe(self, key: str) -> Dict[str, Any]:
        record = self.repo.get_by_key(key)
        if record is None:
            if key not in SETTING_DEFAULTS:
                raise NotFoundException(
                    f"Unknown setting '{key}'", code="SETTING_NOT_FOUND", details={"key": key}
                )
            return {
                "key": key,
                "value": SETTING_DEFAULTS[key],
                "is_default": True,
                "updated_at": None,
                "updated_by_id": None,
            }
        return self._describe_record(record)

    @staticmethod
    def invalidate(key: Optional[str] = None) -> None:
        """Drop one cached setting, or all of them when ``key`` is None."""
        with _cache_lock:
            if key is None:
                _cache.clear()
            else:
                _cache.pop(key, None)

    def commit(self) -> None:
        """Commit pending changes to the database."""
        self.db.commit()

    def rollback(self) -> None:
        """Rollback pending changes."""
        self.db.rollback()
