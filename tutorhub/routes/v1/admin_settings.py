# tutorhub/routes/v1/admin_settings.py
"""
Platform settings routes (v1).

Reads fall back to the built-in default when a key has never been set.
Writes invalidate the in-process settings cache.
"""

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...api.dependencies import get_config_service, get_current_user_id
from ...core.exceptions import DomainException
from ...schemas.settings import SettingResponse, SettingUpdateRequest
from ...services.config_service import ConfigService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-settings-v1"])


@router.get("/{key}", response_model=SettingResponse)
async def get_setting(
    key: str,
    config_service: ConfigService = Depends(get_config_service),
) -> Dict[str, Any]:
    try:
        return await asyncio.to_thread(config_service.describe, key)
    except DomainException as exc:
        raise exc.to_http_exception() from exc


@router.put("/{key}", response_model=SettingResponse)
async def update_setting(
    key: str,
    payload: SettingUpdateRequest,
    admin_id: str = Depends(get_current_user_id),
    config_service: ConfigService = Depends(get_config_service),
) -> Dict[str, Any]:
    try:
        return await asyncio.to_thread(config_service.set, key, payload.value, admin_id)
    except DomainException as exc:
        raise exc.to_http_exception() from exc
