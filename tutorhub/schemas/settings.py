"""Platform setting schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from ._strict_base import StrictRequestModel


class SettingUpdateRequest(StrictRequestModel):
    value: Any


class SettingResponse(BaseModel):
    key: str
    value: Any
    is_default: bool = False
    updated_at: Optional[datetime] = None
    updated_by_id: Optional[str] = None
