"""Inbound webhook schemas."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import StandardizedModel


class WebhookEventIn(BaseModel):
    """Gateway envelope. Unknown top-level keys are tolerated."""

    model_config = ConfigDict(extra="ignore")

    event_id: str = Field(..., min_length=1, max_length=255)
    event_type: str = Field(..., min_length=1, max_length=100)
    payload: Dict[str, Any] = Field(default_factory=dict)


class WebhookAckResponse(StandardizedModel):
    id: str
    gateway: str
    event_id: str
    event_type: str
    status: str
    duplicate: bool = False
    processing_error: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
