"""Repository helpers for the webhook event intake table."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.webhook_event import WebhookEvent, WebhookEventStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    """Repository for webhook intake queries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, WebhookEvent)

    def get_by_gateway_event(self, gateway: str, event_id: str) -> WebhookEvent | None:
        return self.find_one_by(gateway=gateway, event_id=event_id)

    def record_received(
        self, *, gateway: str, event_id: str, event_type: str, payload: dict[str, Any]
    ) -> WebhookEvent:
        """
        Insert a new ``received`` row.

        Raises ``RepositoryException`` when ``(gateway, event_id)`` already
        exists; the caller re-reads the stored row in that case.
        """
        event = WebhookEvent(
            gateway=gateway,
            event_id=event_id,
            event_type=event_type,
            payload=payload,
            status=WebhookEventStatus.RECEIVED.value,
        )
        try:
            self.db.add(event)
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise RepositoryException(
                f"Webhook event {gateway}:{event_id} already recorded"
            ) from exc
        return event

    def mark(
        self,
        event: WebhookEvent,
        status: WebhookEventStatus,
        *,
        processed_at: datetime,
        error: str | None = None,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
    ) -> WebhookEvent:
        event.status = WebhookEventStatus(status).value
        event.processed_at = processed_at
        event.processing_error = error
        if related_entity_type:
            event.related_entity_type = related_entity_type
            event.related_entity_id = related_entity_id
        self.db.flush()
        return event

    def reopen(
        self, event: WebhookEvent, *, event_type: str, payload: dict[str, Any]
    ) -> WebhookEvent:
        """Reset a failed event to ``received`` with the redelivered payload."""
        event.event_type = event_type
        event.payload = payload
        event.status = WebhookEventStatus.RECEIVED.value
        event.processed_at = None
        self.db.flush()
        return event
