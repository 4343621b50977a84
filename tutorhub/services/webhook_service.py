"""Service for idempotent intake of payment gateway webhooks."""

from __future__ import annotations

import logging
from typing import Any, Callable, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, ValidationException
from ..core.time_utils import utc_now
from ..models.wallet import WalletType
from ..models.webhook_event import WebhookEvent, WebhookEventStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .wallet_service import WalletService

logger = logging.getLogger(__name__)

# Handlers return (related_entity_type, related_entity_id)
Handler = Callable[[WebhookEvent], Tuple[str, str]]


class WebhookService(BaseService):
    """
    Business logic for webhook intake.

    Each ``(gateway, event_id)`` is stored once. A replay returns the stored
    row and runs no side effects. A stored ``failed`` row applied nothing, so
    its redelivery is processed again. Recognised event types are applied in
    the same transaction that marks the event processed.
    """

    def __init__(self, db: Session, wallet_service: WalletService | None = None) -> None:
        super().__init__(db)
        self.repository = RepositoryFactory.create_webhook_event_repository(db)
        self.wallet_service = wallet_service or WalletService(db)
        self.handlers: dict[str, Handler] = {
            "wallet.funded": self._handle_wallet_funded,
        }

    def _record(
        self, gateway: str, event_id: str, event_type: str, payload: dict[str, Any]
    ) -> Tuple[WebhookEvent, bool]:
        existing = self.repository.get_by_gateway_event(gateway, event_id)
        if existing is not None:
            if existing.status != WebhookEventStatus.FAILED.value:
                return existing, True
            with self.transaction():
                self.repository.reopen(existing, event_type=event_type, payload=payload)
            self.logger.info(
                "Retrying failed webhook",
                extra={
                    "gateway": gateway,
                    "event_id": event_id,
                    "error": existing.processing_error,
                },
            )
            return existing, False
        try:
            with self.transaction():
                event = self.repository.record_received(
                    gateway=gateway, event_id=event_id, event_type=event_type, payload=payload
                )
        except RepositoryException:
            # Race-safe fallback: another worker stored it first.
            existing = self.repository.get_by_gateway_event(gateway, event_id)
            if existing is None:
                raise
            return existing, True
        return event, False

    @BaseService.measure_operation("webhook.ingest")
    def ingest(
        self,
        gateway: str,
        event_id: str,
        event_type: str,
        payload: dict[str, Any],
    ) -> Tuple[WebhookEvent, bool]:
        """
        Store and process one webhook event.

        Returns:
            ``(event, duplicate)`` where ``duplicate`` is True for a replay
        """
        if not gateway or not event_id or not event_type:
            raise ValidationException("gateway, event_id and event_type are required")

        event, duplicate = self._record(gateway, event_id, event_type, payload or {})
        if duplicate:
            prometheus_metrics.record_webhook_event(gateway, "duplicate")
            self.logger.info(
                "Duplicate webhook ignored",
                extra={"gateway": gateway, "event_id": event_id, "status": event.status},
            )
            return event, True

        handler = self.handlers.get(event_type)
        if handler is None:
            with self.transaction():
                self.repository.mark(event, WebhookEventStatus.IGNORED, processed_at=utc_now())
            prometheus_metrics.record_webhook_event(gateway, "ignored")
            return event, False

        try:
            with self.transaction():
                entity_type, entity_id = handler(event)
                self.repository.mark(
                    event,
                    WebhookEventStatus.PROCESSED,
                    processed_at=utc_now(),
                    related_entity_type=entity_type,
                    related_entity_id=entity_id,
                )
        except Exception as exc:
            self.logger.error(
                f"Webhook {gateway}:{event_id} failed: {str(exc)}",
                exc_info=True,
            )
            with self.transaction():
                self.repository.mark(
                    event, WebhookEventStatus.FAILED, processed_at=utc_now(), error=str(exc)
                )
            prometheus_metrics.record_webhook_event(gateway, "failed")
            return event, False

        prometheus_metrics.record_webhook_event(gateway, "processed")
        return event, False

    def _handle_wallet_funded(self, event: WebhookEvent) -> Tuple[str, str]:
        payload = event.payload or {}
        missing = [key for key in ("user_id", "wallet_type", "amount") if not payload.get(key)]
        if missing:
            raise ValidationException(
                f"wallet.funded payload is missing {', '.join(missing)}",
                details={"missing": missing},
            )
        wallet = self.wallet_service.get_or_create_wallet(
            payload["user_id"], WalletType(payload["wallet_type"])
        )
        entry = self.wallet_service.add_funds(
            wallet,
            payload["amount"],
            description=payload.get("description") or f"Wallet funded via {event.gateway}",
            metadata={
                "gateway": event.gateway,
                "event_id": event.event_id,
                "reference": payload.get("reference"),
            },
        )
        return "unified_transaction", entry.id


__all__ = ["WebhookService"]
