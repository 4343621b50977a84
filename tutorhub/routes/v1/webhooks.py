# tutorhub/routes/v1/webhooks.py
"""
Payment gateway webhook intake (v1).

Mounted under /api/v1/webhooks/{gateway}. Every delivery is acknowledged
with 200 once stored, including replays and events that failed to apply,
so gateways do not retry what is already recorded.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies import get_webhook_service
from ...core.exceptions import DomainException
from ...schemas.webhook import WebhookAckResponse, WebhookEventIn
from ...services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/{gateway}", response_model=WebhookAckResponse)
async def receive_webhook(
    gateway: str,
    payload: WebhookEventIn,
    webhook_service: WebhookService = Depends(get_webhook_service),
) -> WebhookAckResponse:
    try:
        event, duplicate = await asyncio.to_thread(
            webhook_service.ingest,
            gateway.lower(),
            payload.event_id,
            payload.event_type,
            payload.payload,
        )
    except DomainException as exc:
        raise exc.to_http_exception() from exc

    logger.info(
        "Webhook acknowledged",
        extra={
            "gateway": gateway,
            "event_id": payload.event_id,
            "status": event.status,
            "duplicate": duplicate,
        },
    )
    ack = WebhookAckResponse.model_validate(event)
    ack.duplicate = duplicate
    return ack
