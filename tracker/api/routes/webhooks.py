import logging

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from tracker.core.config import get_settings
from tracker.schemas.webhooks import WebhookEvent
from tracker.services.store import PositionStore, get_store
from tracker.services.webhook import WebhookReconciler, parse_status_map

router = APIRouter()
logger = logging.getLogger(__name__)


def get_webhook_reconciler(store: PositionStore = Depends(get_store)) -> WebhookReconciler:
    return WebhookReconciler(store, parse_status_map(get_settings().webhook_status_map_json))


@router.post("/{provider}", response_class=PlainTextResponse)
async def receive_webhook(
    provider: str,
    payload: WebhookEvent,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
) -> PlainTextResponse:
    try:
        outcome = reconciler.handle(provider, payload)
    except Exception:
        # The ATS redelivers on 5xx; nothing is retried here.
        logger.exception("webhook handling failed provider=%s req=%s", provider, payload.requisition_id)
        return PlainTextResponse("error", status_code=500)

    logger.info(
        "webhook applied provider=%s req=%s status=%s matched=%s",
        outcome.provider,
        outcome.requisition_id,
        outcome.status,
        outcome.matched,
    )
    return PlainTextResponse("ok", status_code=200)
