from __future__ import annotations

from dataclasses import dataclass
import json
import logging

from tracker.core.telemetry import position_span
from tracker.schemas.webhooks import WebhookEvent
from tracker.services.store import PositionStore

logger = logging.getLogger(__name__)

StatusMap = dict[str, dict[str, str]]


@dataclass(slots=True)
class WebhookOutcome:
    provider: str
    requisition_id: str
    status: str
    matched: int


def parse_status_map(raw: str | None) -> StatusMap:
    """Parse ``{"provider": {"external status": "Canonical"}}``.

    Provider names and external statuses are matched case-insensitively.
    Anything that is not a JSON object of string-to-string maps is ignored.
    """
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("webhook status map is not valid JSON; ignoring it")
        return {}
    if not isinstance(decoded, dict):
        return {}

    parsed: StatusMap = {}
    for raw_provider, raw_mapping in decoded.items():
        if not isinstance(raw_provider, str) or not isinstance(raw_mapping, dict):
            continue
        provider = raw_provider.strip().lower()
        if not provider:
            continue
        parsed[provider] = {
            external.strip().lower(): canonical
            for external, canonical in raw_mapping.items()
            if isinstance(external, str) and isinstance(canonical, str) and canonical.strip()
        }
    return parsed


class WebhookReconciler:
    """Turns ATS lifecycle events into status overwrites on the store.

    Status values are stored verbatim unless the provider has a mapping entry
    for them.
    """

    def __init__(self, store: PositionStore, status_map: StatusMap | None = None) -> None:
        self.store = store
        self.status_map = status_map or {}

    def canonical_status(self, provider: str, status: str) -> str:
        mapping = self.status_map.get(provider.strip().lower(), {})
        return mapping.get(status.strip().lower(), status)

    def handle(self, provider: str, event: WebhookEvent) -> WebhookOutcome:
        with position_span("webhook.handle", req=event.requisition_id, provider=provider):
            status = self.canonical_status(provider, event.status)
            matched = self.store.apply_external_status(event.requisition_id, status)
            if not matched:
                logger.info("webhook event matched no position provider=%s", provider)
        return WebhookOutcome(
            provider=provider,
            requisition_id=event.requisition_id,
            status=status,
            matched=matched,
        )
