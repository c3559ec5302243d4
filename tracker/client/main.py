from __future__ import annotations

import asyncio
import logging

from tracker.client.api_client import PositionsClient
from tracker.client.config import get_client_settings
from tracker.client.dashboard import DashboardCounts, summarize
from tracker.client.reconciler import PositionMirror
from tracker.core.telemetry import configure_logging

logger = logging.getLogger(__name__)


async def run_snapshot() -> DashboardCounts:
    settings = get_client_settings()
    configure_logging()
    mirror = PositionMirror(
        PositionsClient(settings.api_base_url, timeout_seconds=settings.request_timeout_seconds)
    )
    await mirror.load()
    counts = summarize(mirror.positions)
    logger.info(
        "positions total=%s filled=%s vacant=%s open=%s stale=%s",
        counts.total,
        counts.filled,
        counts.vacant,
        counts.open,
        mirror.error is not None,
    )
    return counts


if __name__ == "__main__":
    asyncio.run(run_snapshot())
