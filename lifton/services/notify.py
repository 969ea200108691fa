from __future__ import annotations

import logging

import httpx
from fastapi import BackgroundTasks

from ..config import settings
from ..realtime import hub

logger = logging.getLogger(__name__)

# доменные события; доставка отдельно, движок её не ждёт
BOOKING_CREATED = "booking_created"
BOOKING_STATUS_CHANGED = "booking_status_changed"
BID_SUBMITTED = "bid_submitted"
BID_ACCEPTED = "bid_accepted"
BARGAIN_UPDATED = "bargain_updated"
BARGAIN_ACCEPTED = "bargain_accepted"


async def send_webhook(event: str, payload: dict) -> None:
    url = settings.NOTIFY_WEBHOOK_URL
    if not url:
        return
    async with httpx.AsyncClient(timeout=10) as c:
        try:
            resp = await c.post(url, json={"event": event, "payload": payload})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("webhook %s for %s failed: %s", url, event, e)


def emit(background_tasks: BackgroundTasks, event: str, payload: dict) -> None:
    background_tasks.add_task(hub.publish, event, payload)
    background_tasks.add_task(send_webhook, event, payload)
