"""Tests for SSE fan-out and webhook delivery."""

import asyncio
import json
import logging

from lifton.config import settings
from lifton.realtime import _Hub
from lifton.services import notify


def test_hub_delivers_sse_frames():
    async def main():
        hub = _Hub()
        stream = hub.subscribe()
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        assert hub.subscriber_count == 1

        await hub.publish(notify.BID_SUBMITTED, {"booking_id": 7, "driver": "Ravi"})
        msg = await asyncio.wait_for(pending, timeout=1)
        await stream.aclose()
        return msg, hub.subscriber_count

    msg, remaining = asyncio.run(main())
    event_line, data_line, *_ = msg.split("\n")
    assert event_line == "event: bid_submitted"
    assert json.loads(data_line[len("data: "):]) == {"booking_id": 7, "driver": "Ravi"}
    assert msg.endswith("\n\n")
    assert remaining == 0


def test_publish_without_subscribers():
    asyncio.run(_Hub().publish("booking_created", {"booking_id": 1}))


def test_webhook_disabled_by_default(monkeypatch):
    monkeypatch.setattr(settings, "NOTIFY_WEBHOOK_URL", None)
    asyncio.run(notify.send_webhook(notify.BOOKING_CREATED, {"booking_id": 1}))


def test_webhook_failure_is_logged(monkeypatch, caplog):
    # на 9-м порту никто не слушает
    monkeypatch.setattr(settings, "NOTIFY_WEBHOOK_URL", "http://127.0.0.1:9/hook")
    with caplog.at_level(logging.WARNING, logger="lifton.services.notify"):
        asyncio.run(notify.send_webhook(notify.BID_ACCEPTED, {"booking_id": 1}))
    assert "bid_accepted" in caplog.text
