from __future__ import annotations

import asyncio
import datetime as dt
import logging

from sqlalchemy.orm import Session, sessionmaker

from ..db import utcnow
from .bargains import expire_bargains
from .bids import expire_bids

logger = logging.getLogger(__name__)


def expire_stale(db: Session, now: dt.datetime | None = None) -> dict:
    """
    Переводит просроченные ставки и торги в expired.

    Необязательная уборка: любое чтение и любое принятие и так проверяют
    срок, так что от частоты запуска корректность не зависит.
    """
    now = now or utcnow()
    bids = expire_bids(db, now)
    bargains = expire_bargains(db, now)
    db.commit()
    if bids or bargains:
        logger.info("housekeeping: expired %s bids, %s bargains", bids, bargains)
    return {"bids": bids, "bargains": bargains}


def _sweep_once(session_factory: sessionmaker) -> dict:
    db = session_factory()
    try:
        return expire_stale(db)
    finally:
        db.close()


async def run_housekeeping(session_factory: sessionmaker, interval_sec: int, stop: asyncio.Event) -> None:
    logger.info("housekeeping loop started, every %ss", interval_sec)
    while not stop.is_set():
        try:
            await asyncio.to_thread(_sweep_once, session_factory)
        except Exception:
            # следующая итерация попробует снова
            logger.exception("housekeeping sweep failed")
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_sec)
        except asyncio.TimeoutError:
            pass
    logger.info("housekeeping loop stopped")
