# lifton/realtime.py
import asyncio
import json
from typing import AsyncIterator


class _Hub:
    def __init__(self) -> None:
        self._subscribers: "set[asyncio.Queue[str]]" = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: str, payload: dict) -> None:
        """
        Разослать событие всем подписчикам SSE. Никого не ждём:
        медленный подписчик просто копит очередь.
        """
        data = json.dumps(payload, ensure_ascii=False, default=str)
        # формат SSE: event: <name>\ndata: <json>\n\n
        msg = f"event: {event}\ndata: {data}\n\n"
        for q in list(self._subscribers):
            q.put_nowait(msg)

    async def subscribe(self) -> AsyncIterator[str]:
        """
        Асинхронный генератор сообщений SSE.
        """
        q: "asyncio.Queue[str]" = asyncio.Queue()
        self._subscribers.add(q)
        try:
            while True:
                msg = await q.get()
                yield msg
        finally:
            self._subscribers.discard(q)


hub = _Hub()
