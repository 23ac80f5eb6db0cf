import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)

HELLO = "hello"
SLIDE_CHANGED = "slide_changed"
CONTENT_CHANGED = "content_changed"


def _envelope(event_type: str, revision: int, **body: Any) -> str:
    return json.dumps(
        {
            "type": event_type,
            "revision": revision,
            **body,
            "ts": datetime.now(timezone.utc).isoformat(),
        }
    )


class BoardFeed:
    """
    Pushes board events to connected display pages and admin consoles.

    A newly connected page gets the slide currently on screen in its hello
    message, so it can render without waiting for the next advance.
    """

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._revision = 0
        self._on_screen: dict[str, Any] | None = None
        self._pending: set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        await websocket.send_text(_envelope(HELLO, self._revision, slide=self._on_screen))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(websocket)

    async def broadcast(self, event_type: str, payload: dict[str, Any] | None = None) -> int:
        self._revision += 1
        if event_type == SLIDE_CHANGED:
            self._on_screen = payload
        message = _envelope(event_type, self._revision, payload=payload or {})
        async with self._lock:
            clients = list(self._clients)

        dropped = 0
        for client in clients:
            try:
                await client.send_text(message)
            except Exception:
                dropped += 1
                async with self._lock:
                    self._clients.discard(client)
        if dropped:
            logger.debug("Dropped %d disconnected board clients", dropped)
        return self._revision

    def announce_slide(self, snapshot: dict[str, Any]) -> None:
        """Broadcast from synchronous timer code; outside a running loop only the cached slide is updated."""
        self._on_screen = snapshot
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.broadcast(SLIDE_CHANGED, snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def announce_content_change(self, path: str, method: str) -> int:
        return await self.broadcast(CONTENT_CHANGED, {"path": path, "method": method})

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def on_screen(self) -> dict[str, Any] | None:
        return self._on_screen

    @property
    def client_count(self) -> int:
        return len(self._clients)


feed = BoardFeed()
