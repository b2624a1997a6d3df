"""
WebSocket broadcast transport - Implements BroadcastTransport protocol.

Each dashboard connection gets a bounded asyncio queue drained by its own
sender coroutine. emit() may be called from any thread: messages are
handed to the event loop with call_soon_threadsafe, so a slow or dead
socket never blocks the commit path that published the event.
"""

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def _offer(queue: asyncio.Queue, message: dict[str, Any]) -> None:
    try:
        queue.put_nowait(message)
    except asyncio.QueueFull:
        # Backpressure: drop oldest then enqueue (lossy protection).
        queue.get_nowait()
        queue.put_nowait(message)


class WebSocketBroadcastTransport:
    """
    Implements BroadcastTransport protocol over FastAPI WebSockets.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Created during app startup and closed on shutdown.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, max_queue: int = 256) -> None:
        self._loop = loop
        self._max_queue = max_queue
        self._queues: dict[str, asyncio.Queue] = {}
        self._groups: dict[str, set[str]] = defaultdict(set)
        self._lock = threading.Lock()

    def connect(self, session_id: str) -> None:
        """Register a connection; call before join()."""
        with self._lock:
            self._queues[session_id] = asyncio.Queue(maxsize=self._max_queue)

    def join(self, session_id: str, group: str) -> None:
        with self._lock:
            if session_id not in self._queues:
                raise KeyError(session_id)
            self._groups[group].add(session_id)

    def leave(self, session_id: str) -> None:
        with self._lock:
            self._queues.pop(session_id, None)
            for members in self._groups.values():
                members.discard(session_id)

    def emit(self, group: str, event: str, payload: dict[str, Any]) -> None:
        message = {"event": event, "data": payload}
        with self._lock:
            queues = [self._queues[sid] for sid in self._groups.get(group, ()) if sid in self._queues]
        for queue in queues:
            self._loop.call_soon_threadsafe(_offer, queue, message)

    async def pump(self, session_id: str, websocket: WebSocket) -> None:
        """Forward queued events to one socket until cancelled."""
        with self._lock:
            queue = self._queues[session_id]
        while True:
            message = await queue.get()
            await websocket.send_json(message)

    def close(self) -> None:
        with self._lock:
            count = len(self._queues)
            self._queues.clear()
            self._groups.clear()
        logger.info("Broadcast transport closed (%d session(s) dropped)", count)
