"""
Unit tests for WebSocketBroadcastTransport.
"""

import asyncio
import threading
from unittest.mock import AsyncMock

import pytest

from src.adapters.broadcast.websocket import WebSocketBroadcastTransport


async def _drain(loop_turns: int = 3) -> None:
    for _ in range(loop_turns):
        await asyncio.sleep(0)


class TestGroups:
    async def test_emit_reaches_only_group_members(self) -> None:
        transport = WebSocketBroadcastTransport(asyncio.get_running_loop())
        transport.connect("a")
        transport.connect("b")
        transport.join("a", "examiners")
        transport.join("b", "admins")

        transport.emit("examiners", "verification:approved", {"id": "rec-1"})
        await _drain()

        assert transport._queues["a"].qsize() == 1
        assert transport._queues["b"].qsize() == 0

    async def test_join_requires_connect(self) -> None:
        transport = WebSocketBroadcastTransport(asyncio.get_running_loop())

        with pytest.raises(KeyError):
            transport.join("ghost", "examiners")

    async def test_leave_stops_delivery(self) -> None:
        transport = WebSocketBroadcastTransport(asyncio.get_running_loop())
        transport.connect("a")
        transport.join("a", "admins")

        transport.leave("a")
        transport.emit("admins", "verification:denied", {})
        await _drain()

        assert "a" not in transport._queues

    async def test_emit_from_worker_thread(self) -> None:
        transport = WebSocketBroadcastTransport(asyncio.get_running_loop())
        transport.connect("a")
        transport.join("a", "examiners")

        worker = threading.Thread(target=transport.emit, args=("examiners", "verification:approved", {"n": 1}))
        worker.start()
        worker.join()
        await _drain()

        assert transport._queues["a"].get_nowait() == {"event": "verification:approved", "data": {"n": 1}}


class TestBackpressure:
    async def test_full_queue_drops_oldest(self) -> None:
        transport = WebSocketBroadcastTransport(asyncio.get_running_loop(), max_queue=2)
        transport.connect("a")
        transport.join("a", "examiners")

        for n in range(3):
            transport.emit("examiners", "verification:denied", {"n": n})
        await _drain()

        queue = transport._queues["a"]
        assert [queue.get_nowait()["data"]["n"] for _ in range(queue.qsize())] == [1, 2]


class TestPump:
    async def test_pump_sends_queued_messages(self) -> None:
        transport = WebSocketBroadcastTransport(asyncio.get_running_loop())
        transport.connect("a")
        transport.join("a", "examiners")
        websocket = AsyncMock()

        pump = asyncio.create_task(transport.pump("a", websocket))
        transport.emit("examiners", "verification:approved", {"id": "rec-1"})
        await _drain(5)
        pump.cancel()

        websocket.send_json.assert_awaited_once_with(
            {"event": "verification:approved", "data": {"id": "rec-1"}}
        )

    async def test_close_drops_sessions(self) -> None:
        transport = WebSocketBroadcastTransport(asyncio.get_running_loop())
        transport.connect("a")

        transport.close()

        assert transport._queues == {}
