"""
Unit tests for WebSocket manager.
Tests connection tracking, delivery, dead socket removal and stale cleanup.
"""

import json
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from academy.services.websocket_manager import (
    WebSocketManager,
    get_websocket_manager,
    WEBSOCKET_TIMEOUT_SECONDS,
)
from academy.utils.datetime_utils import utcnow


@pytest_asyncio.fixture
async def ws_manager():
    """Create a fresh WebSocket manager for each test."""
    return WebSocketManager()


@pytest.fixture
def mock_websocket():
    ws = AsyncMock()
    ws.send_text = AsyncMock()
    return ws


@pytest.mark.asyncio
async def test_connect_and_disconnect(ws_manager, mock_websocket):
    await ws_manager.connect(1, mock_websocket)
    assert await ws_manager.get_connection_count(1) == 1
    assert mock_websocket in ws_manager.last_seen

    await ws_manager.disconnect(1, mock_websocket)
    assert await ws_manager.get_connection_count(1) == 0
    assert 1 not in ws_manager.active_connections
    assert mock_websocket not in ws_manager.last_seen


@pytest.mark.asyncio
async def test_multiple_sockets_per_user(ws_manager):
    ws1, ws2 = AsyncMock(), AsyncMock()
    await ws_manager.connect(1, ws1)
    await ws_manager.connect(1, ws2)
    assert await ws_manager.get_connection_count(1) == 2

    delivered = await ws_manager.send_to_user(1, {"type": "notification", "id": 5})
    assert delivered is True
    for ws in (ws1, ws2):
        payload = json.loads(ws.send_text.call_args[0][0])
        assert payload == {"type": "notification", "id": 5}


@pytest.mark.asyncio
async def test_send_to_user_without_sockets(ws_manager):
    assert await ws_manager.send_to_user(42, {"type": "ping"}) is False


@pytest.mark.asyncio
async def test_failed_socket_is_dropped(ws_manager, mock_websocket):
    broken = AsyncMock()
    broken.send_text = AsyncMock(side_effect=RuntimeError("closed"))
    await ws_manager.connect(1, mock_websocket)
    await ws_manager.connect(1, broken)

    assert await ws_manager.send_to_user(1, {"type": "notification"}) is True
    assert await ws_manager.get_connection_count(1) == 1
    assert broken not in ws_manager.last_seen


@pytest.mark.asyncio
async def test_broadcast_counts_reached_users(ws_manager):
    await ws_manager.connect(1, AsyncMock())
    await ws_manager.connect(2, AsyncMock())

    reached = await ws_manager.broadcast([1, 2, 2, 3], {"type": "announcement"})
    assert reached == 2


@pytest.mark.asyncio
async def test_cleanup_stale_connections(ws_manager, mock_websocket):
    fresh = AsyncMock()
    await ws_manager.connect(1, mock_websocket)
    await ws_manager.connect(2, fresh)
    ws_manager.last_seen[mock_websocket] = utcnow() - timedelta(seconds=WEBSOCKET_TIMEOUT_SECONDS + 5)

    removed = await ws_manager.cleanup_stale_connections()
    assert removed == 1
    assert await ws_manager.get_connection_count(1) == 0
    assert await ws_manager.get_connection_count(2) == 1


@pytest.mark.asyncio
async def test_update_activity_keeps_socket_alive(ws_manager, mock_websocket):
    await ws_manager.connect(1, mock_websocket)
    ws_manager.last_seen[mock_websocket] = utcnow() - timedelta(seconds=WEBSOCKET_TIMEOUT_SECONDS + 5)
    await ws_manager.update_activity(mock_websocket)

    assert await ws_manager.cleanup_stale_connections() == 0


def test_get_websocket_manager_singleton():
    assert get_websocket_manager() is get_websocket_manager()
