"""Tests for the per-room change feed."""

import json

import pytest

from caption_impostor.services.websocket_service import WebSocketManager


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.accepted = False
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


def test_ping_and_room_state(client, make_room):
    room, _ = make_room()

    with client.websocket_connect(f"/api/ws/room/{room['id']}") as websocket:
        assert websocket.receive_json() == {"type": "connected", "room_id": room["id"]}

        websocket.send_text(json.dumps({"type": "ping", "timestamp": 42}))
        assert websocket.receive_json() == {"type": "pong", "timestamp": 42}

        websocket.send_text(json.dumps({"type": "get_room_state", "userId": "host-user"}))
        message = websocket.receive_json()
        assert message["type"] == "room_state"
        assert message["state"]["phase"] == "lobby"
        assert message["state"]["room"]["code"] == room["code"]


@pytest.mark.anyio
async def test_notify_reaches_only_that_room():
    manager = WebSocketManager()
    listener, other = FakeSocket(), FakeSocket()
    await manager.connect(listener, 1)
    await manager.connect(other, 2)

    await manager.notify("players_updated", 1)

    assert listener.accepted
    assert listener.sent == [{"type": "players_updated", "room_id": 1}]
    assert other.sent == []


@pytest.mark.anyio
async def test_failed_sends_drop_the_connection():
    manager = WebSocketManager()
    healthy, broken = FakeSocket(), FakeSocket(fail=True)
    await manager.connect(healthy, 7)
    await manager.connect(broken, 7)

    await manager.notify("round_updated", 7, round_number=2)

    assert manager.connection_count(7) == 1
    assert healthy.sent[0]["round_number"] == 2

    manager.disconnect(healthy, 7)
    assert 7 not in manager.room_connections
