"""Tests for the async client coordinator against the in-process app."""

import asyncio
from datetime import timedelta

import httpx
import pytest
from httpx_ws.transport import ASGIWebSocketTransport

from main import app
from caption_impostor.client import GameCoordinator
from caption_impostor.client.coordinator import ROOM_DELETED_ERROR, ROUND_MISSING_ERROR
from caption_impostor.core.config import settings
from caption_impostor.core.utils import utc_now
from caption_impostor.models.player import Player
from caption_impostor.models.room import Room
from caption_impostor.models.round_model import Round
from caption_impostor.services.cleanup_service import CleanupService
from caption_impostor.services.room_service import RoomService
from caption_impostor.services.websocket_service import get_websocket_manager

pytestmark = pytest.mark.anyio


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def _coordinator(user_id, clock=None):
    transport = httpx.ASGITransport(app=app)
    client = httpx.AsyncClient(transport=transport, base_url="http://test/api")
    return GameCoordinator(user_id, client=client, clock=clock or FakeClock())


async def test_create_join_and_start(override_db):
    host = _coordinator("host-user")
    guest = _coordinator("guest-1")
    try:
        room = await host.create_room("Hosty", "Coordinated")
        assert room is not None
        assert host.is_host is True
        assert host.phase == "lobby"

        await guest.join_room(room["code"])
        assert guest.room_id == room["id"]
        assert guest.is_host is False

        first_round = await host.start_game()
        assert first_round["round_number"] == 1
        assert host.phase == "captioning"

        await guest.apply_event({"type": "round_updated", "room_id": room["id"]})
        assert guest.phase == "captioning"
        assert len(guest.players) == 2
    finally:
        await host.close()
        await guest.close()


async def test_failures_are_recorded_not_raised(override_db):
    host = _coordinator("host-user")
    guest = _coordinator("guest-1")
    try:
        room = await host.create_room("Hosty", "Errors")
        await guest.join_room(room["code"])

        assert await guest.start_game() is None
        assert guest.error == "Only the host can start the game"

        assert await guest.join_room("ZZZZ99") is None
        assert guest.error == "Room not found"
    finally:
        await host.close()
        await guest.close()


async def test_vote_guard_and_host_cooldown(override_db):
    clock = FakeClock()
    host = _coordinator("host-user", clock)
    guest = _coordinator("guest-1")
    try:
        room = await host.create_room("Hosty", "Votes")
        await guest.join_room(room["code"])
        await host.start_game()
        await guest.refresh()

        assert await host.submit_caption("host caption") is not None
        assert await host.skip_timer() is not None
        assert host.phase == "voting"

        # Second press inside the cooldown never reaches the backend
        assert await host.skip_timer() is None
        assert host.error == "Please wait before trying again"

        await guest.refresh()
        vote = await guest.submit_vote(host.player_id)
        assert vote["voted_for_id"] == host.player_id
        assert await guest.submit_vote(host.player_id) is None
        assert guest.error == "You already voted this round"

        clock.now += 10
        assert await host.skip_voting() is not None
        assert host.phase == "results"
        results = await host.get_round_results()
        assert results[0]["player_id"] == host.player_id
    finally:
        await host.close()
        await guest.close()


async def test_missing_round_bounces_to_lobby(override_db, db):
    host = _coordinator("host-user")
    try:
        room = await host.create_room("Hosty", "Broken")
        await host.start_game()

        db.query(Round).filter(Round.room_id == room["id"]).delete()
        db.commit()

        await host.refresh()
        assert host.phase == "lobby"
        assert host.current_round is None
        assert host.error == ROUND_MISSING_ERROR
    finally:
        await host.close()


async def test_leave_clears_state_and_room_deletion_event(override_db):
    host = _coordinator("host-user")
    guest = _coordinator("guest-1")
    try:
        room = await host.create_room("Hosty", "Leaving")
        await guest.join_room(room["code"])

        await guest.leave_room()
        assert guest.room is None
        assert guest.player_id is None

        await host.apply_event({"type": "players_updated", "room_id": room["id"] + 1})
        assert host.room_id == room["id"]

        await host.apply_event({"type": "room_deleted", "room_id": room["id"]})
        assert host.room is None
        assert host.error == ROOM_DELETED_ERROR
    finally:
        await host.close()
        await guest.close()


async def test_heartbeat(override_db):
    host = _coordinator("host-user")
    try:
        assert await host.send_heartbeat() is False
        await host.create_room("Hosty", "Alive")
        assert await host.send_heartbeat() is True
    finally:
        await host.close()


async def _wait_for(condition, attempts=200):
    for _ in range(attempts):
        if condition():
            return True
        await asyncio.sleep(0.01)
    return condition()


async def test_polling_sends_heartbeats_on_schedule(override_db, db):
    clock = FakeClock()
    host = _coordinator("host-user", clock)
    try:
        room = await host.create_room("Hosty", "Polling")
        assert await host.poll_once() is True

        stale_since = utc_now() - timedelta(seconds=settings.PLAYER_STALE_SECONDS + 30)
        db.get(Player, host.player_id).last_seen = stale_since
        db.commit()

        # Inside the interval nothing is sent
        clock.now += settings.CLIENT_PLAYER_HEARTBEAT_SECONDS / 2
        await host.poll_once()
        db.expire_all()
        assert db.get(Player, host.player_id).last_seen == stale_since

        clock.now += settings.CLIENT_PLAYER_HEARTBEAT_SECONDS
        await host.poll_once()

        stats = await CleanupService(db).sweep_stale_players()
        assert stats["playersMarkedOffline"] == 0
        db.expire_all()
        assert db.get(Player, host.player_id).is_online is True
        assert db.get(Room, room["id"]).status == "lobby"
    finally:
        await host.close()


async def test_poll_forever_tracks_room_until_stopped(override_db):
    host = _coordinator("host-user")
    guest = _coordinator("guest-1")
    host.poll_interval = 0.01
    try:
        room = await host.create_room("Hosty", "Backup polling")
        stop = asyncio.Event()
        task = asyncio.create_task(host.poll_forever(stop))

        await guest.join_room(room["code"])
        assert await _wait_for(lambda: len(host.players) == 2)
        assert host._last_player_heartbeat is not None
        assert host._last_room_heartbeat is not None

        stop.set()
        await asyncio.wait_for(task, timeout=2)
        assert host.room_id == room["id"]
    finally:
        await host.close()
        await guest.close()


async def test_poll_forever_ends_when_room_is_deleted(override_db, db):
    host = _coordinator("host-user")
    host.poll_interval = 0.01
    try:
        room = await host.create_room("Hosty", "Short lived")
        task = asyncio.create_task(host.poll_forever())

        assert RoomService(db).cascade_delete_room(room["id"]) is True
        await asyncio.wait_for(task, timeout=2)
        assert host.room is None
        assert host.error == ROOM_DELETED_ERROR
    finally:
        await host.close()


async def test_subscribe_follows_the_change_feed(override_db):
    manager = get_websocket_manager()
    guest = _coordinator("guest-1")
    async with httpx.AsyncClient(transport=ASGIWebSocketTransport(app=app), base_url="http://test/api") as client:
        host = GameCoordinator("host-user", client=client, clock=FakeClock())
        try:
            room = await host.create_room("Hosty", "Live feed")
            task = asyncio.create_task(host.subscribe())
            assert await _wait_for(lambda: manager.connection_count(room["id"]) >= 1)

            await guest.join_room(room["code"])
            assert await _wait_for(lambda: len(host.players) == 2)

            await manager.notify("room_deleted", room["id"])
            await asyncio.wait_for(task, timeout=2)
            assert host.room is None
            assert host.error == ROOM_DELETED_ERROR
        finally:
            await guest.close()


async def test_subscribe_stops_on_request(override_db):
    manager = get_websocket_manager()
    async with httpx.AsyncClient(transport=ASGIWebSocketTransport(app=app), base_url="http://test/api") as client:
        host = GameCoordinator("host-user", client=client, clock=FakeClock())
        room = await host.create_room("Hosty", "Quiet feed")
        stop = asyncio.Event()
        task = asyncio.create_task(host.subscribe(stop))
        assert await _wait_for(lambda: manager.connection_count(room["id"]) >= 1)

        stop.set()
        await asyncio.wait_for(task, timeout=2)
        assert host.room_id == room["id"]
