"""Tests for heartbeats, cleanup sweeps and the scheduler endpoint."""

import asyncio
from datetime import timedelta

import pytest

from caption_impostor.core.config import settings
from caption_impostor.core.utils import utc_now
from caption_impostor.models.caption import Caption
from caption_impostor.models.player import Player
from caption_impostor.models.room import Room
from caption_impostor.models.round_model import Round
from caption_impostor.models.vote import Vote
from caption_impostor.services.cleanup_service import CleanupService, scheduler_loop


def _age_room(db, room_id, **delta):
    past = utc_now() - timedelta(**delta)
    room = db.get(Room, room_id)
    room.created_at = past
    room.last_heartbeat = past
    db.commit()


def test_player_heartbeat_marks_online(client, make_room, join_room, db):
    room, _ = make_room()
    guest = join_room(room["code"], "guest-1")
    client.post("/api/leave-room", json={"playerId": guest["id"], "userId": "guest-1"})

    response = client.post("/api/player-heartbeat", json={"playerId": guest["id"], "userId": "guest-1"})
    assert response.status_code == 200
    assert response.json()["player"]["is_online"] is True

    wrong_user = client.post("/api/player-heartbeat", json={"playerId": guest["id"], "userId": "host-user"})
    assert wrong_user.status_code == 404


def test_room_heartbeat_refreshes_timestamp(client, make_room, db):
    room, _ = make_room()
    _age_room(db, room["id"], hours=3)

    response = client.post("/api/room-heartbeat", json={"roomId": room["id"]})
    assert response.status_code == 200
    db.expire_all()
    assert db.get(Room, room["id"]).last_heartbeat > utc_now() - timedelta(minutes=1)

    assert client.post("/api/room-heartbeat", json={"roomId": 9999}).status_code == 404


def test_cleanup_removes_old_rooms_with_their_data(client, started_game, db):
    room, players = started_game
    round_one = db.query(Round).filter(Round.room_id == room["id"], Round.round_number == 1).one()
    host = players["host-user"]
    db.add(Caption(round_id=round_one.id, player_id=host["id"], caption="old news"))
    db.add(Vote(room_id=room["id"], round_id=round_one.id, voter_id=players["guest-1"]["id"], voted_for_id=host["id"]))
    db.commit()
    _age_room(db, room["id"], hours=30)

    response = client.post("/api/cleanup-room", json={"olderThanHours": 24, "includeEmptyRooms": True})
    assert response.status_code == 200
    assert response.json()["stats"] == {"staleRoomsRemoved": 1, "emptyRoomsRemoved": 0, "errors": 0}

    db.expire_all()
    assert db.query(Room).filter(Room.id == room["id"]).count() == 0
    assert db.query(Player).filter(Player.room_id == room["id"]).count() == 0
    assert db.query(Round).filter(Round.room_id == room["id"]).count() == 0
    assert db.query(Caption).count() == 0
    assert db.query(Vote).count() == 0


def test_cleanup_removes_empty_lobbies_only_when_asked(client, make_room, db):
    room, _ = make_room()
    db.query(Player).filter(Player.room_id == room["id"]).delete()
    db.commit()

    kept = client.post("/api/cleanup-room", json={"includeEmptyRooms": False}).json()
    assert kept["stats"]["emptyRoomsRemoved"] == 0

    removed = client.post("/api/cleanup-room", json={"includeEmptyRooms": True}).json()
    assert removed["stats"]["emptyRoomsRemoved"] == 1


def test_cleanup_checks_admin_key(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", "admin-secret")

    assert client.post("/api/cleanup-room", json={}).status_code == 403
    allowed = client.post("/api/cleanup-room", json={}, headers={"x-api-key": "admin-secret"})
    assert allowed.status_code == 200


def test_heartbeat_sweep_deletes_empty_and_refreshes_occupied(client, make_room, db):
    empty_room, empty_host = make_room(user_id="a")
    busy_room, _ = make_room(user_id="b")
    client.post("/api/leave-room", json={"playerId": empty_host["id"], "userId": "a"})
    # Leaving an empty lobby makes it dormant; put it back so the sweep considers it
    db.get(Room, empty_room["id"]).status = "lobby"
    db.commit()
    _age_room(db, empty_room["id"], hours=2)
    _age_room(db, busy_room["id"], hours=2)

    response = client.get("/api/room-heartbeat")
    assert response.status_code == 200
    stats = response.json()
    assert stats["checked"] == 2
    assert stats["emptied"] == 1
    assert stats["skipped"] == 1

    db.expire_all()
    assert db.query(Room).filter(Room.id == empty_room["id"]).count() == 0
    assert db.get(Room, busy_room["id"]).last_heartbeat > utc_now() - timedelta(minutes=1)


def test_scheduler_requires_key(client, monkeypatch):
    monkeypatch.setattr(settings, "SCHEDULER_API_KEY", "tick-secret")

    assert client.get("/api/scheduler").status_code == 401
    assert client.get("/api/scheduler", headers={"x-api-key": "wrong"}).status_code == 401

    response = client.get("/api/scheduler", headers={"x-api-key": "tick-secret"})
    assert response.status_code == 200
    assert set(response.json()["results"]) == {"stalePlayers", "staleLobbies", "inactiveRooms", "oldRooms"}


@pytest.mark.anyio
async def test_stale_players_go_offline_and_host_moves(client, make_room, join_room, db):
    room, host = make_room()
    guest = join_room(room["code"], "guest-1")

    stale = db.get(Player, host["id"])
    stale.last_seen = utc_now() - timedelta(seconds=settings.PLAYER_STALE_SECONDS + 30)
    db.commit()

    stats = await CleanupService(db).sweep_stale_players()
    assert stats["playersMarkedOffline"] == 1
    assert stats["hostsTransferred"] == 1

    db.expire_all()
    assert db.get(Player, host["id"]).is_online is False
    assert db.get(Player, guest["id"]).is_host is True
    assert db.get(Room, room["id"]).host_id == "guest-1"


@pytest.mark.anyio
async def test_stale_presence_settles_an_emptied_game(client, started_game, db):
    room, _ = started_game
    long_ago = utc_now() - timedelta(hours=1)
    for player in db.query(Player).filter(Player.room_id == room["id"]):
        player.last_seen = long_ago
    db.commit()

    stats = await CleanupService(db).sweep_stale_players()
    assert stats["roomsSettled"] == 1
    db.expire_all()
    assert db.get(Room, room["id"]).status == "completed"


@pytest.mark.anyio
async def test_stale_lobby_sweep_closes_silent_lobbies(client, make_room, db):
    silent, _ = make_room(user_id="a")
    lively, _ = make_room(user_id="b")
    _age_room(db, silent["id"], minutes=settings.STALE_LOBBY_MINUTES + 1)

    stats = await CleanupService(db).sweep_stale_lobbies()
    assert stats["lobbiesClosed"] == 1

    db.expire_all()
    assert db.query(Room).filter(Room.id == silent["id"]).count() == 0
    assert db.get(Room, lively["id"]).status == "lobby"


@pytest.mark.anyio
async def test_stale_lobby_sweep_closes_dormant_rooms_too(client, make_room, db):
    room, host = make_room()
    left = client.post("/api/leave-room", json={"playerId": host["id"], "userId": "host-user"}).json()
    assert left["roomStatus"] == "dormant"
    _age_room(db, room["id"], minutes=settings.STALE_LOBBY_MINUTES + 1)

    stats = await CleanupService(db).sweep_stale_lobbies()
    assert stats["lobbiesClosed"] == 1

    db.expire_all()
    assert db.query(Room).filter(Room.id == room["id"]).count() == 0


def test_heartbeat_from_returning_player_reopens_dormant_lobby(client, make_room, join_room, db):
    room, host = make_room()
    guest = join_room(room["code"], "guest-1")
    client.post("/api/leave-room", json={"playerId": guest["id"], "userId": "guest-1"})
    client.post("/api/leave-room", json={"playerId": host["id"], "userId": "host-user"})
    db.expire_all()
    assert db.get(Room, room["id"]).status == "dormant"

    response = client.post("/api/player-heartbeat", json={"playerId": guest["id"], "userId": "guest-1"})
    assert response.status_code == 200
    assert response.json()["player"]["is_host"] is True

    db.expire_all()
    stored = db.get(Room, room["id"])
    assert stored.status == "lobby"
    assert stored.host_id == "guest-1"


@pytest.mark.anyio
async def test_scheduler_loop_survives_a_failing_tick(session_factory, monkeypatch):
    calls = []

    async def flaky_run_all_jobs(self):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        raise asyncio.CancelledError()

    monkeypatch.setattr(CleanupService, "run_all_jobs", flaky_run_all_jobs)

    with pytest.raises(asyncio.CancelledError):
        await scheduler_loop(session_factory, interval_seconds=0)
    assert len(calls) == 2
