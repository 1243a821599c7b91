"""Shared fixtures: an in-memory database behind the FastAPI app."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from caption_impostor.core.database import Base, get_db, import_models
from caption_impostor.services.image_service import ImageService


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import_models()
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    seed = factory()
    ImageService(seed).populate_sample_images()
    seed.close()

    yield factory

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def override_db(session_factory):
    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client(override_db):
    return TestClient(app)


@pytest.fixture
def make_room(client):
    """Create a room and return (room, host_player) payloads."""

    def _make_room(user_id="host-user", player_name="Hosty", room_name="Friday Night"):
        response = client.post(
            "/api/create-room",
            json={"userId": user_id, "playerName": player_name, "roomName": room_name},
        )
        assert response.status_code == 200, response.text
        payload = response.json()
        return payload["room"], payload["player"]

    return _make_room


@pytest.fixture
def join_room(client):
    def _join_room(code, user_id):
        response = client.post("/api/join-room", json={"userId": user_id, "code": code})
        assert response.status_code == 200, response.text
        return response.json()["player"]

    return _join_room


@pytest.fixture
def started_game(client, make_room, join_room):
    """A three-player room with the game started; returns (room, players by user id)."""
    room, host = make_room()
    players = {"host-user": host}
    for user_id in ("guest-1", "guest-2"):
        players[user_id] = join_room(room["code"], user_id)

    response = client.post("/api/start-game", json={"roomId": room["id"], "userId": "host-user"})
    assert response.status_code == 200, response.text
    return response.json()["room"], players
