"""
Tests for the WebSocket server.
"""

import random

import pytest
from fastapi.testclient import TestClient

from storyteller_engine.engine import SessionRegistry
from storyteller_engine.rules import create_rules
from storyteller_engine.ws import create_app


@pytest.fixture
def registry():
    return SessionRegistry(rng_factory=lambda: random.Random(2))


@pytest.fixture
def client(registry):
    app = create_app(registry, enable_timer=False)
    with TestClient(app) as test_client:
        yield test_client


def _join(ws, client_id, name):
    ws.send_json({"type": "join", "client_id": client_id, "name": name})
    joined = ws.receive_json()
    state = ws.receive_json()
    return joined, state


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["rooms"] == 0


def test_join_sends_state(client, registry):
    with client.websocket_connect("/ws/room1") as ws:
        joined, state = _join(ws, "c1", "Alice")

        assert joined["type"] == "joined"
        assert joined["player_id"] == "c1"
        assert state["type"] == "state"
        assert state["room"]["phase"] == "DECK_BUILDING"
        assert state["room"]["players"][0]["name"] == "Alice"
        assert state["player"]["is_admin"] is True
        assert registry.get_room("room1") is not None


def test_app_uses_given_registry():
    """An empty registry passed in is the one the app serves rooms from."""
    registry = SessionRegistry(create_rules(max_players=4))
    app = create_app(registry, enable_timer=False)
    assert app.state.registry is registry

    with TestClient(app) as test_client:
        with test_client.websocket_connect("/ws/room1") as ws:
            _join(ws, "c1", "Alice")

    assert registry.get_room("room1").rules.max_players == 4


def test_failed_join_leaves_no_room(client, registry):
    with client.websocket_connect("/ws/room1") as ws:
        ws.send_json({"type": "join", "client_id": "c1", "name": "<b></b>"})
        error = ws.receive_json()

        assert error["type"] == "error"
        assert error["code"] == "INVALID_INPUT"
        assert registry.get_room("room1") is None
        assert len(registry) == 0


def test_invalid_event(client):
    with client.websocket_connect("/ws/room1") as ws:
        ws.send_json({"type": "dance"})
        error = ws.receive_json()

        assert error["type"] == "error"
        assert error["code"] == "INVALID_EVENT"

        ws.send_text("not json")
        assert ws.receive_json()["code"] == "INVALID_EVENT"


def test_command_before_join(client):
    with client.websocket_connect("/ws/room1") as ws:
        ws.send_json({"type": "start_game"})
        error = ws.receive_json()

        assert error["code"] == "NOT_JOINED"


def test_rejected_command_returns_error(client):
    with client.websocket_connect("/ws/room1") as ws:
        _join(ws, "c1", "Alice")

        ws.send_json({"type": "start_game"})
        error = ws.receive_json()

        assert error["type"] == "error"
        assert error["code"] == "SECRET_NOT_SET"


def test_commands_update_state(client, registry):
    with client.websocket_connect("/ws/room1") as ws:
        _join(ws, "c1", "Alice")

        ws.send_json({"type": "set_admin_secret", "secret": "hunter2"})
        state = ws.receive_json()
        assert state["room"]["has_admin_secret"] is True

        ws.send_json({"type": "upload_card", "image_data": "aGVsbG8="})
        state = ws.receive_json()
        assert state["room"]["deck_size"] == 1
        assert state["room"]["deck_images"][0]["uploaded_by"] == "c1"

        ws.send_json({"type": "set_board_settings", "pattern": "spiral"})
        state = ws.receive_json()
        assert state["room"]["board_pattern"] == "spiral"

    assert registry.get_room("room1").pool.size == 1


def test_broadcast_to_room(client):
    with client.websocket_connect("/ws/room1") as alice:
        _join(alice, "c1", "Alice")

        with client.websocket_connect("/ws/room1") as bob:
            _join(bob, "c2", "Bob")

            state = alice.receive_json()
            assert [p["id"] for p in state["room"]["players"]] == ["c1", "c2"]
            assert state["player"]["player_id"] == "c1"

            bob.send_json({"type": "request_state"})
            assert bob.receive_json()["type"] == "state"
            assert alice.receive_json()["type"] == "state"


def test_rooms_are_separate(client, registry):
    with client.websocket_connect("/ws/room1") as alice:
        _join(alice, "c1", "Alice")
        with client.websocket_connect("/ws/room2") as bob:
            _, state = _join(bob, "c2", "Bob")

            assert [p["id"] for p in state["room"]["players"]] == ["c2"]
            assert state["player"]["is_admin"] is True

    assert len(registry) == 2


def test_reconnect_unknown_room(client):
    with client.websocket_connect("/ws/nowhere") as ws:
        ws.send_json({"type": "reconnect", "client_id": "c1"})
        error = ws.receive_json()

        assert error["code"] == "NOT_FOUND"


def test_leave(client, registry):
    with client.websocket_connect("/ws/room1") as ws:
        _join(ws, "c1", "Alice")

        ws.send_json({"type": "leave"})
        ws.send_json({"type": "request_state"})
        error = ws.receive_json()

        assert error["code"] == "NOT_JOINED"
        assert registry.get_room("room1").players == {}
