"""
HTTP and WebSocket tests.

The app runs without its lifespan (no real MongoDB/Redis); storage, bus and
push are swapped in through dependency overrides.
"""

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient
from starlette.websockets import WebSocketDisconnect

from campus_chat.database.connection import mongo_db_dependency
from campus_chat.main import app
from campus_chat.utils.notifications import push_dependency
from campus_chat.utils.realtime_bus import LocalBus, bus_dependency
from campus_chat.utils.security import create_access_token


@pytest.fixture
def api_bus():
    return LocalBus()


@pytest.fixture
def client(api_bus, push):
    database = AsyncMongoMockClient()["campus_chat_api"]
    app.dependency_overrides[mongo_db_dependency] = lambda: database
    app.dependency_overrides[bus_dependency] = lambda: api_bus
    app.dependency_overrides[push_dependency] = lambda: push
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def start_conversation(client, user_id, other_user_id):
    response = client.post("/conversations", json={"other_user_id": other_user_id}, headers=auth(user_id))
    assert response.status_code == 200
    return response.json()["id"]


class TestAuth:

    def test_health_is_public(self, client):
        assert client.get("/health").json() == {"ok": True}

    def test_missing_token(self, client):
        assert client.get("/conversations").status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/conversations", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestConversationRoutes:

    def test_create_is_idempotent(self, client):
        first = start_conversation(client, "alice", "bob")

        assert start_conversation(client, "bob", "alice") == first

    def test_cannot_start_conversation_with_self(self, client):
        response = client.post("/conversations", json={"other_user_id": "alice"}, headers=auth("alice"))
        assert response.status_code == 400

    def test_send_list_and_read(self, client):
        cid = start_conversation(client, "alice", "bob")
        client.put("/profiles/me", json={"full_name": "Alice Dlamini"}, headers=auth("alice"))

        sent = client.post(f"/conversations/{cid}/messages", json={"content": "hi bob"}, headers=auth("alice"))
        assert sent.status_code == 201
        assert sent.json()["sender_id"] == "alice"

        [view] = client.get("/conversations", headers=auth("bob")).json()["items"]
        assert view["id"] == cid
        assert view["other_user_name"] == "Alice Dlamini"
        assert view["unread_count"] == 1
        assert view["last_message"] == "hi bob"

        history = client.get(f"/conversations/{cid}/messages", headers=auth("bob")).json()["items"]
        assert [m["content"] for m in history] == ["hi bob"]

        assert client.post(f"/conversations/{cid}/read", headers=auth("bob")).json() == {"updated": 1}
        [view] = client.get("/conversations", headers=auth("bob")).json()["items"]
        assert view["unread_count"] == 0

    def test_blank_message_is_rejected(self, client):
        cid = start_conversation(client, "alice", "bob")

        response = client.post(f"/conversations/{cid}/messages", json={"content": "   "}, headers=auth("alice"))

        assert response.status_code == 400

    def test_outsider_is_forbidden(self, client):
        cid = start_conversation(client, "alice", "bob")

        response = client.get(f"/conversations/{cid}/messages", headers=auth("mallory"))

        assert response.status_code == 403

    def test_unknown_conversation(self, client):
        response = client.get("/conversations/64b000000000000000000000/messages", headers=auth("alice"))
        assert response.status_code == 404


class TestNotificationRoutes:

    def test_push_then_list_read_and_delete(self, client):
        client.post("/devices/register", json={"platform": "fcm", "token": "bob-phone"}, headers=auth("bob"))

        pushed = client.post(
            "/notifications/push",
            json={"user_id": "bob", "title": "Voucher", "body": "Your voucher is ready"},
            headers=auth("alice"),
        )
        assert pushed.json() == {"sent": 1}

        listing = client.get("/notifications", headers=auth("bob")).json()
        assert listing["unread_count"] == 1
        [item] = listing["items"]

        read = client.post(f"/notifications/{item['id']}/read", headers=auth("bob"))
        assert read.json()["is_read"] is True

        assert client.delete(f"/notifications/{item['id']}", headers=auth("alice")).status_code == 404
        assert client.delete(f"/notifications/{item['id']}", headers=auth("bob")).json() == {"ok": True}

    def test_read_all(self, client):
        assert client.post("/notifications/read-all", headers=auth("bob")).json() == {"updated": 0}


class TestPresenceAndProfiles:

    def test_presence_offline_by_default(self, client):
        assert client.get("/presence/bob").json() == {"user_id": "bob", "online": False}

    def test_profile_defaults_then_update(self, client):
        assert client.get("/profiles/me", headers=auth("alice")).json() == {
            "full_name": None,
            "avatar_url": None,
            "id": "alice",
        }
        client.put("/profiles/me", json={"full_name": "Alice", "avatar_url": None}, headers=auth("alice"))
        assert client.get("/profiles/me", headers=auth("alice")).json()["full_name"] == "Alice"


class TestConversationSocket:

    def test_typing_and_messages_are_relayed(self, client):
        cid = start_conversation(client, "alice", "bob")
        token = create_access_token("alice")

        with client.websocket_connect(f"/ws/conversations/{cid}?token={token}") as ws:
            ws.send_json({"type": "typing", "is_typing": True})
            typing = ws.receive_json()
            assert typing["event"] == "typing"
            assert typing["payload"] == {"user_id": "alice", "is_typing": True}

            ws.send_json({"type": "message", "content": "over the socket"})
            inserted = ws.receive_json()
            assert inserted["event"] == "INSERT"
            assert inserted["new"]["content"] == "over the socket"

            ws.send_json({"type": "message", "content": ""})
            assert ws.receive_json()["type"] == "error"

        history = client.get(f"/conversations/{cid}/messages", headers=auth("bob")).json()["items"]
        assert [m["content"] for m in history] == ["over the socket"]

    @pytest.mark.parametrize("frame", ["not json", "[]", '{"type": "message", "content": 5}', '{"type": "dance"}'])
    def test_malformed_frame_gets_error_and_socket_stays_open(self, client, frame):
        cid = start_conversation(client, "alice", "bob")
        token = create_access_token("alice")

        with client.websocket_connect(f"/ws/conversations/{cid}?token={token}") as ws:
            ws.send_text(frame)
            assert ws.receive_json() == {"type": "error", "detail": "Invalid frame"}

            ws.send_json({"type": "message", "content": "still here"})
            assert ws.receive_json()["new"]["content"] == "still here"

    def test_rejects_missing_token(self, client):
        cid = start_conversation(client, "alice", "bob")

        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws/conversations/{cid}"):
                pass

    def test_rejects_outsider(self, client):
        cid = start_conversation(client, "alice", "bob")
        token = create_access_token("mallory")

        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws/conversations/{cid}?token={token}"):
                pass
