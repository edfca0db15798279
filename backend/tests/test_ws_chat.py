"""Live-channel tests: connection gate, room fan-out and per-event errors."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.testclient import WebSocketTestSession
from starlette.websockets import WebSocketDisconnect

from app.core.security import create_access_token
from app.models import User
from app.monitoring.metrics import realtime_rejected_connections_total
from huddle.realtime import get_realtime_hub


def connect(client: TestClient, token: str) -> WebSocketTestSession:
    return client.websocket_connect(f"/ws/chat?token={token}")


def assert_quiet(ws: WebSocketTestSession) -> None:
    """Round-trip a ping; anything queued before the pong fails the test."""

    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}


def test_scenario_send_edit_forbidden_delete(client: TestClient, make_user, token_for):
    alice, bob = make_user("Alice"), make_user("Bob")

    with connect(client, token_for(alice)) as a_ws:
        assert a_ws.receive_json() == {"type": "online_users", "users": [alice.id]}

        with connect(client, token_for(bob)) as b_ws:
            joined = a_ws.receive_json()
            assert joined["type"] == "user_connected"
            assert joined["user_id"] == bob.id
            assert joined["name"] == "Bob"
            assert b_ws.receive_json() == {
                "type": "online_users",
                "users": sorted([alice.id, bob.id]),
            }

            a_ws.send_json({"type": "send_message", "content": "hello"})
            created = a_ws.receive_json()
            assert created["type"] == "new_message"
            assert created["content"] == "hello"
            assert created["is_edited"] is False
            assert created["user"]["name"] == "Alice"
            message_id = created["id"]
            assert a_ws.receive_json() == {
                "type": "message_sent",
                "success": True,
                "message_id": message_id,
            }
            assert b_ws.receive_json()["id"] == message_id

            a_ws.send_json({"type": "edit_message", "message_id": message_id, "content": "hello world"})
            for ws in (a_ws, b_ws):
                edited = ws.receive_json()
                assert edited["type"] == "message_edited"
                assert edited["content"] == "hello world"
                assert edited["is_edited"] is True

            b_ws.send_json({"type": "delete_message", "message_id": message_id})
            assert b_ws.receive_json() == {
                "type": "error",
                "error": "Access denied",
                "message": "You can only delete your own messages",
            }
            assert_quiet(a_ws)

            a_ws.send_json({"type": "delete_message", "message_id": message_id})
            for ws in (a_ws, b_ws):
                assert ws.receive_json() == {"type": "message_deleted", "message_id": message_id}
            b_ws.close()

        left = a_ws.receive_json()
        assert left["type"] == "user_disconnected"
        assert left["user_id"] == bob.id

    assert client.get("/api/chat/messages").json()["messages"] == []


def test_missing_token_is_refused_before_accept(client: TestClient):
    before = realtime_rejected_connections_total.value("missing_token")

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/chat"):
            pass

    assert exc.value.code == 1008
    assert exc.value.reason == "Authentication token required"
    assert realtime_rejected_connections_total.value("missing_token") == before + 1
    assert get_realtime_hub().online_users() == []


@pytest.mark.parametrize("token", ["not-a-jwt", "aaa.bbb.ccc"])
def test_bad_token_is_refused(client: TestClient, token):
    with pytest.raises(WebSocketDisconnect) as exc:
        with connect(client, token):
            pass

    assert exc.value.code == 1008
    assert exc.value.reason == "Authentication failed"


def test_token_for_missing_user_is_refused(client: TestClient):
    with pytest.raises(WebSocketDisconnect) as exc:
        with connect(client, create_access_token(4242)):
            pass
    assert exc.value.reason == "Authentication failed"


def test_inactive_user_is_refused_without_presence(client: TestClient, make_user, token_for):
    watcher = make_user("Watcher")
    inactive = make_user("Inactive", is_active=False)

    with connect(client, token_for(watcher)) as ws:
        ws.receive_json()

        with pytest.raises(WebSocketDisconnect) as exc:
            with connect(client, token_for(inactive)):
                pass

        assert exc.value.reason == "Authentication failed"
        assert inactive.id not in get_realtime_hub().online_users()
        assert_quiet(ws)


def test_bearer_header_is_accepted(client: TestClient, make_user, token_for):
    alice = make_user("Alice")

    with client.websocket_connect(
        "/ws/chat", headers={"Authorization": f"Bearer {token_for(alice)}"}
    ) as ws:
        assert ws.receive_json()["users"] == [alice.id]


def test_typing_and_status_exclude_sender(client: TestClient, make_user, token_for):
    alice, bob = make_user("Alice"), make_user("Bob")

    with connect(client, token_for(alice)) as a_ws, connect(client, token_for(bob)) as b_ws:
        a_ws.receive_json()
        a_ws.receive_json()
        b_ws.receive_json()

        a_ws.send_json({"type": "typing_start"})
        assert b_ws.receive_json() == {"type": "user_typing", "user_id": alice.id, "name": "Alice"}

        a_ws.send_json({"type": "typing_stop"})
        assert b_ws.receive_json() == {"type": "user_stopped_typing", "user_id": alice.id}

        a_ws.send_json({"type": "update_status", "status": "away"})
        status_update = b_ws.receive_json()
        assert status_update["type"] == "user_status_update"
        assert status_update["status"] == "away"

        assert_quiet(a_ws)


def test_private_message_goes_only_to_recipient(client: TestClient, make_user, token_for):
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")

    with connect(client, token_for(alice)) as a_ws, connect(client, token_for(bob)) as b_ws:
        with connect(client, token_for(carol)) as c_ws:
            a_ws.receive_json()
            a_ws.receive_json()
            a_ws.receive_json()
            b_ws.receive_json()
            b_ws.receive_json()
            c_ws.receive_json()

            a_ws.send_json({"type": "private_message", "recipient_id": bob.id, "content": "psst"})

            delivered = b_ws.receive_json()
            assert delivered["type"] == "private_message"
            assert delivered["content"] == "psst"
            assert delivered["recipient_id"] == bob.id

            confirmation = a_ws.receive_json()
            assert confirmation["type"] == "private_message_sent"
            assert confirmation["delivered"] is True
            assert confirmation["message_id"] == delivered["id"]

            assert_quiet(c_ws)


def test_reactions_broadcast_reaction_list(client: TestClient, make_user, token_for):
    alice = make_user("Alice")

    with connect(client, token_for(alice)) as ws:
        ws.receive_json()
        ws.send_json({"type": "send_message", "content": "react"})
        message_id = ws.receive_json()["id"]
        ws.receive_json()

        ws.send_json({"type": "add_reaction", "message_id": message_id, "emoji": "👍"})
        added = ws.receive_json()
        assert added["type"] == "reaction_added"
        assert added["message_id"] == message_id
        assert [r["emoji"] for r in added["reactions"]] == ["👍"]

        ws.send_json({"type": "remove_reaction", "message_id": message_id})
        removed = ws.receive_json()
        assert removed == {"type": "reaction_removed", "message_id": message_id, "reactions": []}


def test_invalid_frames_report_errors_to_sender(client: TestClient, make_user, token_for):
    alice = make_user("Alice")

    with connect(client, token_for(alice)) as ws:
        ws.receive_json()

        ws.send_text("not json")
        assert ws.receive_json()["error"] == "Invalid payload"

        ws.send_json({"type": "launch_rockets"})
        assert ws.receive_json()["error"] == "Unsupported event"

        for frame_type in (["send_message"], {}, 7, None):
            ws.send_json({"type": frame_type, "content": "hi"})
            assert ws.receive_json()["error"] == "Unsupported event"

        ws.send_json(["send_message"])
        assert ws.receive_json()["error"] == "Unsupported event"

        ws.send_json({"type": "edit_message", "content": "no id"})
        assert ws.receive_json()["error"] == "Validation error"

        ws.send_json({"type": "send_message", "content": "   "})
        assert ws.receive_json() == {
            "type": "error",
            "error": "Validation error",
            "message": "Message content is required",
        }

        ws.send_json({"type": "edit_message", "message_id": 999, "content": "x"})
        assert ws.receive_json()["error"] == "Message not found"


def test_unexpected_failures_return_generic_message(
    client: TestClient, make_user, token_for, monkeypatch, caplog
):
    from app.services.messages import MessageService

    def explode(*args, **kwargs):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(MessageService, "send", explode)
    alice = make_user("Alice")

    with connect(client, token_for(alice)) as ws:
        ws.receive_json()
        ws.send_json({"type": "send_message", "content": "hello"})
        assert ws.receive_json() == {
            "type": "error",
            "error": "Server error",
            "message": "Failed to send message",
        }
        assert_quiet(ws)

    assert "Unhandled error processing send_message" in caplog.text


def test_deactivation_closes_live_connection(client: TestClient, make_user, token_for):
    alice, bob = make_user("Alice"), make_user("Bob")

    with connect(client, token_for(alice)) as a_ws:
        a_ws.receive_json()

        with connect(client, token_for(bob)) as b_ws:
            a_ws.receive_json()
            b_ws.receive_json()

            response = client.post(
                "/api/auth/deactivate", headers={"Authorization": f"Bearer {token_for(bob)}"}
            )
            assert response.status_code == 200

            with pytest.raises(WebSocketDisconnect) as exc:
                b_ws.receive_json()
            assert exc.value.code == 1008
            assert exc.value.reason == "Account deactivated"

        left = a_ws.receive_json()
        assert left["type"] == "user_disconnected"
        assert left["user_id"] == bob.id
        assert get_realtime_hub().online_users() == [alice.id]

        a_ws.send_json({"type": "send_message", "content": "secret"})
        assert a_ws.receive_json()["type"] == "new_message"
        assert a_ws.receive_json()["type"] == "message_sent"
        assert_quiet(a_ws)


@pytest.mark.parametrize(
    "frame",
    [
        {"type": "typing_start"},
        {"type": "typing_stop"},
        {"type": "update_status", "status": "away"},
        {"type": "send_message", "content": "still here?"},
    ],
)
def test_inactive_user_cannot_emit_on_open_connection(
    client: TestClient, make_user, token_for, session_factory, frame
):
    alice, bob = make_user("Alice"), make_user("Bob")

    with connect(client, token_for(alice)) as a_ws, connect(client, token_for(bob)) as b_ws:
        a_ws.receive_json()
        a_ws.receive_json()
        b_ws.receive_json()

        with session_factory() as db:
            db.get(User, bob.id).is_active = False
            db.commit()

        b_ws.send_json(frame)
        assert b_ws.receive_json() == {
            "type": "error",
            "error": "Account deactivated",
            "message": "Your account has been deactivated",
        }
        assert_quiet(a_ws)


def test_repeat_delete_is_confirmed_to_sender_only(client: TestClient, make_user, token_for):
    alice, bob = make_user("Alice"), make_user("Bob")

    with connect(client, token_for(alice)) as a_ws, connect(client, token_for(bob)) as b_ws:
        a_ws.receive_json()
        a_ws.receive_json()
        b_ws.receive_json()

        a_ws.send_json({"type": "send_message", "content": "gone soon"})
        message_id = a_ws.receive_json()["id"]
        a_ws.receive_json()
        b_ws.receive_json()

        a_ws.send_json({"type": "delete_message", "message_id": message_id})
        for ws in (a_ws, b_ws):
            assert ws.receive_json() == {"type": "message_deleted", "message_id": message_id}

        a_ws.send_json({"type": "delete_message", "message_id": message_id})
        assert a_ws.receive_json() == {"type": "message_deleted", "message_id": message_id}
        assert_quiet(b_ws)
