"""Integration tests for the chat REST mirror via FastAPI's TestClient."""

from __future__ import annotations

from fastapi.testclient import TestClient

from app.models import UserRole


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def post_message(client: TestClient, token: str, content: str, **extra) -> dict:
    response = client.post(
        "/api/chat/messages",
        json={"content": content, **extra},
        headers=auth_headers(token),
    )
    assert response.status_code == 201, response.text
    return response.json()["message"]


def test_message_lifecycle_over_rest(client: TestClient, make_user, token_for):
    alice = make_user("Alice")
    token = token_for(alice)

    created = post_message(client, token, "hello @bob")
    assert created["content"] == "hello @bob"
    assert created["mentions"] == ["bob"]
    assert created["user"] == {"id": alice.id, "name": "Alice", "avatar": None}
    assert created["is_edited"] is False
    assert "formatted_time" in created

    response = client.put(
        f"/api/chat/messages/{created['id']}",
        json={"content": "hello world"},
        headers=auth_headers(token),
    )
    assert response.status_code == 200
    assert response.json()["message"]["is_edited"] is True

    response = client.delete(f"/api/chat/messages/{created['id']}", headers=auth_headers(token))
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Message deleted successfully"}

    listing = client.get("/api/chat/messages").json()
    assert listing["messages"] == []


def test_mutations_require_authentication(client: TestClient):
    response = client.post("/api/chat/messages", json={"content": "hi"})

    assert response.status_code == 401
    assert response.json() == {
        "error": "Authentication required",
        "message": "Access token required",
    }


def test_invalid_token_is_rejected(client: TestClient):
    response = client.post(
        "/api/chat/messages", json={"content": "hi"}, headers=auth_headers("garbage")
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token format"


def test_deactivated_user_cannot_post(client: TestClient, make_user, token_for):
    ghost = make_user("Ghost", is_active=False)

    response = client.post(
        "/api/chat/messages", json={"content": "boo"}, headers=auth_headers(token_for(ghost))
    )

    assert response.status_code == 401
    assert response.json()["error"] == "Account deactivated"


def test_validation_errors_use_error_envelope(client: TestClient, make_user, token_for):
    token = token_for(make_user("Alice"))

    empty = client.post("/api/chat/messages", json={"content": "   "}, headers=auth_headers(token))
    too_long = client.post(
        "/api/chat/messages", json={"content": "a" * 1001}, headers=auth_headers(token)
    )

    assert empty.status_code == 400
    assert empty.json() == {"error": "Validation error", "message": "Message content is required"}
    assert too_long.status_code == 400
    assert too_long.json()["message"] == "Message content cannot exceed 1000 characters"
    assert client.get("/api/chat/messages").json()["messages"] == []


def test_non_owner_cannot_edit_or_delete(client: TestClient, make_user, token_for):
    alice, bob = make_user("Alice"), make_user("Bob")
    created = post_message(client, token_for(alice), "mine")

    edit = client.put(
        f"/api/chat/messages/{created['id']}",
        json={"content": "yours"},
        headers=auth_headers(token_for(bob)),
    )
    delete = client.delete(
        f"/api/chat/messages/{created['id']}", headers=auth_headers(token_for(bob))
    )

    assert edit.status_code == 403
    assert edit.json()["error"] == "Access denied"
    assert delete.status_code == 403
    messages = client.get("/api/chat/messages").json()["messages"]
    assert [m["content"] for m in messages] == ["mine"]


def test_unknown_message_returns_404(client: TestClient, make_user, token_for):
    token = token_for(make_user("Alice"))

    response = client.put(
        "/api/chat/messages/9999", json={"content": "x"}, headers=auth_headers(token)
    )

    assert response.status_code == 404
    assert response.json() == {
        "error": "Message not found",
        "message": "The specified message does not exist",
    }


def test_reactions_endpoints(client: TestClient, make_user, token_for):
    alice, bob = make_user("Alice"), make_user("Bob")
    created = post_message(client, token_for(alice), "react")
    url = f"/api/chat/messages/{created['id']}/reactions"

    client.post(url, json={"emoji": "👍"}, headers=auth_headers(token_for(bob)))
    response = client.post(url, json={"emoji": "🔥"}, headers=auth_headers(token_for(bob)))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [(r["user_id"], r["emoji"]) for r in body["reactions"]] == [(bob.id, "🔥")]

    response = client.delete(url, headers=auth_headers(token_for(bob)))
    assert response.status_code == 200
    assert response.json()["reactions"] == []


def test_list_paginates_oldest_first(client: TestClient, make_user, token_for):
    token = token_for(make_user("Alice"))
    for index in range(5):
        post_message(client, token, f"m{index}")

    body = client.get("/api/chat/messages", params={"page": 1, "limit": 2}).json()
    assert [m["content"] for m in body["messages"]] == ["m3", "m4"]
    assert body["pagination"] == {"page": 1, "limit": 2, "has_more": True}

    body = client.get("/api/chat/messages", params={"page": 3, "limit": 2}).json()
    assert [m["content"] for m in body["messages"]] == ["m0"]
    assert body["pagination"]["has_more"] is False


def test_list_rejects_non_numeric_paging(client: TestClient):
    response = client.get("/api/chat/messages", params={"page": "abc"})
    assert response.status_code == 400
    assert response.json()["error"] == "Validation error"


def test_search_endpoint(client: TestClient, make_user, token_for):
    alice, bob = make_user("Alice"), make_user("Bob")
    post_message(client, token_for(alice), "Release notes")
    post_message(client, token_for(bob), "release party")

    body = client.get("/api/chat/search", params={"q": "RELEASE"}).json()
    assert body["query"] == "RELEASE"
    assert [m["content"] for m in body["messages"]] == ["release party", "Release notes"]

    scoped = client.get("/api/chat/search", params={"q": "release", "user_id": alice.id}).json()
    assert [m["content"] for m in scoped["messages"]] == ["Release notes"]

    missing = client.get("/api/chat/search")
    assert missing.status_code == 400
    assert missing.json()["message"] == "Search query is required"


def test_stats_restricted_to_moderators(client: TestClient, make_user, token_for):
    user = make_user("Regular")
    moderator = make_user("Mod", role=UserRole.MODERATOR)
    admin = make_user("Admin", role=UserRole.ADMIN)
    created = post_message(client, token_for(user), "count me")
    client.post(
        f"/api/chat/messages/{created['id']}/reactions",
        json={"emoji": "👍"},
        headers=auth_headers(token_for(moderator)),
    )

    forbidden = client.get("/api/chat/stats", headers=auth_headers(token_for(user)))
    assert forbidden.status_code == 403

    for privileged in (moderator, admin):
        response = client.get("/api/chat/stats", headers=auth_headers(token_for(privileged)))
        assert response.status_code == 200
        assert response.json()["stats"] == {
            "total_messages": 1,
            "total_reactions": 1,
            "avg_reactions_per_message": 1.0,
            "messages_with_reactions": 1,
        }


def test_rest_send_reaches_live_room(client: TestClient, make_user, token_for):
    alice, bob = make_user("Alice"), make_user("Bob")

    with client.websocket_connect(f"/ws/chat?token={token_for(bob)}") as bob_ws:
        assert bob_ws.receive_json()["type"] == "online_users"

        created = post_message(client, token_for(alice), "from rest")

        frame = bob_ws.receive_json()
        assert frame["type"] == "new_message"
        assert frame["id"] == created["id"]
        assert frame["content"] == "from rest"

        online = client.get("/api/chat/online", headers=auth_headers(token_for(alice))).json()
        assert online == {"success": True, "users": [bob.id]}
