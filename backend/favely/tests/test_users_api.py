"""Tests for user profiles, lookup, follows and identity-provider webhooks."""

import base64
import json
import time

from fastapi.testclient import TestClient

from conftest import auth
from favely.config import get_settings
from favely.db.default_fields import new_user_document
from favely.main import app
from favely.providers.webhooks import sign
from favely.routes.deps import get_user_service


def test_me(client):
    assert client.get("/api/users/me").json() is None
    body = client.get("/api/users/me", headers=auth("user_alice")).json()
    assert body == {
        "id": "user_alice",
        "email": "alice@example.com",
        "username": "alice",
        "firstName": None,
        "lastName": None,
        "fullName": "Alice Anders",
        "imageUrl": "https://img.example.com/alice.png",
    }


def test_invalid_token_is_anonymous_or_unauthorized(client):
    headers = {"Authorization": "Bearer forged"}
    assert client.get("/api/users/me", headers=headers).json() is None
    assert client.get("/api/users/followers", headers=headers).status_code == 401


def test_batch_users(client):
    client.get("/api/users/me", headers=auth("user_alice"))
    resp = client.post("/api/users/batch", json={"userIds": ["user_alice", "ghost"]})
    assert resp.status_code == 200
    alice, ghost = resp.json()
    assert alice["username"] == "alice"
    assert ghost == {"id": "ghost", "username": "Unknown User", "displayName": "Unknown User", "imageUrl": None}

    for body in ({}, {"userIds": []}, {"userIds": "user_alice"}):
        resp = client.post("/api/users/batch", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "User IDs array is required"}

    for ids in ([{"x": 1}], ["user_alice", 7], [""]):
        resp = client.post("/api/users/batch", json={"userIds": ids})
        assert resp.status_code == 400
        assert resp.json() == {"error": "User IDs must be non-empty strings"}


def test_unexpected_errors_answer_json(client):
    def broken_service():
        raise RuntimeError("boom")

    app.dependency_overrides[get_user_service] = broken_service
    resp = TestClient(app, raise_server_exceptions=False).get("/api/users/search?q=al")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal Server Error"}


def test_user_search_excludes_caller(client):
    for user in ("user_alice", "user_bob", "user_carol"):
        client.get("/api/users/me", headers=auth(user))
    assert client.get("/api/users/search?q=").json() == {"users": []}

    found = client.get("/api/users/search?q=BRO").json()["users"]
    assert [u["username"] for u in found] == ["bob"]

    found = client.get("/api/users/search?q=o", headers=auth("user_bob")).json()["users"]
    assert [u["username"] for u in found] == ["carol"]

    # regex metacharacters are matched literally
    assert client.get("/api/users/search?q=.*").json() == {"users": []}


def test_follow_flow(client, connection):
    resp = client.post("/api/users/bob/follow", headers=auth("user_alice"))
    assert resp.json() == {"isFollowing": True, "followersCount": 1}
    # following twice changes nothing
    assert client.post("/api/users/bob/follow", headers=auth("user_alice")).json()["followersCount"] == 1

    assert client.get("/api/users/bob/follow/status", headers=auth("user_alice")).json() == {"isFollowing": True}
    assert client.get("/api/users/bob/follow/status").json() == {"isFollowing": False}

    assert connection.users.find_one({"clerkId": "user_alice"})["followingCount"] == 1
    assert connection.users.find_one({"clerkId": "user_bob"})["followersCount"] == 1

    following = client.get("/api/users/following", headers=auth("user_alice")).json()
    assert [u["username"] for u in following["following"]] == ["bob"]
    assert following["total"] == 1 and following["hasMore"] is False

    followers = client.get("/api/users/followers", headers=auth("user_bob")).json()
    assert [u["username"] for u in followers["followers"]] == ["alice"]

    public = client.get("/api/users/alice/following").json()
    assert public["total"] == 1
    assert public["results"][0]["user"]["username"] == "bob"

    resp = client.delete("/api/users/bob/follow", headers=auth("user_alice"))
    assert resp.json() == {"isFollowing": False, "followersCount": 0}
    assert connection.users.find_one({"clerkId": "user_alice"})["followingCount"] == 0


def test_cannot_follow_self_or_unknown(client):
    assert client.post("/api/users/alice/follow", headers=auth("user_alice")).status_code == 400
    assert client.post("/api/users/nobody/follow", headers=auth("user_alice")).status_code == 404
    assert client.post("/api/users/bob/follow").status_code == 401


def test_followers_pagination(client):
    for user in ("user_alice", "user_carol", "user_dave"):
        client.post("/api/users/bob/follow", headers=auth(user))
    page = client.get("/api/users/followers?page=1&limit=2", headers=auth("user_bob")).json()
    assert len(page["followers"]) == 2
    assert page["total"] == 3 and page["hasMore"] is True and page["pageSize"] == 2
    page = client.get("/api/users/followers?page=2&limit=2", headers=auth("user_bob")).json()
    assert len(page["followers"]) == 1 and page["hasMore"] is False


def test_profile_privacy(client, make_list):
    make_list(title="Public list")
    make_list(title="Private list", visibility="private")
    resp = client.patch(
        "/api/users/me",
        json={
            "bio": "Movie nerd",
            "dateOfBirth": "1990-04-01",
            "gender": "female",
            "privacySettings": {"showGender": False},
        },
        headers=auth("user_alice"),
    )
    assert resp.status_code == 200
    own = resp.json()
    assert own["isSelf"] is True
    assert own["dateOfBirth"] == "1990-04-01T00:00:00Z"
    assert own["gender"] == "female"
    assert own["privacySettings"]["showGender"] is False
    assert own["listCount"] == 2

    public = client.get("/api/users/alice", headers=auth("user_bob")).json()
    assert public["bio"] == "Movie nerd"
    assert "dateOfBirth" not in public
    assert "gender" not in public
    assert public["listCount"] == 1
    assert public["isFollowing"] is False

    assert client.get("/api/users/@alice").json()["username"] == "alice"
    assert client.get("/api/users/nobody").status_code == 404


def test_profile_update_validation(client):
    resp = client.patch("/api/users/me", json={"gender": "robot"}, headers=auth("user_alice"))
    assert resp.status_code == 400
    resp = client.patch("/api/users/me", json={"bio": "x" * 501}, headers=auth("user_alice"))
    assert resp.status_code == 400


WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"webhook-key").decode()


def post_webhook(client, event):
    payload = json.dumps(event).encode()
    timestamp = str(int(time.time()))
    headers = {
        "svix-id": "msg_1",
        "svix-timestamp": timestamp,
        "svix-signature": "v1," + sign(WEBHOOK_SECRET, "msg_1", timestamp, payload),
        "content-type": "application/json",
    }
    return client.post("/api/webhooks/clerk", content=payload, headers=headers)


def test_webhooks_sync_users(client, connection, make_list, monkeypatch):
    monkeypatch.setattr(get_settings(), "clerk_webhook_secret", WEBHOOK_SECRET)
    make_list()
    client.post("/api/users/alice/follow", headers=auth("user_bob"))

    resp = post_webhook(client, {"type": "user.updated", "data": {
        "id": "user_alice",
        "username": "alice2",
        "first_name": "Alice",
        "last_name": "Anders",
        "image_url": "https://img/new.png",
        "email_addresses": [],
    }})
    assert resp.json() == {"synced": True}
    assert connection.users.find_one({"clerkId": "user_alice"})["username"] == "alice2"
    assert connection.lists.find_one()["owner"]["username"] == "alice2"

    resp = post_webhook(client, {"type": "user.deleted", "data": {"id": "user_alice"}})
    assert resp.json() == {"deleted": True}
    assert connection.users.find_one({"clerkId": "user_alice"}) is None
    assert connection.follows.count_documents({}) == 0
    assert connection.users.find_one({"clerkId": "user_bob"})["followingCount"] == 0

    assert post_webhook(client, {"type": "session.created", "data": {}}).json() == {"ignored": True}


def test_webhook_rejects_bad_signature(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "clerk_webhook_secret", WEBHOOK_SECRET)
    resp = client.post(
        "/api/webhooks/clerk",
        content=b"{}",
        headers={"svix-id": "x", "svix-timestamp": str(int(time.time())), "svix-signature": "v1,bad"},
    )
    assert resp.status_code == 401


def test_new_user_takes_username_from_stale_local_user(client, connection, identity):
    connection.users.insert_one(new_user_document(clerkId="user_old", username="eve", displayName="Old Eve"))
    identity.add("user_eve", "eve", "Eve", email="eve@example.com")

    resp = client.post("/api/lists", json={"title": "Eve's picks", "category": "movies"}, headers=auth("user_eve"))
    assert resp.status_code == 201
    assert resp.json()["owner"]["username"] == "eve"
    assert connection.users.find_one({"clerkId": "user_eve"})["username"] == "eve"
    assert connection.users.find_one({"clerkId": "user_old"})["username"] == "user_old"


def test_webhook_rename_onto_stale_username(client, connection, monkeypatch):
    monkeypatch.setattr(get_settings(), "clerk_webhook_secret", WEBHOOK_SECRET)
    for user in ("user_alice", "user_bob"):
        client.get("/api/users/me", headers=auth(user))

    resp = post_webhook(client, {"type": "user.updated", "data": {
        "id": "user_alice",
        "username": "bob",
        "first_name": "Alice",
        "last_name": "Anders",
        "image_url": None,
        "email_addresses": [],
    }})
    assert resp.status_code == 200
    assert resp.json() == {"synced": True}
    assert connection.users.find_one({"clerkId": "user_alice"})["username"] == "bob"
    assert connection.users.find_one({"clerkId": "user_bob"})["username"] == "user_bob"
