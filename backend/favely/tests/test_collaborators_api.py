"""Tests for collaborator invitations, roles and removal."""

import pytest

from conftest import auth


def invite(client, list_id, actor="user_alice", **target):
    return client.post(f"/api/lists/{list_id}/collaborators", json=target, headers=auth(actor))


def accept(client, list_id, user_id):
    resp = client.post(f"/api/lists/{list_id}/collaborators/respond", json={"accept": True}, headers=auth(user_id))
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.fixture
def private_list(make_list):
    return make_list(visibility="private")


def test_invite_by_username_is_pending(client, private_list):
    resp = invite(client, private_list["id"], username="bob", role="editor")
    assert resp.status_code == 201
    body = resp.json()
    assert body["clerkId"] == "user_bob"
    assert body["status"] == "pending"
    assert body["role"] == "editor"

    # a pending invitee cannot see the private list yet
    assert client.get(f"/api/lists/{private_list['id']}", headers=auth("user_bob")).status_code == 404

    pending = client.get("/api/collaborations/pending", headers=auth("user_bob")).json()
    assert [i["listId"] for i in pending["invitations"]] == [private_list["id"]]
    assert pending["invitations"][0]["owner"]["username"] == "alice"

    assert accept(client, private_list["id"], "user_bob")["status"] == "accepted"
    body = client.get(f"/api/lists/{private_list['id']}", headers=auth("user_bob")).json()
    assert body["role"] == "editor"


def test_invitee_followed_by_actor_is_accepted_directly(client, private_list):
    client.post("/api/users/bob/follow", headers=auth("user_alice"))
    body = invite(client, private_list["id"], userId="user_bob").json()
    assert body["status"] == "accepted"
    assert body["acceptedAt"] is not None


def test_invite_validation(client, private_list):
    assert invite(client, private_list["id"]).status_code == 400
    assert invite(client, private_list["id"], username="bob", email="bob@example.com").status_code == 400
    assert invite(client, private_list["id"], email="not-an-email").status_code == 400
    assert invite(client, private_list["id"], username="nobody").status_code == 404


def test_cannot_invite_owner_or_twice(client, private_list):
    assert invite(client, private_list["id"], userId="user_alice").status_code == 409
    assert invite(client, private_list["id"], username="bob").status_code == 201
    assert invite(client, private_list["id"], username="bob").status_code == 409


def test_rejected_invitation_can_be_sent_again(client, private_list):
    invite(client, private_list["id"], username="bob")
    resp = client.post(
        f"/api/lists/{private_list['id']}/collaborators/respond", json={"accept": False}, headers=auth("user_bob"),
    )
    assert resp.json()["status"] == "rejected"
    assert invite(client, private_list["id"], username="bob").status_code == 201


def test_email_invite_is_claimed_by_matching_user(client, identity, private_list):
    identity.add("user_erin", "erin", email="erin@example.com")
    body = invite(client, private_list["id"], email="Erin@Example.com").json()
    assert body["isEmailInvite"] is True
    assert body["clerkId"] is None

    client.get("/api/users/me", headers=auth("user_erin"))
    pending = client.get("/api/collaborations/pending", headers=auth("user_erin")).json()
    assert pending["total"] == 1

    accept(client, private_list["id"], "user_erin")
    collaborators = client.get(
        f"/api/lists/{private_list['id']}/collaborators", headers=auth("user_erin"),
    ).json()["collaborators"]
    erin = next(c for c in collaborators if c["email"] == "erin@example.com")
    assert erin["clerkId"] == "user_erin"
    assert erin["status"] == "accepted"
    assert erin["isEmailInvite"] is False


def test_only_managers_invite(client, make_list):
    public = make_list()
    assert invite(client, public["id"], actor="user_bob", username="carol").status_code == 403

    invite(client, public["id"], username="bob", role="editor")
    accept(client, public["id"], "user_bob")
    assert invite(client, public["id"], actor="user_bob", username="carol").status_code == 403


def test_admin_role_rules(client, private_list):
    list_id = private_list["id"]
    invite(client, list_id, username="bob", role="admin")
    accept(client, list_id, "user_bob")
    invite(client, list_id, username="carol", role="viewer")
    accept(client, list_id, "user_carol")

    # admins cannot hand out admin
    assert invite(client, list_id, actor="user_bob", username="dave", role="admin").status_code == 403
    assert invite(client, list_id, actor="user_bob", username="dave", role="editor").status_code == 201

    url = f"/api/lists/{list_id}/collaborators"
    resp = client.patch(f"{url}/user_carol", json={"role": "editor"}, headers=auth("user_bob"))
    assert resp.status_code == 200
    assert resp.json()["role"] == "editor"
    assert client.patch(f"{url}/user_carol", json={"role": "admin"}, headers=auth("user_bob")).status_code == 403
    assert client.patch(f"{url}/user_bob", json={"role": "viewer"}, headers=auth("user_carol")).status_code == 403
    assert client.patch(f"{url}/user_bob", json={"role": "viewer"}, headers=auth("user_alice")).status_code == 200
    assert client.patch(f"{url}/nobody", json={"role": "viewer"}, headers=auth("user_alice")).status_code == 404


def test_collaborator_listing(client, private_list):
    list_id = private_list["id"]
    invite(client, list_id, username="bob", role="editor")
    accept(client, list_id, "user_bob")
    invite(client, list_id, email="someone@example.com")

    entries = client.get(f"/api/lists/{list_id}/collaborators", headers=auth("user_alice")).json()["collaborators"]
    assert entries[0]["role"] == "owner"
    assert entries[0]["username"] == "alice"
    assert [e["role"] for e in entries[1:]] == ["editor", "viewer"]
    assert entries[1]["displayName"] == "Bob Brown"

    assert client.get(f"/api/lists/{list_id}/collaborators", headers=auth("user_carol")).status_code == 404


def test_removal_and_leaving(client, private_list):
    list_id = private_list["id"]
    url = f"/api/lists/{list_id}/collaborators"
    invite(client, list_id, username="bob", role="admin")
    accept(client, list_id, "user_bob")
    invite(client, list_id, username="carol", role="editor")
    accept(client, list_id, "user_carol")

    # an editor cannot remove others, but may leave
    assert client.delete(f"{url}/user_bob", headers=auth("user_carol")).status_code == 403
    assert client.delete(f"{url}/user_carol", headers=auth("user_carol")).status_code == 204
    assert client.get(f"/api/lists/{list_id}", headers=auth("user_carol")).status_code == 404

    assert client.delete(f"{url}/user_alice", headers=auth("user_bob")).status_code == 404
    assert client.delete(f"{url}/user_bob", headers=auth("user_alice")).status_code == 204
    assert client.delete(f"{url}/user_bob", headers=auth("user_alice")).status_code == 404


def test_shared_and_collab_lists(client, make_list):
    shared = make_list(title="Shared list")
    make_list(title="Solo list")
    invite(client, shared["id"], username="bob", role="viewer")
    accept(client, shared["id"], "user_bob")

    owner_shared = client.get("/api/lists/shared", headers=auth("user_alice")).json()
    assert [l["title"] for l in owner_shared["lists"]] == ["Shared list"]

    bob_shared = client.get("/api/lists/shared", headers=auth("user_bob")).json()
    assert [l["title"] for l in bob_shared["lists"]] == ["Shared list"]
    bob_collab = client.get("/api/lists/collab", headers=auth("user_bob")).json()
    assert [l["title"] for l in bob_collab["lists"]] == ["Shared list"]
    assert client.get("/api/lists/collab", headers=auth("user_alice")).json()["lists"] == []


def test_respond_without_invitation(client, private_list):
    resp = client.post(
        f"/api/lists/{private_list['id']}/collaborators/respond", json={"accept": True}, headers=auth("user_bob"),
    )
    assert resp.status_code == 404
