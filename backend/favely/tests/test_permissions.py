"""Tests for the list authorization matrix."""

import pytest

from favely.services import permissions


def make_list(visibility="private", collaborators=None):
    return {
        "visibility": visibility,
        "owner": {"clerkId": "owner"},
        "collaborators": collaborators or [],
    }


def collab(clerk_id, role, status="accepted"):
    return {"clerkId": clerk_id, "role": role, "status": status}


def test_role_of_owner_and_accepted_collaborators():
    doc = make_list(collaborators=[collab("a", "admin"), collab("e", "editor"), collab("v", "viewer")])
    assert permissions.role_of(doc, "owner") == "owner"
    assert permissions.role_of(doc, "a") == "admin"
    assert permissions.role_of(doc, "e") == "editor"
    assert permissions.role_of(doc, "v") == "viewer"
    assert permissions.role_of(doc, "stranger") is None
    assert permissions.role_of(doc, None) is None


@pytest.mark.parametrize("status", ["pending", "rejected"])
def test_unaccepted_invitations_grant_nothing(status):
    doc = make_list(collaborators=[collab("p", "admin", status)])
    assert permissions.role_of(doc, "p") is None
    assert not permissions.can_view(doc, "p")
    assert not permissions.can_edit(doc, "p")


@pytest.mark.parametrize("visibility", ["public", "unlisted"])
def test_public_and_unlisted_lists_are_viewable_by_anyone(visibility):
    doc = make_list(visibility)
    assert permissions.can_view(doc, None)
    assert permissions.can_view(doc, "stranger")
    assert not permissions.can_edit(doc, "stranger")


def test_private_list_viewable_by_members_only():
    doc = make_list(collaborators=[collab("v", "viewer")])
    assert permissions.can_view(doc, "owner")
    assert permissions.can_view(doc, "v")
    assert not permissions.can_view(doc, "stranger")
    assert not permissions.can_view(doc, None)


def test_edit_manage_delete_matrix():
    doc = make_list(collaborators=[collab("a", "admin"), collab("e", "editor"), collab("v", "viewer")])
    assert [permissions.can_edit(doc, u) for u in ("owner", "a", "e", "v")] == [True, True, True, False]
    assert [permissions.can_manage_collaborators(doc, u) for u in ("owner", "a", "e", "v")] == [True, True, False, False]
    assert [permissions.can_delete(doc, u) for u in ("owner", "a", "e", "v")] == [True, False, False, False]
    assert [permissions.can_change_visibility(doc, u) for u in ("owner", "a", "e", "v")] == [True, False, False, False]


def test_role_assignment_rules():
    assert permissions.can_assign_role("owner", "viewer", "admin")
    assert permissions.can_assign_role("owner", "admin", "viewer")
    assert permissions.can_assign_role("admin", "viewer", "editor")
    assert not permissions.can_assign_role("admin", "viewer", "admin")
    assert not permissions.can_assign_role("admin", "admin", "viewer")
    assert not permissions.can_assign_role("editor", "viewer", "editor")
    assert not permissions.can_assign_role("owner", "owner", "viewer")
    assert not permissions.can_assign_role("owner", "viewer", "owner")


def test_removal_rules():
    assert permissions.can_remove("owner", "admin", is_self=False)
    assert permissions.can_remove("admin", "editor", is_self=False)
    assert not permissions.can_remove("admin", "admin", is_self=False)
    assert not permissions.can_remove("editor", "viewer", is_self=False)
    assert permissions.can_remove("viewer", "viewer", is_self=True)
    assert not permissions.can_remove("owner", "owner", is_self=True)


def test_filters():
    assert permissions.visible_filter(None) == {"visibility": "public"}
    assert permissions.readable_filter(None) == {"visibility": {"$in": ["public", "unlisted"]}}
    clauses = permissions.visible_filter("u1")["$or"]
    assert {"owner.clerkId": "u1"} in clauses
    assert {"visibility": "public"} in clauses
