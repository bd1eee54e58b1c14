"""
Authorization rules for lists.

Roles come from the list document: the owner, then accepted collaborators
with role admin, editor or viewer. Pending and rejected invitations grant
nothing.
"""

from typing import Optional

OWNER = "owner"
ADMIN = "admin"
EDITOR = "editor"
VIEWER = "viewer"

COLLABORATOR_ROLES = (ADMIN, EDITOR, VIEWER)

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"

INVITATION_STATUSES = (PENDING, ACCEPTED, REJECTED)

PUBLIC = "public"
UNLISTED = "unlisted"
PRIVATE = "private"

VISIBILITIES = (PUBLIC, UNLISTED, PRIVATE)


def role_of(list_doc: dict, user_id: Optional[str]) -> Optional[str]:
    if not user_id:
        return None
    if (list_doc.get("owner") or {}).get("clerkId") == user_id:
        return OWNER
    for collab in list_doc.get("collaborators") or []:
        if collab.get("clerkId") == user_id and collab.get("status") == ACCEPTED:
            return collab.get("role")
    return None


def can_view(list_doc: dict, user_id: Optional[str]) -> bool:
    if list_doc.get("visibility", PUBLIC) in (PUBLIC, UNLISTED):
        return True
    return role_of(list_doc, user_id) is not None


def can_edit(list_doc: dict, user_id: Optional[str]) -> bool:
    return role_of(list_doc, user_id) in (OWNER, ADMIN, EDITOR)


def can_manage_collaborators(list_doc: dict, user_id: Optional[str]) -> bool:
    return role_of(list_doc, user_id) in (OWNER, ADMIN)


def can_delete(list_doc: dict, user_id: Optional[str]) -> bool:
    return role_of(list_doc, user_id) == OWNER


def can_change_visibility(list_doc: dict, user_id: Optional[str]) -> bool:
    return role_of(list_doc, user_id) == OWNER


def can_assign_role(actor_role: Optional[str], target_role: Optional[str], new_role: str) -> bool:
    """Whether `actor_role` may move a collaborator from `target_role` to `new_role`."""
    if new_role not in COLLABORATOR_ROLES or target_role == OWNER:
        return False
    if actor_role == OWNER:
        return True
    if actor_role == ADMIN:
        return target_role != ADMIN and new_role != ADMIN
    return False


def can_remove(actor_role: Optional[str], target_role: Optional[str], is_self: bool) -> bool:
    if target_role == OWNER:
        return False
    if is_self:
        return True
    if actor_role == OWNER:
        return True
    if actor_role == ADMIN:
        return target_role != ADMIN
    return False


def _member_clauses(user_id: str) -> list:
    return [
        {"owner.clerkId": user_id},
        {"collaborators": {"$elemMatch": {"clerkId": user_id, "status": ACCEPTED}}},
    ]


def visible_filter(user_id: Optional[str]) -> dict:
    """Lists the caller may discover: public ones plus their own and accepted collaborations."""
    if not user_id:
        return {"visibility": PUBLIC}
    return {"$or": [{"visibility": PUBLIC}, *_member_clauses(user_id)]}


def readable_filter(user_id: Optional[str]) -> dict:
    """Lists the caller may open by id, unlisted ones included."""
    if not user_id:
        return {"visibility": {"$in": [PUBLIC, UNLISTED]}}
    return {"$or": [{"visibility": {"$in": [PUBLIC, UNLISTED]}}, *_member_clauses(user_id)]}
